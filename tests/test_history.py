from src.surveychat.domain.chat_models import ChatMessage
from src.surveychat.services.history import (
    MESSAGE_OVERHEAD_TOKENS,
    conversational_messages,
    estimate_message_tokens,
    estimate_tokens,
    format_for_model,
    select_history,
)


def _msg(i, content, role="user", **kw):
    return ChatMessage(
        message_id=f"m{i}",
        session_id="s1",
        role=role,
        content=content,
        created_at=f"2024-01-01T00:00:{i:02d}.000000Z",
        **kw,
    )


def test_estimate_tokens_rounds_up_and_handles_empty():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("a" * 7) == 2
    assert estimate_tokens("a" * 8) == 3


def test_message_estimate_adds_overhead_once():
    text = "a" * 35
    assert estimate_message_tokens(_msg(1, text)) == estimate_tokens(text) + MESSAGE_OVERHEAD_TOKENS
    assert estimate_message_tokens(_msg(2, "")) == MESSAGE_OVERHEAD_TOKENS


def test_select_history_keeps_newest_suffix_in_order():
    # each message costs 10 content tokens + 10 overhead = 20
    msgs = [_msg(i, "x" * 35) for i in range(5)]
    picked = select_history(msgs, token_limit=60, max_messages=50)
    assert [m.message_id for m in picked] == ["m2", "m3", "m4"]


def test_select_history_stops_at_first_message_that_does_not_fit():
    msgs = [_msg(0, "short"), _msg(1, "y" * 350), _msg(2, "short")]
    picked = select_history(msgs, token_limit=50, max_messages=50)
    assert [m.message_id for m in picked] == ["m2"]


def test_select_history_message_cap_applies_independently():
    msgs = [_msg(i, "hi") for i in range(10)]
    picked = select_history(msgs, token_limit=10_000, max_messages=3)
    assert [m.message_id for m in picked] == ["m7", "m8", "m9"]


def test_select_history_includes_oversized_most_recent_message():
    msgs = [_msg(0, "older"), _msg(1, "z" * 1000)]
    picked = select_history(msgs, token_limit=20, max_messages=50)
    assert [m.message_id for m in picked] == ["m1"]


def test_select_history_empty_inputs():
    assert select_history([], token_limit=100, max_messages=10) == []
    assert select_history([_msg(0, "hi")], token_limit=0, max_messages=10) == []
    assert select_history([_msg(0, "hi")], token_limit=100, max_messages=0) == []


def test_conversational_messages_drops_artifact_carriers():
    msgs = [
        _msg(0, "make a survey"),
        _msg(1, None, role="assistant", is_artifact=True, message_type="artifact", artifact_id="a1"),
        _msg(2, "Here it is", role="assistant"),
    ]
    assert [m.message_id for m in conversational_messages(msgs)] == ["m0", "m2"]


def test_format_for_model_drops_leading_assistant_and_merges_roles():
    msgs = [
        _msg(0, "Welcome!", role="assistant"),
        _msg(1, "first", role="user"),
        _msg(2, "second", role="user"),
        _msg(3, "answer", role="assistant"),
        _msg(4, "more", role="assistant"),
    ]
    assert format_for_model(msgs) == [
        {"role": "user", "content": "first\n\nsecond"},
        {"role": "assistant", "content": "answer\n\nmore"},
    ]
