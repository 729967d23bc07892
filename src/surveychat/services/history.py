from __future__ import annotations

"""Token-budgeted conversation history.

Token counts are estimated from character length only (no tokenizer, no
network): roughly 3.5 characters per token for mixed prose, plus a fixed
per-message overhead for role and formatting metadata.
"""

from typing import Dict, List, Sequence
import math

from ..domain.chat_models import ChatMessage


CHARS_PER_TOKEN = 3.5
MESSAGE_OVERHEAD_TOKENS = 10


def estimate_tokens(text: str | None) -> int:
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(message: ChatMessage) -> int:
    return estimate_tokens(message.content or "") + MESSAGE_OVERHEAD_TOKENS


def select_history(messages: Sequence[ChatMessage], token_limit: int, max_messages: int) -> List[ChatMessage]:
    """Return the newest contiguous run of ``messages`` that fits ``token_limit``.

    ``messages`` must be chronological; the result is chronological too. The
    most recent message is always kept (when the budget is positive) even if
    it alone exceeds the budget. ``max_messages`` caps the result regardless
    of the token budget.
    """
    if token_limit <= 0 or max_messages <= 0:
        return []
    selected: List[ChatMessage] = []
    total = 0
    for message in reversed(messages):
        if len(selected) >= max_messages:
            break
        cost = estimate_message_tokens(message)
        if selected and total + cost > token_limit:
            break
        total += cost
        selected.append(message)
    selected.reverse()
    return selected


def conversational_messages(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
    """Drop artifact-carrier rows; they hold no prose for the model."""
    return [m for m in messages if not m.is_artifact and (m.content or "").strip()]


def format_for_model(messages: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    """Shape history into provider turns.

    The conversation must open with a user turn and alternate roles, so
    leading assistant turns are dropped and same-role neighbours are merged.
    """
    turns: List[Dict[str, str]] = []
    for m in messages:
        content = (m.content or "").strip()
        if not content:
            continue
        role = m.role if m.role in ("user", "assistant") else "user"
        if not turns and role != "user":
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] += "\n\n" + content
            continue
        turns.append({"role": role, "content": content})
    return turns
