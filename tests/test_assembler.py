import pytest
from prometheus_client import REGISTRY

from src.surveychat.config import AppConfig
from src.surveychat.infrastructure.artifact_store import InMemoryArtifactStore
from src.surveychat.infrastructure.chat_store import InMemoryChatStore
from src.surveychat.services.assembler import SAVE_FAILURE_TEXT, ResponseAssembler

from .utils import FailingArtifactStore


@pytest.fixture
def chats():
    return InMemoryChatStore()


@pytest.fixture
def session_id(chats):
    return chats.create_session("user-1").session_id


def _assembler(chats, artifacts=None):
    return ResponseAssembler(chats, artifacts or InMemoryArtifactStore(), AppConfig())


def test_plain_text_completion_is_one_sanitized_message(chats, session_id):
    out = _assembler(chats).assemble("```\nKeep surveys under 10 minutes.\n```", session_id)
    assert len(out) == 1
    assert out[0].type == "text"
    assert out[0].content == "Keep surveys under 10 minutes."
    stored = chats.list_messages(session_id)
    assert [(m.role, m.content, m.message_type) for m in stored] == [
        ("assistant", "Keep surveys under 10 minutes.", "text")
    ]


def test_artifact_between_leading_and_trailing_text(chats, session_id):
    artifacts = InMemoryArtifactStore()
    completion = 'Sure! {"group_id":"new","title":"Pricing Survey","pages":[]} Let me know if you\'d like changes.'
    out = _assembler(chats, artifacts).assemble(completion, session_id)

    assert [m.type for m in out] == ["text", "artifact", "text"]
    assert out[0].content == "Sure!"
    assert out[2].content == "Let me know if you'd like changes."

    art = out[1]
    assert art.content is None
    assert art.artifact_info.title == "Pricing Survey"
    assert art.artifact_info.action == "created"
    assert art.artifact_info.version == 1
    assert art.artifact_data["group_id"] == art.artifact_info.id
    assert art.artifact_data["group_id"] != "new"

    stored = chats.list_messages(session_id)
    assert len(stored) == 3
    carrier = stored[1]
    assert carrier.is_artifact and carrier.content is None
    assert carrier.message_type == "artifact"
    assert carrier.artifact_id == art.artifact_info.artifact_id
    assert [m.message_id for m in stored] == [m.message_id for m in out]


def test_update_of_existing_group_reports_updated(chats, session_id):
    artifacts = InMemoryArtifactStore()
    first = artifacts.create_new(session_id, {"group_id": "new", "title": "Brand Poll"})
    completion = '{"group_id": "%s", "title": "Brand Poll", "pages": [{"position": 0}]}' % first.id
    out = _assembler(chats, artifacts).assemble(completion, session_id)
    assert len(out) == 1
    info = out[0].artifact_info
    assert (info.id, info.version, info.action) == (first.id, 2, "updated")


def test_stale_group_reference_is_replaced(chats, session_id):
    completion = 'Updated: {"group_id": "does-not-exist", "title": "Old Ref"}'
    out = _assembler(chats).assemble(completion, session_id)
    art = out[-1]
    assert art.artifact_info.action == "created"
    assert art.artifact_data["group_id"] == art.artifact_info.id != "does-not-exist"


def test_save_failure_becomes_apology_text(chats, session_id):
    before = REGISTRY.get_sample_value("surveychat_artifact_save_failures_total") or 0.0
    completion = 'Here it is: {"group_id":"new","title":"T"} Anything else?'
    out = _assembler(chats, FailingArtifactStore()).assemble(completion, session_id)

    assert [m.type for m in out] == ["text", "text", "text"]
    assert out[1].content == SAVE_FAILURE_TEXT
    stored = chats.list_messages(session_id)
    assert stored[1].message_type == "error"
    assert not any(m.is_artifact for m in stored)
    after = REGISTRY.get_sample_value("surveychat_artifact_save_failures_total")
    assert after == before + 1


def test_only_artifact_when_no_surrounding_prose(chats, session_id):
    out = _assembler(chats).assemble('  {"group_id":"new","title":"Solo"}  ', session_id)
    assert [m.type for m in out] == ["artifact"]


def test_json_talk_is_cleaned_from_prose(chats, session_id):
    completion = 'Here\'s a JSON survey template for you: {"group_id":"new","title":"X"}'
    out = _assembler(chats).assemble(completion, session_id)
    assert out[0].content == "Here's a survey template:"


def test_versions_counter_tracks_action(chats, session_id):
    before = REGISTRY.get_sample_value("surveychat_artifact_versions_total", {"action": "created"}) or 0.0
    _assembler(chats).assemble('{"group_id":"new","title":"Counted"}', session_id)
    after = REGISTRY.get_sample_value("surveychat_artifact_versions_total", {"action": "created"})
    assert after == before + 1


def test_stray_quote_in_prose_still_stores_the_artifact(chats, session_id):
    completion = 'Use placeholders like {"brand} in questions. {"group_id": "new", "title": "Real"} Done.'
    out = _assembler(chats).assemble(completion, session_id)
    assert [m.type for m in out] == ["text", "artifact", "text"]
    assert out[0].content == "Use placeholders like"
    assert out[1].artifact_info.title == "Real"
    assert out[2].content == "Done."


class _CarrierFailingChatStore(InMemoryChatStore):
    def add_message(self, session_id, role, content, message_type="text", is_artifact=False, artifact_id=None):
        if is_artifact:
            raise RuntimeError("message insert failed")
        return super().add_message(session_id, role, content, message_type, is_artifact, artifact_id)


def test_carrier_message_failure_is_logged_and_raised(caplog):
    chats = _CarrierFailingChatStore()
    session_id = chats.create_session("user-1").session_id
    artifacts = InMemoryArtifactStore()

    with caplog.at_level("ERROR"):
        with pytest.raises(RuntimeError):
            _assembler(chats, artifacts).assemble('{"group_id":"new","title":"Orphan"}', session_id)

    stored = artifacts.list_current_artifacts(session_id)
    assert len(stored) == 1
    assert any(stored[0].artifact_id in r.getMessage() for r in caplog.records)
