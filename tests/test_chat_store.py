import pytest

from src.surveychat.config import AppConfig
from src.surveychat.domain.models import ProjectCreate
from src.surveychat.infrastructure.artifact_store import InMemoryArtifactStore, get_artifact_store
from src.surveychat.infrastructure.chat_store import (
    InMemoryChatStore,
    MonotonicClock,
    get_chat_store,
    isoformat_utc,
)
from src.surveychat.infrastructure.repository import InMemoryProjectRepository, get_repo


@pytest.fixture
def store():
    return InMemoryChatStore()


def test_messages_keep_write_order_and_strict_timestamps(store):
    session = store.create_session("user-1")
    for i in range(20):
        store.add_message(session.session_id, "user" if i % 2 == 0 else "assistant", f"m{i}")
    msgs = store.list_messages(session.session_id)
    assert [m.content for m in msgs] == [f"m{i}" for i in range(20)]
    stamps = [m.created_at for m in msgs]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_ownership_is_checked(store):
    session = store.create_session("owner", title="Mine")
    assert store.get_owned_session(session.session_id, "owner").title == "Mine"
    assert store.get_owned_session(session.session_id, "other") is None
    assert store.get_owned_session("missing", "owner") is None


def test_list_sessions_newest_activity_first(store):
    first = store.create_session("u")
    second = store.create_session("u")
    store.create_session("someone-else")
    store.add_message(first.session_id, "user", "bump")
    assert [s.session_id for s in store.list_sessions("u")] == [first.session_id, second.session_id]


def test_update_title_and_delete(store):
    session = store.create_session("u")
    assert session.title == "New Chat Session"
    store.update_session_title(session.session_id, "Renamed")
    assert store.get_session(session.session_id).title == "Renamed"
    store.add_message(session.session_id, "user", "hi")
    assert store.delete_session(session.session_id) is True
    assert store.delete_session(session.session_id) is False
    assert store.list_messages(session.session_id) == []
    with pytest.raises(KeyError):
        store.update_session_title(session.session_id, "x")
    with pytest.raises(KeyError):
        store.add_message(session.session_id, "user", "late")


def test_clock_never_repeats():
    clock = MonotonicClock()
    stamps = [clock.now() for _ in range(100)]
    assert all(b > a for a, b in zip(stamps, stamps[1:]))
    assert isoformat_utc(stamps[0]).endswith("Z")


def test_project_repository_in_memory():
    repo = InMemoryProjectRepository()
    project = repo.create("u", ProjectCreate(name="Snacks", target_audience="Students"))
    assert project.project_id.startswith("PRJ-")
    assert repo.get(project.project_id, "u").target_audience == "Students"
    assert repo.get(project.project_id, "x") is None
    assert repo.list("x") == []


def test_factories_default_to_memory():
    config = AppConfig()
    assert isinstance(get_chat_store(config), InMemoryChatStore)
    assert isinstance(get_artifact_store(config), InMemoryArtifactStore)
    assert isinstance(get_repo(config), InMemoryProjectRepository)
