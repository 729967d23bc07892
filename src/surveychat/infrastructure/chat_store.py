from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import RLock
from typing import Dict, List, Optional, Protocol, TYPE_CHECKING
import uuid

from ..domain.chat_models import ChatSession, ChatMessage

if TYPE_CHECKING:  # pragma: no cover
    from ..config import AppConfig


class ChatStore(Protocol):
    def create_session(self, user_id: str, project_id: Optional[str] = None, title: Optional[str] = None, session_type: str = "general") -> ChatSession: ...

    def get_session(self, session_id: str) -> Optional[ChatSession]: ...

    def get_owned_session(self, session_id: str, user_id: str) -> Optional[ChatSession]: ...

    def list_sessions(self, user_id: str) -> List[ChatSession]: ...

    def update_session_title(self, session_id: str, title: str) -> ChatSession: ...

    def delete_session(self, session_id: str) -> bool: ...

    def add_message(
        self,
        session_id: str,
        role: str,
        content: Optional[str],
        message_type: str = "text",
        is_artifact: bool = False,
        artifact_id: Optional[str] = None,
    ) -> ChatMessage: ...

    def list_messages(self, session_id: str) -> List[ChatMessage]: ...

    def count_messages(self, session_id: str) -> int: ...


DEFAULT_SESSION_TITLE = "New Chat Session"


class MonotonicClock:
    """UTC ISO timestamps that never repeat or go backwards within a process.

    Message ordering relies on ``created_at`` alone, so two rows written in the
    same microsecond must still sort in write order.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None
        self._lock = RLock()

    def now(self) -> datetime:
        with self._lock:
            current = datetime.now(UTC)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current

    def now_iso(self) -> str:
        return isoformat_utc(self.now())


def isoformat_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


@dataclass
class _Session:
    session_id: str
    user_id: str
    project_id: Optional[str]
    title: str
    session_type: str
    created_at: str
    updated_at: str


@dataclass
class _Message:
    message_id: str
    session_id: str
    role: str
    content: Optional[str]
    message_type: str
    is_artifact: bool
    artifact_id: Optional[str]
    created_at: str


class InMemoryChatStore:
    def __init__(self, clock: Optional[MonotonicClock] = None) -> None:
        self._sessions: Dict[str, _Session] = {}
        self._messages: Dict[str, List[_Message]] = {}
        self._clock = clock or MonotonicClock()
        self._lock = RLock()

    def _session_model(self, sess: _Session) -> ChatSession:
        return ChatSession(**sess.__dict__)

    def _message_model(self, message: _Message) -> ChatMessage:
        return ChatMessage(**message.__dict__)

    def create_session(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        title: Optional[str] = None,
        session_type: str = "general",
    ) -> ChatSession:
        with self._lock:
            sid = str(uuid.uuid4())
            now = self._clock.now_iso()
            sess = _Session(
                session_id=sid,
                user_id=user_id,
                project_id=project_id,
                title=title or DEFAULT_SESSION_TITLE,
                session_type=session_type,
                created_at=now,
                updated_at=now,
            )
            self._sessions[sid] = sess
            self._messages[sid] = []
            return self._session_model(sess)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            sess = self._sessions.get(session_id)
            if not sess:
                return None
            return self._session_model(sess)

    def get_owned_session(self, session_id: str, user_id: str) -> Optional[ChatSession]:
        with self._lock:
            sess = self._sessions.get(session_id)
            if not sess or sess.user_id != user_id:
                return None
            return self._session_model(sess)

    def list_sessions(self, user_id: str) -> List[ChatSession]:
        with self._lock:
            out = [self._session_model(s) for s in self._sessions.values() if s.user_id == user_id]
            # Newest first
            return sorted(out, key=lambda s: s.updated_at, reverse=True)

    def update_session_title(self, session_id: str, title: str) -> ChatSession:
        with self._lock:
            sess = self._sessions.get(session_id)
            if not sess:
                raise KeyError("Session not found")
            sess.title = title
            sess.updated_at = self._clock.now_iso()
            return self._session_model(sess)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
            self._messages.pop(session_id, None)
            return removed

    def add_message(
        self,
        session_id: str,
        role: str,
        content: Optional[str],
        message_type: str = "text",
        is_artifact: bool = False,
        artifact_id: Optional[str] = None,
    ) -> ChatMessage:
        with self._lock:
            if session_id not in self._sessions:
                raise KeyError("Session not found")
            now = self._clock.now_iso()
            msg = _Message(
                message_id=str(uuid.uuid4()),
                session_id=session_id,
                role=role,
                content=content,
                message_type=message_type,
                is_artifact=is_artifact,
                artifact_id=artifact_id,
                created_at=now,
            )
            self._messages.setdefault(session_id, []).append(msg)
            # bump session updated_at
            self._sessions[session_id].updated_at = now
            return self._message_model(msg)

    def list_messages(self, session_id: str) -> List[ChatMessage]:
        with self._lock:
            return [self._message_model(m) for m in self._messages.get(session_id, [])]

    def count_messages(self, session_id: str) -> int:
        with self._lock:
            return len(self._messages.get(session_id, []))


def get_chat_store(config: "AppConfig") -> ChatStore:
    """Build the chat store selected by ``config.store_impl``."""
    if config.store_impl == "mongo":
        from .chat_store_mongo import MongoChatStore

        return MongoChatStore(mongo_url=config.mongo_url, mongo_db=config.mongo_db)
    return InMemoryChatStore()
