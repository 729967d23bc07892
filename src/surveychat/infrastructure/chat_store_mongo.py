from __future__ import annotations

from typing import Any, Dict, List, Optional
import uuid

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument

from ..domain.chat_models import ChatSession, ChatMessage
from .chat_store import DEFAULT_SESSION_TITLE, MonotonicClock


class MongoChatStore:
    """Mongo-backed chat store.

    Sessions and messages live in two collections keyed by ``session_id``.
    Message order is the ``created_at`` order; timestamps come from a
    process-monotonic clock so rows written back to back never tie.
    """

    def __init__(
        self,
        mongo_url: str = "mongodb://localhost:27017",
        mongo_db: str = "surveychat",
        database: Any = None,
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        if database is None:
            client = MongoClient(mongo_url, serverSelectionTimeoutMS=2000)
            database = client[mongo_db]
        self._sessions = database["chat_sessions"]
        self._messages = database["chat_messages"]
        self._clock = clock or MonotonicClock()
        self._sessions.create_index("session_id", unique=True)
        self._sessions.create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])
        self._messages.create_index([("session_id", ASCENDING), ("created_at", ASCENDING)])

    def create_session(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        title: Optional[str] = None,
        session_type: str = "general",
    ) -> ChatSession:
        now = self._clock.now_iso()
        doc = {
            "session_id": str(uuid.uuid4()),
            "user_id": user_id,
            "project_id": project_id,
            "title": title or DEFAULT_SESSION_TITLE,
            "session_type": session_type,
            "created_at": now,
            "updated_at": now,
        }
        self._sessions.insert_one(dict(doc))
        return self._to_session(doc)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        doc = self._sessions.find_one({"session_id": session_id})
        if not doc:
            return None
        return self._to_session(doc)

    def get_owned_session(self, session_id: str, user_id: str) -> Optional[ChatSession]:
        doc = self._sessions.find_one({"session_id": session_id, "user_id": user_id})
        if not doc:
            return None
        return self._to_session(doc)

    def list_sessions(self, user_id: str) -> List[ChatSession]:
        cursor = self._sessions.find({"user_id": user_id}).sort("updated_at", DESCENDING)
        return [self._to_session(doc) for doc in cursor]

    def update_session_title(self, session_id: str, title: str) -> ChatSession:
        updated = self._sessions.find_one_and_update(
            {"session_id": session_id},
            {"$set": {"title": title, "updated_at": self._clock.now_iso()}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise KeyError("Session not found")
        return self._to_session(updated)

    def delete_session(self, session_id: str) -> bool:
        self._messages.delete_many({"session_id": session_id})
        result = self._sessions.delete_one({"session_id": session_id})
        return bool(getattr(result, "deleted_count", 0))

    def add_message(
        self,
        session_id: str,
        role: str,
        content: Optional[str],
        message_type: str = "text",
        is_artifact: bool = False,
        artifact_id: Optional[str] = None,
    ) -> ChatMessage:
        if not self._sessions.find_one({"session_id": session_id}):
            raise KeyError("Session not found")
        now = self._clock.now_iso()
        doc = {
            "message_id": str(uuid.uuid4()),
            "session_id": session_id,
            "role": role,
            "content": content,
            "message_type": message_type,
            "is_artifact": is_artifact,
            "artifact_id": artifact_id,
            "created_at": now,
        }
        self._messages.insert_one(dict(doc))
        self._sessions.update_one({"session_id": session_id}, {"$set": {"updated_at": now}})
        return self._to_message(doc)

    def list_messages(self, session_id: str) -> List[ChatMessage]:
        cursor = self._messages.find({"session_id": session_id}).sort("created_at", ASCENDING)
        return [self._to_message(doc) for doc in cursor]

    def count_messages(self, session_id: str) -> int:
        return int(self._messages.count_documents({"session_id": session_id}))

    def _to_session(self, doc: Dict[str, Any]) -> ChatSession:
        return ChatSession(
            session_id=str(doc.get("session_id")),
            user_id=str(doc.get("user_id")),
            project_id=doc.get("project_id"),
            title=str(doc.get("title") or DEFAULT_SESSION_TITLE),
            session_type=str(doc.get("session_type") or "general"),
            created_at=str(doc.get("created_at")),
            updated_at=str(doc.get("updated_at") or doc.get("created_at")),
        )

    def _to_message(self, doc: Dict[str, Any]) -> ChatMessage:
        return ChatMessage(
            message_id=str(doc.get("message_id")),
            session_id=str(doc.get("session_id")),
            role=str(doc.get("role", "assistant")),
            content=doc.get("content"),
            message_type=str(doc.get("message_type") or "text"),
            is_artifact=bool(doc.get("is_artifact", False)),
            artifact_id=doc.get("artifact_id"),
            created_at=str(doc.get("created_at")),
        )
