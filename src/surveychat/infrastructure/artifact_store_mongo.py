from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import uuid

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..domain.artifact_models import DISCRIMINATOR_FIELD, Artifact, ArtifactInfo
from .artifact_store import DEFAULT_ARTIFACT_TYPE, ArtifactSaveError, pick_current, resolve_title
from .chat_store import MonotonicClock


logger = logging.getLogger(__name__)


class MongoArtifactStore:
    """Mongo-backed artifact store.

    A unique index on ``(group_id, version)`` turns the read-max-then-insert
    race between concurrent writers into a ``DuplicateKeyError``; the loser
    re-reads the max version and tries again.
    """

    MAX_INSERT_ATTEMPTS = 5

    def __init__(
        self,
        mongo_url: str = "mongodb://localhost:27017",
        mongo_db: str = "surveychat",
        artifact_type: str = DEFAULT_ARTIFACT_TYPE,
        database: Any = None,
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        if database is None:
            client = MongoClient(mongo_url, serverSelectionTimeoutMS=2000)
            database = client[mongo_db]
        self._rows = database["artifacts"]
        self._artifact_type = artifact_type
        self._clock = clock or MonotonicClock()
        self._rows.create_index([("group_id", ASCENDING), ("version", ASCENDING)], unique=True)
        self._rows.create_index("artifact_id", unique=True)
        self._rows.create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])

    def _max_version(self, session_id: str, group_id: str) -> int:
        cursor = (
            self._rows.find({"session_id": session_id, "group_id": group_id})
            .sort("version", DESCENDING)
            .limit(1)
        )
        last = next(iter(cursor), None)
        return int(last.get("version", 0)) if last else 0

    def _insert(self, session_id: str, group_id: str, version: int, document: Dict[str, Any]) -> Dict[str, Any]:
        doc = {
            "artifact_id": str(uuid.uuid4()),
            "group_id": group_id,
            "session_id": session_id,
            "title": resolve_title(document, self._artifact_type),
            "version": version,
            "document": {**document, DISCRIMINATOR_FIELD: group_id},
            "created_at": self._clock.now_iso(),
        }
        self._rows.insert_one(dict(doc))
        return doc

    def create_new(self, session_id: str, document: Dict[str, Any]) -> ArtifactInfo:
        try:
            doc = self._insert(session_id, str(uuid.uuid4()), 1, document)
        except PyMongoError as exc:
            raise ArtifactSaveError(f"Failed to create artifact: {exc}") from exc
        logger.info("Created artifact %s (v1) group=%s", doc["title"], doc["group_id"])
        return ArtifactInfo(id=doc["group_id"], artifact_id=doc["artifact_id"], action="created", version=1, title=doc["title"])

    def create_next_version(self, session_id: str, group_id: str, document: Dict[str, Any]) -> ArtifactInfo:
        for attempt in range(1, self.MAX_INSERT_ATTEMPTS + 1):
            try:
                current = self._max_version(session_id, group_id)
                if current == 0:
                    logger.warning("Artifact group %s not found in session %s; creating a new group", group_id, session_id)
                    return self.create_new(session_id, document)
                doc = self._insert(session_id, group_id, current + 1, document)
            except DuplicateKeyError:
                logger.info("Version race on artifact group %s (attempt %d); retrying", group_id, attempt)
                continue
            except PyMongoError as exc:
                raise ArtifactSaveError(f"Failed to update artifact: {exc}") from exc
            logger.info("Updated artifact %s (v%d) group=%s", doc["title"], doc["version"], group_id)
            return ArtifactInfo(id=group_id, artifact_id=doc["artifact_id"], action="updated", version=doc["version"], title=doc["title"])
        raise ArtifactSaveError(f"Failed to update artifact {group_id}: version conflict persisted")

    def list_current_artifacts(self, session_id: str) -> List[Artifact]:
        rows = [self._to_artifact(doc) for doc in self._rows.find({"session_id": session_id})]
        return pick_current(rows)

    def get_latest(self, group_id: str) -> Optional[Artifact]:
        cursor = self._rows.find({"group_id": group_id}).sort("version", DESCENDING).limit(1)
        doc = next(iter(cursor), None)
        return self._to_artifact(doc) if doc else None

    def get_row(self, artifact_id: str) -> Optional[Artifact]:
        doc = self._rows.find_one({"artifact_id": artifact_id})
        return self._to_artifact(doc) if doc else None

    def delete_session_artifacts(self, session_id: str) -> int:
        result = self._rows.delete_many({"session_id": session_id})
        return int(getattr(result, "deleted_count", 0))

    def _to_artifact(self, doc: Dict[str, Any]) -> Artifact:
        return Artifact(
            artifact_id=str(doc.get("artifact_id")),
            group_id=str(doc.get("group_id")),
            session_id=str(doc.get("session_id")),
            title=str(doc.get("title") or ""),
            version=int(doc.get("version", 0)),
            document=dict(doc.get("document") or {}),
            created_at=str(doc.get("created_at")),
        )
