from __future__ import annotations

"""Versioned artifact storage.

Every logical artifact is a *group*: a stable ``group_id`` shared by an
append-only run of rows with versions 1, 2, 3, ... The current version of a
group is simply its highest version inside the owning session; rows are never
updated in place.
"""

from copy import deepcopy
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING
import logging
import time
import uuid

from ..domain.artifact_models import DISCRIMINATOR_FIELD, Artifact, ArtifactEnvelope, ArtifactInfo
from .chat_store import ChatStore, MonotonicClock

if TYPE_CHECKING:  # pragma: no cover
    from ..config import AppConfig


logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_TYPE = "survey_template"


class ArtifactSaveError(RuntimeError):
    """Raised when an artifact version could not be persisted."""


class ArtifactStore(Protocol):
    def create_new(self, session_id: str, document: Dict[str, Any]) -> ArtifactInfo: ...

    def create_next_version(self, session_id: str, group_id: str, document: Dict[str, Any]) -> ArtifactInfo: ...

    def list_current_artifacts(self, session_id: str) -> List[Artifact]: ...

    def get_latest(self, group_id: str) -> Optional[Artifact]: ...

    def get_row(self, artifact_id: str) -> Optional[Artifact]: ...

    def delete_session_artifacts(self, session_id: str) -> int: ...


def resolve_title(document: Dict[str, Any], artifact_type: str = DEFAULT_ARTIFACT_TYPE) -> str:
    """Use the document's own title, else ``<type>_<epoch millis>``."""
    title = ArtifactEnvelope.from_document(document).clean_title
    if title:
        return title
    return f"{artifact_type}_{int(time.time() * 1000)}"


def pick_current(rows: List[Artifact]) -> List[Artifact]:
    """Reduce rows to one per group (highest version), most recent first."""
    current: Dict[str, Artifact] = {}
    for row in rows:
        best = current.get(row.group_id)
        if best is None or row.version > best.version:
            current[row.group_id] = row
    return sorted(current.values(), key=lambda a: a.created_at, reverse=True)


@dataclass
class _Row:
    artifact_id: str
    group_id: str
    session_id: str
    title: str
    version: int
    document: Dict[str, Any]
    created_at: str


class InMemoryArtifactStore:
    def __init__(self, artifact_type: str = DEFAULT_ARTIFACT_TYPE, clock: Optional[MonotonicClock] = None) -> None:
        self._rows: List[_Row] = []
        self._artifact_type = artifact_type
        self._clock = clock or MonotonicClock()
        self._lock = RLock()

    def _model(self, row: _Row) -> Artifact:
        return Artifact(**{**row.__dict__, "document": deepcopy(row.document)})

    def _append(self, session_id: str, group_id: str, version: int, document: Dict[str, Any]) -> _Row:
        try:
            row = _Row(
                artifact_id=str(uuid.uuid4()),
                group_id=group_id,
                session_id=session_id,
                title=resolve_title(document, self._artifact_type),
                version=version,
                document={**deepcopy(document), DISCRIMINATOR_FIELD: group_id},
                created_at=self._clock.now_iso(),
            )
        except Exception as exc:
            raise ArtifactSaveError(f"Failed to save artifact: {exc}") from exc
        self._rows.append(row)
        return row

    def _max_version(self, session_id: str, group_id: str) -> int:
        versions = [r.version for r in self._rows if r.group_id == group_id and r.session_id == session_id]
        return max(versions) if versions else 0

    def create_new(self, session_id: str, document: Dict[str, Any]) -> ArtifactInfo:
        with self._lock:
            row = self._append(session_id, str(uuid.uuid4()), 1, document)
        logger.info("Created artifact %s (v1) group=%s", row.title, row.group_id)
        return ArtifactInfo(id=row.group_id, artifact_id=row.artifact_id, action="created", version=1, title=row.title)

    def create_next_version(self, session_id: str, group_id: str, document: Dict[str, Any]) -> ArtifactInfo:
        # read-max-then-insert runs under the store lock
        with self._lock:
            current = self._max_version(session_id, group_id)
            if current == 0:
                logger.warning("Artifact group %s not found in session %s; creating a new group", group_id, session_id)
                return self.create_new(session_id, document)
            row = self._append(session_id, group_id, current + 1, document)
        logger.info("Updated artifact %s (v%d) group=%s", row.title, row.version, row.group_id)
        return ArtifactInfo(id=row.group_id, artifact_id=row.artifact_id, action="updated", version=row.version, title=row.title)

    def list_current_artifacts(self, session_id: str) -> List[Artifact]:
        with self._lock:
            return pick_current([self._model(r) for r in self._rows if r.session_id == session_id])

    def get_latest(self, group_id: str) -> Optional[Artifact]:
        with self._lock:
            rows = [r for r in self._rows if r.group_id == group_id]
            if not rows:
                return None
            return self._model(max(rows, key=lambda r: r.version))

    def get_row(self, artifact_id: str) -> Optional[Artifact]:
        with self._lock:
            for r in self._rows:
                if r.artifact_id == artifact_id:
                    return self._model(r)
            return None

    def delete_session_artifacts(self, session_id: str) -> int:
        with self._lock:
            before = len(self._rows)
            self._rows = [r for r in self._rows if r.session_id != session_id]
            return before - len(self._rows)


def get_artifact_for_user(
    artifacts: ArtifactStore,
    sessions: ChatStore,
    group_id: str,
    user_id: str,
) -> Optional[Artifact]:
    """Return the current version of ``group_id`` if the requester owns it.

    A missing group, a missing session and a session owned by someone else all
    yield ``None`` so callers cannot probe for existence.
    """
    latest = artifacts.get_latest(group_id)
    if latest is None:
        return None
    session = sessions.get_session(latest.session_id)
    if session is None or session.user_id != user_id:
        logger.info("Artifact %s lookup denied for user %s", group_id, user_id)
        return None
    return latest


def get_artifact_store(config: "AppConfig") -> ArtifactStore:
    if config.store_impl == "mongo":
        from .artifact_store_mongo import MongoArtifactStore

        return MongoArtifactStore(
            mongo_url=config.mongo_url,
            mongo_db=config.mongo_db,
            artifact_type=config.default_artifact_type,
        )
    return InMemoryArtifactStore(artifact_type=config.default_artifact_type)
