from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING

from ..domain.models import ProjectContext, ProjectCreate

if TYPE_CHECKING:  # pragma: no cover
    from ..config import AppConfig


class ProjectRepository(Protocol):
    def get(self, project_id: str, user_id: str) -> Optional[ProjectContext]: ...
    def find(self, project_id: str) -> Optional[ProjectContext]: ...
    def list(self, user_id: str) -> List[ProjectContext]: ...
    def create(self, user_id: str, payload: ProjectCreate) -> ProjectContext: ...


class InMemoryProjectRepository:
    """Project context lookups for the chat pipeline.

    Projects are owned elsewhere; the chat backend only reads them. ``create``
    exists so local runs and tests can seed data.
    """

    def __init__(self) -> None:
        self._projects: Dict[str, ProjectContext] = {}
        self._counter: int = 0
        self._lock = RLock()

    def _generate_project_id(self) -> str:
        self._counter += 1
        year = datetime.now(UTC).year
        return f"PRJ-{year}-{self._counter:04d}"

    def get(self, project_id: str, user_id: str) -> Optional[ProjectContext]:
        with self._lock:
            proj = self._projects.get(project_id)
            if not proj or proj.user_id != user_id:
                return None
            return proj

    def find(self, project_id: str) -> Optional[ProjectContext]:
        with self._lock:
            return self._projects.get(project_id)

    def list(self, user_id: str) -> List[ProjectContext]:
        with self._lock:
            return [p for p in self._projects.values() if p.user_id == user_id]

    def create(self, user_id: str, payload: ProjectCreate) -> ProjectContext:
        with self._lock:
            pid = self._generate_project_id()
            project = ProjectContext(
                project_id=pid,
                user_id=user_id,
                name=payload.name,
                description=payload.description,
                target_audience=payload.target_audience,
                research_goals=list(payload.research_goals),
                created_at=datetime.now(UTC),
            )
            self._projects[pid] = project
            return project


class MongoProjectRepository:
    def __init__(self, mongo_url: str = "mongodb://localhost:27017", mongo_db: str = "surveychat", database: Any = None) -> None:
        if database is None:
            from pymongo import MongoClient

            database = MongoClient(mongo_url, serverSelectionTimeoutMS=2000)[mongo_db]
        self._collection = database["projects"]
        self._collection.create_index("project_id", unique=True)

    def get(self, project_id: str, user_id: str) -> Optional[ProjectContext]:
        doc = self._collection.find_one({"project_id": project_id, "user_id": user_id})
        return self._to_project(doc) if doc else None

    def find(self, project_id: str) -> Optional[ProjectContext]:
        doc = self._collection.find_one({"project_id": project_id})
        return self._to_project(doc) if doc else None

    def list(self, user_id: str) -> List[ProjectContext]:
        return [self._to_project(doc) for doc in self._collection.find({"user_id": user_id})]

    def create(self, user_id: str, payload: ProjectCreate) -> ProjectContext:
        count = int(self._collection.count_documents({}))
        project = ProjectContext(
            project_id=f"PRJ-{datetime.now(UTC).year}-{count + 1:04d}",
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            target_audience=payload.target_audience,
            research_goals=list(payload.research_goals),
            created_at=datetime.now(UTC),
        )
        self._collection.insert_one(project.model_dump())
        return project

    def _to_project(self, doc: Dict[str, Any]) -> ProjectContext:
        data = {k: v for k, v in doc.items() if k != "_id"}
        return ProjectContext(**data)


def get_repo(config: "AppConfig") -> ProjectRepository:
    if config.store_impl == "mongo":
        return MongoProjectRepository(mongo_url=config.mongo_url, mongo_db=config.mongo_db)
    return InMemoryProjectRepository()
