from __future__ import annotations

"""Service wiring for the HTTP layer.

Stores and clients are built once per app and kept on ``app.state`` so tests
can hand ``create_app`` a container of in-memory fakes.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..config import AppConfig
from ..infrastructure.artifact_store import ArtifactStore, get_artifact_store
from ..infrastructure.chat_store import ChatStore, get_chat_store
from ..infrastructure.repository import ProjectRepository, get_repo
from ..services.chat_service import ChatService
from ..services.llm_client import CompletionClient, build_completion_client
from ..services.question_rewriter import QuestionRewriter


@dataclass
class ServiceContainer:
    config: AppConfig
    chats: ChatStore
    artifacts: ArtifactStore
    projects: ProjectRepository
    llm: CompletionClient

    @staticmethod
    def build(
        config: AppConfig,
        chats: Optional[ChatStore] = None,
        artifacts: Optional[ArtifactStore] = None,
        projects: Optional[ProjectRepository] = None,
        llm: Optional[CompletionClient] = None,
    ) -> "ServiceContainer":
        return ServiceContainer(
            config=config,
            chats=chats if chats is not None else get_chat_store(config),
            artifacts=artifacts if artifacts is not None else get_artifact_store(config),
            projects=projects if projects is not None else get_repo(config),
            llm=llm if llm is not None else build_completion_client(config),
        )

    @staticmethod
    def from_env() -> "ServiceContainer":
        return ServiceContainer.build(AppConfig.from_env())

    def chat_service(self) -> ChatService:
        return ChatService(self.chats, self.artifacts, self.projects, self.llm, self.config)

    def question_rewriter(self) -> QuestionRewriter:
        return QuestionRewriter(self.chats, self.artifacts, self.llm, self.config)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_chat_service(request: Request) -> ChatService:
    return get_container(request).chat_service()


def get_question_rewriter(request: Request) -> QuestionRewriter:
    return get_container(request).question_rewriter()
