from __future__ import annotations

"""Chat request orchestration.

One user turn runs strictly in sequence: session lookup, user message
persisted, history selected, prompt composed, model called, completion
assembled into messages. Title generation is left to the caller so it can run
after the response has been sent.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from ..config import AppConfig
from ..domain.artifact_models import ArtifactInfo, ArtifactView
from ..domain.chat_models import (
    ArtifactVersionView,
    ChatHistory,
    ChatRequest,
    ChatResponse,
    ChatSession,
    ChatSummary,
    HistoryMessage,
    SessionView,
)
from ..domain.models import ProjectContext
from ..infrastructure.artifact_store import ArtifactStore, get_artifact_for_user
from ..infrastructure.chat_store import ChatStore
from ..infrastructure.repository import ProjectRepository
from ..observability.metrics import record_artifact_version
from .assembler import ResponseAssembler
from .history import conversational_messages, format_for_model, select_history
from .llm_client import CompletionClient
from .prompts import compose_system_prompt
from .titles import generate_conversation_title


logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    """Session missing or owned by another user."""


class ArtifactNotFound(LookupError):
    """Artifact group missing or owned by another user."""


class ChatService:
    def __init__(
        self,
        chats: ChatStore,
        artifacts: ArtifactStore,
        projects: ProjectRepository,
        llm: CompletionClient,
        config: AppConfig,
    ) -> None:
        self.chats = chats
        self.artifacts = artifacts
        self.projects = projects
        self.llm = llm
        self.config = config
        self.assembler = ResponseAssembler(chats, artifacts, config)

    # --- chat turn ---

    def _get_or_create_session(self, user_id: str, request: ChatRequest) -> ChatSession:
        if request.session_id:
            session = self.chats.get_owned_session(request.session_id, user_id)
            if session is not None:
                return session
            logger.info("Session %s not usable for user %s; starting a new one", request.session_id, user_id)
        return self.chats.create_session(
            user_id,
            project_id=request.project_id,
            title=self.config.default_session_title,
            session_type=self.config.default_session_type,
        )

    def _project_context(self, user_id: str, project_id: Optional[str]) -> Optional[ProjectContext]:
        if not project_id:
            return None
        project = self.projects.get(project_id, user_id)
        if project is None:
            logger.info("Project %s not found for user %s; using standalone mode", project_id, user_id)
        return project

    def _model_history(self, session_id: str) -> List[Dict[str, str]]:
        prior = conversational_messages(self.chats.list_messages(session_id))
        selected = select_history(prior, self.config.history_token_limit, self.config.max_history_messages)
        return format_for_model(selected)

    def handle_message(self, user_id: str, request: ChatRequest) -> Tuple[ChatResponse, bool]:
        """Run one chat turn.

        Returns the response and whether this was the session's first
        exchange (the caller then schedules :meth:`assign_session_title`).
        """
        session = self._get_or_create_session(user_id, request)
        session_id = session.session_id
        is_first_exchange = self.chats.count_messages(session_id) == 0

        existing = self.artifacts.list_current_artifacts(session_id)
        project = self._project_context(user_id, request.project_id)

        self.chats.add_message(session_id, "user", request.message)
        history = self._model_history(session_id)
        system_prompt = compose_system_prompt(project, existing)

        completion = self.llm.complete(
            history,
            system=system_prompt,
            max_tokens=self.config.response_token_limit,
        )
        messages = self.assembler.assemble(completion, session_id)
        response = ChatResponse(messages=messages, session_id=session_id, total_messages=len(messages))
        return response, is_first_exchange

    def assign_session_title(self, session_id: str, user_message: str) -> Optional[str]:
        """Generate and store the session title; never raises."""
        try:
            title = generate_conversation_title(self.llm, user_message, self.config)
            self.chats.update_session_title(session_id, title)
        except Exception:
            logger.exception("Failed to assign title to session %s", session_id)
            return None
        logger.info("Titled session %s: %r", session_id, title)
        return title

    # --- chat management ---

    def _project_name(self, project_id: Optional[str]) -> Optional[str]:
        if not project_id:
            return None
        project = self.projects.find(project_id)
        return project.name if project else None

    def _owned_session(self, user_id: str, session_id: str) -> ChatSession:
        session = self.chats.get_owned_session(session_id, user_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_chats(self, user_id: str) -> List[ChatSummary]:
        return [
            ChatSummary(
                id=s.session_id,
                title=s.title or "Untitled Chat",
                type=s.session_type,
                project_name=self._project_name(s.project_id),
                message_count=self.chats.count_messages(s.session_id),
                created_at=s.created_at,
                updated_at=s.updated_at,
            )
            for s in self.chats.list_sessions(user_id)
        ]

    def _artifact_version(self, artifact_id: Optional[str], latest_versions: Dict[str, int]) -> Optional[ArtifactVersionView]:
        if not artifact_id:
            return None
        row = self.artifacts.get_row(artifact_id)
        if row is None:
            return None
        if row.group_id not in latest_versions:
            latest = self.artifacts.get_latest(row.group_id)
            latest_versions[row.group_id] = latest.version if latest else row.version
        return ArtifactVersionView(
            id=row.group_id,
            artifact_id=row.artifact_id,
            title=row.title,
            version=row.version,
            template_data=row.document,
            is_current=row.version == latest_versions[row.group_id],
        )

    def get_history(self, user_id: str, session_id: str) -> ChatHistory:
        session = self._owned_session(user_id, session_id)
        latest_versions: Dict[str, int] = {}
        messages = [
            HistoryMessage(
                id=m.message_id,
                role=m.role,
                content=m.content,
                message_type=m.message_type,
                is_artifact=m.is_artifact,
                artifact_id=m.artifact_id,
                created_at=m.created_at,
                artifact=self._artifact_version(m.artifact_id, latest_versions) if m.is_artifact else None,
            )
            for m in self.chats.list_messages(session_id)
        ]
        view = SessionView(
            id=session.session_id,
            title=session.title,
            type=session.session_type,
            project_name=self._project_name(session.project_id),
            created_at=session.created_at,
        )
        return ChatHistory(session=view, messages=messages)

    def delete_chat(self, user_id: str, session_id: str) -> None:
        self._owned_session(user_id, session_id)
        removed = self.artifacts.delete_session_artifacts(session_id)
        self.chats.delete_session(session_id)
        logger.info("Deleted session %s (%d artifact rows)", session_id, removed)

    # --- artifacts ---

    def get_artifact(self, user_id: str, group_id: str) -> ArtifactView:
        artifact = get_artifact_for_user(self.artifacts, self.chats, group_id, user_id)
        if artifact is None:
            raise ArtifactNotFound(group_id)
        return ArtifactView(
            id=artifact.group_id,
            artifact_id=artifact.artifact_id,
            title=artifact.title,
            version=artifact.version,
            template_data=artifact.document,
            created_at=artifact.created_at,
        )

    def autosave_artifact(self, user_id: str, group_id: str, document: Dict[str, Any]) -> ArtifactInfo:
        """Append an edited document as the group's next version."""
        current = get_artifact_for_user(self.artifacts, self.chats, group_id, user_id)
        if current is None:
            raise ArtifactNotFound(group_id)
        info = self.artifacts.create_next_version(current.session_id, current.group_id, document)
        record_artifact_version(info.action)
        return info
