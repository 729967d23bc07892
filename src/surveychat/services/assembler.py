from __future__ import annotations

"""Turn one model completion into the ordered assistant messages of a turn.

A completion becomes at most three messages, always in this order: leading
prose, the artifact (or an apology when it could not be stored), trailing
prose. Every emitted message is persisted before the next one is built.
"""

from typing import List
import logging

from ..config import AppConfig
from ..domain.artifact_models import DISCRIMINATOR_FIELD, ArtifactEnvelope, ArtifactInfo
from ..domain.chat_models import ChatMessage, ResponseMessage
from ..infrastructure.artifact_store import ArtifactSaveError, ArtifactStore
from ..infrastructure.chat_store import ChatStore
from ..observability.metrics import record_artifact_save_failure, record_artifact_version
from .extraction import extract_artifact, sanitize_text


logger = logging.getLogger(__name__)

SAVE_FAILURE_TEXT = (
    "I encountered an error while saving the artifact. "
    "The content was generated but could not be stored."
)


def _text_message(row: ChatMessage) -> ResponseMessage:
    return ResponseMessage(
        message_id=row.message_id,
        type="text",
        content=row.content,
        created_at=row.created_at,
        session_id=row.session_id,
    )


class ResponseAssembler:
    def __init__(self, chats: ChatStore, artifacts: ArtifactStore, config: AppConfig) -> None:
        self.chats = chats
        self.artifacts = artifacts
        self.config = config

    def _emit_text(self, session_id: str, content: str, message_type: str = "text") -> ResponseMessage:
        row = self.chats.add_message(session_id, "assistant", content, message_type=message_type)
        return _text_message(row)

    def _save_document(self, session_id: str, document: dict) -> ArtifactInfo:
        envelope = ArtifactEnvelope.from_document(document)
        if envelope.is_new:
            return self.artifacts.create_new(session_id, document)
        return self.artifacts.create_next_version(session_id, envelope.group_reference or "", document)

    def _emit_artifact(self, session_id: str, document: dict) -> ResponseMessage:
        try:
            info = self._save_document(session_id, document)
        except ArtifactSaveError as exc:
            logger.error("Artifact save failed in session %s: %s", session_id, exc)
            record_artifact_save_failure()
            return self._emit_text(session_id, SAVE_FAILURE_TEXT, message_type="error")
        record_artifact_version(info.action)
        try:
            row = self.chats.add_message(
                session_id,
                "assistant",
                None,
                message_type="artifact",
                is_artifact=True,
                artifact_id=info.artifact_id,
            )
        except Exception:
            logger.exception(
                "Artifact %s v%d stored but its message could not be saved in session %s",
                info.artifact_id,
                info.version,
                session_id,
            )
            raise
        return ResponseMessage(
            message_id=row.message_id,
            type="artifact",
            content=None,
            created_at=row.created_at,
            session_id=session_id,
            artifact_data={**document, DISCRIMINATOR_FIELD: info.id},
            artifact_info=info,
        )

    def assemble(self, completion: str, session_id: str) -> List[ResponseMessage]:
        extracted = extract_artifact(completion or "")
        if extracted is None:
            return [self._emit_text(session_id, sanitize_text(completion))]

        messages: List[ResponseMessage] = []
        before = sanitize_text(extracted.before)
        if before:
            messages.append(self._emit_text(session_id, before))
        messages.append(self._emit_artifact(session_id, extracted.document))
        after = sanitize_text(extracted.after)
        if after:
            messages.append(self._emit_text(session_id, after))
        logger.info("Assembled %d message(s) for session %s", len(messages), session_id)
        return messages
