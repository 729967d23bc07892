from __future__ import annotations

from typing import Any, List
import logging

from ..config import AppConfig
from ..domain.question_models import QuestionRewordRequest, QuestionRewordResponse, QuestionSuggestion
from ..infrastructure.artifact_store import ArtifactStore, get_artifact_for_user
from ..infrastructure.chat_store import ChatStore
from .chat_service import ArtifactNotFound, SessionNotFound
from .extraction import find_json_object
from .history import conversational_messages, select_history
from .llm_client import CompletionClient
from .prompts import reword_prompt


logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
DEFAULT_CONFIDENCE = 0.8


class SuggestionParseError(ValueError):
    """The model answer held no usable suggestions object."""


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_suggestions(completion: str) -> List[QuestionSuggestion]:
    found = find_json_object(completion or "", "suggestions")
    if found is None or not isinstance(found[0].get("suggestions"), list):
        raise SuggestionParseError("Failed to parse AI response")
    suggestions: List[QuestionSuggestion] = []
    for raw in found[0]["suggestions"]:
        if not isinstance(raw, dict):
            continue
        reworded = _text(raw.get("reworded"))
        reasoning = _text(raw.get("reasoning"))
        improvement = _text(raw.get("improvement_type"))
        if not (reworded and reasoning and improvement):
            continue
        confidence = raw.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = DEFAULT_CONFIDENCE
        suggestions.append(
            QuestionSuggestion(
                reworded=reworded,
                reasoning=reasoning,
                improvement_type=improvement,
                confidence=float(confidence),
            )
        )
    if len(suggestions) < MAX_SUGGESTIONS:
        logger.warning("Only %d valid suggestions, expected %d", len(suggestions), MAX_SUGGESTIONS)
    return suggestions[:MAX_SUGGESTIONS]


class QuestionRewriter:
    def __init__(self, chats: ChatStore, artifacts: ArtifactStore, llm: CompletionClient, config: AppConfig) -> None:
        self.chats = chats
        self.artifacts = artifacts
        self.llm = llm
        self.config = config

    def rewrite_question(self, user_id: str, request: QuestionRewordRequest) -> QuestionRewordResponse:
        artifact = get_artifact_for_user(self.artifacts, self.chats, request.artifact_id, user_id)
        if artifact is None:
            raise ArtifactNotFound(request.artifact_id)
        if self.chats.get_owned_session(request.session_id, user_id) is None:
            raise SessionNotFound(request.session_id)

        prior = conversational_messages(self.chats.list_messages(request.session_id))
        history = select_history(prior, self.config.history_token_limit, self.config.max_history_messages)
        prompt = reword_prompt(request.question_text, artifact, history)

        completion = self.llm.complete(
            [{"role": "user", "content": prompt}],
            max_tokens=self.config.rewrite_token_limit,
        )
        suggestions = parse_suggestions(completion)
        return QuestionRewordResponse(original_question=request.question_text, suggestions=suggestions)
