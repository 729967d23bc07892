from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from src.surveychat.infrastructure.artifact_store import ArtifactSaveError, InMemoryArtifactStore
from src.surveychat.security.auth import User, create_access_token


TITLE_PROMPT_PREFIX = "Write a short title"


def auth_headers(user_id: str = "user-1", **claims: Any) -> Dict[str, str]:
    """Bearer headers for a token issued with the test JWT settings."""
    token = create_access_token(User(id=user_id, **claims))
    return {"Authorization": f"Bearer {token}"}


class ScriptedLLM:
    """Completion client that replays canned answers and records every call.

    Title prompts are answered with ``title_reply`` so chat turns and title
    generation can be scripted independently. A reply that is an exception
    instance is raised instead of returned.
    """

    def __init__(
        self,
        replies: Optional[List[Union[str, Exception]]] = None,
        default: str = "Happy to help with your survey.",
        title_reply: Union[str, Exception] = "Pricing Research Chat",
    ) -> None:
        self.replies = list(replies or [])
        self.default = default
        self.title_reply = title_reply
        self.calls: List[Dict[str, Any]] = []
        self.title_calls: List[Dict[str, Any]] = []

    def complete(self, messages, system=None, max_tokens=None) -> str:
        call = {"messages": [dict(m) for m in messages], "system": system, "max_tokens": max_tokens}
        first = messages[0]["content"] if messages else ""
        if first.startswith(TITLE_PROMPT_PREFIX):
            self.title_calls.append(call)
            reply = self.title_reply
        else:
            self.calls.append(call)
            reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class FailingArtifactStore(InMemoryArtifactStore):
    """Artifact store whose writes always fail."""

    def create_new(self, session_id, document):
        raise ArtifactSaveError("database unavailable")

    def create_next_version(self, session_id, group_id, document):
        raise ArtifactSaveError("database unavailable")
