from __future__ import annotations

"""Conversation titles.

The model is asked for a short title first; anything unusable (an error, an
empty answer, more than 50 characters) falls back to a title cut from the
user's own first message.
"""

from typing import Optional
import logging

from ..config import AppConfig
from .llm_client import CompletionClient
from .prompts import title_prompt


logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
MAX_TITLE_LENGTH = 50
MAX_TITLE_WORDS = 6

_TRAILING_FILLER = {
    "a", "an", "and", "as", "at", "by", "for", "from", "in", "into",
    "of", "on", "or", "the", "to", "with",
}


def fallback_title(message: Optional[str]) -> str:
    words = (message or "").split()[:MAX_TITLE_WORDS]
    if not words:
        return DEFAULT_TITLE
    trimmed = list(words)
    while trimmed and trimmed[-1].lower().strip(".,;:!?") in _TRAILING_FILLER:
        trimmed.pop()
    title = " ".join(trimmed or words)
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3] + "..."
    return title[0].upper() + title[1:]


def _clean_model_title(raw: str) -> str:
    title = " ".join((raw or "").split())
    return title.strip("\"'` ").rstrip(".")


def generate_conversation_title(llm: CompletionClient, message: str, config: AppConfig) -> str:
    try:
        raw = llm.complete(
            [{"role": "user", "content": title_prompt(message)}],
            max_tokens=config.title_token_limit,
        )
    except Exception as exc:
        logger.warning("Title generation failed, using fallback: %s", exc)
        return fallback_title(message)
    title = _clean_model_title(raw)
    if 1 <= len(title) <= MAX_TITLE_LENGTH:
        return title
    logger.info("Model title out of bounds (%d chars), using fallback", len(title))
    return fallback_title(message)
