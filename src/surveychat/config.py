from __future__ import annotations

"""Runtime configuration for the survey chat backend.

Values are read from the process environment (``.env`` is loaded by the API
entry point through python-dotenv). Every knob has a development default so
the app and the test-suite boot without any environment at all.

Env vars:
- SURVEYCHAT_HISTORY_TOKEN_LIMIT (default 12000)
- SURVEYCHAT_MAX_HISTORY_MESSAGES (default 50)
- SURVEYCHAT_RESPONSE_TOKEN_LIMIT (default 4000)
- SURVEYCHAT_LLM_PROVIDER (anthropic | openai, default anthropic)
- ANTHROPIC_API_KEY / ANTHROPIC_MODEL / ANTHROPIC_BASE_URL / ANTHROPIC_API_VERSION
- OPENAI_API_KEY / OPENAI_MODEL / OPENAI_BASE_URL
- SURVEYCHAT_ALLOWED_ORIGINS (comma separated)
- SURVEYCHAT_STORE_IMPL (memory | mongo), MONGO_URL, MONGO_DB
- JWT_SECRET / JWT_ALGORITHM / JWT_AUDIENCE
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os


DEFAULT_ALLOWED_ORIGINS = [
    "https://panda-poll.com",
    "https://www.panda-poll.com",
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AppConfig:
    history_token_limit: int = 12000
    max_history_messages: int = 50
    response_token_limit: int = 4000
    title_token_limit: int = 50
    rewrite_token_limit: int = 2000

    llm_provider: str = "anthropic"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_api_version: str = "2023-06-01"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    llm_connect_timeout: int = 5
    llm_read_timeout: int = 120

    default_artifact_type: str = "survey_template"
    default_session_type: str = "general"
    default_session_title: str = "New Chat Session"

    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))

    store_impl: str = "memory"
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "surveychat"

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            history_token_limit=_int_env("SURVEYCHAT_HISTORY_TOKEN_LIMIT", 12000),
            max_history_messages=_int_env("SURVEYCHAT_MAX_HISTORY_MESSAGES", 50),
            response_token_limit=_int_env("SURVEYCHAT_RESPONSE_TOKEN_LIMIT", 4000),
            title_token_limit=_int_env("SURVEYCHAT_TITLE_TOKEN_LIMIT", 50),
            rewrite_token_limit=_int_env("SURVEYCHAT_REWRITE_TOKEN_LIMIT", 2000),
            llm_provider=(os.getenv("SURVEYCHAT_LLM_PROVIDER") or "anthropic").strip().lower(),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"),
            anthropic_base_url=os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com"),
            anthropic_api_version=os.getenv("ANTHROPIC_API_VERSION", "2023-06-01"),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            llm_connect_timeout=_int_env("SURVEYCHAT_LLM_CONNECT_TIMEOUT", 5),
            llm_read_timeout=_int_env("SURVEYCHAT_LLM_READ_TIMEOUT", 120),
            default_artifact_type=os.getenv("SURVEYCHAT_ARTIFACT_TYPE", "survey_template"),
            default_session_type=os.getenv("SURVEYCHAT_SESSION_TYPE", "general"),
            default_session_title=os.getenv("SURVEYCHAT_SESSION_TITLE", "New Chat Session"),
            allowed_origins=_list_env("SURVEYCHAT_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
            store_impl=(os.getenv("SURVEYCHAT_STORE_IMPL") or "memory").strip().lower(),
            mongo_url=os.getenv("MONGO_URL", "mongodb://localhost:27017"),
            mongo_db=os.getenv("MONGO_DB", "surveychat"),
        )
