import pytest

from src.surveychat.config import DEFAULT_ALLOWED_ORIGINS, AppConfig


def test_defaults_without_environment(monkeypatch):
    for name in (
        "SURVEYCHAT_HISTORY_TOKEN_LIMIT",
        "SURVEYCHAT_MAX_HISTORY_MESSAGES",
        "SURVEYCHAT_LLM_PROVIDER",
        "SURVEYCHAT_ALLOWED_ORIGINS",
        "SURVEYCHAT_STORE_IMPL",
    ):
        monkeypatch.delenv(name, raising=False)
    cfg = AppConfig.from_env()
    assert cfg.history_token_limit == 12000
    assert cfg.max_history_messages == 50
    assert cfg.response_token_limit == 4000
    assert cfg.llm_provider == "anthropic"
    assert cfg.store_impl == "memory"
    assert cfg.allowed_origins == DEFAULT_ALLOWED_ORIGINS
    assert cfg.default_session_title == "New Chat Session"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SURVEYCHAT_HISTORY_TOKEN_LIMIT", "500")
    monkeypatch.setenv("SURVEYCHAT_LLM_PROVIDER", " OpenAI ")
    monkeypatch.setenv("SURVEYCHAT_ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    cfg = AppConfig.from_env()
    assert cfg.history_token_limit == 500
    assert cfg.llm_provider == "openai"
    assert cfg.allowed_origins == ["https://a.example", "https://b.example"]


def test_bad_integer_is_reported(monkeypatch):
    monkeypatch.setenv("SURVEYCHAT_MAX_HISTORY_MESSAGES", "lots")
    with pytest.raises(RuntimeError):
        AppConfig.from_env()
