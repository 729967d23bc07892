import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _jwt_env(monkeypatch):
    """Issue and verify tokens with the built-in dev settings."""
    for name in ("JWT_SECRET", "JWT_ALGORITHM", "JWT_AUDIENCE", "JWT_EXPIRES_MIN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    from src.surveychat.config import AppConfig

    return AppConfig()


@pytest.fixture
def llm():
    from .utils import ScriptedLLM

    return ScriptedLLM()


@pytest.fixture
def container(config, llm):
    from src.surveychat.api.deps import ServiceContainer
    from src.surveychat.infrastructure.artifact_store import InMemoryArtifactStore
    from src.surveychat.infrastructure.chat_store import InMemoryChatStore
    from src.surveychat.infrastructure.repository import InMemoryProjectRepository

    return ServiceContainer.build(
        config,
        chats=InMemoryChatStore(),
        artifacts=InMemoryArtifactStore(),
        projects=InMemoryProjectRepository(),
        llm=llm,
    )


@pytest.fixture
def client(container):
    from fastapi.testclient import TestClient
    from src.surveychat.api.main import create_app

    return TestClient(create_app(container))
