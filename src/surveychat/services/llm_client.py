from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Tuple
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import AppConfig


logger = logging.getLogger(__name__)
LOG = logging.getLogger("surveychat.llm")


class UpstreamModelError(RuntimeError):
    """The language model answered with a non-success status or could not be reached."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"Model request failed ({status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail


class CompletionClient(Protocol):
    def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str: ...


def _build_session() -> requests.Session:
    # connection failures only: a non-success answer from the model is final
    session = requests.Session()
    retry = Retry(
        total=2,
        connect=2,
        read=0,
        status=0,
        backoff_factor=0.5,
        allowed_methods=frozenset(["POST"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class AnthropicMessagesClient:
    """Blocking client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        default_max_tokens: int = 4000,
        timeout: Tuple[int, int] = (5, 120),
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.default_max_tokens = default_max_tokens
        self._timeout = timeout
        self._session = session or _build_session()

    def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        if not self.api_key:
            raise UpstreamModelError(503, "Language model not configured")
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.default_max_tokens,
            "messages": messages,
        }
        if system:
            payload["system"] = system
        LOG.debug("anthropic_invoke", extra={"model": self.model, "turns": len(messages)})
        try:
            resp = self._session.post(
                f"{self.base_url}/v1/messages",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.api_key,
                    "anthropic-version": self.api_version,
                },
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            LOG.warning("anthropic_unreachable", extra={"model": self.model, "err": str(exc)})
            raise UpstreamModelError(502, str(exc)) from exc
        if resp.status_code >= 400:
            detail = resp.text[:1000]
            LOG.warning("anthropic_error", extra={"status": resp.status_code, "model": self.model})
            raise UpstreamModelError(resp.status_code, detail)
        try:
            data = resp.json()
            text = data["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamModelError(502, "Malformed model response") from exc
        LOG.info("anthropic_completed", extra={"model": self.model, "chars": len(text)})
        return text


class ChatOpenAIClient:
    """Completion client over langchain's ChatOpenAI (OpenAI-compatible endpoints)."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        default_max_tokens: int = 4000,
        llm: Any = None,
    ) -> None:
        self.model = model
        self.default_max_tokens = default_max_tokens
        if llm is None and api_key:
            from langchain_openai import ChatOpenAI

            llm = ChatOpenAI(api_key=api_key, base_url=base_url, model=model, temperature=0.2)
        self._llm = llm

    def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        if self._llm is None:
            raise UpstreamModelError(503, "Language model not configured")
        msgs: List[Tuple[str, str]] = []
        if system:
            msgs.append(("system", system))
        for m in messages:
            msgs.append(("ai" if m.get("role") == "assistant" else "human", m.get("content") or ""))
        LOG.debug("openai_invoke", extra={"model": self.model, "turns": len(messages)})
        try:
            res = self._llm.invoke(msgs, max_tokens=max_tokens or self.default_max_tokens)
        except Exception as exc:
            status = int(getattr(exc, "status_code", 502) or 502)
            LOG.warning("openai_error", extra={"status": status, "model": self.model, "err": str(exc)})
            raise UpstreamModelError(status, str(exc)) from exc
        text = getattr(res, "content", res)
        if not isinstance(text, str):
            raise UpstreamModelError(502, "Malformed model response")
        LOG.info("openai_completed", extra={"model": self.model, "chars": len(text)})
        return text


def build_completion_client(config: AppConfig) -> CompletionClient:
    if config.llm_provider == "openai":
        return ChatOpenAIClient(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            default_max_tokens=config.response_token_limit,
        )
    if config.llm_provider != "anthropic":
        logger.warning("Unknown LLM provider %r; using anthropic", config.llm_provider)
    return AnthropicMessagesClient(
        api_key=config.anthropic_api_key,
        model=config.anthropic_model,
        base_url=config.anthropic_base_url,
        api_version=config.anthropic_api_version,
        default_max_tokens=config.response_token_limit,
        timeout=(config.llm_connect_timeout, config.llm_read_timeout),
    )
