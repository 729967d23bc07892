from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from .deps import ServiceContainer
from .routers.artifacts import router as artifacts_router
from .routers.chat import router as chat_router
from .routers.questions import router as questions_router
from ..observability.metrics import metrics_middleware_factory
from ..services.chat_service import ArtifactNotFound, SessionNotFound
from ..services.llm_client import UpstreamModelError
from ..services.question_rewriter import SuggestionParseError

load_dotenv()  # Load environment variables from .env if present (ANTHROPIC_API_KEY, JWT_SECRET, etc.)

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, details=None, **extra) -> JSONResponse:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request", jsonable_encoder(exc.errors()))

    @app.exception_handler(SessionNotFound)
    async def session_not_found(request: Request, exc: SessionNotFound) -> JSONResponse:
        return _error(404, "Chat not found")

    @app.exception_handler(ArtifactNotFound)
    async def artifact_not_found(request: Request, exc: ArtifactNotFound) -> JSONResponse:
        return _error(404, "Artifact not found or access denied")

    @app.exception_handler(UpstreamModelError)
    async def upstream_error(request: Request, exc: UpstreamModelError) -> JSONResponse:
        logger.warning("Model request failed with %s", exc.status_code)
        return _error(502, "Model request failed", exc.detail, upstream_status=exc.status_code)

    @app.exception_handler(SuggestionParseError)
    async def suggestion_parse_error(request: Request, exc: SuggestionParseError) -> JSONResponse:
        return _error(502, "Failed to parse AI response")

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error", exc.__class__.__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    container = container or ServiceContainer.from_env()
    app = FastAPI(title="Survey Chat API", version="0.1.0")
    app.state.container = container

    # Observability: request latency histogram
    app.middleware("http")(metrics_middleware_factory())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=container.config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    app.include_router(chat_router)
    app.include_router(artifacts_router)
    app.include_router(questions_router)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "components": {
                "api": "ok",
                "store": container.config.store_impl,
                "llm": container.config.llm_provider,
            },
        }

    @app.get("/metrics")
    def metrics() -> Response:
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
