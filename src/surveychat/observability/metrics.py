from __future__ import annotations

"""Prometheus metrics for the survey chat backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters for artifact versioning outcomes.
"""

import logging
import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)

# Histogram buckets chosen for web latencies (seconds); model calls are slow
REQUEST_LATENCY = Histogram(
    "surveychat_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

ARTIFACT_VERSIONS = Counter(
    "surveychat_artifact_versions_total",
    "Artifact versions written, by action",
    labelnames=("action",),
)

ARTIFACT_SAVE_FAILURES = Counter(
    "surveychat_artifact_save_failures_total",
    "Extracted artifacts that could not be persisted",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g. /chatbot/sessions/{id}) to a coarse label.

    Keeps the first two static segments; ids never appear in the second slot
    of a collection route, except under /artifacts.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if segs[0] == "artifacts" or len(segs) == 1:
        return "/" + segs[0]
    return "/" + "/".join(segs[:2])


def record_artifact_version(action: str) -> None:
    ARTIFACT_VERSIONS.labels(action=action).inc()


def record_artifact_save_failure() -> None:
    ARTIFACT_SAVE_FAILURES.inc()


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except ValueError as exc:
            logger.debug("Latency not recorded: %s", exc)
        return response

    return middleware
