"""
Request middleware: correlation IDs, tenant-scoped access logs, deadlines.

Every request runs inside a correlation context; when the caller sends
X-User-Id the access log lines also carry the tenant so a user's reads,
writes and the recomputes they trigger can be followed in one grep.
"""
import asyncio
from contextlib import nullcontext
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from core.config import config
from core.observability import (
    Timer,
    correlation_context,
    get_correlation_id,
    get_logger,
    metrics,
    tenant_context,
)

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/", "/health", "/api/health", "/api/metrics"})

# Responses that stay open for the life of the client
STREAMING_PATHS = frozenset({"/api/analytics/stream"})

# Endpoints that may recompute every tracked period before answering
RECOMPUTE_PATHS = frozenset({"/api/analytics/update", "/api/analytics/dashboard"})


def _metric_key(request: Request) -> str:
    """Group by route template so per-request ids don't explode the counters."""
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request once on completion and record its timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        user_id: Optional[str] = request.headers.get("X-User-Id")

        tenant = tenant_context(user_id) if user_id else nullcontext()

        with correlation_context(request.headers.get("X-Request-ID")) as correlation_id, tenant:
            with Timer(f"{request.method} {path}") as timer:
                try:
                    response = await call_next(request)
                except Exception as e:
                    logger.exception(
                        f"Unhandled error: {request.method} {path}",
                        extra={"error": str(e)},
                    )
                    metrics.record_error(type(e).__name__)
                    raise

            response.headers["X-Request-ID"] = correlation_id
            if path in STREAMING_PATHS:
                return response

            response.headers["X-Response-Time"] = f"{timer.elapsed_ms:.2f}ms"
            key = _metric_key(request)
            metrics.record_request(key)
            metrics.record_timing(key, timer.elapsed_ms)

            if response.status_code >= 400:
                metrics.record_error(f"HTTP_{response.status_code}")

            if path not in QUIET_PATHS or response.status_code >= 500:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    f"{request.method} {path} -> {response.status_code}",
                    extra={
                        "status_code": response.status_code,
                        "duration_ms": round(timer.elapsed_ms, 2),
                    },
                )

            return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request outlives its deadline."""

    def __init__(self, app, request_timeout: Optional[float] = None, recompute_timeout: Optional[float] = None):
        super().__init__(app)
        self.request_timeout = request_timeout or config.web.request_timeout
        self.recompute_timeout = recompute_timeout or config.web.recompute_timeout

    def deadline_for(self, path: str) -> Optional[float]:
        if path in STREAMING_PATHS or path in QUIET_PATHS:
            return None
        if path in RECOMPUTE_PATHS:
            return self.recompute_timeout
        return self.request_timeout

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        timeout = self.deadline_for(path)
        if timeout is None:
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request deadline exceeded: {request.method} {path}",
                extra={"timeout": timeout},
            )
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "message": "Request timed out",
                    "error": f"No response within {timeout:g}s",
                    "correlation_id": get_correlation_id(),
                },
            )
