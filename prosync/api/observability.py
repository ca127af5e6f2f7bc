"""
Request tracing for the API.

Every request gets a request id (taken from ``X-Request-ID`` when the client
sends one), start/finish log lines with timing, and the id echoed back in the
response headers.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from prosync.api.middleware import get_client_ip as get_client_ip_safe
from prosync.exceptions import ProSyncError, handle_exception
from prosync.logging_config import LogContext, get_logger

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

logger = get_logger(__name__)

SENSITIVE_PARAMS = frozenset({"api_key", "token", "password", "secret", "auth", "key"})


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_ctx.get()


def sanitize_query_params(query: str) -> str:
    """Redact the values of sensitive query parameters."""
    sanitized = []
    for part in query.split("&"):
        key = part.split("=", 1)[0]
        if "=" in part and key.lower() in SENSITIVE_PARAMS:
            sanitized.append(f"{key}=***REDACTED***")
        else:
            sanitized.append(part)
    return "&".join(sanitized)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Request ID propagation, timing and structured request logs.

    Log lines: ``request_started``, ``request_completed`` (or
    ``request_completed_slow`` above the threshold) and ``request_failed``.
    """

    def __init__(self, app: ASGIApp, *, slow_request_threshold_ms: float = 1000.0) -> None:
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or generate_request_id()
        client_ip = get_client_ip_safe(request)
        user_id = (request.headers.get("x-user-id") or "").strip() or None

        _request_id_ctx.set(request_id)
        LogContext.set(request_id=request_id, client_ip=client_ip, user_id=user_id, endpoint=request.url.path)

        request_meta: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "user_agent": request.headers.get("user-agent"),
        }
        if request.url.query:
            request_meta["query_params"] = sanitize_query_params(str(request.url.query))
        logger.info("request_started", extra=request_meta)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            error_meta: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            }
            if isinstance(exc, ProSyncError):
                exc.request_id = request_id
                error_meta["error_code"] = exc.error_code
                exc.log()
            else:
                error_meta["error_code"] = handle_exception(exc, request_id=request_id).get("error")
            logger.error("request_failed", extra=error_meta)
            raise

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response_meta = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if hasattr(request.state, "result_count"):
            response_meta["result_count"] = request.state.result_count

        if duration_ms >= self.slow_request_threshold_ms:
            logger.warning("request_completed_slow", extra=response_meta)
        else:
            logger.info("request_completed", extra=response_meta)
        return response
