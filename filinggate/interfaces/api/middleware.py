"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from filinggate.config.errors import ErrorCode, FilingGateError

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        # Store in request state for access in handlers
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )

        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert FilingGateError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except FilingGateError as e:
            request_id = getattr(request.state, "request_id", "unknown")
            status_code = error_code_to_status(e.code)
            log = logger.error if status_code >= 500 else logger.warning
            log(
                "FilingGateError: %s request_id=%s details=%s",
                e.message,
                request_id,
                e.details,
            )
            return JSONResponse(
                status_code=status_code,
                content={
                    "error": e.to_dict(),
                    "request_id": request_id,
                },
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


_STATUS_BY_CODE = {
    # 404 Not Found
    ErrorCode.NOT_FOUND: 404,
    # 409 Conflict
    ErrorCode.ANALYSIS_BLOCKED: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    # 422 Unprocessable
    ErrorCode.PARSE_FAILED: 422,
    ErrorCode.SCHEMA_VERSION_UNSUPPORTED: 422,
    ErrorCode.VALIDATION_ERROR: 422,
    # 502 Bad Gateway (upstream providers and intake)
    ErrorCode.PROVIDER_FAILED: 502,
    ErrorCode.PROVIDER_TIMEOUT: 502,
    ErrorCode.PROVIDER_AUTH_FAILED: 502,
    ErrorCode.EXTRACTION_FAILED: 502,
    ErrorCode.INTAKE_PERMISSION_DENIED: 502,
    ErrorCode.INTAKE_AUTH_FAILED: 502,
    ErrorCode.INTAKE_NOT_FOUND: 502,
    ErrorCode.INTAKE_TRANSIENT: 502,
    # 503 Service Unavailable
    ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    ErrorCode.STORAGE_WRITE_FAILED: 503,
    ErrorCode.LLM_UNAVAILABLE: 503,
    ErrorCode.LLM_RATE_LIMITED: 503,
}


def error_code_to_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    return _STATUS_BY_CODE.get(code, 500)
