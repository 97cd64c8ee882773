"""
API Middleware - Request tracing, latency, error mapping and rate limiting.

Every error body has the same shape::

    {"error": {"code": ..., "message": ..., "details": {...}}, "request_id": ...}
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from scout.config.errors import ErrorCode, ScoutError

logger = logging.getLogger(__name__)

__all__ = [
    "ERROR_STATUS",
    "ErrorHandlerMiddleware",
    "FixedWindowRateLimiter",
    "LatencyMiddleware",
    "RateDecision",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
]

Dispatch = Callable[[Request], Awaitable[Response]]

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.SEARCH_INVALID_QUERY: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.SECURITY_UNAUTHORIZED: 401,
    ErrorCode.LLM_AUTH_FAILED: 401,
    ErrorCode.SECURITY_FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.SECURITY_RATE_LIMITED: 429,
    ErrorCode.LLM_RATE_LIMITED: 429,
    # A provider answered, but badly
    ErrorCode.EMBEDDING_PROVIDER_FAILED: 502,
    ErrorCode.EMBEDDING_ZERO_VECTOR: 502,
    ErrorCode.EMBEDDING_INVALID_RESPONSE: 502,
    ErrorCode.SEARCH_RERANK_FAILED: 502,
    ErrorCode.LLM_INVALID_RESPONSE: 502,
    ErrorCode.LLM_UNAVAILABLE: 503,
    ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    ErrorCode.CONFIGURATION_ERROR: 503,
}

# Health checks must keep answering while a client is throttled
_UNLIMITED_PATHS = frozenset({"/health"})


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_response(
    request: Request,
    status_code: int,
    error: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "request_id": _request_id(request)},
        headers=headers,
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        request.state.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Log one access line per request and expose X-Response-Time-Ms."""

    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            _request_id(request),
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Render ScoutError as its mapped status; anything else is an opaque 500."""

    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        try:
            return await call_next(request)
        except ScoutError as e:
            status_code = ERROR_STATUS.get(e.code, 500)
            logger.error(
                "%s (%d): %s request_id=%s details=%s",
                e.code.value,
                status_code,
                e.message,
                _request_id(request),
                e.details,
            )
            return _error_response(request, status_code, e.to_dict())
        except Exception:
            logger.exception(
                "Unhandled error on %s request_id=%s", request.url.path, _request_id(request)
            )
            return _error_response(
                request,
                500,
                {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": "Internal server error",
                    "details": {},
                },
            )


@dataclass(frozen=True)
class RateDecision:
    """Outcome of one rate limit check."""

    allowed: bool
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """
    Count requests per key in fixed windows.

    Buckets from earlier windows are dropped as soon as a new window starts,
    so memory is bounded by the number of keys seen in the current window.

    Example:
        >>> limiter = FixedWindowRateLimiter(limit=2, window_seconds=60)
        >>> [limiter.hit("1.2.3.4").allowed for _ in range(3)]
        [True, True, False]
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window = -1
        self._counts: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._counts)

    def hit(self, key: str) -> RateDecision:
        """Record one request for ``key`` unless it is over the limit."""
        now = self._clock()
        window = int(now // self.window_seconds)
        if window != self._window:
            if self._counts:
                logger.debug("Rate window rolled over, dropping %d buckets", len(self._counts))
            self._window = window
            self._counts = {}

        used = self._counts.get(key, 0)
        if used >= self.limit:
            window_end = (window + 1) * self.window_seconds
            return RateDecision(
                allowed=False, remaining=0, retry_after=max(1, math.ceil(window_end - now))
            )

        self._counts[key] = used + 1
        return RateDecision(allowed=True, remaining=self.limit - used - 1, retry_after=0)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client-IP request limit; over-limit requests get 429 with Retry-After."""

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 60,
        limiter: FixedWindowRateLimiter | None = None,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter or FixedWindowRateLimiter(requests_per_minute)

    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        if request.url.path in _UNLIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        decision = self.limiter.hit(client_ip)
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s request_id=%s", client_ip, _request_id(request)
            )
            return _error_response(
                request,
                429,
                ScoutError(
                    ErrorCode.SECURITY_RATE_LIMITED,
                    f"Too many requests. Retry after {decision.retry_after} seconds.",
                    {"retry_after": decision.retry_after},
                ).to_dict(),
                headers={"Retry-After": str(decision.retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
