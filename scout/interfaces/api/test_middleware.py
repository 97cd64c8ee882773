"""Tests for API middleware."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from scout.config import ErrorCode

from .middleware import FixedWindowRateLimiter, RateLimitMiddleware, RequestIDMiddleware


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(30.0)


def _app(limiter: FixedWindowRateLimiter) -> FastAPI:
    app = FastAPI()

    @app.get("/health")
    async def health() -> dict:
        return {"status": "healthy"}

    @app.get("/api/ping")
    async def ping() -> dict:
        return {"pong": True}

    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(RequestIDMiddleware)
    return app


# --- FixedWindowRateLimiter ---


def test_limiter_counts_per_key(clock: FakeClock) -> None:
    """Test each key gets its own allowance within a window."""
    limiter = FixedWindowRateLimiter(limit=2, clock=clock)

    assert [limiter.hit("a").remaining for _ in range(2)] == [1, 0]
    denied = limiter.hit("a")
    assert denied.allowed is False
    assert denied.retry_after == 30
    assert limiter.hit("b").allowed is True


def test_limiter_drops_buckets_from_past_windows(clock: FakeClock) -> None:
    """Test a new window starts fresh and forgets earlier clients."""
    limiter = FixedWindowRateLimiter(limit=1, clock=clock)
    for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        limiter.hit(ip)
    assert len(limiter) == 3
    assert limiter.hit("10.0.0.1").allowed is False

    clock.now = 61.0

    assert limiter.hit("10.0.0.1").allowed is True
    assert len(limiter) == 1


# --- RateLimitMiddleware ---


def test_rate_limit_returns_429_with_retry_after(clock: FakeClock) -> None:
    """Test the request over the limit is rejected with a structured error."""
    client = TestClient(_app(FixedWindowRateLimiter(limit=2, clock=clock)))

    first = client.get("/api/ping")
    client.get("/api/ping")
    rejected = client.get("/api/ping", headers={"X-Request-ID": "req-9"})

    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert rejected.status_code == 429
    assert rejected.headers["Retry-After"] == "30"
    body = rejected.json()
    assert body["error"]["code"] == ErrorCode.SECURITY_RATE_LIMITED.value
    assert body["error"]["details"] == {"retry_after": 30}
    assert body["request_id"] == "req-9"


def test_health_is_never_rate_limited(clock: FakeClock) -> None:
    """Test health checks pass even when the client is over its limit."""
    client = TestClient(_app(FixedWindowRateLimiter(limit=1, clock=clock)))

    client.get("/api/ping")
    assert client.get("/api/ping").status_code == 429
    assert client.get("/health").status_code == 200
