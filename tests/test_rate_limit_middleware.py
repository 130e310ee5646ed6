"""Tests for the HTTP rate limiting middleware."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bucketgate.core.config import settings
from bucketgate.limiter import BackendType, DisabledLimiter, InMemoryLimiter
from bucketgate.middleware.rate_limit import RateLimitMiddleware


def _app(**middleware_kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, **middleware_kwargs)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return app


@pytest.fixture
def limiter(clock):
    return InMemoryLimiter(rate=0.0, burst=2, clock=clock)


def test_admits_until_bucket_is_empty(limiter) -> None:
    client = TestClient(_app(limiter=limiter))

    assert client.get("/ping").status_code == 200
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Limit"] == "2"

    resp = client.get("/ping")
    assert resp.status_code == 429
    assert resp.json()["error"] == "rate_limit_exceeded"
    assert resp.headers["Retry-After"] == "1"
    assert resp.headers["X-RateLimit-Limit"] == "2"


def test_api_keys_limited_independently(limiter) -> None:
    client = TestClient(_app(limiter=limiter, cost=2))

    assert client.get("/ping", headers={"Authorization": "Bearer a"}).status_code == 200
    assert client.get("/ping", headers={"Authorization": "Bearer a"}).status_code == 429
    assert client.get("/ping", headers={"Authorization": "Bearer b"}).status_code == 200


def test_forwarded_for_used_as_client_ip(limiter) -> None:
    client = TestClient(_app(limiter=limiter, cost=2))

    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"}).status_code == 200
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.3"}).status_code == 200


def test_keys_are_hashed(limiter) -> None:
    client = TestClient(_app(limiter=limiter, key_prefix="rl"))
    client.get("/ping", headers={"Authorization": "Bearer secret-key"})

    bucket_keys = list(limiter.registry._buckets)
    assert len(bucket_keys) == 1
    assert bucket_keys[0].startswith("rl:apikey:")
    assert "secret-key" not in bucket_keys[0]


def test_disabled_limiter_always_admits() -> None:
    client = TestClient(_app(limiter=DisabledLimiter()))

    for _ in range(5):
        assert client.get("/ping").status_code == 200


def test_defaults_to_process_limiter(monkeypatch) -> None:
    monkeypatch.setattr(settings, "rate_limit_backend", BackendType.MEMORY)
    monkeypatch.setattr(settings, "rate_limit_rate", 0.0)
    monkeypatch.setattr(settings, "rate_limit_burst", 1)
    client = TestClient(_app())

    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 429
