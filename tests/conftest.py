"""Shared fixtures for limiter tests."""

from contextlib import contextmanager
from typing import Dict, List

import pytest
import redis

from bucketgate.limiter import reset_limiter
from bucketgate.limiter.store import ConnectionProvider

# Mid-interval so truncation is visible
T0 = 1_700_000_000.25


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _encode(value) -> bytes:
    # Mirrors redis-py's encoder for the types the limiter sends
    if isinstance(value, bytes):
        return value
    if isinstance(value, float):
        return repr(value).encode()
    return str(value).encode()


class FakePipeline:
    """Queues list commands and applies them on execute()."""

    def __init__(self, client: "FakeRedisClient"):
        self._client = client
        self._commands: List[tuple] = []

    def __enter__(self) -> "FakePipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self._commands.clear()

    def rpush(self, key, *values):
        self._commands.append(("rpush", key, values))
        return self

    def ltrim(self, key, start, end):
        self._commands.append(("ltrim", key, (start, end)))
        return self

    def lset(self, key, index, value):
        self._commands.append(("lset", key, (index, value)))
        return self

    def execute(self):
        store = self._client.store
        results = []
        for name, key, args in self._commands:
            if name == "rpush":
                store.setdefault(key, []).extend(_encode(v) for v in args)
                results.append(len(store[key]))
            elif name == "ltrim":
                start, end = args
                store[key] = store.get(key, [])[start:end + 1]
                results.append(True)
            elif name == "lset":
                index, value = args
                if key not in store:
                    raise redis.ResponseError("ERR no such key")
                store[key][index] = _encode(value)
                results.append(True)
        self._commands.clear()
        return results


class FakeRedisClient:
    """Client exposing the list commands the Redis limiter uses."""

    def __init__(self, store: Dict[str, List[bytes]]):
        self.store = store

    def lrange(self, key, start, end):
        return list(self.store.get(key, [])[start:end + 1])

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


class FakeConnectionProvider(ConnectionProvider):
    """Provider handing out fake clients over one shared in-memory store."""

    def __init__(self):
        self.store: Dict[str, List[bytes]] = {}
        self.borrowed = 0
        self.released = 0
        self.closed = False

    @contextmanager
    def connection(self):
        self.borrowed += 1
        try:
            yield FakeRedisClient(self.store)
        finally:
            self.released += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_provider() -> FakeConnectionProvider:
    return FakeConnectionProvider()


@pytest.fixture(autouse=True)
def _reset_global_limiter():
    reset_limiter()
    yield
    reset_limiter()
