"""In-memory token bucket limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the registry is guarded by a readers-writer lock and each
  bucket's read-modify-write by its own mutex.
- Buckets are never evicted; memory grows with the number of distinct keys.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Optional

from bucketgate.core.logging import get_log_context, get_logger
from bucketgate.limiter.base import Limiter
from bucketgate.limiter.bucket import refill, resolve_interval, take, truncate
from bucketgate.limiter.models import BucketState

logger = get_logger(__name__)


class ReadWriteLock:
    """Readers-writer lock that prefers waiting writers.

    Any number of readers may hold the lock together; a writer holds it
    alone. New readers queue behind a waiting writer so inserts are not
    starved by a steady stream of lookups.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class LocalBucket:
    """Bucket owned by the registry together with its effective limits."""
    state: BucketState
    rate: float
    burst: int
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class BucketRegistry:
    """Mapping from key to bucket with double-checked lazy creation."""

    def __init__(self) -> None:
        self._buckets: Dict[str, LocalBucket] = {}
        self._lock = ReadWriteLock()

    def get_or_create(
        self, key: str, factory: Callable[[], LocalBucket]
    ) -> LocalBucket:
        """Return the bucket for ``key``, building it with ``factory`` on a miss.

        ``factory`` runs at most once per key even when several threads miss
        at the same time.
        """
        with self._lock.read():
            bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket

        with self._lock.write():
            # Another caller may have inserted while we waited for the write lock
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = factory()
                self._buckets[key] = bucket
        return bucket

    def get(self, key: str) -> LocalBucket | None:
        with self._lock.read():
            return self._buckets.get(key)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        with self._lock.read():
            return key in self._buckets


class InMemoryLimiter(Limiter):
    """Token bucket limiter keeping every bucket in process memory.

    A key's bucket starts full (``tokens = burst``). When a call supplies a
    rate or burst different from the bucket's effective values, the bucket
    first accrues at the old values up to the current interval boundary and
    then switches, so past accrual is never recomputed.
    """

    name = "memory"

    def __init__(
        self,
        rate: float,
        burst: int,
        interval: Optional[float] = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory limiter.

        Args:
            rate: Default tokens added per interval
            burst: Default bucket size
            interval: Refill granularity in seconds; unset or zero means one
            clock: Time source returning UNIX time in seconds

        Raises:
            ConfigurationError: If the interval is negative
        """
        self._rate = rate
        self._burst = burst
        self._interval = resolve_interval(interval)
        self._clock = clock
        self._registry = BucketRegistry()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def registry(self) -> BucketRegistry:
        return self._registry

    def _allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        now = self._clock()
        now_t = truncate(now, self._interval)

        bucket = self._registry.get_or_create(
            key,
            lambda: LocalBucket(
                state=BucketState(tokens=float(burst), last_refill=now_t),
                rate=rate,
                burst=burst,
            ),
        )

        with bucket.lock:
            if bucket.rate != rate or bucket.burst != burst:
                self._reconfigure(key, bucket, now_t, rate, burst)

            decision = take(
                bucket.state.tokens,
                bucket.state.last_refill,
                now,
                n,
                bucket.rate,
                bucket.burst,
                self._interval,
            )
            if decision.allowed:
                bucket.state.tokens = decision.tokens
                bucket.state.last_refill = decision.now_t
            return decision.allowed

    def _reconfigure(
        self, key: str, bucket: LocalBucket, now_t: float, rate: float, burst: int
    ) -> None:
        """Switch a bucket to new limits effective at ``now_t``."""
        state = bucket.state
        state.tokens = refill(
            state.tokens,
            state.last_refill,
            now_t,
            bucket.rate,
            bucket.burst,
            self._interval,
        )
        state.last_refill = max(state.last_refill, now_t)
        state.tokens = min(state.tokens, float(burst))

        logger.debug(
            f"Bucket limits changed from rate={bucket.rate} burst={bucket.burst}",
            extra=get_log_context(
                limiter_key=key, backend=self.name, rate=rate, burst=burst
            ),
        )
        bucket.rate = rate
        bucket.burst = burst
