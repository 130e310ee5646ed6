"""Token bucket limiters behind one contract.

Supports a Redis backend shared by many instances, a per-process
in-memory backend and a disabled backend that admits everything.
"""

from bucketgate.limiter.base import Limiter
from bucketgate.limiter.bucket import Decision, take, truncate
from bucketgate.limiter.disabled import DisabledLimiter
from bucketgate.limiter.factory import get_limiter, new_limiter, reset_limiter
from bucketgate.limiter.memory import BucketRegistry, InMemoryLimiter, ReadWriteLock
from bucketgate.limiter.models import BackendType, BucketState, LimiterConfig
from bucketgate.limiter.redis_backend import RedisLimiter
from bucketgate.limiter.store import ConnectionProvider, RedisConnectionProvider

__all__ = [
    # Models
    "BackendType",
    "BucketState",
    "LimiterConfig",
    "Decision",
    # Bucket math
    "take",
    "truncate",
    # Backends
    "Limiter",
    "RedisLimiter",
    "InMemoryLimiter",
    "DisabledLimiter",
    "BucketRegistry",
    "ReadWriteLock",
    "ConnectionProvider",
    "RedisConnectionProvider",
    # Factory
    "new_limiter",
    "get_limiter",
    "reset_limiter",
]
