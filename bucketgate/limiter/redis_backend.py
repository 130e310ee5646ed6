"""Redis-backed token bucket limiter for multi-instance deployments.

Each key is a Redis list of two elements: the token count (a float) and
the epoch second of the last refill, truncated to the interval. The read
and the write-back are separate round-trips without WATCH, so concurrent
callers on the same key can both spend the same snapshot. That
over-admission under contention is accepted in exchange for one read and
one pipelined write per call.
"""

import math
import time
from typing import Any, Callable, Optional, Sequence

import redis

from bucketgate.core.logging import get_log_context, get_logger
from bucketgate.exceptions import ConfigurationError, StoreDecodeError
from bucketgate.limiter.base import Limiter
from bucketgate.limiter.bucket import is_whole_seconds, resolve_interval, take, truncate
from bucketgate.limiter.models import BucketState
from bucketgate.limiter.store import ConnectionProvider

logger = get_logger(__name__)


def decode_record(key: str, raw: Sequence[Any]) -> BucketState:
    """Decode an ``LRANGE key 0 1`` reply into a bucket snapshot.

    Raises:
        StoreDecodeError: If the record is short or not numeric
    """
    if len(raw) < 2:
        raise StoreDecodeError(key, raw)
    try:
        tokens = float(raw[0])
        last_refill = int(raw[1])
    except (TypeError, ValueError) as e:
        raise StoreDecodeError(key, raw) from e
    if not math.isfinite(tokens):
        raise StoreDecodeError(key, raw)
    return BucketState(tokens=tokens, last_refill=float(last_refill))


class RedisLimiter(Limiter):
    """Redis-based distributed token bucket limiter.

    Redis failures never propagate: connection errors, timeouts, command
    errors and malformed records all resolve to ``fail_open``. A failed
    write-back after an accept decision resolves the same way, so the
    returned value is the policy value rather than the decision.
    """

    name = "redis"

    def __init__(
        self,
        provider: ConnectionProvider,
        rate: float,
        burst: int,
        interval: Optional[float] = 1.0,
        fail_open: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize Redis limiter.

        Args:
            provider: Source of pooled Redis connections
            rate: Default tokens added per interval
            burst: Default bucket size
            interval: Refill granularity in whole seconds; unset or zero
                means one
            fail_open: Admit requests when Redis is unavailable
            clock: Time source returning UNIX time in seconds

        Raises:
            ConfigurationError: If the interval is negative or not a whole
                number of seconds
        """
        interval = resolve_interval(interval)
        # last_refill is stored as integer seconds
        if not is_whole_seconds(interval):
            raise ConfigurationError(
                f"Redis backend needs a whole-second interval, got {interval!r}"
            )
        self._provider = provider
        self._rate = rate
        self._burst = burst
        self._interval = interval
        self._fail_open = fail_open
        self._clock = clock

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def fail_open(self) -> bool:
        return self._fail_open

    def _allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        try:
            with self._provider.connection() as conn:
                return self._consume(conn, key, n, rate, burst)
        except redis.ConnectionError as e:
            # Redis unreachable or connection dropped mid-call
            logger.error(f"Redis connection failed: {e}")
            return self._handle_redis_failure(key, "connection_error")
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout: {e}")
            return self._handle_redis_failure(key, "timeout")
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            return self._handle_redis_failure(key, "redis_error")
        except StoreDecodeError as e:
            logger.warning(str(e))
            return self._handle_redis_failure(key, "decode_error")
        except Exception as e:
            logger.exception(f"Unexpected rate limit error: {e}")
            return self._handle_redis_failure(key, "unexpected")

    def _consume(self, conn: Any, key: str, n: int, rate: float, burst: int) -> bool:
        raw = conn.lrange(key, 0, 1)
        now = self._clock()

        if not raw:
            # The first touch of a key costs exactly one token, whatever n is
            self._initialize(conn, key, burst, truncate(now, self._interval))
            return True

        state = decode_record(key, raw)
        decision = take(
            state.tokens,
            truncate(state.last_refill, self._interval),
            now,
            n,
            rate,
            burst,
            self._interval,
        )
        if not decision.allowed:
            # The refill is not written back on rejection
            return False

        with conn.pipeline(transaction=True) as pipe:
            pipe.lset(key, 0, decision.tokens)
            pipe.lset(key, 1, int(decision.now_t))
            pipe.execute()
        return True

    def _initialize(self, conn: Any, key: str, burst: int, now_t: float) -> None:
        # LTRIM keeps the first pair if a concurrent caller initialized first
        with conn.pipeline(transaction=True) as pipe:
            pipe.rpush(key, float(burst - 1), int(now_t))
            pipe.ltrim(key, 0, 1)
            pipe.execute()

    def _handle_redis_failure(self, key: str, error_type: str) -> bool:
        """Resolve a Redis failure to the configured fail-open policy.

        Args:
            key: Bucket key of the failed call
            error_type: Type of error for logging purposes

        Returns:
            The fail_open setting
        """
        context = get_log_context(
            limiter_key=key,
            backend=self.name,
            error_type=error_type,
            fail_open=self._fail_open,
        )
        if self._fail_open:
            logger.warning(
                f"Rate limiting fail-open triggered due to {error_type}. "
                "Request allowed without rate limit check.",
                extra=context,
            )
        else:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied.",
                extra=context,
            )
        return self._fail_open

    def close(self) -> None:
        self._provider.close()
