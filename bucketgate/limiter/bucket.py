"""Token bucket arithmetic shared by the stateful backends.

Times are epoch seconds as floats. They are converted to integer
microseconds before any truncation or division so that every backend
reaches the same interval boundaries for the same clock reading.
"""

from typing import NamedTuple, Optional

from bucketgate.exceptions import ConfigurationError

_MICROS = 1_000_000

DEFAULT_INTERVAL_SECONDS = 1.0


class Decision(NamedTuple):
    """Outcome of a single consumption attempt.

    Attributes:
        allowed: Whether ``n`` tokens were available
        tokens: Tokens left after consumption, or the refilled but
            unspent count when rejected
        now_t: The current time truncated to the interval boundary
    """
    allowed: bool
    tokens: float
    now_t: float


def _to_micros(seconds: float) -> int:
    return round(seconds * _MICROS)


def resolve_interval(interval: Optional[float]) -> float:
    """Return the refill interval in seconds, defaulting unset or zero to one.

    Raises:
        ConfigurationError: If the interval is negative or below a microsecond
    """
    if not interval:
        return DEFAULT_INTERVAL_SECONDS
    if _to_micros(interval) <= 0:
        raise ConfigurationError(f"Refill interval must be positive, got {interval!r}")
    return float(interval)


def is_whole_seconds(interval: float) -> bool:
    """Return True if ``interval`` is a whole number of seconds."""
    return _to_micros(interval) % _MICROS == 0


def truncate(now: float, interval: float) -> float:
    """Round ``now`` down to a multiple of ``interval`` since the epoch."""
    step = _to_micros(interval)
    return (_to_micros(now) // step) * step / _MICROS


def elapsed_intervals(last_refill: float, now_t: float, interval: float) -> int:
    """Count whole intervals between the last refill and ``now_t``.

    A ``last_refill`` in the future (clock skew between instances)
    counts as zero elapsed intervals.
    """
    delta = _to_micros(now_t) - _to_micros(last_refill)
    if delta <= 0:
        return 0
    return delta // _to_micros(interval)


def refill(
    tokens: float,
    last_refill: float,
    now_t: float,
    rate: float,
    burst: int,
    interval: float,
) -> float:
    """Add the allotment earned since ``last_refill``, capped at ``burst``."""
    allotment = elapsed_intervals(last_refill, now_t, interval) * rate
    return min(tokens + allotment, float(burst))


def take(
    tokens: float,
    last_refill: float,
    now: float,
    n: int,
    rate: float,
    burst: int,
    interval: float,
) -> Decision:
    """Refill the bucket and try to consume ``n`` tokens from it.

    Args:
        tokens: Tokens stored at ``last_refill``
        last_refill: Truncated time of the last successful consumption
        now: Wall clock time, not yet truncated
        n: Tokens requested
        rate: Tokens added per interval
        burst: Bucket capacity
        interval: Refill granularity in seconds

    Returns:
        Decision; callers persist ``(tokens, now_t)`` only when allowed
    """
    now_t = truncate(now, interval)
    available = refill(tokens, last_refill, now_t, rate, burst, interval)
    if available < n:
        return Decision(False, available, now_t)
    return Decision(True, available - n, now_t)
