"""Limiter contract shared by every backend."""

from abc import ABC, abstractmethod

from bucketgate.core.logging import get_log_context, get_logger

logger = get_logger(__name__)


class Limiter(ABC):
    """Abstract base class for token bucket limiters.

    The public ``allow*`` methods never raise: every failure is expressed
    through the boolean result. Backends implement ``_allow_n`` and the
    ``rate``/``burst`` properties, which report the configured defaults
    rather than any per-key override.
    """

    name: str = "limiter"

    def allow(self, key: str) -> bool:
        """Return True if one event may happen for ``key``."""
        return self.allow_n(key, 1)

    def allow_n(self, key: str, n: int) -> bool:
        """Return True if ``n`` events may happen for ``key``.

        Uses the configured default rate and burst.
        """
        return self._checked_allow_n(key, n, self.rate, self.burst)

    def allow_dynamic(self, key: str, rate: float, burst: int) -> bool:
        """Return True if one event may happen for ``key`` at the given limits."""
        return self.allow_n_dynamic(key, 1, rate, burst)

    def allow_n_dynamic(self, key: str, n: int, rate: float, burst: int) -> bool:
        """Return True if ``n`` events may happen for ``key`` at the given limits.

        Args:
            key: Bucket identity
            n: Tokens to consume
            rate: Tokens added per interval for this key
            burst: Bucket size for this key
        """
        return self._checked_allow_n(key, n, rate, burst)

    def _checked_allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        if n < 0:
            logger.warning(
                f"Rejecting negative token request n={n}",
                extra=get_log_context(limiter_key=key, backend=self.name, n=n),
            )
            return False
        if rate < 0 or burst < 0:
            logger.warning(
                f"Rejecting negative limits rate={rate} burst={burst}",
                extra=get_log_context(
                    limiter_key=key, backend=self.name, rate=rate, burst=burst
                ),
            )
            return False
        return self._allow_n(key, n, rate, burst)

    @abstractmethod
    def _allow_n(self, key: str, n: int, rate: float, burst: int) -> bool:
        """Consume ``n`` tokens from ``key`` at the given rate and burst."""
        pass

    @property
    @abstractmethod
    def rate(self) -> float:
        """Configured default rate in tokens per interval."""
        pass

    @property
    @abstractmethod
    def burst(self) -> int:
        """Configured default bucket size."""
        pass

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> "Limiter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
