"""Limiter construction from configuration."""

import time
from typing import Callable, Optional

from bucketgate.core.logging import get_logger
from bucketgate.exceptions import UnknownBackendError
from bucketgate.limiter.base import Limiter
from bucketgate.limiter.disabled import DisabledLimiter
from bucketgate.limiter.memory import InMemoryLimiter
from bucketgate.limiter.models import BackendType, LimiterConfig
from bucketgate.limiter.redis_backend import RedisLimiter
from bucketgate.limiter.store import ConnectionProvider, RedisConnectionProvider

logger = get_logger(__name__)


def new_limiter(
    config: LimiterConfig,
    *,
    clock: Callable[[], float] = time.time,
    provider: Optional[ConnectionProvider] = None,
    health_check_interval: int = 60,
) -> Limiter:
    """Build the limiter selected by ``config.backend``.

    Args:
        config: Limiter configuration
        clock: Time source returning UNIX time in seconds
        provider: Redis connection provider; built from ``config.address``
            when omitted
        health_check_interval: Idle seconds before a pooled connection is
            pinged, used only when the provider is built here

    Returns:
        A Limiter for the configured backend

    Raises:
        UnknownBackendError: If the backend kind is not recognized
        ConfigurationError: If the interval does not suit the backend
    """
    interval = config.interval_seconds

    if config.backend == BackendType.REDIS:
        if provider is None:
            provider = RedisConnectionProvider(
                config.address, health_check_interval=health_check_interval
            )
        logger.info("Using Redis rate limiter backend")
        return RedisLimiter(
            provider,
            rate=config.rate,
            burst=config.burst,
            interval=interval,
            fail_open=config.fail_open,
            clock=clock,
        )
    if config.backend == BackendType.MEMORY:
        logger.debug("Using in-memory rate limiter backend")
        return InMemoryLimiter(
            rate=config.rate,
            burst=config.burst,
            interval=interval,
            clock=clock,
        )
    if config.backend == BackendType.DISABLED:
        logger.debug("Rate limiting disabled")
        return DisabledLimiter()
    raise UnknownBackendError(config.backend)


# Global limiter instance (singleton pattern)
_limiter_instance: Limiter | None = None
_limiter_config: LimiterConfig | None = None


def get_limiter(force_new: bool = False) -> Limiter:
    """Get or create the process-wide limiter built from settings.

    The instance is rebuilt when the limiter settings change (primarily
    in tests) or when ``force_new`` is set.

    Returns:
        The configured Limiter

    Example:
        >>> from bucketgate.limiter import get_limiter
        >>> if not get_limiter().allow("user:42"):
        ...     raise RuntimeError("slow down")
    """
    global _limiter_instance, _limiter_config

    # Import settings here to avoid circular imports
    from bucketgate.core.config import settings

    config = settings.limiter_config()
    if _limiter_instance is not None and _limiter_config == config and not force_new:
        return _limiter_instance

    if _limiter_instance is not None:
        _limiter_instance.close()

    provider = None
    if config.backend == BackendType.REDIS:
        provider = RedisConnectionProvider(
            config.address,
            health_check_interval=settings.redis_health_check_interval,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
        )
    _limiter_instance = new_limiter(config, provider=provider)
    _limiter_config = config
    return _limiter_instance


def reset_limiter() -> None:
    """Close and forget the process-wide limiter.

    This is primarily useful for testing.
    """
    global _limiter_instance, _limiter_config
    if _limiter_instance is not None:
        _limiter_instance.close()
    _limiter_instance = None
    _limiter_config = None
