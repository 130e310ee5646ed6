"""Token bucket rate limiting backed by Redis or process memory."""

from bucketgate.exceptions import ConfigurationError, UnknownBackendError
from bucketgate.limiter import (
    BackendType,
    Limiter,
    LimiterConfig,
    get_limiter,
    new_limiter,
    reset_limiter,
)

__all__ = [
    "BackendType",
    "Limiter",
    "LimiterConfig",
    "new_limiter",
    "get_limiter",
    "reset_limiter",
    "ConfigurationError",
    "UnknownBackendError",
]
