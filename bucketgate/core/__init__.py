"""Core utilities for the rate limiter."""

from bucketgate.core.config import Settings, settings
from bucketgate.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]
