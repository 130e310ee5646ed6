"""Middleware package for the rate limiter."""

from bucketgate.middleware.rate_limit import RateLimitMiddleware

__all__ = [
    "RateLimitMiddleware",
]
