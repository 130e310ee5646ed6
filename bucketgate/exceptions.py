"""Custom exceptions for the rate limiter."""


class BucketGateError(Exception):
    """Base class for limiter exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(BucketGateError):
    """Raised when a limiter cannot be built from its configuration."""
    status_code = 500


class UnknownBackendError(ConfigurationError):
    """Raised when the configured backend kind is not recognized."""

    def __init__(self, backend: object):
        self.backend = backend
        super().__init__(f"Unknown rate limiter backend: {backend!r}")


class StoreDecodeError(BucketGateError):
    """Raised when a bucket record read back from the store is malformed.

    Never escapes the limiter: the Redis backend resolves it to the
    fail-open policy value.
    """

    def __init__(self, key: str, raw: object):
        self.key = key
        self.raw = raw
        super().__init__(f"Malformed bucket record for {key!r}: {raw!r}")


class RateLimitExceededError(BucketGateError):
    """Raised when a request is rejected by the limiter.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        limit: int = 0,
        retry_after: int = 1,
        detail: str | None = None,
    ):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(detail or "Rate limit exceeded. Please try again later.")

    def to_response(self) -> dict:
        """Convert to the JSON body returned to HTTP clients."""
        return {
            "error": "rate_limit_exceeded",
            "message": self.message,
            "retry_after": self.retry_after,
        }
