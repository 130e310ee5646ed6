"""Rate limiting middleware for FastAPI/Starlette applications.

Admits or rejects each HTTP request through a token bucket Limiter,
keyed per API key when present, otherwise per client IP.
"""

import hashlib
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bucketgate.core.logging import get_log_context, get_logger
from bucketgate.exceptions import RateLimitExceededError
from bucketgate.limiter import Limiter, get_limiter

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Rate limits are applied per API key if available, otherwise per IP.
    Each request costs ``cost`` tokens. Limiter calls block on Redis I/O,
    so they run in the threadpool.
    """

    def __init__(
        self,
        app,
        limiter: Optional[Limiter] = None,
        cost: int = 1,
        key_prefix: str = "ratelimit",
        retry_after: int = 1,
    ):
        super().__init__(app)
        self._limiter = limiter
        self.cost = cost
        self.key_prefix = key_prefix
        self.retry_after = retry_after

    @property
    def limiter(self) -> Limiter:
        return self._limiter if self._limiter is not None else get_limiter()

    def _get_client_key(self, request: Request) -> str:
        """Get rate limit key for the request.

        API keys and IPs are hashed with SHA-256 so raw credentials never
        reach the store.

        Args:
            request: Incoming request

        Returns:
            Rate limit key string
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            # Oversized keys are truncated before hashing
            api_key = auth[7:].strip()[:MAX_API_KEY_LENGTH]
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"{self.key_prefix}:apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"{self.key_prefix}:ip:{ip_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        limiter = self.limiter
        key = self._get_client_key(request)
        allowed = await run_in_threadpool(limiter.allow_n, key, self.cost)

        if not allowed:
            error = RateLimitExceededError(limit=limiter.burst, retry_after=self.retry_after)
            logger.info(
                "Request rejected by rate limiter",
                extra=get_log_context(limiter_key=key, backend=limiter.name, n=self.cost),
            )
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response(),
                headers={
                    "X-RateLimit-Limit": str(error.limit),
                    "Retry-After": str(error.retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.burst)
        return response
