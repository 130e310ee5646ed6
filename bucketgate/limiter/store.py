"""Redis connection provider for the shared-store limiter.

The limiter borrows exactly one pooled connection per call and always
hands it back, whatever happens during the call.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import redis


class ConnectionProvider(ABC):
    """Source of scoped Redis connections."""

    @abstractmethod
    def connection(self) -> Any:
        """Return a context manager yielding a client bound to one connection."""
        pass

    def close(self) -> None:
        """Disconnect every pooled connection."""


class RedisConnectionProvider(ConnectionProvider):
    """Connection provider backed by a redis-py ``ConnectionPool``.

    Idle connections are validated with ``PING`` before reuse once they
    have been idle longer than ``health_check_interval`` seconds.

    Example:
        >>> provider = RedisConnectionProvider("localhost:6379")
        >>> with provider.connection() as conn:
        ...     conn.lrange("user:42", 0, 1)
    """

    def __init__(
        self,
        address: str,
        health_check_interval: int = 60,
        max_connections: Optional[int] = None,
        socket_timeout: Optional[float] = None,
    ) -> None:
        """Initialize the connection pool.

        No connection is opened until the first borrow.

        Args:
            address: ``host:port`` or a ``redis://`` URL
            health_check_interval: Idle seconds before a connection is pinged
            max_connections: Pool size limit, unbounded when None
            socket_timeout: Per-command socket timeout in seconds
        """
        self._url = address if "://" in address else f"redis://{address}"
        options: dict[str, Any] = {"health_check_interval": health_check_interval}
        if max_connections is not None:
            options["max_connections"] = max_connections
        if socket_timeout is not None:
            options["socket_timeout"] = socket_timeout
        self._pool = redis.ConnectionPool.from_url(self._url, **options)

    @property
    def url(self) -> str:
        return self._url

    @property
    def pool(self) -> redis.ConnectionPool:
        return self._pool

    @contextmanager
    def connection(self) -> Iterator[redis.Redis]:
        client = redis.Redis(connection_pool=self._pool, single_connection_client=True)
        try:
            yield client
        finally:
            # Returns the borrowed connection to the pool
            client.close()

    def close(self) -> None:
        self._pool.disconnect()
