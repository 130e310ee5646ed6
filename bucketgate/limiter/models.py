"""Data models for the token bucket limiter."""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_INTERVAL = timedelta(seconds=1)


class BackendType(str, Enum):
    """Storage backend of a limiter."""

    REDIS = "redis"
    MEMORY = "memory"
    DISABLED = "disabled"


class LimiterConfig(BaseModel):
    """Configuration passed to ``new_limiter``.

    Attributes:
        backend: Which backend to build
        address: Redis address, ``host:port`` or a ``redis://`` URL
        rate: Tokens added per interval
        burst: Maximum bucket size
        interval: Refill granularity, zero means one second
        fail_open: Admit requests when Redis errors (Redis backend only)
    """

    model_config = ConfigDict(frozen=True)

    backend: BackendType = BackendType.MEMORY
    address: str = "localhost:6379"
    rate: float = Field(default=0.0, ge=0)
    burst: int = Field(default=0, ge=0)
    interval: timedelta = DEFAULT_INTERVAL
    fail_open: bool = False

    @field_validator("interval", mode="before")
    @classmethod
    def default_interval(cls, v: Any) -> Any:
        if v is None:
            return DEFAULT_INTERVAL
        return v

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: timedelta) -> timedelta:
        """Apply the one second default and reject negative intervals."""
        if v < timedelta(0):
            raise ValueError("interval must not be negative")
        if v == timedelta(0):
            return DEFAULT_INTERVAL
        return v

    @property
    def interval_seconds(self) -> float:
        return self.interval.total_seconds()


@dataclass
class BucketState:
    """Token bucket snapshot for one key.

    Attributes:
        tokens: Tokens currently in the bucket
        last_refill: Epoch seconds of the last refill, on an interval boundary
    """
    tokens: float
    last_refill: float = field(default=0.0)
