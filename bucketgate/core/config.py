from datetime import timedelta

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bucketgate.limiter.models import BackendType, LimiterConfig


class Settings(BaseSettings):
    """Limiter settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Rate limiting settings
    rate_limit_backend: BackendType = BackendType.MEMORY
    rate_limit_rate: float = 10.0  # Tokens added per interval
    rate_limit_burst: int = 20  # Bucket size
    rate_limit_interval_seconds: float = 1.0  # 0 falls back to one second
    rate_limit_fail_open: bool = (
        False  # If True, admit requests when Redis is unavailable
    )

    # Redis settings
    redis_url: str = "redis://localhost:6379/0"
    redis_health_check_interval: int = 60  # PING idle connections before reuse
    redis_max_connections: int | None = None
    redis_socket_timeout: float | None = None  # None blocks until the server answers

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_rate", "rate_limit_interval_seconds")
    @classmethod
    def validate_non_negative_float(cls, v: float) -> float:
        """Validate rate and interval are not negative."""
        if v < 0:
            raise ValueError("Rate limit values must not be negative")
        return v

    @field_validator("rate_limit_burst")
    @classmethod
    def validate_burst(cls, v: int) -> int:
        """Validate burst is not negative."""
        if v < 0:
            raise ValueError("rate_limit_burst must not be negative")
        return v

    @field_validator("redis_health_check_interval")
    @classmethod
    def validate_health_check_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("redis_health_check_interval must not be negative")
        return v

    def limiter_config(self) -> LimiterConfig:
        """Build the limiter configuration from these settings."""
        return LimiterConfig(
            backend=self.rate_limit_backend,
            address=self.redis_url,
            rate=self.rate_limit_rate,
            burst=self.rate_limit_burst,
            interval=timedelta(seconds=self.rate_limit_interval_seconds),
            fail_open=self.rate_limit_fail_open,
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
