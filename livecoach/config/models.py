"""
Pydantic-based configuration models for the LiveCoach hub.

Each concern has its own settings class and environment prefix; AppConfig
aggregates them.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..logging.logging_config import get_logger

logger = get_logger(__name__)

THIRTY_DAYS_SECONDS = 30 * 24 * 60 * 60


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8765, description="Server port")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1024 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1024-65535")
            raise ValueError("Port must be between 1024 and 65535")
        return v

    model_config = {"env_prefix": "LIVECOACH_SERVER_", "case_sensitive": False, "extra": "ignore"}


class AuthConfig(BaseSettings):
    """Connection credential verification settings."""

    jwt_secret: str = Field(..., description="Shared secret used to verify bearer tokens (required)")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    audience: str | None = Field(default=None, description="Expected token audience, if any")
    timeout_seconds: float = Field(default=5.0, description="Upper bound on authentication at connect time")

    @field_validator("jwt_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Reject empty secrets."""
        if not v or not v.strip():
            raise ValueError("JWT secret cannot be empty")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate the authentication window is positive."""
        if v <= 0:
            raise ValueError("Authentication timeout must be positive")
        return v

    model_config = {"env_prefix": "LIVECOACH_AUTH_", "case_sensitive": False, "extra": "ignore"}


class RedisConfig(BaseSettings):
    """Ephemeral store configuration."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    chat_history_ttl_seconds: int = Field(
        default=THIRTY_DAYS_SECONDS, description="Expiry applied to a session's chat history on every append"
    )
    heart_rate_buffer_size: int = Field(default=100, description="Samples retained per user")
    socket_timeout: float = Field(default=2.0, description="Redis socket timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the Redis URL scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss:// or unix://")
        return v

    @field_validator("chat_history_ttl_seconds", "heart_rate_buffer_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate retention values are positive."""
        if v < 1:
            raise ValueError("Retention values must be at least 1")
        return v

    model_config = {"env_prefix": "LIVECOACH_REDIS_", "case_sensitive": False, "extra": "ignore"}


class DatabaseConfig(BaseSettings):
    """User directory database configuration."""

    url: str = Field(default="postgresql://localhost:5432/livecoach", description="User directory database URL")
    pool_min_size: int = Field(default=1, description="Minimum connections in asyncpg pool")
    pool_max_size: int = Field(default=10, description="Maximum connections in asyncpg pool")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format - PostgreSQL only."""
        if not v.startswith("postgresql"):
            logger.error("Database URL validation failed - invalid protocol", expected_protocol="postgresql")
            raise ValueError("Database URL must start with 'postgresql'")
        return v

    @model_validator(mode="after")
    def validate_pool(self) -> "DatabaseConfig":
        """Validate pool bounds."""
        if self.pool_min_size < 1 or self.pool_max_size < self.pool_min_size:
            raise ValueError("Pool sizes must satisfy 1 <= pool_min_size <= pool_max_size")
        return self

    model_config = {"env_prefix": "LIVECOACH_DATABASE_", "case_sensitive": False, "extra": "ignore"}


class AnomalyConfig(BaseSettings):
    """Heart-rate alert thresholds in beats per minute."""

    critical_above: int = Field(default=190, description="bpm strictly above this is critical")
    warning_above: int = Field(default=180, description="bpm strictly above this is a warning")
    warning_below: int = Field(default=50, description="bpm strictly below this is a warning")

    @model_validator(mode="after")
    def validate_thresholds(self) -> "AnomalyConfig":
        """Validate thresholds are ordered."""
        if not self.warning_below < self.warning_above <= self.critical_above:
            raise ValueError("Thresholds must satisfy warning_below < warning_above <= critical_above")
        return self

    model_config = {"env_prefix": "LIVECOACH_ANOMALY_", "case_sensitive": False, "extra": "ignore"}


class RealtimeConfig(BaseSettings):
    """Real-time hub tuning."""

    stats_interval_seconds: float = Field(default=60.0, description="Interval of the connection statistics log")

    @field_validator("stats_interval_seconds")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        """Validate the interval is positive."""
        if v <= 0:
            raise ValueError("Statistics interval must be positive")
        return v

    model_config = {"env_prefix": "LIVECOACH_REALTIME_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format: json or console")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment name."""
        valid = ["unit_test", "local", "production"]
        if v not in valid:
            raise ValueError(f"Environment must be one of {valid}")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {valid}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ("json", "console"):
            raise ValueError("Log format must be 'json' or 'console'")
        return v

    model_config = {"env_prefix": "LIVECOACH_LOGGING_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Access via get_config().
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)  # type: ignore[arg-type]
    redis: RedisConfig = Field(default_factory=RedisConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
