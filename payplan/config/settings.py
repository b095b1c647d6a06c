"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payplan.config.level_unlocks import DEFAULT_LEVEL_PERCENTAGES, MAX_LEVEL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for run lease and Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Plan switches
    binary_plan_enabled: bool = Field(
        default=True,
        description="Accumulate binary volume on investments",
    )
    level_income_enabled: bool = Field(
        default=True,
        description="Distribute level income on investments",
    )

    # Binary matching
    binary_payout_percentage: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        le=100,
        description="Payout percentage applied to matched volume",
    )
    binary_min_match_volume: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Minimum matchable volume per node",
    )
    binary_max_daily_match: Decimal | None = Field(
        default=Decimal("10000"),
        ge=0,
        description="Maximum volume a node may match per day (empty = no cap)",
    )
    binary_daily_cap_window: Literal["calendar", "rolling"] = Field(
        default="calendar",
        description="calendar = resets at midnight in the cap timezone, rolling = last 24h",
    )
    binary_daily_cap_timezone: str = "UTC"
    binary_max_tree_depth: int = Field(
        default=10_000,
        gt=0,
        description="Safety bound for walking binary ancestors",
    )

    # Level income (JSON list in env, e.g. LEVEL_PERCENTAGES='[10, 9, 8, ...]')
    level_percentages: list[Decimal] = Field(
        default_factory=lambda: list(DEFAULT_LEVEL_PERCENTAGES),
        description="Commission percentage for levels 1..30",
    )

    # Matching run
    matching_cron_hour: int = Field(default=0, ge=0, le=23)
    matching_cron_minute: int = Field(default=0, ge=0, le=59)
    scheduler_timezone: str = "UTC"
    matching_lock_ttl_seconds: int = Field(
        default=900,
        gt=0,
        description="Lease duration of the matching run lock",
    )
    matching_node_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Hard timeout for processing a single node",
    )
    matching_task_time_limit_ms: int = Field(
        default=3_600_000,
        gt=0,
        description="Dramatiq time limit for a whole matching run",
    )

    # Credit retry
    credit_max_attempts: int = Field(default=5, ge=1)
    credit_retry_batch_size: int = Field(default=200, ge=1)
    credit_retry_interval_minutes: int = Field(default=60, ge=1)
    credit_pending_grace_minutes: int = Field(
        default=30,
        ge=1,
        description="PENDING credits older than this are retried",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql:// or postgresql+asyncpg://"
            )
        return v

    @model_validator(mode="after")
    def validate_level_table(self) -> "Settings":
        """Level table must cover exactly levels 1..30."""
        if len(self.level_percentages) != MAX_LEVEL:
            raise ValueError(
                f"LEVEL_PERCENTAGES must contain {MAX_LEVEL} values, "
                f"got {len(self.level_percentages)}"
            )
        if any(p < 0 for p in self.level_percentages):
            raise ValueError("LEVEL_PERCENTAGES must be non-negative")
        return self

    @property
    def async_database_url(self) -> str:
        """Database URL with the asyncpg driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.database_url

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG must be False in production environment. "
                "Set DEBUG=false in your .env file."
            )
        return self


# Global settings instance
settings = Settings()
