"""
Configuration Management for Bill Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here and validated once at startup.
Every variable carries the BILLTRACKER_ prefix, e.g.:

    BILLTRACKER_TIMEZONE=Europe/Berlin
    BILLTRACKER_DATABASE_URL=postgresql+asyncpg://user:pw@localhost/bills
    BILLTRACKER_BILLS_PAYMENT_GRACE_DAYS=5
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./billtracker.db",
        description="SQLAlchemy async database URL (sqlite, postgresql or mysql)"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long the driver waits on a locked database"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Connection attempts at startup before giving up"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )


class BillsSettings(BaseSettings):
    """Bill status and recurrence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_BILLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    payment_grace_days: int = Field(
        default=7,
        ge=0,
        description="A recurring bill is paid only while its next due date "
                    "is at least this many days away"
    )
    maximum_billing_interval: int = Field(
        default=365,
        ge=1,
        description="Largest allowed interval (days) for interval bills"
    )


class AuthSettings(BaseSettings):
    """Registration configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    first_user_admin: bool = Field(
        default=True,
        description="Grant the admin role to the very first registered user"
    )
    create_default_categories: bool = Field(
        default=True,
        description="Seed a starter set of categories for new users"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt work factor"
    )


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="info",
        description="debug, info, warning, error"
    )
    format: str = Field(
        default="json",
        pattern="^(json|console|text)$",
        description="json for production, console for development"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings. Sub-settings can be passed explicitly,
    which is how tests build isolated configurations.
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone all date arithmetic is performed in"
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    bills: BillsSettings = Field(default_factory=BillsSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Fail at startup on an unknown zone rather than on first use."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Check the parts of the configuration that can only fail at runtime.

    Returns a dict of {setting_name: is_valid}. Useful for startup checks.
    """
    settings = settings or get_settings()
    results = {}

    try:
        _ = settings.tzinfo
        results["timezone"] = True
    except (ZoneInfoNotFoundError, ValueError) as e:
        results["timezone"] = False
        results["timezone_error"] = str(e)

    backend = settings.database.url.split(":", 1)[0].split("+", 1)[0]
    results["database"] = backend in {"sqlite", "postgresql", "postgres", "mysql", "mariadb"}
    if not results["database"]:
        results["database_error"] = f"Unsupported database backend: {backend}"

    return results
