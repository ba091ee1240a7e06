"""
Settings Module

Environment-driven configuration, one BaseSettings group per concern,
each read from its own prefix (APP_, DB_, AUTH_, LOG_, NOTIFY_, LEDGER_,
FEATURE_). Every field has a development default.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List, Optional

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Service identity, server binding and CORS."""

    TITLE: str = "Crestcat API"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Curated asset investment platform with admin-reviewed money movement"

    # Environment
    ENVIRONMENT: str = Field(
        default="development",
        pattern="^(development|staging|production|test)$"
    )
    DEBUG: bool = Field(default=False)

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)
    API_V1_STR: str = Field(default="/api/v1")

    # CORS
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3000"])

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_prefix="APP_"
    )


class DatabaseConfig(BaseSettings):
    """Async engine URL and pool sizing."""

    URL: str = Field(default="sqlite+aiosqlite:///./crestcat.db")
    ECHO: bool = Field(default=False)

    # Connection Pool (ignored for SQLite)
    POOL_SIZE: int = Field(default=10)
    MAX_OVERFLOW: int = Field(default=5)
    POOL_RECYCLE: int = Field(default=1800)  # 30 minutes

    @property
    def is_sqlite(self) -> bool:
        return self.URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_prefix="DB_"
    )


class AuthConfig(BaseSettings):
    """Bearer token verification configuration."""

    JWT_SECRET_KEY: SecretStr = SecretStr("dummy_jwt_secret_for_ci")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    model_config = SettingsConfigDict(
        env_prefix="AUTH_"
    )


class LoggingConfig(BaseSettings):
    """Log level, JSON output and Sentry."""

    LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)

    # Sentry
    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.2)

    model_config = SettingsConfigDict(
        env_prefix="LOG_"
    )


class NotificationConfig(BaseSettings):
    """Email and WhatsApp notification configuration."""

    EMAIL_ENABLED: bool = Field(default=False)
    SMTP_HOST: str = Field(default="localhost")
    SMTP_PORT: int = Field(default=587)
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: SecretStr = SecretStr("")
    SMTP_FROM_EMAIL: EmailStr = "noreply@crestcat.com"
    ADMIN_EMAIL: EmailStr = "admin@crestcat.com"

    WHATSAPP_API_URL: Optional[str] = None
    WHATSAPP_ADMIN_NUMBER: Optional[str] = None
    WHATSAPP_TIMEOUT_SECONDS: float = Field(default=5.0)

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_"
    )


class LedgerConfig(BaseSettings):
    """Valuation and ledger constants."""

    CURRENCY: str = Field(default="USD")
    PRICE_HISTORY_LIMIT: int = Field(default=100, gt=0)
    DEFAULT_MIN_INVESTMENT: Decimal = Field(default=Decimal("10"))
    NOTIFICATION_LIST_LIMIT: int = Field(default=50)

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_"
    )


class FeatureFlags(BaseSettings):
    """Behaviour toggles that change money movement rules."""

    # Hold back pending withdrawal amounts when checking a new request
    WITHDRAWAL_RESERVE_FUNDS: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="FEATURE_"
    )


class AppSettings(BaseSettings):
    """All configuration groups."""

    app: AppConfig = AppConfig()
    db: DatabaseConfig = DatabaseConfig()
    auth: AuthConfig = AuthConfig()
    logging: LoggingConfig = LoggingConfig()
    notify: NotificationConfig = NotificationConfig()
    ledger: LedgerConfig = LedgerConfig()
    features: FeatureFlags = FeatureFlags()

    @model_validator(mode="after")
    def validate_production_settings(self) -> "AppSettings":
        """Refuse unsafe defaults when running in production."""
        if self.app.is_production:
            assert not self.app.DEBUG, "Debug mode must be disabled in production"
            assert not self.db.is_sqlite, "SQLite is not supported in production"
            assert (
                self.auth.JWT_SECRET_KEY.get_secret_value() != "dummy_jwt_secret_for_ci"
            ), "JWT secret must be configured in production"
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> AppSettings:
    """
    Create cached settings instance.

    Returns:
        Cached AppSettings instance
    """
    return AppSettings()


settings = get_settings()
