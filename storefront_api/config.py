"""Configuration using pydantic-settings."""

from typing import Literal
from urllib.parse import quote_plus

from pydantic import model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError

DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "https://localhost:5173",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
)


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 10000
    log_level: str = "INFO"
    log_file: str | None = None

    environment: Literal["development", "production"] = "development"

    # Database settings
    database_url: str | None = None
    db_host: str | None = None
    db_port: int = 5432
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    db_pool_min: int = 5
    db_pool_max: int = 20
    db_query_timeout_seconds: float = 30.0
    db_connect_retries: int = 5
    db_query_retries: int = 2
    maintenance_interval_seconds: int = 300
    shutdown_drain_seconds: float = 30.0
    create_tables: bool = True
    install_crash_handler: bool = True

    # JWT settings
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # Bootstrap admin
    admin_email: str | None = None
    admin_password: str | None = None

    frontend_url: str = "https://fkdesigner.in"
    request_timeout_seconds: float = 30.0
    product_read_timeout_seconds: float = 10.0

    # Rate limits
    auth_rate_limit: str = "15/10 minutes"
    product_rate_limit: str = "30/minute"
    redis_url: str | None = None

    # Cache settings
    product_cache_ttl_seconds: int = 180
    product_cache_max_entries: int = 50

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def effective_database_url(self) -> str:
        """Get the database URL, assembling it from DB_* parts when needed."""
        if self.database_url:
            return self.database_url
        if self.db_host and self.db_name:
            user = quote_plus(self.db_user or "")
            password = quote_plus(self.db_password or "")
            credentials = f"{user}:{password}@" if user else ""
            return (
                f"postgresql+asyncpg://{credentials}{self.db_host}:{self.db_port}/{self.db_name}"
            )
        return "sqlite+aiosqlite:///./data/storefront.db"

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins: the configured frontend plus local dev servers."""
        origins = [self.frontend_url, "https://www.fkdesigner.in", *DEV_ORIGINS]
        return list(dict.fromkeys(origins))

    @property
    def limiter_storage_uri(self) -> str:
        return self.redis_url or "memory://"

    def signing_key(self) -> str:
        """Return the JWT secret, refusing to run without one outside development."""
        if self.jwt_secret:
            return self.jwt_secret
        if self.is_development:
            return "dev-secret-change-in-production"  # noqa: S105
        raise ConfigurationError("STOREFRONT_JWT_SECRET must be set in production")

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "Settings":
        """Keep pool bounds consistent."""
        if self.db_pool_min < 1:
            raise ValueError("db_pool_min must be at least 1")
        if self.db_pool_max < self.db_pool_min:
            raise ValueError("db_pool_max must be greater than or equal to db_pool_min")
        return self

    @model_validator(mode="after")
    def validate_timeouts(self) -> "Settings":
        """Product reads must give up before the request timeout answers 408."""
        if self.product_read_timeout_seconds >= self.request_timeout_seconds:
            raise ValueError(
                "product_read_timeout_seconds must be lower than request_timeout_seconds"
            )
        return self

    class Config:
        """Pydantic config."""

        env_prefix = "STOREFRONT_"
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
