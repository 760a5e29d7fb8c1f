"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import SecretStr, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_JWT_SECRET = "change-me"


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class TenantIdentification(StrEnum):
    """Where the tenant of an incoming request is read from."""

    HEADER = "header"
    SUBDOMAIN = "subdomain"
    QUERY = "query"
    AUTO = "auto"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Secrets (JWT signing key, DB password) use SecretStr to prevent
    accidental logging. Database URL is assembled from individual
    components to match the official PostgreSQL Docker image.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    frontend_url: str = "http://localhost:5173"

    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE"]
    cors_allowed_headers: list[str] = ["Content-Type", "Authorization", "X-Tenant-ID"]

    # --- PostgreSQL ---
    postgres_user: str = "helpdesk"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "helpdesk"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Auth tokens ---
    jwt_secret: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    access_token_ttl_minutes: int = 60
    refresh_token_ttl_days: int = 7

    # --- Tenancy ---
    tenant_identification: TenantIdentification = TenantIdentification.HEADER
    tenant_cache_ttl_seconds: float = 300.0
    # Upper bound for a single tenant/user store lookup.
    store_timeout_seconds: float = 5.0

    # --- Rate limiting (requests per window) ---
    rate_limit_per_minute: int = 100
    rate_limit_burst: int = 20
    public_read_rate_limit_per_minute: int = 300
    public_read_rate_limit_burst: int = 50
    tenant_rate_limit_per_minute: int = 100
    tenant_rate_limit_burst: int = 20
    rate_limit_window_seconds: float = 60.0
    rate_limit_reaper_interval_seconds: float = 60.0
    public_read_paths: list[str] = ["/api/v1/articles", "/api/v1/articles/"]

    # --- Ticketing provider ---
    provider_timeout_seconds: float = 15.0

    @model_validator(mode="after")
    def _require_real_jwt_secret(self) -> "Settings":
        if self.is_prod and self.jwt_secret.get_secret_value() == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set in production")
        return self

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from helpdesk.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
