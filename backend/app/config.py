from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Parley API", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=False, env="DEBUG", description="Enable debug mode")
    log_level: str = Field(default="INFO", env="LOG_LEVEL", description="Root logging level")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )

    database_user: str = Field(default="parley", env="DB_USER")
    database_password: str = Field(default="parley", env="DB_PASSWORD")
    database_host: str = Field(default="db", env="DB_HOST")
    database_port: int = Field(default=3306, env="DB_PORT")
    database_name: str = Field(default="parley", env="DB_NAME")
    database_url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the DB_* parts",
    )

    jwt_secret_key: str = Field(default="changeme", env="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7, env="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        env="REFRESH_TOKEN_EXPIRE_MINUTES",
        description="Lifetime of opaque refresh tokens",
    )
    auth_cache_url: str | None = Field(
        default=None,
        env="AUTH_CACHE_URL",
        description="Redis URL used to store refresh tokens; in-memory when unset",
    )

    websocket_keepalive_timeout_seconds: float = Field(
        default=30, env="WEBSOCKET_KEEPALIVE_TIMEOUT_SECONDS"
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25, env="WEBSOCKET_KEEPALIVE_PING_INTERVAL_SECONDS"
    )

    message_max_length: int = Field(default=4000, env="MESSAGE_MAX_LENGTH")
    page_default_limit: int = Field(default=20, env="PAGE_DEFAULT_LIMIT")
    page_max_limit: int = Field(default=100, env="PAGE_MAX_LIMIT")

    wallet_provider_base_url: str = Field(
        default="https://api.onepipe.co/v1",
        env="WALLET_PROVIDER_BASE_URL",
        description="Base URL of the remote wallet provider",
    )
    wallet_provider_api_key: str | None = Field(
        default=None,
        env="WALLET_PROVIDER_API_KEY",
        description="Bearer key for the wallet provider; the mock provider is used when unset",
    )
    wallet_provider_secret: str = Field(
        default="mock_secret",
        env="WALLET_PROVIDER_SECRET",
        description="Shared secret used to sign provider requests",
    )
    wallet_provider_timeout_seconds: float = Field(default=30, env="WALLET_PROVIDER_TIMEOUT_SECONDS")
    wallet_default_currency: str = Field(default="NGN", env="WALLET_DEFAULT_CURRENCY")

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+pymysql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def wallet_provider_mock(self) -> bool:
        return not self.wallet_provider_api_key

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_log_level(cls, value: str | None) -> str:
        if not value:
            return "INFO"
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
