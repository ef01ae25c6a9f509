"""Pydantic settings for application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(
        default="",
        description="SQLAlchemy async database URL (postgresql+asyncpg://...)",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Connection pool size",
    )
    max_overflow: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Max connections beyond pool size",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements",
    )


class AzureStorageSettings(BaseSettings):
    """Azure Storage settings for persisted media."""

    model_config = SettingsConfigDict(env_prefix="AZURE_STORAGE_")

    connection_string: str = Field(
        default="",
        description="Azure Storage connection string",
    )
    account_url: str = Field(
        default="",
        description="Azure Storage account URL (for managed identity)",
    )
    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication",
    )
    videos_container: str = Field(default="videos", description="Container for video files")
    audio_container: str = Field(default="audio", description="Container for music files")
    voiceovers_container: str = Field(
        default="voiceovers",
        description="Container for voiceover files",
    )
    images_container: str = Field(default="images", description="Container for image files")
    download_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for downloading provider output before upload",
    )

    @property
    def is_configured(self) -> bool:
        """Check whether any storage credentials are present."""
        return bool(self.connection_string or (self.use_managed_identity and self.account_url))


class OpenAISettings(BaseSettings):
    """OpenAI API settings for image and speech generation."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = Field(
        default="",
        description="OpenAI API key",
    )
    image_model: str = Field(
        default="gpt-image-1.5",
        description="Default image generation model",
    )
    tts_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for text-to-speech requests",
    )
    image_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for image generation requests",
    )


class ReplicateSettings(BaseSettings):
    """Replicate prediction API settings."""

    model_config = SettingsConfigDict(env_prefix="REPLICATE_")

    api_token: str = Field(
        default="",
        description="Replicate API token",
    )
    base_url: str = Field(
        default="https://api.replicate.com/v1",
        description="Replicate API base URL",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single Replicate HTTP request",
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Delay between prediction status polls",
    )
    max_wait_seconds: float = Field(
        default=90.0,
        gt=0,
        description="Max time to wait for a prediction before reporting it pending",
    )


class ShotstackSettings(BaseSettings):
    """Shotstack render API settings for episode assembly."""

    model_config = SettingsConfigDict(env_prefix="SHOTSTACK_")

    api_key: str = Field(
        default="",
        description="Shotstack API key",
    )
    env: Literal["v1", "stage"] = Field(
        default="stage",
        description="Shotstack environment (v1 for production, stage for sandbox)",
    )
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    max_wait_seconds: float = Field(default=600.0, gt=0)


class RateLimitSettings(BaseSettings):
    """Rate limiter settings."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Interval between sweeps of expired rate limit windows",
    )


class CreditSettings(BaseSettings):
    """Credit ledger settings."""

    model_config = SettingsConfigDict(env_prefix="CREDITS_")

    default_balance: int = Field(
        default=100,
        ge=0,
        description="Credits granted to newly created users",
    )


class AuthSettings(BaseSettings):
    """Session and CSRF settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    session_cookie_name: str = Field(default="session")
    csrf_secret: str = Field(
        default="dev-csrf-secret",
        description="HMAC secret used to sign CSRF tokens",
    )
    csrf_cookie_name: str = Field(default="csrf-token")
    csrf_header_name: str = Field(default="x-csrf-token")
    csrf_token_ttl_seconds: int = Field(default=86400, ge=60)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for logs",
    )


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="API server port",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
    )

    service_name: str = Field(
        default="halcyon-api",
        description="Service name for logging",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: AzureStorageSettings = Field(default_factory=AzureStorageSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    replicate: ReplicateSettings = Field(default_factory=ReplicateSettings)
    shotstack: ShotstackSettings = Field(default_factory=ShotstackSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    credits: CreditSettings = Field(default_factory=CreditSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def csrf_cookie_name(self) -> str:
        """CSRF cookie name, host-locked outside development."""
        if self.is_production:
            return f"__Host-{self.auth.csrf_cookie_name}"
        return self.auth.csrf_cookie_name


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        The application settings.
    """
    return Settings()


def refresh_settings() -> Settings:
    """Clear settings cache and return fresh settings.

    Returns:
        Fresh application settings.
    """
    get_settings.cache_clear()
    return get_settings()
