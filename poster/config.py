"""
Centralized configuration management for Social Poster.

This module provides a Pydantic Settings-based configuration system that:
- Reads platform credentials and tuning knobs from environment variables
- Supports .env file loading
- Never fails on missing platform credentials (they surface as AuthError
  when a publish is attempted)

Usage:
    from poster.config import get_settings

    settings = get_settings()
    if settings.twitter.is_configured:
        ...
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _secret_value(secret: Optional[SecretStr]) -> Optional[str]:
    """Unwrap a SecretStr, treating blank values as unset."""
    if secret is None:
        return None
    value = secret.get_secret_value().strip()
    return value or None


# =============================================================================
# Server Settings
# =============================================================================


class ServerSettings(BaseSettings):
    """Configuration for the HTTP server and request authentication."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret expected in the X-API-Key header",
    )
    port: int = Field(
        default=3100,
        ge=1,
        le=65535,
        description="Port the API server listens on",
    )
    environment: str = Field(
        default="development",
        description="Deployment environment name",
    )

    @property
    def api_key_value(self) -> Optional[str]:
        """Get the configured API key, or None when unset."""
        return _secret_value(self.api_key)

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() in ("production", "prod")


# =============================================================================
# Twitter Settings
# =============================================================================


class TwitterSettings(BaseSettings):
    """OAuth 1.0a credentials and endpoints for Twitter/X."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    twitter_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Consumer key",
    )
    twitter_api_secret: Optional[SecretStr] = Field(
        default=None,
        description="Consumer secret",
    )
    twitter_access_token: Optional[SecretStr] = Field(
        default=None,
        description="User access token",
    )
    twitter_access_secret: Optional[SecretStr] = Field(
        default=None,
        description="User access token secret",
    )
    twitter_upload_url: str = Field(
        default="https://upload.twitter.com/1.1/media/upload.json",
        description="Media upload endpoint",
    )
    twitter_api_base: str = Field(
        default="https://api.twitter.com/2",
        description="API v2 base URL",
    )
    twitter_chunk_size: int = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Segment size for chunked video uploads, in bytes",
    )

    @property
    def is_configured(self) -> bool:
        """Check if all four OAuth 1.0a secrets are present."""
        return all([
            _secret_value(self.twitter_api_key),
            _secret_value(self.twitter_api_secret),
            _secret_value(self.twitter_access_token),
            _secret_value(self.twitter_access_secret),
        ])


# =============================================================================
# Bluesky Settings
# =============================================================================


class BlueskySettings(BaseSettings):
    """Account credentials and service endpoints for Bluesky."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bluesky_identifier: Optional[str] = Field(
        default=None,
        description="Account handle or email",
    )
    bluesky_password: Optional[SecretStr] = Field(
        default=None,
        description="Account app password",
    )
    bluesky_service: str = Field(
        default="https://bsky.social",
        description="PDS / entryway used for login and XRPC calls",
    )
    bluesky_video_service: str = Field(
        default="https://video.bsky.app",
        description="Video processing service",
    )
    bluesky_plc_directory: str = Field(
        default="https://plc.directory",
        description="DID PLC directory used to resolve the account's PDS",
    )
    bluesky_session_ttl_minutes: int = Field(
        default=90,
        ge=1,
        description="How long a login session is reused before logging in again",
    )

    @property
    def is_configured(self) -> bool:
        """Check if an identifier and password are present."""
        return bool(
            (self.bluesky_identifier or "").strip()
            and _secret_value(self.bluesky_password)
        )


# =============================================================================
# Media Settings
# =============================================================================


class MediaSettings(BaseSettings):
    """Limits applied when downloading source media."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    media_max_bytes: int = Field(
        default=500 * 1024 * 1024,
        ge=1,
        description="Largest media file accepted, in bytes",
    )
    media_fetch_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock limit for a media download, in seconds",
    )


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Aggregates all configuration groups."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    bluesky: BlueskySettings = Field(default_factory=BlueskySettings)
    media: MediaSettings = Field(default_factory=MediaSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        Never includes secret values.
        """
        return {
            "environment": self.server.environment,
            "port": self.server.port,
            "api_key_configured": self.server.api_key_value is not None,
            "twitter_configured": self.twitter.is_configured,
            "bluesky_configured": self.bluesky.is_configured,
            "bluesky_service": self.bluesky.bluesky_service,
            "media_max_bytes": self.media.media_max_bytes,
            "media_fetch_timeout": self.media.media_fetch_timeout,
            "sentry_configured": self.is_sentry_configured,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Call get_settings.cache_clear() (or reload_settings()) to pick up
    environment changes.
    """
    return Settings()


def reload_settings() -> Settings:
    """Clear the cache and return fresh settings."""
    get_settings.cache_clear()
    return get_settings()
