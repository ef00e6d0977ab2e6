"""Environment-based configuration using pydantic-settings.

Example:
    >>> from toolrelay.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.dispatch.remote_timeout
    30.0
    >>> settings.registry.on_duplicate
    'reject'

    # Or with environment variables:
    # TOOLRELAY_DISPATCH_REMOTE_TIMEOUT=10
    # TOOLRELAY_REGISTRY_ON_DUPLICATE=replace
    # TOOLRELAY_LOG_FORMAT=json
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import ByteSize, Field, PositiveFloat, PositiveInt, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DuplicatePolicy = Literal["reject", "replace"]


class DispatchSettings(BaseSettings):
    """Dispatcher limits and defaults."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_DISPATCH_", extra="ignore")

    remote_timeout: PositiveFloat = Field(default=30.0, description="Bounded wait for remote-proxy calls (seconds)")
    local_timeout: PositiveFloat | None = Field(default=None, description="Optional bound for local handlers")
    max_error_message_length: Annotated[int, Field(ge=16, le=4096)] = 300
    default_caller: str = Field(default="default", min_length=1)


class HttpSettings(BaseSettings):
    """Outbound HTTP client configuration."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_HTTP_", extra="ignore")

    verify_ssl: bool = True
    follow_redirects: bool = True
    max_redirects: PositiveInt = 10
    max_response_size: ByteSize = Field(default=ByteSize(10 * 1024 * 1024), description="Max response body size")
    user_agent: str = "toolrelay/0.1"


class RegistrySettings(BaseSettings):
    """Registration policy."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_REGISTRY_", extra="ignore")

    on_duplicate: DuplicatePolicy = "reject"
    max_schema_depth: Annotated[int, Field(ge=2, le=256)] = 32


class CredentialSettings(BaseSettings):
    """Credential resolution caching."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_CREDENTIALS_", extra="ignore")

    cache_enabled: bool = True
    cache_ttl: PositiveFloat = Field(default=300.0, description="Seconds a resolved credential is reused")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"


class ToolrelaySettings(BaseSettings):
    """Root settings loaded from ``TOOLRELAY_``-prefixed environment variables.

    Example environment variables:
        TOOLRELAY_DEBUG=true
        TOOLRELAY_DISPATCH_REMOTE_TIMEOUT=15
        TOOLRELAY_HTTP_VERIFY_SSL=false
        TOOLRELAY_CREDENTIALS_CACHE_TTL=60
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLRELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def max_response_bytes(self) -> int:
        return int(self.http.max_response_size)


@lru_cache(maxsize=1)
def get_settings() -> ToolrelaySettings:
    """Get the process settings (cached)."""
    return ToolrelaySettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
