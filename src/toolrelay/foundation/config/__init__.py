"""Configuration management using pydantic-settings."""

from .settings import (
    CredentialSettings,
    DispatchSettings,
    DuplicatePolicy,
    HttpSettings,
    LoggingSettings,
    RegistrySettings,
    ToolrelaySettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "CredentialSettings",
    "DispatchSettings",
    "DuplicatePolicy",
    "HttpSettings",
    "LoggingSettings",
    "RegistrySettings",
    "ToolrelaySettings",
    "clear_settings_cache",
    "get_settings",
]
