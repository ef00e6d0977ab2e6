"""Foundation - Core building blocks for toolrelay.

Contains: schema model, descriptors, credentials, errors, registry, testing, config.
"""

from __future__ import annotations

__all__ = [
    # Schema
    "Schema", "SchemaKind", "SchemaNode", "validate", "to_json_schema",
    # Core
    "ToolDescriptor", "Toolkit", "ExecutionKind", "LocalExecution", "RemoteExecution", "RemoteEndpoint",
    "ExecutionContext", "CancelToken", "local_tool", "tool", "NO_TOOLKIT",
    # Auth
    "Credential", "CredentialResolver", "AuthStrategy", "NoAuth", "BearerAuth", "ApiKeyHeader",
    "ApiKeyQuery", "BasicAuth",
    # Errors
    "ErrorKind", "ToolrelayError", "ToolNotFoundError", "DuplicateToolError", "ToolRegistrationError",
    "InvalidInputError", "CredentialError", "NoCredentialError", "ExpiredCredentialError", "HandlerError",
    "RemoteCallError", "ToolTimeoutError", "MalformedResponseError", "InvocationCancelledError",
    "classify_exception", "Result", "Ok", "Err", "Violation", "ValidationFailure",
    "ResultEnvelope", "ErrorInfo", "sanitize_message",
    # Registry
    "ToolRegistry", "RegistrySnapshot", "get_registry", "set_registry", "reset_registry",
    # Testing
    "MockAPI", "MockResponse", "MockResolver", "HandlerSpy",
    # Config
    "ToolrelaySettings", "get_settings", "clear_settings_cache",
    "DispatchSettings", "HttpSettings", "RegistrySettings", "CredentialSettings", "LoggingSettings",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("Schema", "SchemaKind", "SchemaNode", "validate", "to_json_schema"):
        from . import schema
        return getattr(schema, name)

    if name in ("ToolDescriptor", "Toolkit", "ExecutionKind", "LocalExecution", "RemoteExecution",
                "RemoteEndpoint", "ExecutionContext", "CancelToken", "local_tool", "tool", "NO_TOOLKIT"):
        from . import core
        return getattr(core, name)

    if name in ("Credential", "CredentialResolver", "AuthStrategy", "NoAuth", "BearerAuth", "ApiKeyHeader",
                "ApiKeyQuery", "BasicAuth"):
        from . import auth
        return getattr(auth, name)

    if name in ("ErrorKind", "ToolrelayError", "ToolNotFoundError", "DuplicateToolError", "ToolRegistrationError",
                "InvalidInputError", "CredentialError", "NoCredentialError", "ExpiredCredentialError",
                "HandlerError", "RemoteCallError", "ToolTimeoutError", "MalformedResponseError",
                "InvocationCancelledError", "classify_exception", "Result", "Ok", "Err", "Violation",
                "ValidationFailure", "ResultEnvelope", "ErrorInfo", "sanitize_message"):
        from . import errors
        return getattr(errors, name)

    if name in ("ToolRegistry", "RegistrySnapshot", "get_registry", "set_registry", "reset_registry"):
        from . import registry
        return getattr(registry, name)

    if name in ("MockAPI", "MockResponse", "MockResolver", "HandlerSpy"):
        from . import testing
        return getattr(testing, name)

    if name in ("ToolrelaySettings", "get_settings", "clear_settings_cache",
                "DispatchSettings", "HttpSettings", "RegistrySettings", "CredentialSettings", "LoggingSettings"):
        from . import config
        return getattr(config, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
