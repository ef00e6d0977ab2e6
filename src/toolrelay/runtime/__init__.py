"""Runtime - invocation dispatch, credential resolution and observability.

Contains: dispatch, credentials, observability.
"""

from __future__ import annotations

__all__ = [
    # Dispatch
    "Dispatcher", "Invocation", "InvocationState", "ToolCall", "PreparedRequest",
    "build_request", "prepare", "send", "decode_body", "project",
    # Credentials
    "StaticCredentialResolver", "CallableResolver", "CachingResolver", "ANY_CALLER",
    # Observability
    "BoundLogger", "ConsoleRenderer", "JsonRenderer", "NoOpRenderer", "LogEntry", "LogRenderer",
    "configure_logging", "configure_from_settings", "get_logger", "log_context", "set_renderer",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("Dispatcher", "Invocation", "InvocationState", "ToolCall", "PreparedRequest",
                "build_request", "prepare", "send", "decode_body", "project"):
        from . import dispatch
        return getattr(dispatch, name)

    if name in ("StaticCredentialResolver", "CallableResolver", "CachingResolver", "ANY_CALLER"):
        from . import credentials
        return getattr(credentials, name)

    if name in ("BoundLogger", "ConsoleRenderer", "JsonRenderer", "NoOpRenderer", "LogEntry", "LogRenderer",
                "configure_logging", "configure_from_settings", "get_logger", "log_context", "set_renderer"):
        from . import observability
        return getattr(observability, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
