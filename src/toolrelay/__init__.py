"""Toolrelay - tool registration and managed-execution dispatch for AI agents.

Agents see a catalog of tools, each with a schema-described input. Toolrelay
validates every call against that schema, runs the tool (a local handler or
a proxied call to an external API with a managed credential attached) and
returns one uniform envelope whatever happens.

Quick Start (local tool):
    >>> from toolrelay import Dispatcher, Schema, ToolRegistry, local_tool
    >>>
    >>> registry = ToolRegistry()
    >>> registry.register(local_tool(
    ...     "add_numbers", "Add two integers",
    ...     Schema.object({"a": Schema.integer(), "b": Schema.integer()}),
    ...     lambda data, ctx: data["a"] + data["b"],
    ...     output_schema=Schema.integer(),
    ... ))
    >>> Dispatcher(registry).invoke_sync("add_numbers", {"a": 2, "b": 3}).to_dict()
    {'successful': True, 'data': 5}

Remote tool with managed credentials:
    >>> from toolrelay import BearerAuth, StaticCredentialResolver, Toolkit
    >>>
    >>> github = Toolkit(id="github", base_url="https://api.github.com", auth=BearerAuth())
    >>> registry.register_toolkit(github)
    >>> registry.register(github.remote_tool(
    ...     "get_repo_topics", "List a repository's topics",
    ...     Schema.object({"owner": Schema.string(), "repo": Schema.string()}),
    ...     "GET", "/repos/{owner}/{repo}/topics",
    ...     response_map={"topics": "names"},
    ... ))
    >>> resolver = StaticCredentialResolver({("github", "*"): "ghp_..."})
    >>> async with Dispatcher(registry, resolver) as dispatcher:
    ...     envelope = await dispatcher.invoke("get_repo_topics", {"owner": "octocat", "repo": "hello"})

Configuration:
    >>> # TOOLRELAY_DISPATCH_REMOTE_TIMEOUT=10
    >>> # TOOLRELAY_REGISTRY_ON_DUPLICATE=replace
    >>> # TOOLRELAY_LOG_FORMAT=json
"""

from __future__ import annotations

__version__ = "0.1.0"

# Schema
from .foundation.schema import Schema, SchemaKind, SchemaNode, to_json_schema, validate

# Errors
from .foundation.errors import (
    CredentialError,
    DuplicateToolError,
    Err,
    ErrorInfo,
    ErrorKind,
    ExpiredCredentialError,
    HandlerError,
    InvalidInputError,
    InvocationCancelledError,
    MalformedResponseError,
    NoCredentialError,
    Ok,
    RemoteCallError,
    Result,
    ResultEnvelope,
    ToolNotFoundError,
    ToolRegistrationError,
    ToolrelayError,
    ToolTimeoutError,
    ValidationFailure,
    Violation,
    classify_exception,
    sanitize_message,
)

# Credentials & auth
from .foundation.auth import (
    ApiKeyHeader,
    ApiKeyQuery,
    AuthStrategy,
    BasicAuth,
    BearerAuth,
    Credential,
    CredentialResolver,
    NoAuth,
)

# Core
from .foundation.core import (
    NO_TOOLKIT,
    CancelToken,
    ExecutionContext,
    ExecutionKind,
    LocalExecution,
    RemoteEndpoint,
    RemoteExecution,
    ToolDescriptor,
    Toolkit,
    local_tool,
    tool,
)

# Config
from .foundation.config import ToolrelaySettings, clear_settings_cache, get_settings

# Registry
from .foundation.registry import ToolRegistry, get_registry, reset_registry, set_registry

# Runtime
from .runtime.credentials import CachingResolver, CallableResolver, StaticCredentialResolver
from .runtime.dispatch import Dispatcher, InvocationState
from .runtime.observability import configure_logging, get_logger, log_context

__all__ = [
    "__version__",
    # Schema
    "Schema", "SchemaKind", "SchemaNode", "validate", "to_json_schema",
    # Errors
    "ErrorKind", "ToolrelayError", "ToolNotFoundError", "DuplicateToolError", "ToolRegistrationError",
    "InvalidInputError", "CredentialError", "NoCredentialError", "ExpiredCredentialError", "HandlerError",
    "RemoteCallError", "ToolTimeoutError", "MalformedResponseError", "InvocationCancelledError",
    "classify_exception", "Result", "Ok", "Err", "Violation", "ValidationFailure",
    "ResultEnvelope", "ErrorInfo", "sanitize_message",
    # Credentials & auth
    "Credential", "CredentialResolver", "AuthStrategy", "NoAuth", "BearerAuth", "ApiKeyHeader",
    "ApiKeyQuery", "BasicAuth",
    "StaticCredentialResolver", "CallableResolver", "CachingResolver",
    # Core
    "ToolDescriptor", "Toolkit", "ExecutionKind", "LocalExecution", "RemoteExecution", "RemoteEndpoint",
    "ExecutionContext", "CancelToken", "local_tool", "tool", "NO_TOOLKIT",
    # Registry
    "ToolRegistry", "get_registry", "set_registry", "reset_registry",
    # Dispatch
    "Dispatcher", "InvocationState",
    # Config & logging
    "ToolrelaySettings", "get_settings", "clear_settings_cache",
    "configure_logging", "get_logger", "log_context",
]
