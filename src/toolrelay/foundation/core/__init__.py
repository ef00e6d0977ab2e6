"""Core tool abstractions.

- ToolDescriptor: immutable unit of registration
- LocalExecution / RemoteExecution / RemoteEndpoint: how a tool runs
- Toolkit: owning service with base URL and credential attachment strategy
- ExecutionContext / CancelToken: per-invocation state handed to handlers
- local_tool / tool: helpers for declaring local tools
"""

from .context import CancelToken, ExecutionContext, RequestExecutor
from .descriptor import (
    BODY_METHODS,
    NO_TOOLKIT,
    TOOL_ID_PATTERN,
    ExecutionKind,
    Handler,
    HttpMethod,
    LocalExecution,
    RemoteEndpoint,
    RemoteExecution,
    ToolDescriptor,
    Toolkit,
    local_tool,
    tool,
)

__all__ = [
    "ToolDescriptor",
    "Toolkit",
    "ExecutionKind",
    "LocalExecution",
    "RemoteExecution",
    "RemoteEndpoint",
    "Handler",
    "HttpMethod",
    "BODY_METHODS",
    "NO_TOOLKIT",
    "TOOL_ID_PATTERN",
    "local_tool",
    "tool",
    "ExecutionContext",
    "CancelToken",
    "RequestExecutor",
]
