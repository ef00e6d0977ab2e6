"""Execution dispatch: validated invocation of local and remote-proxy tools."""

from .dispatcher import Dispatcher, Invocation, InvocationState, ToolCall
from .remote import PreparedRequest, build_request, decode_body, prepare, project, send

__all__ = [
    "Dispatcher",
    "Invocation",
    "InvocationState",
    "ToolCall",
    "PreparedRequest",
    "build_request",
    "prepare",
    "send",
    "decode_body",
    "project",
]
