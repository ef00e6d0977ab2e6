"""Error taxonomy for tool registration and dispatch.

Every failure the dispatcher can report maps onto one ErrorKind. Exceptions
raised inside the core carry their kind as a class variable so the dispatcher
boundary can convert them into envelopes without isinstance ladders.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .validation import Violation


class ErrorKind(StrEnum):
    """Fixed taxonomy of invocation failures.

    Values are the externally visible names placed in ``error.kind``.
    """
    NOT_FOUND = "NotFoundError"
    DUPLICATE_TOOL = "DuplicateToolError"
    INVALID_INPUT = "InvalidInputError"
    CREDENTIAL = "CredentialError"
    HANDLER = "HandlerError"
    REMOTE_CALL = "RemoteCallError"
    TIMEOUT = "TimeoutError"
    MALFORMED_RESPONSE = "MalformedResponseError"
    CANCELLED = "CancelledError"

    @property
    def recoverable(self) -> bool:
        """Whether a caller can reasonably retry after fixing the cause."""
        return self in _RECOVERABLE_KINDS


_RECOVERABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.INVALID_INPUT,
    ErrorKind.CREDENTIAL,
    ErrorKind.REMOTE_CALL,
    ErrorKind.TIMEOUT,
    ErrorKind.CANCELLED,
})


class ToolrelayError(Exception):
    """Base for all errors raised by the core."""

    kind: ClassVar[ErrorKind] = ErrorKind.HANDLER

    def __init__(self, message: str, *, tool_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.tool_id = tool_id


class ToolNotFoundError(ToolrelayError, LookupError):
    """No tool registered under the requested id."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, tool_id: str) -> None:
        super().__init__(f"Tool '{tool_id}' not found in registry", tool_id=tool_id)


class DuplicateToolError(ToolrelayError):
    """A tool id collided with an existing registration under the reject policy."""

    kind = ErrorKind.DUPLICATE_TOOL

    def __init__(self, tool_id: str) -> None:
        super().__init__(f"Tool '{tool_id}' already registered. Use unregister() first.", tool_id=tool_id)


class ToolRegistrationError(ToolrelayError, ValueError):
    """Descriptor is well-formed but cannot be registered (unknown toolkit, schema too deep)."""

    kind = ErrorKind.INVALID_INPUT


class InvalidInputError(ToolrelayError):
    """Raw input violated the tool's input schema."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, violations: tuple[Violation, ...] = (), *, tool_id: str | None = None) -> None:
        super().__init__(message, tool_id=tool_id)
        self.violations = violations


class CredentialError(ToolrelayError):
    """A credential required by the toolkit could not be obtained."""

    kind = ErrorKind.CREDENTIAL


class NoCredentialError(CredentialError):
    """Resolver holds no credential for (toolkit, caller)."""

    def __init__(self, toolkit_id: str, caller: str) -> None:
        super().__init__(f"No credential available for toolkit '{toolkit_id}' and caller '{caller}'")
        self.toolkit_id = toolkit_id
        self.caller = caller


class ExpiredCredentialError(CredentialError):
    """Resolver returned a credential whose expiry has passed."""

    def __init__(self, toolkit_id: str, caller: str) -> None:
        super().__init__(f"Credential for toolkit '{toolkit_id}' and caller '{caller}' has expired")
        self.toolkit_id = toolkit_id
        self.caller = caller


class HandlerError(ToolrelayError):
    """Local handler raised, or returned a value outside its output contract."""

    kind = ErrorKind.HANDLER


class RemoteCallError(ToolrelayError):
    """Remote endpoint answered non-2xx or the transport failed."""

    kind = ErrorKind.REMOTE_CALL

    def __init__(self, message: str, *, status_code: int | None = None, tool_id: str | None = None) -> None:
        super().__init__(message, tool_id=tool_id)
        self.status_code = status_code


class ToolTimeoutError(ToolrelayError):
    """Execution exceeded its bounded wait."""

    kind = ErrorKind.TIMEOUT


class MalformedResponseError(ToolrelayError):
    """Remote body could not be parsed or did not match the declared output shape."""

    kind = ErrorKind.MALFORMED_RESPONSE


class InvocationCancelledError(ToolrelayError):
    """Caller cancelled the invocation through its cancel token."""

    kind = ErrorKind.CANCELLED


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map an arbitrary exception onto the taxonomy.

    Core exceptions carry their own kind. httpx is imported lazily so the
    errors package stays free of transport dependencies.
    """
    if isinstance(exc, ToolrelayError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    import httpx
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (httpx.HTTPError, httpx.InvalidURL)):
        return ErrorKind.REMOTE_CALL
    return ErrorKind.HANDLER
