"""Per-invocation execution context and cooperative cancellation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from toolrelay.foundation.errors import HandlerError, InvocationCancelledError

if TYPE_CHECKING:
    from toolrelay.foundation.auth import Credential


RequestExecutor = Callable[..., Awaitable[Any]]


class CancelToken:
    """Cancellation signal shared between a caller and one or more invocations.

    The dispatcher watches the token and aborts the in-flight network call
    when it fires. Local handlers are cooperative: they can poll
    ``cancelled`` or call ``raise_if_cancelled()``, but cannot be stopped
    from outside. Use from the event loop that runs the invocation.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(dispatcher.invoke("slow", {}, cancel=token))
        >>> token.cancel("session closed")
        >>> (await task).error.kind
        <ErrorKind.CANCELLED: 'CancelledError'>
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "Invocation cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise InvocationCancelledError(self._reason or "Invocation cancelled by caller")


@dataclass(slots=True)
class ExecutionContext:
    """Ephemeral state handed to a local handler as its second argument.

    Attributes:
        tool_id: Id of the tool being invoked
        toolkit_id: Owning toolkit ("none" for standalone tools)
        caller: Identity the credential was resolved for
        credential: Resolved credential, None when the toolkit needs none
        cancel: Cancellation signal for cooperative handlers
    """

    tool_id: str
    toolkit_id: str
    caller: str
    credential: Credential | None = None
    cancel: CancelToken = field(default_factory=CancelToken)
    _requester: RequestExecutor | None = field(default=None, repr=False)

    async def execute_request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Call the tool's toolkit API with the resolved credential attached.

        Returns the parsed response body. Raises RemoteCallError on non-2xx
        answers and HandlerError when the tool has no toolkit API to call.
        """
        if self._requester is None:
            raise HandlerError(f"Tool '{self.tool_id}' has no toolkit API to send requests to", tool_id=self.tool_id)
        self.cancel.raise_if_cancelled()
        return await self._requester(method, path, params=params, json=json, headers=headers)
