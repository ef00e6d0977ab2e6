"""Execution dispatcher: look up, validate, execute, normalize.

Every invocation walks the same pipeline and ends in a ResultEnvelope. Nothing
raised while looking up, validating or executing a tool escapes ``invoke``;
only cancellation of the caller's own task propagates.

    PENDING -> VALIDATING -> VALIDATION_FAILED
                          -> DISPATCHING -> EXECUTING -> SUCCEEDED | FAILED

Example:
    >>> registry = ToolRegistry()
    >>> registry.register(add_numbers)
    >>> async with Dispatcher(registry) as dispatcher:
    ...     envelope = await dispatcher.invoke("add_numbers", {"a": 2, "b": 3})
    >>> envelope.to_dict()
    {'successful': True, 'data': 5}
"""

from __future__ import annotations

import asyncio
import inspect
import time
import uuid
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Awaitable, Self

import httpx
from pydantic import BaseModel

from toolrelay.foundation.auth import Credential, CredentialResolver
from toolrelay.foundation.config import ToolrelaySettings, get_settings
from toolrelay.foundation.core import (
    CancelToken,
    ExecutionContext,
    Handler,
    RemoteEndpoint,
    RemoteExecution,
    RequestExecutor,
    ToolDescriptor,
    Toolkit,
)
from toolrelay.foundation.errors import (
    CredentialError,
    ExpiredCredentialError,
    HandlerError,
    InvalidInputError,
    InvocationCancelledError,
    MalformedResponseError,
    NoCredentialError,
    RemoteCallError,
    ResultEnvelope,
    ToolrelayError,
    ToolTimeoutError,
)
from toolrelay.foundation.registry import ToolRegistry, get_registry
from toolrelay.foundation.schema import validate
from toolrelay.runtime.credentials import CachingResolver
from toolrelay.runtime.observability import get_logger, log_context

from .remote import build_request, prepare, project, send

if TYPE_CHECKING:
    from types import TracebackType

log = get_logger("toolrelay.dispatch")

ToolCall = tuple[str, Mapping[str, Any]]


class InvocationState(StrEnum):
    PENDING = "pending"
    VALIDATING = "validating"
    VALIDATION_FAILED = "validation_failed"
    DISPATCHING = "dispatching"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (InvocationState.VALIDATION_FAILED, InvocationState.SUCCEEDED, InvocationState.FAILED)


@dataclass(slots=True)
class Invocation:
    """Bookkeeping for one in-flight call. Never leaves the dispatcher."""

    tool_id: str
    caller: str
    cancel: CancelToken
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: InvocationState = InvocationState.PENDING
    started: float = field(default_factory=time.perf_counter)
    secrets: list[str] = field(default_factory=list, repr=False)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class Dispatcher:
    """Route invocations to local handlers or remote endpoints.

    Args:
        registry: Tool catalog (defaults to the shared registry)
        resolver: Credential source for toolkits that require one. Wrapped
            in a CachingResolver when credential caching is enabled.
        settings: Overrides the process settings
        client: httpx client to use for remote calls. When omitted the
            dispatcher creates and owns one; ``aclose()`` releases it.
    """

    __slots__ = ("_registry", "_resolver", "_settings", "_client", "_owns_client")

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        resolver: CredentialResolver | None = None,
        *,
        settings: ToolrelaySettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry if registry is not None else get_registry()
        cache = self._settings.credentials
        if resolver is not None and cache.cache_enabled and not isinstance(resolver, CachingResolver):
            resolver = CachingResolver(resolver, ttl=cache.cache_ttl)
        self._resolver = resolver
        self._client = client
        self._owns_client = False

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def resolver(self) -> CredentialResolver | None:
        return self._resolver

    @property
    def settings(self) -> ToolrelaySettings:
        return self._settings

    # ─────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────

    async def invoke(
        self,
        tool_id: str,
        input: Mapping[str, Any] | None,  # noqa: A002
        *,
        caller: str | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> ResultEnvelope:
        """Invoke a tool and return its envelope.

        Args:
            tool_id: Registered tool id
            input: Raw input; validated against the tool's input schema
            caller: Identity credentials are resolved for (defaults to settings)
            cancel: Token that aborts the invocation when cancelled
            timeout: Overrides the configured bound for this call
        """
        call = Invocation(tool_id=tool_id, caller=caller or self._settings.dispatch.default_caller,
                          cancel=cancel or CancelToken())
        with log_context(invocation=call.id):
            ilog = log.bind(tool=tool_id, caller=call.caller)
            ilog.debug("invocation started")
            try:
                data = await self._pipeline(call, input, timeout)
            except asyncio.CancelledError:
                ilog.info("invocation abandoned", state=call.state.value, duration_ms=round(call.elapsed_ms, 3))
                raise
            except Exception as exc:  # noqa: BLE001
                if call.state is not InvocationState.VALIDATION_FAILED:
                    call.state = InvocationState.FAILED
                envelope = ResultEnvelope.from_exception(
                    exc,
                    tool_id=tool_id,
                    secrets=call.secrets,
                    limit=self._settings.dispatch.max_error_message_length,
                    duration_ms=call.elapsed_ms,
                )
                ilog.warning("invocation finished", state=call.state.value, error_kind=str(envelope.kind),
                             duration_ms=envelope.duration_ms)
                return envelope

            call.state = InvocationState.SUCCEEDED
            envelope = ResultEnvelope.ok(data, tool_id=tool_id, duration_ms=call.elapsed_ms)
            ilog.info("invocation finished", state=call.state.value, duration_ms=envelope.duration_ms)
            return envelope

    def invoke_sync(
        self,
        tool_id: str,
        input: Mapping[str, Any] | None,  # noqa: A002
        *,
        caller: str | None = None,
        timeout: float | None = None,
    ) -> ResultEnvelope:
        """Blocking ``invoke`` for sync callers. Safe to call inside a running loop."""

        async def run() -> ResultEnvelope:
            if self._client is not None and not self._owns_client:
                return await self.invoke(tool_id, input, caller=caller, timeout=timeout)
            # An owned client is bound to the loop that created it
            async with Dispatcher(self._registry, self._resolver, settings=self._settings) as scoped:
                return await scoped.invoke(tool_id, input, caller=caller, timeout=timeout)

        return _run_async_sync(run())

    async def invoke_all(
        self,
        calls: Iterable[ToolCall],
        *,
        caller: str | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> list[ResultEnvelope]:
        """Run several invocations concurrently. Envelopes come back in call order."""
        return list(await asyncio.gather(*(
            self.invoke(tool_id, data, caller=caller, cancel=cancel, timeout=timeout) for tool_id, data in calls
        )))

    async def aclose(self) -> None:
        """Close the httpx client if this dispatcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                        exc_tb: TracebackType | None) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────────
    # Pipeline
    # ─────────────────────────────────────────────────────────────────

    async def _pipeline(self, call: Invocation, raw: Mapping[str, Any] | None, timeout: float | None) -> Any:
        descriptor, toolkit = self._registry.snapshot().resolve(call.tool_id)

        call.state = InvocationState.VALIDATING
        checked = validate(descriptor.input_schema, {} if raw is None else raw)
        if checked.is_err():
            call.state = InvocationState.VALIDATION_FAILED
            failure = checked.unwrap_err()
            raise InvalidInputError(f"Invalid input for '{call.tool_id}': {failure.summary()}",
                                    failure.violations, tool_id=call.tool_id)
        data = checked.unwrap()

        call.state = InvocationState.DISPATCHING
        call.cancel.raise_if_cancelled()
        execution = descriptor.execution
        if isinstance(execution, RemoteExecution):
            if toolkit is None:
                raise RemoteCallError(f"Toolkit '{descriptor.toolkit_id}' is not registered", tool_id=call.tool_id)
            bound = timeout if timeout is not None else self._settings.dispatch.remote_timeout
            return await self._guarded(
                self._run_remote(call, descriptor, execution.endpoint, toolkit, data, bound), call, bound)
        bound = timeout if timeout is not None else self._settings.dispatch.local_timeout
        return await self._guarded(self._run_local(call, descriptor, execution.handler, toolkit, data), call, bound)

    async def _guarded(self, work: Awaitable[Any], call: Invocation, timeout: float | None) -> Any:
        """Await ``work`` racing the cancel token and the deadline."""
        task = asyncio.ensure_future(work)
        watcher = asyncio.ensure_future(call.cancel.wait())
        try:
            done, _ = await asyncio.wait({task, watcher}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            watcher.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if call.cancel.cancelled:
            raise InvocationCancelledError(call.cancel.reason or "Invocation cancelled by caller",
                                           tool_id=call.tool_id)
        raise ToolTimeoutError(f"Tool '{call.tool_id}' timed out after {timeout}s", tool_id=call.tool_id)

    async def _run_local(self, call: Invocation, descriptor: ToolDescriptor, handler: Handler,
                         toolkit: Toolkit | None, data: dict[str, Any]) -> Any:
        credential = await self._credential_for(toolkit, call)
        ctx = ExecutionContext(
            tool_id=descriptor.id,
            toolkit_id=descriptor.toolkit_id,
            caller=call.caller,
            credential=credential,
            cancel=call.cancel,
            _requester=self._requester(toolkit, credential, call) if toolkit is not None else None,
        )

        call.state = InvocationState.EXECUTING
        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(data, ctx)
            else:
                result = await asyncio.to_thread(handler, data, ctx)
                if inspect.isawaitable(result):
                    result = await result
        except ToolrelayError:
            raise
        except Exception as e:
            raise HandlerError(f"{type(e).__name__}: {e}", tool_id=descriptor.id) from e

        if isinstance(result, BaseModel):
            result = result.model_dump(mode="json")
        if descriptor.output_schema is not None:
            out = validate(descriptor.output_schema, result)
            if out.is_err():
                raise HandlerError(f"Handler output does not match output schema: {out.unwrap_err().summary()}",
                                   tool_id=descriptor.id)
            result = out.unwrap()
        return result

    async def _run_remote(self, call: Invocation, descriptor: ToolDescriptor, endpoint: RemoteEndpoint,
                          toolkit: Toolkit, data: dict[str, Any], timeout: float | None) -> Any:
        credential = await self._credential_for(toolkit, call)
        request = build_request(toolkit, endpoint, data, credential=credential,
                                user_agent=self._settings.http.user_agent)

        call.state = InvocationState.EXECUTING
        body = await send(self._get_client(), request, timeout=timeout,
                          max_bytes=self._settings.max_response_bytes, tool_id=descriptor.id)
        if endpoint.response_map is not None:
            body = project(body, endpoint.response_map, tool_id=descriptor.id)
        if descriptor.output_schema is not None:
            out = validate(descriptor.output_schema, body)
            if out.is_err():
                raise MalformedResponseError(
                    f"Response does not match output schema: {out.unwrap_err().summary()}", tool_id=descriptor.id)
            body = out.unwrap()
        return body

    # ─────────────────────────────────────────────────────────────────
    # Credentials & HTTP
    # ─────────────────────────────────────────────────────────────────

    async def _credential_for(self, toolkit: Toolkit | None, call: Invocation) -> Credential | None:
        if toolkit is None or not toolkit.requires_credential:
            return None
        if self._resolver is None:
            raise NoCredentialError(toolkit.id, call.caller)
        try:
            credential = await self._resolver.resolve(toolkit.id, call.caller)
        except CredentialError:
            raise
        except Exception as e:
            raise CredentialError(
                f"Credential resolution failed for toolkit '{toolkit.id}': {type(e).__name__}: {e}",
                tool_id=call.tool_id,
            ) from e
        if credential.is_expired():
            raise ExpiredCredentialError(toolkit.id, call.caller)
        call.secrets.append(credential.secret())
        return credential

    def _requester(self, toolkit: Toolkit, credential: Credential | None, call: Invocation) -> RequestExecutor:
        async def execute(method: str, path: str, *, params: dict[str, Any] | None = None, json: Any = None,
                          headers: dict[str, str] | None = None) -> Any:
            request = prepare(toolkit, method, path, params=params, json=json, headers=headers,
                              credential=credential, user_agent=self._settings.http.user_agent)
            return await send(self._get_client(), request, timeout=self._settings.dispatch.remote_timeout,
                              max_bytes=self._settings.max_response_bytes, tool_id=call.tool_id)
        return execute

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            http = self._settings.http
            self._client = httpx.AsyncClient(
                follow_redirects=http.follow_redirects,
                max_redirects=http.max_redirects,
                verify=http.verify_ssl,
                timeout=self._settings.dispatch.remote_timeout,
            )
            self._owns_client = True
        return self._client


def _run_async_sync(coro: Any) -> Any:
    """Run a coroutine from sync code, in a worker thread if a loop is already running."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()
