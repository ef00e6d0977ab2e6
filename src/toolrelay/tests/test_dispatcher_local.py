"""Tests for dispatching local-handler tools."""

from __future__ import annotations

import asyncio
import threading
from types import MappingProxyType

import pytest
from pydantic import BaseModel

from toolrelay.foundation.auth import ApiKeyHeader, Credential
from toolrelay.foundation.config import ToolrelaySettings
from toolrelay.foundation.core import CancelToken, ExecutionContext, ToolDescriptor, Toolkit, local_tool
from toolrelay.foundation.errors import ErrorKind, RemoteCallError
from toolrelay.foundation.registry import ToolRegistry
from toolrelay.foundation.schema import Schema
from toolrelay.foundation.testing import HandlerSpy, LogCapture, MockAPI, MockResolver
from toolrelay.runtime.dispatch import Dispatcher, InvocationState

EMPTY_INPUT = Schema.object({})


def _registry(*tools: ToolDescriptor) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_all(*tools)
    return registry


# ═════════════════════════════════════════════════════════════════════════════
# Happy path
# ═════════════════════════════════════════════════════════════════════════════


class TestLocalInvocation:
    """add_numbers end to end."""

    @pytest.mark.asyncio
    async def test_add_numbers(self, add_numbers: ToolDescriptor) -> None:
        envelope = await Dispatcher(_registry(add_numbers)).invoke("add_numbers", {"a": 2, "b": 3})
        assert envelope.to_dict() == {"successful": True, "data": 5}
        assert envelope.tool_id == "add_numbers"
        assert envelope.duration_ms is not None and envelope.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_invalid_input_never_reaches_handler(self) -> None:
        spy = HandlerSpy(return_value=0)
        tool = local_tool("add_numbers", "Add", Schema.object({"a": Schema.integer(), "b": Schema.integer()}), spy)
        envelope = await Dispatcher(_registry(tool)).invoke("add_numbers", {"a": "x"})

        assert not envelope.successful
        assert envelope.kind is ErrorKind.INVALID_INPUT
        assert envelope.error is not None
        assert [v.path for v in envelope.error.violations] == ["a", "b"]
        assert envelope.error.recoverable
        spy.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_only_mapping_input(self, add_numbers: ToolDescriptor) -> None:
        envelope = await Dispatcher(_registry(add_numbers)).invoke("add_numbers", MappingProxyType({"a": 2, "b": 3}))
        assert envelope.data == 5

    @pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        envelope = await Dispatcher(ToolRegistry()).invoke("does_not_exist", {})
        assert envelope.kind is ErrorKind.NOT_FOUND
        assert "does_not_exist" in envelope.error.message  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_none_input_is_empty_object(self) -> None:
        spy = HandlerSpy(return_value="ok")
        envelope = await Dispatcher(_registry(local_tool("ping", "Ping", EMPTY_INPUT, spy))).invoke("ping", None)
        assert envelope.data == "ok"
        assert spy.last_call is not None and spy.last_call.data == {}

    @pytest.mark.asyncio
    async def test_async_handler_and_defaults(self) -> None:
        async def greet(data: dict, ctx: ExecutionContext) -> str:
            await asyncio.sleep(0)
            return f"{data['greeting']}, {data['name']} ({ctx.caller})"

        tool = local_tool("greet", "Greet", Schema.object({
            "name": Schema.string(),
            "greeting": Schema.string(optional=True, default="Hello"),
        }), greet)
        envelope = await Dispatcher(_registry(tool)).invoke("greet", {"name": "Ada"}, caller="alice")
        assert envelope.data == "Hello, Ada (alice)"

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_loop(self) -> None:
        loop_thread = threading.get_ident()
        seen: list[int] = []

        def record(data: dict, ctx: ExecutionContext) -> None:
            seen.append(threading.get_ident())

        await Dispatcher(_registry(local_tool("rec", "Record", EMPTY_INPUT, record))).invoke("rec", {})
        assert seen and seen[0] != loop_thread

    @pytest.mark.asyncio
    async def test_pydantic_result_is_dumped(self) -> None:
        class Point(BaseModel):
            x: int
            y: int

        tool = local_tool("origin", "Origin", EMPTY_INPUT, lambda data, ctx: Point(x=0, y=0),
                          output_schema=Schema.object({"x": Schema.integer(), "y": Schema.integer()}))
        envelope = await Dispatcher(_registry(tool)).invoke("origin", {})
        assert envelope.data == {"x": 0, "y": 0}

    @pytest.mark.asyncio
    async def test_context_carries_identity(self) -> None:
        spy = HandlerSpy(return_value=None)
        await Dispatcher(_registry(local_tool("ctx", "Ctx", EMPTY_INPUT, spy))).invoke("ctx", {}, caller="bob")
        ctx = spy.calls[0].ctx
        assert (ctx.tool_id, ctx.toolkit_id, ctx.caller, ctx.credential) == ("ctx", "none", "bob", None)


# ═════════════════════════════════════════════════════════════════════════════
# Failures
# ═════════════════════════════════════════════════════════════════════════════


class TestLocalFailures:

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_handler_error(self) -> None:
        spy = HandlerSpy(raises=ZeroDivisionError("division by zero"))
        envelope = await Dispatcher(_registry(local_tool("div", "Divide", EMPTY_INPUT, spy))).invoke("div", {})
        assert envelope.kind is ErrorKind.HANDLER
        assert envelope.error.message == "ZeroDivisionError: division by zero"  # type: ignore[union-attr]
        assert not envelope.error.recoverable  # type: ignore[union-attr]
        assert envelope.data is None

    @pytest.mark.asyncio
    async def test_handler_traceback_is_not_leaked(self) -> None:
        def explode(data: dict, ctx: ExecutionContext) -> None:
            raise RuntimeError("bad state\nTraceback (most recent call last):\n  File \"x.py\", line 1")

        envelope = await Dispatcher(_registry(local_tool("boom", "Boom", EMPTY_INPUT, explode))).invoke("boom", {})
        assert envelope.error.message == "RuntimeError: bad state"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_output_schema_mismatch(self) -> None:
        tool = local_tool("bad", "Bad", EMPTY_INPUT, lambda data, ctx: "five", output_schema=Schema.integer())
        envelope = await Dispatcher(_registry(tool)).invoke("bad", {})
        assert envelope.kind is ErrorKind.HANDLER
        assert "output schema" in envelope.error.message  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_local_timeout(self) -> None:
        async def slow(data: dict, ctx: ExecutionContext) -> str:
            await asyncio.sleep(5)
            return "late"

        envelope = await Dispatcher(_registry(local_tool("slow", "Slow", EMPTY_INPUT, slow))).invoke(
            "slow", {}, timeout=0.05)
        assert envelope.kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_cancel_token_stops_async_handler(self) -> None:
        started = asyncio.Event()

        async def wait_forever(data: dict, ctx: ExecutionContext) -> None:
            started.set()
            await asyncio.sleep(10)

        token = CancelToken()
        dispatcher = Dispatcher(_registry(local_tool("wait", "Wait", EMPTY_INPUT, wait_forever)))
        task = asyncio.create_task(dispatcher.invoke("wait", {}, cancel=token))
        await started.wait()
        token.cancel("user went away")
        envelope = await task
        assert envelope.kind is ErrorKind.CANCELLED
        assert envelope.error.message == "user went away"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_already_cancelled_token_skips_execution(self) -> None:
        spy = HandlerSpy(return_value=1)
        token = CancelToken()
        token.cancel()
        envelope = await Dispatcher(_registry(local_tool("t", "T", EMPTY_INPUT, spy))).invoke("t", {}, cancel=token)
        assert envelope.kind is ErrorKind.CANCELLED
        spy.assert_not_called()

    @pytest.mark.asyncio
    async def test_caller_task_cancellation_propagates(self) -> None:
        async def wait_forever(data: dict, ctx: ExecutionContext) -> None:
            await asyncio.sleep(10)

        dispatcher = Dispatcher(_registry(local_tool("wait", "Wait", EMPTY_INPUT, wait_forever)))
        task = asyncio.create_task(dispatcher.invoke("wait", {}))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


# ═════════════════════════════════════════════════════════════════════════════
# Local tools inside a credentialed toolkit
# ═════════════════════════════════════════════════════════════════════════════


class TestToolkitBoundLocalTools:

    @pytest.fixture
    def crm(self) -> Toolkit:
        return Toolkit(id="crm", base_url="https://crm.test/api", auth=ApiKeyHeader(header_name="X-Key"))

    @pytest.mark.asyncio
    async def test_credential_and_execute_request(self, crm: Toolkit, settings: ToolrelaySettings) -> None:
        api = MockAPI(responses={"GET /api/contacts": {"items": [{"name": "Ada"}]}})

        async def count_contacts(data: dict, ctx: ExecutionContext) -> int:
            assert ctx.credential is not None and ctx.credential.secret() == "crm_key"
            body = await ctx.execute_request("GET", "/contacts", params={"limit": data["limit"]})
            return len(body["items"])

        registry = ToolRegistry()
        registry.register_toolkit(crm)
        registry.register(local_tool("count_contacts", "Count contacts",
                                     Schema.object({"limit": Schema.integer()}), count_contacts, toolkit_id="crm"))
        async with Dispatcher(registry, MockResolver({"crm": "crm_key"}), settings=settings,
                              client=api.client()) as dispatcher:
            envelope = await dispatcher.invoke("count_contacts", {"limit": 10})

        assert envelope.data == 1
        request = api.last_request
        assert request is not None
        assert request.headers["x-key"] == "crm_key"
        assert request.params == {"limit": "10"}

    @pytest.mark.asyncio
    async def test_missing_credential_skips_handler(self, crm: Toolkit, settings: ToolrelaySettings) -> None:
        spy = HandlerSpy(return_value=1)
        registry = ToolRegistry()
        registry.register_toolkit(crm)
        registry.register(local_tool("crm_tool", "CRM", EMPTY_INPUT, spy, toolkit_id="crm"))
        envelope = await Dispatcher(registry, MockResolver(), settings=settings).invoke("crm_tool", {})
        assert envelope.kind is ErrorKind.CREDENTIAL
        spy.assert_not_called()

    @pytest.mark.asyncio
    async def test_execute_request_error_keeps_kind(self, crm: Toolkit, settings: ToolrelaySettings) -> None:
        api = MockAPI()
        api.set_error("*", status=404, message="no such contact")

        async def fetch(data: dict, ctx: ExecutionContext) -> object:
            return await ctx.execute_request("GET", "/contacts/1")

        registry = ToolRegistry()
        registry.register_toolkit(crm)
        registry.register(local_tool("fetch", "Fetch", EMPTY_INPUT, fetch, toolkit_id="crm"))
        dispatcher = Dispatcher(registry, MockResolver({"crm": Credential(value="k")}), settings=settings,
                                client=api.client())
        envelope = await dispatcher.invoke("fetch", {})
        assert envelope.kind is ErrorKind.REMOTE_CALL
        assert envelope.error.message == "HTTP 404 Not Found: no such contact"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_standalone_tool_cannot_execute_request(self) -> None:
        async def fetch(data: dict, ctx: ExecutionContext) -> object:
            return await ctx.execute_request("GET", "/x")

        envelope = await Dispatcher(_registry(local_tool("fetch", "Fetch", EMPTY_INPUT, fetch))).invoke("fetch", {})
        assert envelope.kind is ErrorKind.HANDLER


# ═════════════════════════════════════════════════════════════════════════════
# Batch, sync and logging
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_invoke_all_preserves_order(add_numbers: ToolDescriptor) -> None:
    envelopes = await Dispatcher(_registry(add_numbers)).invoke_all([
        ("add_numbers", {"a": 1, "b": 1}),
        ("missing", {}),
        ("add_numbers", {"a": 2, "b": 2}),
    ])
    assert [e.data for e in envelopes] == [2, None, 4]
    assert envelopes[1].kind is ErrorKind.NOT_FOUND


def test_invoke_sync(add_numbers: ToolDescriptor) -> None:
    envelope = Dispatcher(_registry(add_numbers)).invoke_sync("add_numbers", {"a": 20, "b": 22})
    assert envelope.data == 42


@pytest.mark.asyncio
async def test_invoke_sync_inside_running_loop(add_numbers: ToolDescriptor) -> None:
    envelope = Dispatcher(_registry(add_numbers)).invoke_sync("add_numbers", {"a": 1, "b": 2})
    assert envelope.data == 3


@pytest.mark.asyncio
async def test_final_state_is_logged(add_numbers: ToolDescriptor, log_capture: LogCapture) -> None:
    dispatcher = Dispatcher(_registry(add_numbers))
    await dispatcher.invoke("add_numbers", {"a": 1, "b": 2})
    await dispatcher.invoke("add_numbers", {"a": "x"})

    finished = log_capture.events("invocation finished")
    assert [e.context["state"] for e in finished] == [
        InvocationState.SUCCEEDED.value, InvocationState.VALIDATION_FAILED.value,
    ]
    assert finished[1].context["error_kind"] == "InvalidInputError"
    assert finished[0].context["invocation"] != finished[1].context["invocation"]


def test_remote_call_error_is_recoverable() -> None:
    assert RemoteCallError("x").kind.recoverable
