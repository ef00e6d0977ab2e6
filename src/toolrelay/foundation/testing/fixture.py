"""Fake remote APIs for exercising remote-proxy tools without a network.

MockAPI plugs into httpx through MockTransport, so the dispatcher's real
request building, size limits and response decoding all run unchanged.

Example:
    >>> api = MockAPI(responses={
    ...     "GET /repos/octocat/hello/topics": {"names": ["python", "http"]},
    ... })
    >>> dispatcher = Dispatcher(registry, resolver, client=api.client())
    >>> await dispatcher.invoke("get_repo_topics", {"owner": "octocat", "repo": "hello"})
    >>> api.assert_endpoint_called("/repos/octocat/hello/topics")
"""

from __future__ import annotations

import asyncio
import fnmatch
from dataclasses import dataclass, field
from typing import Any

import httpx
import orjson

ResponseSpec = Any


@dataclass
class MockResponse:
    """Canned HTTP answer.

    ``data`` is sent as JSON unless it is ``str``/``bytes``, which go out
    verbatim (useful for malformed-body scenarios).
    """

    status: int = 200
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    delay_ms: float = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_httpx(self, request: httpx.Request) -> httpx.Response:
        headers = dict(self.headers)
        if isinstance(self.data, bytes):
            content = self.data
        elif isinstance(self.data, str):
            content = self.data.encode()
            headers.setdefault("content-type", "text/plain")
        elif self.data is None:
            content = b""
        else:
            content = orjson.dumps(self.data)
            headers.setdefault("content-type", "application/json")
        return httpx.Response(self.status, content=content, headers=headers, request=request)


@dataclass(slots=True)
class RecordedRequest:
    method: str
    path: str
    params: dict[str, str]
    headers: dict[str, str]
    json: Any = None

    @property
    def endpoint(self) -> str:
        return f"{self.method} {self.path}"


@dataclass
class MockAPI:
    """Simulated API backend with canned responses and request recording.

    Response keys are ``"METHOD /path"`` or ``"/path"`` (any method) and may
    use shell-style wildcards (``"GET /repos/*"``, ``"*"``). Exact keys win
    over wildcard keys.
    """

    responses: dict[str, ResponseSpec] = field(default_factory=dict)
    default_response: ResponseSpec = field(default_factory=dict)
    default_status: int = 200
    requests: list[RecordedRequest] = field(default_factory=list)

    # ─────────────────────────────────────────────────────────────────
    # httpx wiring
    # ─────────────────────────────────────────────────────────────────

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        """AsyncClient whose every request is answered by this mock."""
        return httpx.AsyncClient(transport=self.transport(), **kwargs)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        self.requests.append(RecordedRequest(
            method=request.method,
            path=request.url.path,
            params=dict(request.url.params),
            headers=dict(request.headers),
            json=orjson.loads(body) if body else None,
        ))
        response = self._get_response(request.method, request.url.path)
        if response.delay_ms > 0:
            await asyncio.sleep(response.delay_ms / 1000)
        return response.to_httpx(request)

    def _get_response(self, method: str, path: str) -> MockResponse:
        candidates = (f"{method} {path}", path)
        for key in candidates:
            if key in self.responses:
                return self._coerce(self.responses[key])
        for pattern, spec in self.responses.items():
            if any(fnmatch.fnmatchcase(c, pattern) for c in candidates):
                return self._coerce(spec)
        return self._coerce(self.default_response)

    def _coerce(self, spec: ResponseSpec) -> MockResponse:
        return spec if isinstance(spec, MockResponse) else MockResponse(status=self.default_status, data=spec)

    # ─────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────

    def set_response(self, endpoint: str, response: ResponseSpec) -> None:
        self.responses[endpoint] = response

    def set_error(self, endpoint: str, status: int = 500, message: str = "Internal Server Error") -> None:
        """Configure endpoint to answer with an error status."""
        self.responses[endpoint] = MockResponse(status=status, data={"error": message})

    def set_delay(self, endpoint: str, delay_ms: float, data: ResponseSpec = None) -> None:
        """Configure endpoint to answer after ``delay_ms``."""
        self.responses[endpoint] = MockResponse(status=self.default_status, data=data, delay_ms=delay_ms)

    def clear(self) -> None:
        """Clear recorded requests."""
        self.requests.clear()

    # ─────────────────────────────────────────────────────────────────
    # Verification
    # ─────────────────────────────────────────────────────────────────

    @property
    def request_count(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> RecordedRequest | None:
        return self.requests[-1] if self.requests else None

    def assert_called(self) -> None:
        if not self.requests:
            raise AssertionError("Expected API to be called")

    def assert_not_called(self) -> None:
        if self.requests:
            raise AssertionError(f"API called {self.request_count} times: {[r.endpoint for r in self.requests]}")

    def assert_endpoint_called(self, path: str, method: str | None = None) -> None:
        """Assert a request hit ``path`` (and ``method``, when given)."""
        for req in self.requests:
            if req.path == path and (method is None or req.method == method.upper()):
                return
        raise AssertionError(f"Endpoint '{method or '*'} {path}' was not called")
