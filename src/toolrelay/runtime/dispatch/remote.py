"""Remote-proxy transport: build the outbound request, send it, decode the answer.

Path placeholders are filled from the validated input (URL-quoted). Remaining
fields follow the method: query string for GET/DELETE/HEAD/OPTIONS, JSON body
for POST/PUT/PATCH. ``query_fields``/``body_fields`` redirect individual
fields. The toolkit's auth strategy attaches the credential last so static
headers can never overwrite it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
import orjson

from toolrelay.foundation.auth import Credential
from toolrelay.foundation.core import RemoteEndpoint, Toolkit
from toolrelay.foundation.errors import MalformedResponseError, RemoteCallError, ToolTimeoutError

_MISSING = object()
_ERROR_DETAIL_KEYS = ("message", "error", "detail", "error_description")


@dataclass(slots=True)
class PreparedRequest:
    """Fully resolved outbound call, ready for httpx."""

    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict, repr=False)
    json: Any = None


# ─────────────────────────────────────────────────────────────────────────────
# Request building
# ─────────────────────────────────────────────────────────────────────────────

def prepare(
    toolkit: Toolkit,
    method: str,
    path: str,
    *,
    params: Mapping[str, Any] | None = None,
    json: Any = None,
    headers: Mapping[str, str] | None = None,
    credential: Credential | None = None,
    user_agent: str | None = None,
) -> PreparedRequest:
    """Request against ``toolkit.base_url`` with default headers and the credential attached."""
    merged = {"Accept": "application/json"}
    if user_agent:
        merged["User-Agent"] = user_agent
    merged.update(toolkit.default_headers)
    merged.update(headers or {})
    query = {k: _query_value(v) for k, v in (params or {}).items() if v is not None}
    toolkit.auth.apply(merged, query, credential)
    url = toolkit.base_url + (path if path.startswith("/") else f"/{path}")
    return PreparedRequest(method=method.upper(), url=url, params=query, headers=merged, json=json)


def build_request(
    toolkit: Toolkit,
    endpoint: RemoteEndpoint,
    data: Mapping[str, Any],
    *,
    credential: Credential | None = None,
    user_agent: str | None = None,
) -> PreparedRequest:
    """Map validated tool input onto the endpoint template."""
    placeholders = set(endpoint.placeholders)
    path = endpoint.path.format_map({name: _path_segment(data[name]) for name in placeholders})

    query: dict[str, Any] = {}
    body: dict[str, Any] = {}
    for name, value in data.items():
        if name in placeholders:
            continue
        if endpoint.query_fields is not None and name in endpoint.query_fields:
            query[name] = value
        elif endpoint.body_fields is not None and name in endpoint.body_fields:
            body[name] = value
        elif endpoint.sends_body:
            body[name] = value
        else:
            query[name] = value

    return prepare(
        toolkit, endpoint.method, path,
        params=query, json=body or None, headers=endpoint.headers,
        credential=credential, user_agent=user_agent,
    )


def _path_segment(value: object) -> str:
    text = str(value).lower() if isinstance(value, bool) else str(value)
    return quote(text, safe="")


def _query_value(value: object) -> object:
    """httpx takes primitives and lists of primitives; objects travel as JSON text."""
    if isinstance(value, dict):
        return orjson.dumps(value).decode()
    if isinstance(value, (list, tuple)):
        return [orjson.dumps(v).decode() if isinstance(v, (dict, list)) else v for v in value]
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Sending
# ─────────────────────────────────────────────────────────────────────────────

async def send(
    client: httpx.AsyncClient,
    request: PreparedRequest,
    *,
    timeout: float | None,
    max_bytes: int,
    tool_id: str | None = None,
) -> Any:
    """Perform the call and return the decoded JSON body (None when empty).

    Raises:
        RemoteCallError: non-2xx answer, transport failure or any other httpx error
        ToolTimeoutError: httpx gave up waiting
        MalformedResponseError: body too large or not JSON
    """
    # None keeps the client's own timeout instead of disabling it
    extra: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
    try:
        async with client.stream(
            request.method,
            request.url,
            params=request.params or None,
            headers=request.headers,
            json=request.json,
            **extra,
        ) as response:
            declared = int(response.headers.get("content-length") or 0)
            if declared > max_bytes:
                raise MalformedResponseError(
                    f"Response too large: {declared} bytes (max: {max_bytes})", tool_id=tool_id)
            payload = bytearray()
            async for chunk in response.aiter_bytes():
                payload += chunk
                if len(payload) > max_bytes:
                    raise MalformedResponseError(
                        f"Response body exceeded max size of {max_bytes} bytes", tool_id=tool_id)
    except httpx.TimeoutException as e:
        raise ToolTimeoutError(f"Request timed out after {timeout}s", tool_id=tool_id) from e
    except httpx.TransportError as e:
        raise RemoteCallError(f"Transport failure: {type(e).__name__}: {e}", tool_id=tool_id) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise RemoteCallError(f"Request failed: {type(e).__name__}: {e}", tool_id=tool_id) from e

    body = bytes(payload)
    if not response.is_success:
        detail = _error_detail(body)
        message = f"HTTP {response.status_code} {response.reason_phrase}".rstrip()
        raise RemoteCallError(f"{message}: {detail}" if detail else message,
                              status_code=response.status_code, tool_id=tool_id)
    return decode_body(body, tool_id=tool_id)


def decode_body(body: bytes, *, tool_id: str | None = None) -> Any:
    if not body.strip():
        return None
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise MalformedResponseError(f"Response body is not valid JSON: {e}", tool_id=tool_id) from e


def _error_detail(body: bytes) -> str:
    if not body.strip():
        return ""
    try:
        parsed = orjson.loads(body)
    except orjson.JSONDecodeError:
        return body[:200].decode("utf-8", errors="replace").strip()
    if isinstance(parsed, dict):
        for key in _ERROR_DETAIL_KEYS:
            if isinstance(value := parsed.get(key), str):
                return value
    return ""


# ─────────────────────────────────────────────────────────────────────────────
# Response projection
# ─────────────────────────────────────────────────────────────────────────────

def project(body: Any, response_map: Mapping[str, str], *, tool_id: str | None = None) -> dict[str, Any]:
    """Build the tool output from dotted paths into the response body.

    ``"$"`` selects the whole body; numeric segments index into arrays.

    Example:
        >>> project({"names": ["a", "b"]}, {"topics": "names", "first": "names.0"})
        {'topics': ['a', 'b'], 'first': 'a'}
    """
    out: dict[str, Any] = {}
    for name, path in response_map.items():
        if (value := _dig(body, path)) is _MISSING:
            raise MalformedResponseError(f"Response has no value at '{path}' for output field '{name}'",
                                         tool_id=tool_id)
        out[name] = value
    return out


def _dig(body: Any, path: str) -> Any:
    if path in ("", "$"):
        return body
    current = body
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return _MISSING
    return current
