"""Credential resolver implementations.

The dispatcher only depends on the CredentialResolver protocol. These are the
stock implementations: a static in-memory table, an adapter for plain
functions, and a TTL cache that coalesces concurrent lookups.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
import time
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Callable

from toolrelay.foundation.auth import Credential, CredentialResolver
from toolrelay.foundation.config import get_settings
from toolrelay.foundation.errors import ExpiredCredentialError, NoCredentialError
from toolrelay.runtime.observability import get_logger

log = get_logger("toolrelay.credentials")

ANY_CALLER = "*"

CredentialKey = tuple[str, str]
CredentialLike = Credential | str
ResolverFn = Callable[[str, str], "CredentialLike | None | Awaitable[CredentialLike | None]"]


def _coerce(value: CredentialLike) -> Credential:
    return value if isinstance(value, Credential) else Credential(value=value)


def _checked(credential: Credential, toolkit_id: str, caller: str) -> Credential:
    if credential.is_expired():
        raise ExpiredCredentialError(toolkit_id, caller)
    return credential


class StaticCredentialResolver:
    """In-memory credentials keyed by ``(toolkit_id, caller)``.

    A ``(toolkit_id, "*")`` entry serves every caller without its own entry.

    Example:
        >>> resolver = StaticCredentialResolver({("github", "*"): "ghp_token"})
        >>> (await resolver.resolve("github", "alice")).secret()
        'ghp_token'
    """

    __slots__ = ("_store", "_lock")

    def __init__(self, credentials: Mapping[CredentialKey, CredentialLike] | None = None) -> None:
        self._store: dict[CredentialKey, Credential] = {k: _coerce(v) for k, v in (credentials or {}).items()}
        self._lock = threading.Lock()

    def set(self, toolkit_id: str, credential: CredentialLike, caller: str = ANY_CALLER) -> None:
        with self._lock:
            self._store[(toolkit_id, caller)] = _coerce(credential)

    def remove(self, toolkit_id: str, caller: str = ANY_CALLER) -> bool:
        with self._lock:
            return self._store.pop((toolkit_id, caller), None) is not None

    async def resolve(self, toolkit_id: str, caller: str) -> Credential:
        with self._lock:
            credential = self._store.get((toolkit_id, caller)) or self._store.get((toolkit_id, ANY_CALLER))
        if credential is None:
            raise NoCredentialError(toolkit_id, caller)
        return _checked(credential, toolkit_id, caller)

    def __len__(self) -> int:
        return len(self._store)


class CallableResolver:
    """Adapt ``fn(toolkit_id, caller)`` into a resolver.

    ``fn`` may be sync or async and may return a Credential, a raw secret
    string, or None for "no credential". Sync functions run in a worker
    thread so a slow secret store never blocks the event loop.
    """

    __slots__ = ("_fn", "_is_async")

    def __init__(self, fn: ResolverFn) -> None:
        self._fn = fn
        self._is_async = inspect.iscoroutinefunction(fn)

    async def resolve(self, toolkit_id: str, caller: str) -> Credential:
        if self._is_async:
            value = await self._fn(toolkit_id, caller)  # type: ignore[misc]
        else:
            value = await asyncio.to_thread(self._fn, toolkit_id, caller)
        if value is None:
            raise NoCredentialError(toolkit_id, caller)
        return _checked(_coerce(value), toolkit_id, caller)  # type: ignore[arg-type]


@dataclass(slots=True)
class _CacheEntry:
    credential: Credential
    expires_at: float

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at or self.credential.is_expired()


class CachingResolver:
    """TTL cache in front of another resolver.

    Concurrent lookups for the same pair share one underlying ``resolve``
    call. Failures are never cached. An entry lives for ``ttl`` seconds or
    until the credential's own expiry, whichever is sooner.

    Args:
        inner: Resolver to consult on a miss
        ttl: Seconds to reuse a resolved credential (defaults to settings)
    """

    __slots__ = ("_inner", "_ttl", "_entries", "_pending", "_lock")

    def __init__(self, inner: CredentialResolver, ttl: float | None = None) -> None:
        self._inner = inner
        self._ttl = ttl if ttl is not None else get_settings().credentials.cache_ttl
        self._entries: dict[CredentialKey, _CacheEntry] = {}
        self._pending: dict[CredentialKey, asyncio.Task[Credential]] = {}
        self._lock = threading.Lock()

    @property
    def inner(self) -> CredentialResolver:
        return self._inner

    async def resolve(self, toolkit_id: str, caller: str) -> Credential:
        key = (toolkit_id, caller)
        if (hit := self._get(key)) is not None:
            return hit
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(toolkit_id, caller))
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
            self._pending[key] = task
        # A cancelled waiter leaves the shared lookup running
        return await asyncio.shield(task)

    def invalidate(self, toolkit_id: str, caller: str | None = None) -> int:
        """Drop cached credentials for a toolkit (or one caller). Returns count removed."""
        with self._lock:
            keys = [k for k in self._entries if k[0] == toolkit_id and (caller is None or k[1] == caller)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    async def _fetch(self, toolkit_id: str, caller: str) -> Credential:
        credential = await self._inner.resolve(toolkit_id, caller)
        log.debug("credential resolved", toolkit=toolkit_id, caller=caller)
        return _checked(credential, toolkit_id, caller)

    def _get(self, key: CredentialKey) -> Credential | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired:
                del self._entries[key]
                return None
            return entry.credential

    def _settle(self, key: CredentialKey, task: asyncio.Task[Credential]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if task.cancelled() or task.exception() is not None:
            return
        credential = task.result()
        ttl = self._ttl
        if credential.expires_at is not None:
            ttl = min(ttl, (credential.expires_at.timestamp() - time.time()))
        if ttl > 0:
            with self._lock:
                self._entries[key] = _CacheEntry(credential, time.monotonic() + ttl)
