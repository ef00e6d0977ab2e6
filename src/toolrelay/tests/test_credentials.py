"""Tests for credentials, attachment strategies and resolvers."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from toolrelay.foundation.auth import ApiKeyHeader, ApiKeyQuery, BasicAuth, BearerAuth, Credential, NoAuth
from toolrelay.foundation.core import Toolkit
from toolrelay.foundation.errors import ExpiredCredentialError, NoCredentialError
from toolrelay.foundation.testing import MockResolver
from toolrelay.runtime.credentials import CachingResolver, CallableResolver, StaticCredentialResolver

PAST = datetime.now(UTC) - timedelta(hours=1)


# ═════════════════════════════════════════════════════════════════════════════
# Credential model & strategies
# ═════════════════════════════════════════════════════════════════════════════


def test_credential_value_is_masked() -> None:
    cred = Credential(value="s3cret")
    assert "s3cret" not in repr(cred)
    assert "s3cret" not in cred.model_dump_json()
    assert cred.secret() == "s3cret"


def test_empty_credential_rejected() -> None:
    with pytest.raises(ValidationError):
        Credential(value="")


def test_naive_expiry_treated_as_utc() -> None:
    cred = Credential(value="x", expires_at=datetime(2000, 1, 1))
    assert cred.expires_at is not None and cred.expires_at.tzinfo is UTC
    assert cred.is_expired()


@pytest.mark.parametrize(
    ("strategy", "headers", "params"),
    [
        (NoAuth(), {}, {}),
        (BearerAuth(), {"Authorization": "Bearer tok"}, {}),
        (BearerAuth(header="X-Token", scheme=""), {"X-Token": "tok"}, {}),
        (ApiKeyHeader(header_name="X-Api-Key"), {"X-Api-Key": "tok"}, {}),
        (ApiKeyQuery(param_name="key"), {}, {"key": "tok"}),
        (BasicAuth(), {"Authorization": "Basic dXNlcjp0b2s="}, {}),
    ],
)
def test_strategies_attach_credential(strategy: object, headers: dict, params: dict) -> None:
    h: dict[str, str] = {}
    p: dict[str, str] = {}
    strategy.apply(h, p, Credential(value="tok", username="user"))  # type: ignore[attr-defined]
    assert h == headers
    assert p == params


def test_toolkit_parses_auth_from_dict() -> None:
    toolkit = Toolkit.model_validate({
        "id": "weather", "base_url": "https://weather.test", "auth": {"auth_type": "api_key_query", "param_name": "k"},
    })
    assert isinstance(toolkit.auth, ApiKeyQuery)
    assert toolkit.requires_credential
    assert not Toolkit(id="open", base_url="https://open.test").requires_credential


# ═════════════════════════════════════════════════════════════════════════════
# Static & callable resolvers
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_static_resolver_caller_and_fallback() -> None:
    resolver = StaticCredentialResolver({("github", "alice"): "alice_tok", ("github", "*"): "shared_tok"})
    assert (await resolver.resolve("github", "alice")).secret() == "alice_tok"
    assert (await resolver.resolve("github", "bob")).secret() == "shared_tok"
    with pytest.raises(NoCredentialError):
        await resolver.resolve("slack", "alice")


@pytest.mark.asyncio
async def test_static_resolver_expired() -> None:
    resolver = StaticCredentialResolver()
    resolver.set("github", Credential(value="old", expires_at=PAST), caller="alice")
    with pytest.raises(ExpiredCredentialError):
        await resolver.resolve("github", "alice")
    assert resolver.remove("github", caller="alice")


@pytest.mark.asyncio
async def test_callable_resolver_sync_and_async() -> None:
    def lookup(toolkit_id: str, caller: str) -> str | None:
        return f"{toolkit_id}:{caller}" if caller != "nobody" else None

    async def alookup(toolkit_id: str, caller: str) -> Credential:
        return Credential(value="async_tok")

    assert (await CallableResolver(lookup).resolve("gh", "alice")).secret() == "gh:alice"
    with pytest.raises(NoCredentialError):
        await CallableResolver(lookup).resolve("gh", "nobody")
    assert (await CallableResolver(alookup).resolve("gh", "alice")).secret() == "async_tok"


# ═════════════════════════════════════════════════════════════════════════════
# Caching resolver
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cache_reuses_credential() -> None:
    inner = MockResolver({"github": "tok"})
    cache = CachingResolver(inner, ttl=60)
    await cache.resolve("github", "alice")
    await cache.resolve("github", "alice")
    await cache.resolve("github", "bob")
    assert inner.calls == [("github", "alice"), ("github", "bob")]


@pytest.mark.asyncio
async def test_cache_is_single_flight() -> None:
    inner = MockResolver({"github": "tok"}, delay_ms=50)
    cache = CachingResolver(inner, ttl=60)
    results = await asyncio.gather(*(cache.resolve("github", "alice") for _ in range(10)))
    assert inner.call_count == 1
    assert {c.secret() for c in results} == {"tok"}


@pytest.mark.asyncio
async def test_cache_does_not_keep_failures() -> None:
    inner = MockResolver({})
    cache = CachingResolver(inner, ttl=60)
    with pytest.raises(NoCredentialError):
        await cache.resolve("github", "alice")
    inner.credentials["github"] = "tok"
    assert (await cache.resolve("github", "alice")).secret() == "tok"
    assert inner.call_count == 2


@pytest.mark.asyncio
async def test_cache_rejects_and_skips_expired() -> None:
    inner = MockResolver({"github": Credential(value="old", expires_at=PAST)})
    cache = CachingResolver(inner, ttl=60)
    with pytest.raises(ExpiredCredentialError):
        await cache.resolve("github", "alice")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_ttl_expiry() -> None:
    inner = MockResolver({"github": "tok"})
    cache = CachingResolver(inner, ttl=0.01)
    await cache.resolve("github", "alice")
    await asyncio.sleep(0.03)
    await cache.resolve("github", "alice")
    assert inner.call_count == 2


@pytest.mark.asyncio
async def test_cache_invalidate() -> None:
    inner = MockResolver({"github": "tok", "slack": "tok"})
    cache = CachingResolver(inner, ttl=60)
    for toolkit, caller in [("github", "alice"), ("github", "bob"), ("slack", "alice")]:
        await cache.resolve(toolkit, caller)
    assert cache.invalidate("github", "alice") == 1
    assert cache.invalidate("github") == 1
    assert len(cache) == 1
    await cache.resolve("github", "alice")
    assert inner.call_count == 4
