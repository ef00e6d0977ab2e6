"""Shared fixtures: sample tools, toolkits, fake APIs and log capture."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from toolrelay.foundation.auth import BearerAuth
from toolrelay.foundation.config import CredentialSettings, ToolrelaySettings, clear_settings_cache
from toolrelay.foundation.core import ToolDescriptor, Toolkit, local_tool
from toolrelay.foundation.registry import ToolRegistry, reset_registry
from toolrelay.foundation.schema import Schema
from toolrelay.foundation.testing import LogCapture, MockAPI, MockResolver, MockResponse
from toolrelay.runtime.observability import NoOpRenderer, set_renderer


@pytest.fixture(autouse=True)
def isolated_state() -> Iterator[None]:
    """Fresh settings, registry and silent logging for each test."""
    clear_settings_cache()
    reset_registry()
    set_renderer(NoOpRenderer())
    yield
    reset_registry()
    clear_settings_cache()


@pytest.fixture
def log_capture() -> LogCapture:
    capture = LogCapture()
    set_renderer(capture)
    return capture


@pytest.fixture
def settings() -> ToolrelaySettings:
    """Settings with credential caching off so resolver call counts are exact."""
    return ToolrelaySettings(credentials=CredentialSettings(cache_enabled=False))


# ─────────────────────────────────────────────────────────────────────────────
# Sample tools
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def add_numbers() -> ToolDescriptor:
    return local_tool(
        "add_numbers",
        "Add two integers",
        Schema.object({"a": Schema.integer("Left operand"), "b": Schema.integer("Right operand")}),
        lambda data, ctx: data["a"] + data["b"],
        output_schema=Schema.integer(),
        tags={"math"},
    )


@pytest.fixture
def github() -> Toolkit:
    return Toolkit(id="github", base_url="https://api.github.test/", auth=BearerAuth())


@pytest.fixture
def get_repo_topics(github: Toolkit) -> ToolDescriptor:
    return github.remote_tool(
        "get_repo_topics",
        "List a repository's topics",
        Schema.object({"owner": Schema.string(), "repo": Schema.string()}),
        "GET",
        "/repos/{owner}/{repo}/topics",
        output_schema=Schema.object({"topics": Schema.array(Schema.string())}),
        response_map={"topics": "names"},
        tags={"vcs"},
    )


@pytest.fixture
def registry(add_numbers: ToolDescriptor, github: Toolkit, get_repo_topics: ToolDescriptor) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register_toolkit(github)
    reg.register_all(add_numbers, get_repo_topics)
    return reg


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_api() -> MockAPI:
    return MockAPI(responses={"GET /repos/*/topics": {"names": ["python", "http"]}})


@pytest.fixture
def mock_api_with_errors() -> MockAPI:
    api = MockAPI(default_status=500)
    api.set_error("*", status=500, message="Service unavailable")
    return api


@pytest.fixture
def mock_api_slow() -> MockAPI:
    return MockAPI(responses={"*": MockResponse(data={"names": []}, delay_ms=500)})


@pytest.fixture
def resolver() -> MockResolver:
    return MockResolver({"github": "ghp_secret_token"})
