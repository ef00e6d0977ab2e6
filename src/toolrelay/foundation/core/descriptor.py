"""Tool descriptors, toolkits and remote endpoint templates.

A ToolDescriptor is the unit of registration: identity, LLM-facing
description, input/output schemas and how the tool executes. Execution is
either a local handler or a remote-proxy endpoint resolved against the owning
toolkit's base URL with the toolkit's credential attachment strategy.

Local tool:
    >>> add = local_tool(
    ...     "add_numbers", "Add two integers",
    ...     Schema.object({"a": Schema.integer(), "b": Schema.integer()}),
    ...     lambda data, ctx: data["a"] + data["b"],
    ...     output_schema=Schema.integer(),
    ... )

Remote tool:
    >>> github = Toolkit(id="github", base_url="https://api.github.com", auth=BearerAuth())
    >>> topics = github.remote_tool(
    ...     "get_repo_topics", "List a repository's topics",
    ...     Schema.object({"owner": Schema.string(), "repo": Schema.string()}),
    ...     "GET", "/repos/{owner}/{repo}/topics",
    ...     output_schema=Schema.object({"topics": Schema.array(Schema.string())}),
    ...     response_map={"topics": "names"},
    ... )
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from string import Formatter
from typing import Annotated, Any, Callable, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from toolrelay.foundation.auth import AuthStrategy, NoAuth
from toolrelay.foundation.schema import SchemaKind, SchemaNode

NO_TOOLKIT = "none"

TOOL_ID_PATTERN = r"^[A-Za-z][A-Za-z0-9_.-]*$"

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})

Handler = Callable[..., Any]


class ExecutionKind(StrEnum):
    LOCAL = "local"
    REMOTE_PROXY = "remote_proxy"


# ─────────────────────────────────────────────────────────────────────────────
# Execution variants
# ─────────────────────────────────────────────────────────────────────────────

class RemoteEndpoint(BaseModel):
    """HTTP endpoint template relative to a toolkit's base URL.

    Attributes:
        method: HTTP method
        path: Path template with ``{field}`` placeholders filled from input
        query_fields: Input fields sent as query parameters (default: all
            non-path fields for GET/DELETE/HEAD/OPTIONS)
        body_fields: Input fields sent in the JSON body (default: all
            non-path fields for POST/PUT/PATCH)
        headers: Static headers added to every call
        response_map: Output field -> dotted path into the response body
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    method: HttpMethod = "GET"
    path: Annotated[str, Field(min_length=1)]
    query_fields: tuple[str, ...] | None = None
    body_fields: tuple[str, ...] | None = None
    headers: dict[str, str] = Field(default_factory=dict, repr=False)
    response_map: dict[str, str] | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator("path")
    @classmethod
    def _check_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("endpoint path must start with '/'")
        for _, name, spec, conv in Formatter().parse(v):
            if name is not None and (not name.isidentifier() or spec or conv):
                raise ValueError(f"invalid path placeholder {{{name}}}: use plain {{field}} names")
        return v

    @computed_field
    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(name for _, name, _, _ in Formatter().parse(self.path) if name)

    @property
    def sends_body(self) -> bool:
        return self.method in BODY_METHODS


class LocalExecution(BaseModel):
    """Run an owned Python callable: ``handler(input, ctx)``, sync or async."""

    model_config = ConfigDict(frozen=True, extra="forbid")
    kind: Literal["local"] = "local"
    handler: Handler


class RemoteExecution(BaseModel):
    """Proxy the call to the toolkit's API."""

    model_config = ConfigDict(frozen=True, extra="forbid")
    kind: Literal["remote_proxy"] = "remote_proxy"
    endpoint: RemoteEndpoint


Execution = Annotated[LocalExecution | RemoteExecution, Field(discriminator="kind")]


# ─────────────────────────────────────────────────────────────────────────────
# Descriptor
# ─────────────────────────────────────────────────────────────────────────────

class ToolDescriptor(BaseModel):
    """Immutable registered definition of a tool."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: Annotated[str, Field(pattern=TOOL_ID_PATTERN)]
    description: Annotated[str, Field(min_length=1)]
    input_schema: SchemaNode
    execution: Execution
    toolkit_id: Annotated[str, Field(min_length=1)] = NO_TOOLKIT
    output_schema: SchemaNode | None = None
    tags: frozenset[str] = frozenset()

    @field_validator("input_schema")
    @classmethod
    def _object_input(cls, v: SchemaNode) -> SchemaNode:
        if v.kind is not SchemaKind.OBJECT:
            raise ValueError("input_schema must be an object schema")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Iterable[str]) -> frozenset[str]:
        return v if isinstance(v, frozenset) else frozenset(v or ())

    @model_validator(mode="after")
    def _check_remote(self) -> Self:
        if isinstance(self.execution, RemoteExecution):
            if self.toolkit_id == NO_TOOLKIT:
                raise ValueError("remote-proxy tools must belong to a toolkit")
            declared = self.input_schema.properties
            missing = [p for p in self.execution.endpoint.placeholders if p not in declared]
            if missing:
                raise ValueError(f"path placeholders {missing} are not declared in input_schema")
            optional = [p for p in self.execution.endpoint.placeholders if declared[p].optional]
            if optional:
                raise ValueError(f"path placeholders {optional} must be required fields in input_schema")
        return self

    @property
    def execution_kind(self) -> ExecutionKind:
        return ExecutionKind.LOCAL if isinstance(self.execution, LocalExecution) else ExecutionKind.REMOTE_PROXY

    @property
    def endpoint(self) -> RemoteEndpoint | None:
        return self.execution.endpoint if isinstance(self.execution, RemoteExecution) else None

    @property
    def handler(self) -> Handler | None:
        return self.execution.handler if isinstance(self.execution, LocalExecution) else None


# ─────────────────────────────────────────────────────────────────────────────
# Toolkit
# ─────────────────────────────────────────────────────────────────────────────

class Toolkit(BaseModel):
    """External service owning a group of tools and their managed authentication."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: Annotated[str, Field(pattern=TOOL_ID_PATTERN)]
    base_url: str
    auth: AuthStrategy = Field(default_factory=NoAuth)
    default_headers: dict[str, str] = Field(default_factory=dict, repr=False)
    description: str | None = None

    @field_validator("id")
    @classmethod
    def _reserved(cls, v: str) -> str:
        if v == NO_TOOLKIT:
            raise ValueError(f"'{NO_TOOLKIT}' is reserved for standalone tools")
        return v

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @property
    def requires_credential(self) -> bool:
        return self.auth.requires_credential

    def remote_tool(
        self,
        id: str,  # noqa: A002
        description: str,
        input_schema: SchemaNode,
        method: str,
        path: str,
        *,
        output_schema: SchemaNode | None = None,
        response_map: dict[str, str] | None = None,
        query_fields: Iterable[str] | None = None,
        body_fields: Iterable[str] | None = None,
        headers: dict[str, str] | None = None,
        tags: Iterable[str] = (),
    ) -> ToolDescriptor:
        """Build a remote-proxy descriptor owned by this toolkit."""
        endpoint = RemoteEndpoint(
            method=method,
            path=path,
            query_fields=tuple(query_fields) if query_fields is not None else None,
            body_fields=tuple(body_fields) if body_fields is not None else None,
            headers=headers or {},
            response_map=response_map,
        )
        return ToolDescriptor(
            id=id,
            description=description,
            input_schema=input_schema,
            output_schema=output_schema,
            execution=RemoteExecution(endpoint=endpoint),
            toolkit_id=self.id,
            tags=frozenset(tags),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Local tool helpers
# ─────────────────────────────────────────────────────────────────────────────

def local_tool(
    id: str,  # noqa: A002
    description: str,
    input_schema: SchemaNode,
    handler: Handler,
    *,
    toolkit_id: str = NO_TOOLKIT,
    output_schema: SchemaNode | None = None,
    tags: Iterable[str] = (),
) -> ToolDescriptor:
    """Build a descriptor for a locally executed handler."""
    return ToolDescriptor(
        id=id,
        description=description,
        input_schema=input_schema,
        output_schema=output_schema,
        execution=LocalExecution(handler=handler),
        toolkit_id=toolkit_id,
        tags=frozenset(tags),
    )


def tool(
    id: str,  # noqa: A002
    description: str,
    input_schema: SchemaNode,
    *,
    toolkit_id: str = NO_TOOLKIT,
    output_schema: SchemaNode | None = None,
    tags: Iterable[str] = (),
) -> Callable[[Handler], ToolDescriptor]:
    """Decorator turning a handler into a ToolDescriptor with an explicit schema.

    Example:
        >>> @tool("echo", "Echo the message back", Schema.object({"msg": Schema.string()}))
        ... def echo(data: dict, ctx: ExecutionContext) -> str:
        ...     return data["msg"]
        >>> echo.execution_kind
        <ExecutionKind.LOCAL: 'local'>
    """
    def decorator(fn: Handler) -> ToolDescriptor:
        return local_tool(id, description, input_schema, fn, toolkit_id=toolkit_id,
                          output_schema=output_schema, tags=tags)
    return decorator
