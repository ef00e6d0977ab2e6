"""Schema nodes describing tool input and output shapes.

A SchemaNode is a small, immutable semantic type: a primitive (integer,
number, string, boolean) or a composite (object with named fields, array of
one element type). Tools declare their schemas explicitly with the Schema
builder rather than through signature introspection.

Example:
    >>> add_input = Schema.object({
    ...     "a": Schema.integer(description="Left operand"),
    ...     "b": Schema.integer(description="Right operand"),
    ... })
    >>> add_input.required_fields
    ('a', 'b')
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SchemaKind(StrEnum):
    INTEGER = "integer"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"

    @property
    def is_primitive(self) -> bool:
        return self not in (SchemaKind.OBJECT, SchemaKind.ARRAY)


def matches_kind(kind: SchemaKind, value: object) -> bool:
    """Strict type check. Booleans are never numbers; integers count as numbers."""
    match kind:
        case SchemaKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        case SchemaKind.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        case SchemaKind.STRING:
            return isinstance(value, str)
        case SchemaKind.BOOLEAN:
            return isinstance(value, bool)
        case SchemaKind.OBJECT:
            return isinstance(value, Mapping)
        case SchemaKind.ARRAY:
            return isinstance(value, (list, tuple))
    return False


class SchemaNode(BaseModel):
    """Immutable type descriptor for one value in a tool's input or output.

    Attributes:
        kind: Primitive or composite kind
        description: Human-readable text shown to the LLM
        optional: Whether the value may be absent (or None)
        default: Value filled in when an optional field is absent or null
        enum: Allowed values for primitive kinds
        properties: Named fields (object kind only)
        items: Element schema (array kind only)
        allow_extra: Whether undeclared object keys pass through (default) or are rejected
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: SchemaKind
    description: str | None = None
    optional: bool = False
    default: Any = None
    enum: tuple[Any, ...] | None = None
    properties: dict[str, SchemaNode] = Field(default_factory=dict)
    items: SchemaNode | None = None
    allow_extra: bool = True

    @model_validator(mode="after")
    def _check_shape(self) -> Self:
        if self.kind is SchemaKind.ARRAY and self.items is None:
            raise ValueError("array schema requires 'items'")
        if self.kind is not SchemaKind.ARRAY and self.items is not None:
            raise ValueError(f"{self.kind} schema cannot declare 'items'")
        if self.kind is not SchemaKind.OBJECT and self.properties:
            raise ValueError(f"{self.kind} schema cannot declare 'properties'")
        if self.enum is not None:
            if not self.kind.is_primitive:
                raise ValueError("'enum' is only allowed on primitive schemas")
            if not self.enum:
                raise ValueError("'enum' must list at least one value")
            if bad := [v for v in self.enum if not matches_kind(self.kind, v)]:
                raise ValueError(f"enum values {bad!r} do not match kind {self.kind}")
        if self.default is not None and not matches_kind(self.kind, self.default):
            raise ValueError(f"default {self.default!r} does not match kind {self.kind}")
        return self

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(name for name, node in self.properties.items() if not node.optional)

    def depth(self) -> int:
        """Nesting depth; a primitive is 1."""
        children = [*self.properties.values(), *([self.items] if self.items else [])]
        return 1 + max((c.depth() for c in children), default=0)


class Schema:
    """Builder for SchemaNode trees."""

    @staticmethod
    def integer(description: str | None = None, *, optional: bool = False,
                default: int | None = None, enum: tuple[int, ...] | None = None) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.INTEGER, description=description, optional=optional, default=default, enum=enum)

    @staticmethod
    def number(description: str | None = None, *, optional: bool = False,
               default: float | None = None, enum: tuple[float, ...] | None = None) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.NUMBER, description=description, optional=optional, default=default, enum=enum)

    @staticmethod
    def string(description: str | None = None, *, optional: bool = False,
               default: str | None = None, enum: tuple[str, ...] | None = None) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.STRING, description=description, optional=optional, default=default, enum=enum)

    @staticmethod
    def boolean(description: str | None = None, *, optional: bool = False,
                default: bool | None = None) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.BOOLEAN, description=description, optional=optional, default=default)

    @staticmethod
    def array(items: SchemaNode, description: str | None = None, *, optional: bool = False) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.ARRAY, items=items, description=description, optional=optional)

    @staticmethod
    def object(properties: dict[str, SchemaNode] | None = None, description: str | None = None, *,
               optional: bool = False, allow_extra: bool = True) -> SchemaNode:
        return SchemaNode(kind=SchemaKind.OBJECT, properties=properties or {}, description=description,
                          optional=optional, allow_extra=allow_extra)
