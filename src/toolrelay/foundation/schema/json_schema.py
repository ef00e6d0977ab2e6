"""JSON Schema export for LLM-facing tool declarations."""

from __future__ import annotations

from typing import Any

from .node import SchemaKind, SchemaNode


def to_json_schema(node: SchemaNode) -> dict[str, Any]:
    """Render a SchemaNode as a JSON Schema (2020-12 subset) dict.

    Example:
        >>> to_json_schema(Schema.object({"q": Schema.string("Query")}))
        {'type': 'object', 'properties': {'q': {'type': 'string', 'description': 'Query'}}, 'required': ['q']}
    """
    out: dict[str, Any] = {"type": node.kind.value}
    if node.description:
        out["description"] = node.description
    if node.enum is not None:
        out["enum"] = list(node.enum)
    if node.default is not None:
        out["default"] = node.default

    if node.kind is SchemaKind.OBJECT:
        out["properties"] = {name: to_json_schema(child) for name, child in node.properties.items()}
        if required := list(node.required_fields):
            out["required"] = required
        if not node.allow_extra:
            out["additionalProperties"] = False
    elif node.kind is SchemaKind.ARRAY and node.items is not None:
        out["items"] = to_json_schema(node.items)
    return out
