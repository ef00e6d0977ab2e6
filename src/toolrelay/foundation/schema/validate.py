"""Structural validation of raw values against SchemaNode trees.

Validation is pure and recursive. It never stops at the first problem: every
violated path is collected so callers get actionable diagnostics in one pass.
Undeclared object keys pass through untouched unless the object schema sets
``allow_extra=False``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from toolrelay.foundation.errors import Err, Ok, Result, ValidationFailure, Violation

from .node import SchemaNode, matches_kind

ROOT = "$"


def validate(schema: SchemaNode, raw: object) -> Result[Any, ValidationFailure]:
    """Validate ``raw`` against ``schema``.

    Returns Ok with the validated value (objects are shallow copies with
    defaults filled in) or Err with every violation found.

    Example:
        >>> s = Schema.object({"a": Schema.integer(), "b": Schema.integer()})
        >>> validate(s, {"a": 2, "b": 3}).unwrap()
        {'a': 2, 'b': 3}
        >>> validate(s, {"a": "x"}).unwrap_err().paths
        ('a', 'b')
    """
    out: list[Violation] = []
    value = _check(schema, raw, ROOT, out)
    return Err(ValidationFailure(violations=tuple(out))) if out else Ok(value)


def _child(path: str, name: str) -> str:
    return name if path == ROOT else f"{path}.{name}"


def _type_name(value: object) -> str:
    match value:
        case None: return "null"
        case bool(): return "boolean"
        case int(): return "integer"
        case float(): return "number"
        case str(): return "string"
        case Mapping(): return "object"
        case list() | tuple(): return "array"
        case _: return type(value).__name__


def _check(node: SchemaNode, value: object, path: str, out: list[Violation]) -> Any:
    if value is None:
        if not node.optional:
            out.append(Violation(path=path, message="value is required", expected=node.kind.value))
        return None

    if not matches_kind(node.kind, value):
        out.append(Violation(path=path, message=f"expected {node.kind}, got {_type_name(value)}", expected=node.kind.value))
        return value

    if node.enum is not None and value not in node.enum:
        allowed = ", ".join(repr(v) for v in node.enum)
        out.append(Violation(path=path, message=f"{value!r} is not one of {allowed}", expected=node.kind.value))
        return value

    if isinstance(value, Mapping):
        return _check_object(node, value, path, out)
    if node.items is not None and isinstance(value, (list, tuple)):
        return [_check(node.items, item, f"{path}[{i}]", out) for i, item in enumerate(value)]
    return value


def _check_object(node: SchemaNode, value: Mapping[Any, Any], path: str, out: list[Violation]) -> dict[str, Any]:
    result: dict[str, Any] = dict(value)

    if not node.allow_extra:
        for key in value:
            if key not in node.properties:
                out.append(Violation(path=_child(path, str(key)), message="unexpected field"))

    for name, field in node.properties.items():
        child_path = _child(path, name)
        if name not in value and not field.optional:
            out.append(Violation(path=child_path, message="required field missing", expected=field.kind.value))
            continue
        # Absent and null optional fields both take the default
        if value.get(name) is None and field.optional:
            if field.default is not None:
                result[name] = field.default
            continue
        result[name] = _check(field, value[name], child_path, out)

    return result
