"""Schema model: declare tool input/output shapes and validate values against them."""

from .json_schema import to_json_schema
from .node import Schema, SchemaKind, SchemaNode, matches_kind
from .validate import ROOT, validate

__all__ = [
    "Schema",
    "SchemaKind",
    "SchemaNode",
    "matches_kind",
    "validate",
    "ROOT",
    "to_json_schema",
]
