"""Violation records produced by schema validation."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Violation(BaseModel):
    """One violated constraint at one path of the validated value.

    Paths use ``$`` for the root, dots for object fields and ``[i]`` for
    array elements: ``$``, ``owner``, ``labels[2].name``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    expected: str | None = None

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class ValidationFailure(BaseModel):
    """All violations found in a single validation pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    violations: tuple[Violation, ...]

    @computed_field
    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(v.path for v in self.violations)

    def summary(self, limit: int = 5) -> str:
        """Short one-line description suitable for ``error.message``."""
        shown = "; ".join(str(v) for v in self.violations[:limit])
        more = len(self.violations) - limit
        return f"{shown} (+{more} more)" if more > 0 else shown

    def __len__(self) -> int:
        return len(self.violations)

    __str__ = summary
