"""Uniform success/error envelope returned from every invocation.

Whatever happens inside a tool call, the caller receives a ResultEnvelope:
exactly one of ``data`` / ``error`` is meaningful and ``successful`` says
which. Error messages are sanitized before they reach the envelope so stack
traces, diagnostic dumps and known secrets never leak to the agent runtime.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any, Self

import orjson
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .errors import ErrorKind, InvalidInputError, ToolrelayError, classify_exception
from .validation import Violation

DEFAULT_MESSAGE_LIMIT = 300

_TRACEBACK_MARKER = "Traceback (most recent call last)"
_WHITESPACE = re.compile(r"\s+")
_FILE_FRAME = re.compile(r'File "[^"]+", line \d+')


def sanitize_message(
    message: str,
    *,
    secrets: Iterable[str] = (),
    limit: int = DEFAULT_MESSAGE_LIMIT,
) -> str:
    """Reduce a raw error message to one short, externally safe line.

    Drops everything from a traceback marker on, keeps the first non-empty
    line, strips file/line frame references, redacts secrets and truncates.
    """
    text = message.split(_TRACEBACK_MARKER, 1)[0]
    first = next((line for line in text.splitlines() if line.strip()), "")
    first = _WHITESPACE.sub(" ", _FILE_FRAME.sub("", first)).strip()
    for secret in secrets:
        if secret:
            first = first.replace(secret, "***")
    if len(first) > limit:
        first = first[: max(limit - 3, 0)].rstrip() + "..."
    return first or "Unknown error"


class ErrorInfo(BaseModel):
    """Externally visible error detail: a kind from the fixed taxonomy and a short message."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    kind: ErrorKind
    message: str = Field(..., min_length=1)
    violations: tuple[Violation, ...] = ()

    @computed_field
    @property
    def recoverable(self) -> bool:
        return self.kind.recoverable

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ResultEnvelope(BaseModel):
    """The invocation result handed back to agent frameworks.

    Invariant: ``successful`` implies ``error is None``; not ``successful``
    implies ``data is None`` and ``error`` is set.

    Example:
        >>> ResultEnvelope.ok(5).model_dump(exclude_none=True)
        {'successful': True, 'data': 5}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    successful: bool
    data: Any = None
    error: ErrorInfo | None = None
    tool_id: str | None = Field(default=None, repr=False)
    duration_ms: float | None = Field(default=None, ge=0, repr=False)

    @model_validator(mode="after")
    def _check_exclusive(self) -> Self:
        if self.successful and self.error is not None:
            raise ValueError("successful envelope cannot carry an error")
        if not self.successful:
            if self.error is None:
                raise ValueError("failed envelope requires an error")
            if self.data is not None:
                raise ValueError("failed envelope cannot carry data")
        return self

    @field_validator("duration_ms", mode="before")
    @classmethod
    def _round_duration(cls, v: float | None) -> float | None:
        return round(v, 3) if isinstance(v, float) else v

    # ─────────────────────────────────────────────────────────────────
    # Construction
    # ─────────────────────────────────────────────────────────────────

    @classmethod
    def ok(cls, data: Any = None, *, tool_id: str | None = None, duration_ms: float | None = None) -> Self:
        return cls(successful=True, data=data, tool_id=tool_id, duration_ms=duration_ms)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        violations: tuple[Violation, ...] = (),
        tool_id: str | None = None,
        duration_ms: float | None = None,
    ) -> Self:
        info = ErrorInfo(kind=kind, message=message or "Unknown error", violations=violations)
        return cls(successful=False, error=info, tool_id=tool_id, duration_ms=duration_ms)

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        *,
        tool_id: str | None = None,
        secrets: Iterable[str] = (),
        limit: int = DEFAULT_MESSAGE_LIMIT,
        duration_ms: float | None = None,
    ) -> Self:
        """Convert any exception into a failed envelope with a sanitized message.

        Core errors keep their own message; foreign exceptions are prefixed
        with their type name so the caller still sees what went wrong.
        """
        kind = classify_exception(exc)
        raw = exc.message if isinstance(exc, ToolrelayError) else f"{type(exc).__name__}: {exc}"
        violations = exc.violations if isinstance(exc, InvalidInputError) else ()
        return cls.fail(
            kind,
            sanitize_message(raw, secrets=secrets, limit=limit),
            violations=violations,
            tool_id=tool_id,
            duration_ms=duration_ms,
        )

    # ─────────────────────────────────────────────────────────────────
    # Access & serialization
    # ─────────────────────────────────────────────────────────────────

    @property
    def kind(self) -> ErrorKind | None:
        """Error kind of a failed envelope, None on success."""
        return self.error.kind if self.error else None

    def unwrap(self) -> Any:
        """Return data, or raise RuntimeError describing the error."""
        if self.successful:
            return self.data
        raise RuntimeError(f"unwrap() on failed envelope: {self.error}")

    def to_dict(self, *, include_meta: bool = False) -> dict[str, Any]:
        """Plain dict with unset members omitted."""
        exclude = None if include_meta else {"tool_id", "duration_ms"}
        return self.model_dump(mode="json", exclude_none=True, exclude=exclude)

    def to_json(self, *, include_meta: bool = False) -> str:
        return orjson.dumps(self.to_dict(include_meta=include_meta)).decode()
