"""Result type for operations that fail without raising.

A trimmed Ok/Err union: validation and the dispatch pipeline thread their
intermediate outcomes through it instead of raising across stages.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")

_OK = True
_ERR = False


class Result(Generic[T, E]):
    """Success (Ok) or failure (Err).

    Examples:
        >>> Ok(2).map(lambda x: x + 3).unwrap()
        5
        >>> Err("bad").map(lambda x: x + 3).unwrap_err()
        'bad'
    """

    __slots__ = ("_value", "_is_ok")
    __match_args__ = ("_value",)

    def __init__(self, value: T | E, is_ok: bool) -> None:
        self._value = value
        self._is_ok = is_ok

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    def unwrap(self) -> T:
        """Extract Ok value. Raises RuntimeError on Err."""
        if self._is_ok:
            return self._value  # type: ignore[return-value]
        raise RuntimeError(f"unwrap() on Err: {self._value}")

    def unwrap_err(self) -> E:
        """Extract Err value. Raises RuntimeError on Ok."""
        if not self._is_ok:
            return self._value  # type: ignore[return-value]
        raise RuntimeError(f"unwrap_err() on Ok: {self._value}")

    def unwrap_or(self, default: T) -> T:
        return self._value if self._is_ok else default  # type: ignore[return-value]

    def ok(self) -> T | None:
        return self._value if self._is_ok else None  # type: ignore[return-value]

    def err(self) -> E | None:
        return None if self._is_ok else self._value  # type: ignore[return-value]

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        return Result(f(self._value), _OK) if self._is_ok else Result(self._value, _ERR)  # type: ignore[arg-type]

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Chain a fallible step; short-circuits on Err."""
        return f(self._value) if self._is_ok else Result(self._value, _ERR)  # type: ignore[arg-type]

    def match(self, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        return ok(self._value) if self._is_ok else err(self._value)  # type: ignore[arg-type]

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Result) and self._is_ok == other._is_ok and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._is_ok, self._value))

    def __repr__(self) -> str:
        return f"Ok({self._value!r})" if self._is_ok else f"Err({self._value!r})"

    def __bool__(self) -> bool:
        return self._is_ok


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    """Construct the success variant."""
    return Result(value, _OK)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    """Construct the failure variant."""
    return Result(error, _ERR)
