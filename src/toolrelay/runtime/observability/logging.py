"""Structured logging for registration and dispatch.

Immutable bound loggers carry key/value context; renderers decide the output
format (human-readable console lines for development, JSON lines for log
aggregation). Secrets never go through here: log tool ids, kinds and
durations, not inputs or credentials.

Quick Start:
    >>> from toolrelay.runtime.observability import configure_logging, get_logger
    >>> configure_logging(format="console", level="DEBUG")
    >>> log = get_logger("dispatch").bind(tool="add_numbers")
    >>> log.info("invocation finished", state="succeeded", duration_ms=0.4)
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, TextIO, runtime_checkable

import orjson

if TYPE_CHECKING:
    from types import TracebackType

    from toolrelay.foundation.config import LoggingSettings

LogDict = dict[str, Any]

# Scoped context merged into every entry (persists across awaits)
_log_context: ContextVar[LogDict] = ContextVar("toolrelay_log_context", default={})


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: LogDict

    @property
    def ts_iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def ts_human(self) -> str:
        """HH:MM:SS.mmm"""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class BoundLogger:
    """Logger with bound context. bind() returns a new logger; the original is unchanged.

    Example:
        >>> log = BoundLogger(context={"component": "registry"})
        >>> log.info("tool registered", tool="add_numbers")
        # => 10:30:45.120 [info] tool registered component="registry" tool="add_numbers"
    """

    context: LogDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int | None = None

    def bind(self, **kw: Any) -> BoundLogger:
        return BoundLogger(context={**self.context, **kw}, _renderer=self._renderer, _level=self._level)

    def unbind(self, *keys: str) -> BoundLogger:
        return BoundLogger(context={k: v for k, v in self.context.items() if k not in keys},
                           _renderer=self._renderer, _level=self._level)

    def _log(self, level: int, event: str, **kw: Any) -> None:
        if level < (self._level if self._level is not None else _config.level):
            return
        merged = {**_log_context.get(), **self.context, **kw}
        (self._renderer or _config.renderer).render(LogEntry(time.time(), _level_name(level), event, merged))

    def debug(self, event: str, **kw: Any) -> None: self._log(logging.DEBUG, event, **kw)
    def info(self, event: str, **kw: Any) -> None: self._log(logging.INFO, event, **kw)
    def warning(self, event: str, **kw: Any) -> None: self._log(logging.WARNING, event, **kw)
    def error(self, event: str, **kw: Any) -> None: self._log(logging.ERROR, event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the current traceback attached."""
        import traceback
        self._log(logging.ERROR, event, exc_info=traceback.format_exc(), **kw)


class log_context:  # noqa: N801
    """Add key/value pairs to every entry logged inside the scope.

    Example:
        >>> with log_context(session="abc123"):
        ...     await dispatcher.invoke("add_numbers", {"a": 1, "b": 2})
    """

    __slots__ = ("_ctx", "_token")

    def __init__(self, **kw: Any) -> None:
        self._ctx: LogDict = dict(kw)
        self._token: object | None = None

    def __enter__(self) -> log_context:
        self._token = _log_context.set({**_log_context.get(), **self._ctx})
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        if self._token is not None:
            _log_context.reset(self._token)  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class ConsoleRenderer:
    """Human-readable output: ``timestamp [level] event key=value ...``"""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None  # None = auto-detect

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = getattr(self.output, "isatty", lambda: False)()

    def render(self, entry: LogEntry) -> None:
        c = _COLORS if self.colors else _NO_COLORS
        parts = [f"{c['dim']}{entry.ts_human}{c['reset']}",
                 f"{_LEVEL_COLORS.get(entry.level, '') if self.colors else ''}[{entry.level}]{c['reset']}",
                 f"{c['bold']}{entry.event}{c['reset']}"]
        parts += [f"{c['cyan']}{k}{c['reset']}={_format_value(v)}"
                  for k, v in sorted(entry.context.items()) if k != "exc_info"]
        print(" ".join(parts), file=self.output)
        if "exc_info" in entry.context:
            print(f"{c['red']}{entry.context['exc_info']}{c['reset']}", file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines for log aggregation."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        line = orjson.dumps(
            {"timestamp": entry.ts_iso, "level": entry.level, "event": entry.event, **entry.context},
            option=orjson.OPT_NON_STR_KEYS,
            default=str,
        )
        print(line.decode(), file=self.output)


@dataclass(slots=True)
class NoOpRenderer:
    """Silent renderer."""

    def render(self, entry: LogEntry) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class _LogConfig:
    renderer: LogRenderer = field(default_factory=ConsoleRenderer)
    level: int = logging.INFO


_config = _LogConfig()


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Configure process-wide rendering. Format: "console", "json" or "none"."""
    match format:
        case "console": renderer: LogRenderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
        case "json": renderer = JsonRenderer(output=output or sys.stdout)
        case "none": renderer = NoOpRenderer()
        case _: raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    _config.renderer = renderer
    _config.level = getattr(logging, level.upper(), logging.INFO)
    return renderer


def configure_from_settings(settings: LoggingSettings) -> LogRenderer:
    return configure_logging(format=settings.format, level=settings.level)


def set_renderer(renderer: LogRenderer) -> None:
    """Install a custom renderer (tests capture entries this way)."""
    _config.renderer = renderer


def get_logger(name: str | None = None, **initial_context: Any) -> BoundLogger:
    """Get a logger; ``name`` is bound as ``logger``."""
    ctx = {**({"logger": name} if name else {}), **initial_context}
    return BoundLogger(context=ctx)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

_COLORS = {"reset": "\033[0m", "bold": "\033[1m", "dim": "\033[2m", "red": "\033[31m",
           "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m"}
_NO_COLORS = {k: "" for k in _COLORS}
_LEVEL_COLORS = {"debug": _COLORS["dim"], "info": _COLORS["green"], "warning": _COLORS["yellow"],
                 "error": _COLORS["red"], "critical": _COLORS["red"]}


def _level_name(level: int) -> str:
    return logging.getLevelName(level).lower()


def _format_value(v: object) -> str:
    match v:
        case str(): return f'"{v}"'
        case bool(): return str(v).lower()
        case int() | float(): return str(v)
        case dict(): return f"{{{len(v)} items}}"
        case list() | tuple(): return f"[{len(v)} items]"
        case _: return repr(v)
