"""Authoritative catalog of tool descriptors and their toolkits.

The registry provides:
- Tool and toolkit registration with a fixed duplicate policy
- Lookup by id and filtered, registration-ordered listing
- Formatted descriptions for LLM prompts

Concurrency: writers serialize on a lock and publish a fresh immutable
snapshot; readers grab the current snapshot reference without locking, so a
lookup never sees a half-applied registration.
"""

from __future__ import annotations

import threading
from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from toolrelay.foundation.config import DuplicatePolicy, get_settings
from toolrelay.foundation.core import NO_TOOLKIT, ExecutionKind, ToolDescriptor, Toolkit
from toolrelay.foundation.errors import DuplicateToolError, ToolNotFoundError, ToolRegistrationError
from toolrelay.runtime.observability import get_logger

log = get_logger("toolrelay.registry")

_EMPTY: Mapping[str, object] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """Point-in-time, read-only view of the catalog."""

    tools: Mapping[str, ToolDescriptor]
    toolkits: Mapping[str, Toolkit]

    def resolve(self, tool_id: str) -> tuple[ToolDescriptor, Toolkit | None]:
        """Descriptor and owning toolkit from one consistent view."""
        if (descriptor := self.tools.get(tool_id)) is None:
            raise ToolNotFoundError(tool_id)
        return descriptor, self.toolkits.get(descriptor.toolkit_id)


class ToolRegistry:
    """Catalog mapping unique tool ids to descriptors.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register_toolkit(github)
        >>> registry.register(add_numbers)
        >>> registry.register(get_repo_topics)
        >>> [t.id for t in registry.list(toolkit_ids={"github"})]
        ['get_repo_topics']
    """

    __slots__ = ("_snapshot", "_lock", "_on_duplicate", "_max_depth")

    def __init__(
        self,
        *,
        on_duplicate: DuplicatePolicy | None = None,
        max_schema_depth: int | None = None,
    ) -> None:
        settings = get_settings().registry
        self._on_duplicate: DuplicatePolicy = on_duplicate or settings.on_duplicate
        self._max_depth = max_schema_depth or settings.max_schema_depth
        self._lock = threading.Lock()
        self._snapshot = RegistrySnapshot(tools=_EMPTY, toolkits=_EMPTY)  # type: ignore[arg-type]

    @property
    def on_duplicate(self) -> DuplicatePolicy:
        return self._on_duplicate

    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    # ─────────────────────────────────────────────────────────────────
    # Toolkits
    # ─────────────────────────────────────────────────────────────────

    def register_toolkit(self, toolkit: Toolkit) -> None:
        """Register the service a group of remote tools proxies to."""
        if not isinstance(toolkit, Toolkit):
            raise TypeError(f"expected Toolkit, got {type(toolkit).__name__}")
        with self._lock:
            snap = self._snapshot
            if toolkit.id in snap.toolkits and self._on_duplicate == "reject":
                raise ToolRegistrationError(f"Toolkit '{toolkit.id}' already registered")
            toolkits = {**snap.toolkits, toolkit.id: toolkit}
            self._snapshot = RegistrySnapshot(tools=snap.tools, toolkits=MappingProxyType(toolkits))
        log.debug("toolkit registered", toolkit=toolkit.id, auth=toolkit.auth.auth_type)

    def unregister_toolkit(self, toolkit_id: str) -> bool:
        """Remove a toolkit. Refused while remote tools still depend on it."""
        with self._lock:
            snap = self._snapshot
            if toolkit_id not in snap.toolkits:
                return False
            dependents = [t.id for t in snap.tools.values()
                          if t.toolkit_id == toolkit_id and t.execution_kind is ExecutionKind.REMOTE_PROXY]
            if dependents:
                raise ToolRegistrationError(f"Toolkit '{toolkit_id}' is still used by {dependents}")
            toolkits = {k: v for k, v in snap.toolkits.items() if k != toolkit_id}
            self._snapshot = RegistrySnapshot(tools=snap.tools, toolkits=MappingProxyType(toolkits))
        return True

    def get_toolkit(self, toolkit_id: str) -> Toolkit | None:
        return self._snapshot.toolkits.get(toolkit_id)

    def toolkits(self) -> list[Toolkit]:
        return list(self._snapshot.toolkits.values())

    # ─────────────────────────────────────────────────────────────────
    # Tools
    # ─────────────────────────────────────────────────────────────────

    def register(self, descriptor: ToolDescriptor) -> None:
        """Register a descriptor.

        Raises:
            DuplicateToolError: id already taken and the policy is "reject"
            ToolRegistrationError: remote tool names an unknown toolkit, or a
                schema exceeds the maximum depth
        """
        if not isinstance(descriptor, ToolDescriptor):
            raise TypeError(f"expected ToolDescriptor, got {type(descriptor).__name__}")
        self._check_depth(descriptor)

        with self._lock:
            snap = self._snapshot
            if descriptor.execution_kind is ExecutionKind.REMOTE_PROXY and descriptor.toolkit_id not in snap.toolkits:
                raise ToolRegistrationError(
                    f"Tool '{descriptor.id}' proxies to unknown toolkit '{descriptor.toolkit_id}'",
                    tool_id=descriptor.id,
                )
            replaced = descriptor.id in snap.tools
            if replaced and self._on_duplicate == "reject":
                raise DuplicateToolError(descriptor.id)
            # Assigning into a copy keeps a replaced id in its original slot
            tools = dict(snap.tools)
            tools[descriptor.id] = descriptor
            self._snapshot = RegistrySnapshot(tools=MappingProxyType(tools), toolkits=snap.toolkits)

        log.debug("tool registered", tool=descriptor.id, toolkit=descriptor.toolkit_id,
                  kind=descriptor.execution_kind.value, replaced=replaced)

    def register_all(self, *descriptors: ToolDescriptor) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def unregister(self, tool_id: str) -> bool:
        """Remove a tool by id. Returns True if it was registered."""
        with self._lock:
            snap = self._snapshot
            if tool_id not in snap.tools:
                return False
            tools = {k: v for k, v in snap.tools.items() if k != tool_id}
            self._snapshot = RegistrySnapshot(tools=MappingProxyType(tools), toolkits=snap.toolkits)
        log.debug("tool unregistered", tool=tool_id)
        return True

    def clear(self) -> None:
        """Remove all tools and toolkits."""
        with self._lock:
            self._snapshot = RegistrySnapshot(tools=_EMPTY, toolkits=_EMPTY)  # type: ignore[arg-type]

    def lookup(self, tool_id: str) -> ToolDescriptor:
        """Get a descriptor, raising ToolNotFoundError if absent."""
        if (descriptor := self._snapshot.tools.get(tool_id)) is None:
            raise ToolNotFoundError(tool_id)
        return descriptor

    def get(self, tool_id: str) -> ToolDescriptor | None:
        return self._snapshot.tools.get(tool_id)

    def __getitem__(self, tool_id: str) -> ToolDescriptor:
        return self.lookup(tool_id)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._snapshot.tools

    def __len__(self) -> int:
        return len(self._snapshot.tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._snapshot.tools.values()))

    # ─────────────────────────────────────────────────────────────────
    # Querying
    # ─────────────────────────────────────────────────────────────────

    def list(
        self,
        *,
        toolkit_ids: Collection[str] | None = None,
        tags: Collection[str] | None = None,
        ids: Collection[str] | None = None,
    ) -> list[ToolDescriptor]:
        """Descriptors in registration order, filtered.

        Filters combine with AND. A tool passes ``tags`` when it carries any
        of the requested tags. ``None`` means "no filter"; an empty
        collection matches nothing.
        """
        toolkit_set = set(toolkit_ids) if toolkit_ids is not None else None
        tag_set = set(tags) if tags is not None else None
        id_set = set(ids) if ids is not None else None
        return [
            t for t in self._snapshot.tools.values()
            if (toolkit_set is None or t.toolkit_id in toolkit_set)
            and (tag_set is None or not tag_set.isdisjoint(t.tags))
            and (id_set is None or t.id in id_set)
        ]

    def toolkit_ids(self) -> set[str]:
        """Toolkit ids referenced by registered tools (including "none")."""
        return {t.toolkit_id for t in self._snapshot.tools.values()}

    def describe(self, **filters: Collection[str] | None) -> str:
        """Markdown bullet list of tools for prompts."""
        lines = []
        for t in self.list(**filters):
            owner = "" if t.toolkit_id == NO_TOOLKIT else f" ({t.toolkit_id})"
            flag = " 🌐" if t.execution_kind is ExecutionKind.REMOTE_PROXY else ""
            lines.append(f"- **{t.id}**{owner}{flag}: {t.description}")
        return "\n".join(lines + (["\n_🌐 = calls an external API_"] if any("🌐" in ln for ln in lines) else []))

    # ─────────────────────────────────────────────────────────────────
    # Internal
    # ─────────────────────────────────────────────────────────────────

    def _check_depth(self, descriptor: ToolDescriptor) -> None:
        for label, schema in (("input", descriptor.input_schema), ("output", descriptor.output_schema)):
            if schema is not None and (depth := schema.depth()) > self._max_depth:
                raise ToolRegistrationError(
                    f"Tool '{descriptor.id}' {label} schema depth {depth} exceeds {self._max_depth}",
                    tool_id=descriptor.id,
                )


# ─────────────────────────────────────────────────────────────────────────────
# Process-wide registry
# ─────────────────────────────────────────────────────────────────────────────

_registry: ToolRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> ToolRegistry:
    """Get the shared registry, creating it on first use."""
    global _registry
    with _registry_lock:
        return _registry if _registry is not None else (_registry := ToolRegistry())


def set_registry(registry: ToolRegistry) -> None:
    """Replace the shared registry."""
    global _registry
    with _registry_lock:
        _registry = registry


def reset_registry() -> None:
    """Drop the shared registry (tests use this between cases)."""
    global _registry
    with _registry_lock:
        if _registry is not None:
            _registry.clear()
        _registry = None
