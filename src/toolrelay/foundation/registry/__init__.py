"""Tool registry: catalog of descriptors and toolkits."""

from .registry import RegistrySnapshot, ToolRegistry, get_registry, reset_registry, set_registry

__all__ = ["ToolRegistry", "RegistrySnapshot", "get_registry", "set_registry", "reset_registry"]
