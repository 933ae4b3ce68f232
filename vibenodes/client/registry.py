"""Extension registry: loaded components and their capability functions.

A graph may reference an id before its function was ever loaded, so
"node exists" and "function is callable" are tracked independently.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """In-memory, per-process cache keyed by extension id."""

    def __init__(self):
        self._components: dict[str, Any] = {}
        self._functions: dict[str, Callable[..., Any]] = {}

    def get_component(self, extension_id: str) -> Any | None:
        return self._components.get(extension_id)

    def set_component(self, extension_id: str, component: Any) -> None:
        self._components[extension_id] = component

    def register_function(self, extension_id: str, func: Callable[..., Any]) -> None:
        self._functions[extension_id] = func
        logger.debug(f"Registered capability function for {extension_id}")

    def get_function(self, extension_id: str) -> Callable[..., Any] | None:
        return self._functions.get(extension_id)

    def get_all_functions(self) -> dict[str, Callable[..., Any]]:
        return self._functions.copy()

    def is_loaded(self, extension_id: str) -> bool:
        return extension_id in self._components

    def evict(self, extension_id: str) -> None:
        """Drop one extension's component and function."""
        self._components.pop(extension_id, None)
        self._functions.pop(extension_id, None)

    def clear(self) -> None:
        self._components.clear()
        self._functions.clear()

    def __len__(self) -> int:
        return len(self._components)


__all__ = ["ExtensionRegistry"]
