"""Optional interfaces a loaded component may implement"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, runtime_checkable

# Exposed module name every remote module must resolve through ``get``
COMPONENT_EXPOSE = "./Component"


@runtime_checkable
class CapabilityProvider(Protocol):
    """
    Component exposing a host-callable function, e.g. "run this node's
    computation". The function is registered in the extension registry.
    """

    node_function: Callable[..., Any]


@runtime_checkable
class Activatable(Protocol):
    """Component with a one-time activation step run right after loading."""

    def describe(self) -> Mapping[str, Any]:
        """Descriptive info about the component"""
        ...

    def activate(self) -> None:
        ...


def get_capability(component: Any) -> Callable[..., Any] | None:
    """Capability function of *component*, or None if it exposes none."""
    if not isinstance(component, CapabilityProvider):
        return None
    func = component.node_function
    return func if callable(func) else None


def is_activatable(component: Any) -> bool:
    return isinstance(component, Activatable) and callable(component.activate)


__all__ = [
    "COMPONENT_EXPOSE",
    "CapabilityProvider",
    "Activatable",
    "get_capability",
    "is_activatable",
]
