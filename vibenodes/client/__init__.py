"""Client side: catalog HTTP client, remote module loader and registry"""

from .capabilities import Activatable, CapabilityProvider
from .catalog_client import CatalogClient
from .loader import HostContext, RemoteModuleLoader, resolve_module_url
from .registry import ExtensionRegistry

__all__ = [
    "Activatable",
    "CapabilityProvider",
    "CatalogClient",
    "ExtensionRegistry",
    "HostContext",
    "RemoteModuleLoader",
    "resolve_module_url",
]
