"""
Remote module loader.

Resolves a catalog entry to a module URL, fetches and executes the module,
and instantiates its exposed component::

    module.get("./Component")  ->  factory
    factory()                  ->  component

Shared runtime objects (the host's single instances of whatever the
extension binds against) are handed to each module explicitly through the
``__shared__`` mapping in its namespace; shared objects are never written to
process-wide globals or ``sys.modules``. The extension module itself is
registered in ``sys.modules`` under a private per-extension name only while
its body executes, so class machinery such as dataclasses can resolve it.

Loads are not deduplicated: concurrent ``load()`` calls for the same id all
run, and the last one to finish wins the cache slot. Failures are logged
and reported as ``None``; they are never cached, so calling ``load()`` again
retries the whole sequence.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import re
import sys
import types
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Protocol
from urllib.parse import unquote, urlsplit

from ..extensions.errors import LoadFailure
from ..extensions.paths import resolve_inside
from ..extensions.types import CatalogEntry, ExtensionStatus, OperationResult
from .capabilities import COMPONENT_EXPOSE, get_capability, is_activatable
from .catalog_client import CatalogClient
from .registry import ExtensionRegistry

logger = logging.getLogger(__name__)

EMBEDDED_SCHEME = "extension"


class HostContext(str, Enum):
    """Where the loader runs; selects the module addressing scheme."""

    EMBEDDED = "embedded"  # desktop shell with the extension:// protocol
    BROWSER = "browser"  # general HTTP context


def resolve_module_url(entry: CatalogEntry, context: HostContext) -> str:
    """
    Module URL for a catalog entry.

    - embedded: ``extension://<id>/<entry file>``
    - browser:  ``/extensions/<id>/<entry file>``
    """
    entry_file = entry.main.lstrip("/")
    if context == HostContext.EMBEDDED:
        return f"{EMBEDDED_SCHEME}://{entry.id}/{entry_file}"
    return f"/extensions/{entry.id}/{entry_file}"


class ModuleSource(Protocol):
    async def fetch(self, url: str) -> bytes:
        ...


class HttpModuleSource:
    """Fetches module source through the catalog client."""

    def __init__(self, client: CatalogClient):
        self.client = client

    async def fetch(self, url: str) -> bytes:
        return await self.client.fetch_module(url)


class EmbeddedModuleSource:
    """Serves ``extension://<id>/<path>`` straight from the install root."""

    def __init__(self, install_root: Path):
        self.install_root = Path(install_root)

    async def fetch(self, url: str) -> bytes:
        parts = urlsplit(url)
        if parts.scheme != EMBEDDED_SCHEME or not parts.netloc:
            raise ValueError(f"Not an {EMBEDDED_SCHEME}:// URL: {url}")

        extension_dir = resolve_inside(self.install_root, parts.netloc)
        if extension_dir is None:
            raise FileNotFoundError(url)
        path = resolve_inside(extension_dir, unquote(parts.path).lstrip("/"))
        if path is None or not path.is_file():
            raise FileNotFoundError(url)
        return await asyncio.to_thread(path.read_bytes)


def _module_name(extension_id: str) -> str:
    return "vibenodes_extension_" + re.sub(r"\W", "_", extension_id)


class RemoteModuleLoader:
    """
    Loads extension components on demand and caches them in the registry.

    Args:
        client: Catalog client used for metadata (and HTTP module bytes)
        registry: Cache of loaded components and capability functions
        context: Host context selecting the addressing scheme
        shared: Shared runtime objects exposed to modules as ``__shared__``
        install_root: Required for the embedded context
    """

    def __init__(
        self,
        client: CatalogClient,
        registry: ExtensionRegistry | None = None,
        context: HostContext = HostContext.BROWSER,
        shared: Mapping[str, Any] | None = None,
        install_root: Path | None = None,
    ):
        self.client = client
        self.registry = registry or ExtensionRegistry()
        self.context = HostContext(context)
        self.shared = MappingProxyType(dict(shared or {}))

        self._sources: dict[str, ModuleSource] = {
            "": HttpModuleSource(client),
            "http": HttpModuleSource(client),
            "https": HttpModuleSource(client),
        }
        if install_root is not None:
            self._sources[EMBEDDED_SCHEME] = EmbeddedModuleSource(install_root)
        elif self.context == HostContext.EMBEDDED:
            raise ValueError("install_root is required for the embedded host context")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self, extension_id: str) -> Any | None:
        """
        Load (or return the cached) component for an extension.

        Returns:
            The component, or None if the extension is unknown, disabled,
            broken, or failed to load
        """
        cached = self.registry.get_component(extension_id)
        if cached is not None:
            known = self.client.cached_metadata(extension_id)
            if known is not None and not known.is_loadable:
                self.registry.evict(extension_id)
                return None
            return cached

        try:
            return await self._load(extension_id)
        except Exception as e:
            failure = e if isinstance(e, LoadFailure) else LoadFailure(extension_id, str(e) or type(e).__name__)
            logger.error(str(failure), exc_info=not isinstance(e, LoadFailure))
            self.registry.evict(extension_id)
            return None

    async def set_status(self, extension_id: str, status: ExtensionStatus | str) -> OperationResult:
        """Change status server side; disabling also evicts the component."""
        result = await self.client.set_status(extension_id, status)
        if result.success and ExtensionStatus(status) == ExtensionStatus.DISABLED:
            self.registry.evict(extension_id)
        return result

    async def delete(self, extension_id: str) -> OperationResult:
        result = await self.client.delete(extension_id)
        if result.success:
            self.registry.evict(extension_id)
        return result

    def clear_cache(self) -> None:
        """Manual cache reset: forget metadata and every loaded component."""
        self.client.invalidate()
        self.registry.clear()

    def is_loaded(self, extension_id: str) -> bool:
        return self.registry.is_loaded(extension_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _load(self, extension_id: str) -> Any | None:
        entry = await self.client.get_metadata(extension_id)
        if entry is None:
            logger.info(f"Extension {extension_id} not found")
            return None
        if not entry.is_loadable:
            logger.info(f"Extension {extension_id} is {entry.status.value}; not loading")
            self.registry.evict(extension_id)
            return None

        url = resolve_module_url(entry, self.context)
        source = await self._source_for(url).fetch(url)
        module = self._execute(extension_id, url, source)
        component = await self._instantiate(extension_id, module)

        func = get_capability(component)
        if func is not None:
            self.registry.register_function(extension_id, func)

        if is_activatable(component):
            info = component.describe()
            logger.debug(f"Activating extension {extension_id}: {dict(info or {})}")
            result = component.activate()
            if inspect.isawaitable(result):
                await result

        self.registry.set_component(extension_id, component)
        logger.info(f"Loaded extension component {extension_id} from {url}")
        return component

    def _source_for(self, url: str) -> ModuleSource:
        scheme = urlsplit(url).scheme
        source = self._sources.get(scheme)
        if source is None:
            raise ValueError(f"No module source for scheme '{scheme}'")
        return source

    def _execute(self, extension_id: str, url: str, source: bytes) -> types.ModuleType:
        module = types.ModuleType(_module_name(extension_id))
        module.__file__ = url
        module.__dict__["__shared__"] = self.shared
        code = compile(source, url, "exec")
        sys.modules[module.__name__] = module
        try:
            exec(code, module.__dict__)
        finally:
            if sys.modules.get(module.__name__) is module:
                del sys.modules[module.__name__]

        if not callable(getattr(module, "get", None)):
            raise LoadFailure(extension_id, "module does not export a 'get' function")
        return module

    async def _instantiate(self, extension_id: str, module: types.ModuleType) -> Any:
        factory = module.get(COMPONENT_EXPOSE)
        if inspect.isawaitable(factory):
            factory = await factory
        if not callable(factory):
            raise LoadFailure(extension_id, f"'{COMPONENT_EXPOSE}' did not resolve to a factory")

        component = factory()
        if inspect.isawaitable(component):
            component = await component
        if component is None:
            raise LoadFailure(extension_id, "factory returned no component")
        return component


__all__ = [
    "EMBEDDED_SCHEME",
    "HostContext",
    "resolve_module_url",
    "HttpModuleSource",
    "EmbeddedModuleSource",
    "RemoteModuleLoader",
]
