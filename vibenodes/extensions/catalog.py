"""
Catalog services (server side).

The catalog is an immutable, versioned snapshot rebuilt by every scan and
swapped in by reference, so readers never observe a half-built catalog.
Every failure is turned into an ``OperationResult`` at this boundary.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Callable

from .errors import ErrorCode, ExtensionError, NotFoundError
from .installer import MAX_FILE_SIZE, ArchiveInstaller
from .paths import get_default_extensions_dir, is_safe_segment, resolve_inside
from .scanner import scan_extensions, scan_nodes
from .types import (
    CatalogEntry,
    CatalogSnapshot,
    ExtensionStatus,
    OperationResult,
    utc_now_iso,
)
from .watcher import DEFAULT_WATCH_PATTERNS, ExtensionWatcher

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8888"

ScanFn = Callable[[Path, str], list[CatalogEntry]]


def _failure(error: Exception) -> OperationResult:
    if isinstance(error, ExtensionError):
        return OperationResult(success=False, error=str(error), code=error.error_code.value)
    return OperationResult(success=False, error=str(error) or "Unknown error", code=ErrorCode.INTERNAL.value)


class _CatalogBase:
    """Read side shared by the extension and node catalogs."""

    kind = "catalog"

    def __init__(
        self,
        root: Path,
        scan: ScanFn,
        server_url: str = DEFAULT_SERVER_URL,
        watch: bool = True,
        watch_patterns: tuple[str, ...] | list[str] = DEFAULT_WATCH_PATTERNS,
        debounce_ms: int = 500,
    ):
        self.root = Path(root).expanduser()
        self.server_url = server_url
        self._scan = scan
        self._snapshot = CatalogSnapshot(version=0)
        self._scan_lock = asyncio.Lock()
        self._watcher: ExtensionWatcher | None = None
        if watch:
            self._watcher = ExtensionWatcher(
                root=self.root,
                on_change=self.rescan,
                patterns=watch_patterns,
                debounce_ms=debounce_ms,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.rescan()
        if self._watcher and self.root.is_dir():
            await self._watcher.start()
        logger.info(f"{self.kind} initialized with {len(self._snapshot)} entries from {self.root}")

    async def stop(self) -> None:
        if self._watcher:
            await self._watcher.stop()

    async def rescan(self) -> CatalogSnapshot:
        """Rebuild the catalog from disk and swap it in."""
        async with self._scan_lock:
            try:
                entries = await asyncio.to_thread(self._scan, self.root, self.server_url)
            except OSError as e:
                logger.error(f"Failed to scan {self.root}: {e}")
                entries = []
            entries = [self._apply_overrides(e) for e in entries]
            self._snapshot = CatalogSnapshot(
                version=self._snapshot.version + 1,
                entries=tuple(entries),
            )
            return self._snapshot

    def _apply_overrides(self, entry: CatalogEntry) -> CatalogEntry:
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def list(self) -> list[CatalogEntry]:
        return list(self._snapshot.entries)

    def get_path(self) -> Path:
        return self.root

    def get_metadata(self, entry_id: str) -> CatalogEntry | None:
        return self._snapshot.get(entry_id)

    def get_entry_path(self, entry_id: str) -> Path | None:
        """Filesystem path of an entry's main file, if it is servable."""
        entry = self._snapshot.get(entry_id)
        if entry is None or entry.status == ExtensionStatus.ERROR or not entry.file:
            return None
        path = resolve_inside(self.root, entry.file)
        if path is None or not path.is_file():
            return None
        return path

    async def get_file_contents(self, entry_id: str) -> bytes | None:
        """Raw bytes of an entry's main file; None for error entries or missing files."""
        path = self.get_entry_path(entry_id)
        if path is None:
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error(f"Failed to read {self.kind} file {entry_id}: {e}")
            return None

    def resolve_asset(self, entry_id: str, relative_path: str) -> Path | None:
        """Path of a supporting file inside an entry's directory."""
        entry = self._snapshot.get(entry_id)
        if entry is None or entry.status == ExtensionStatus.ERROR:
            return None
        entry_dir = resolve_inside(self.root, entry.id)
        if entry_dir is None:
            return None
        path = resolve_inside(entry_dir, relative_path)
        if path is None or not path.is_file():
            return None
        return path


class CatalogService(_CatalogBase):
    """
    Extension catalog: list, get, install, delete and set-status.

    Enabled/disabled is metadata only; nothing is loaded or unloaded
    server side. Statuses survive rescans until the extension is deleted.
    """

    kind = "Extension catalog"

    def __init__(
        self,
        root: Path | None = None,
        server_url: str = DEFAULT_SERVER_URL,
        max_file_size: int = MAX_FILE_SIZE,
        watch: bool = True,
        watch_patterns: tuple[str, ...] | list[str] = DEFAULT_WATCH_PATTERNS,
        debounce_ms: int = 500,
    ):
        super().__init__(
            root=root or get_default_extensions_dir(),
            scan=scan_extensions,
            server_url=server_url,
            watch=watch,
            watch_patterns=watch_patterns,
            debounce_ms=debounce_ms,
        )
        self._status_overrides: dict[str, tuple[ExtensionStatus, str]] = {}
        self.installer = ArchiveInstaller(
            install_root=self.root,
            max_file_size=max_file_size,
            on_installed=self._after_install,
        )

    async def start(self) -> None:
        """Ensure the install root exists, scan it, then start watching."""
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        logger.info(f"Extensions directory: {self.root}")
        await super().start()

    def _apply_overrides(self, entry: CatalogEntry) -> CatalogEntry:
        override = self._status_overrides.get(entry.id)
        if override is None or entry.status == ExtensionStatus.ERROR:
            return entry
        status, updated_at = override
        return entry.model_copy(update={"status": status, "updated_at": updated_at})

    async def _after_install(self, extension_id: str) -> None:
        self._status_overrides.pop(extension_id, None)
        await self.rescan()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def install(self, archive_bytes: bytes, file_name: str = "") -> OperationResult:
        try:
            result = await self.installer.install(archive_bytes, file_name)
        except ExtensionError as e:
            logger.warning(f"Extension upload rejected ({file_name}): {e}")
            return _failure(e)
        except Exception as e:
            logger.exception(f"Unexpected error installing {file_name}: {e}")
            return _failure(e)
        return OperationResult(success=True, extension_id=result.extension_id)

    async def delete(self, extension_id: str) -> OperationResult:
        try:
            if not is_safe_segment(extension_id):
                raise NotFoundError(extension_id)
            target = self.root / extension_id
            if not target.is_dir():
                raise NotFoundError(extension_id)

            await asyncio.to_thread(shutil.rmtree, target)
            self._status_overrides.pop(extension_id, None)
            logger.info(f"Deleted extension {extension_id}")
            await self.rescan()
        except ExtensionError as e:
            return _failure(e)
        except Exception as e:
            logger.exception(f"Failed to delete extension {extension_id}: {e}")
            return _failure(e)
        return OperationResult(success=True, extension_id=extension_id)

    def set_status(self, extension_id: str, status: ExtensionStatus | str) -> OperationResult:
        try:
            status = ExtensionStatus(status)
        except ValueError:
            return OperationResult(
                success=False,
                error='Invalid status. Must be "enabled" or "disabled"',
                code=ErrorCode.INVALID_REQUEST.value,
            )
        if status not in (ExtensionStatus.ENABLED, ExtensionStatus.DISABLED):
            return OperationResult(
                success=False,
                error='Invalid status. Must be "enabled" or "disabled"',
                code=ErrorCode.INVALID_REQUEST.value,
            )

        entry = self._snapshot.get(extension_id)
        if entry is None:
            return _failure(NotFoundError(extension_id))

        updated_at = utc_now_iso()
        self._status_overrides[extension_id] = (status, updated_at)
        self._snapshot = self._snapshot.replace(
            entry.model_copy(update={"status": status, "updated_at": updated_at})
        )
        logger.info(f"Extension {extension_id} {status.value}")
        return OperationResult(success=True, extension_id=extension_id)

    async def clear(self) -> OperationResult:
        """Remove every installed extension and recreate an empty root."""
        try:
            await asyncio.to_thread(shutil.rmtree, self.root, True)
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
            self._status_overrides.clear()
            await self.rescan()
        except Exception as e:
            logger.exception(f"Failed to clear extensions cache: {e}")
            return _failure(e)
        logger.info(f"Extensions cache cleared: {self.root}")
        return OperationResult(success=True)


class NodeCatalogService(_CatalogBase):
    """Read-only catalog of node projects (relaxed descriptors)."""

    kind = "Node catalog"

    def __init__(
        self,
        root: Path,
        server_url: str = DEFAULT_SERVER_URL,
        watch: bool = True,
        debounce_ms: int = 500,
    ):
        super().__init__(
            root=root,
            scan=scan_nodes,
            server_url=server_url,
            watch=watch,
            watch_patterns=("*/dist/*.py", "*/index.py", "*/manifest.json"),
            debounce_ms=debounce_ms,
        )


__all__ = [
    "DEFAULT_SERVER_URL",
    "CatalogService",
    "NodeCatalogService",
]
