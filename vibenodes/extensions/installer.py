"""
Extension archive installation.

Installs an uploaded zip archive into the install root. The archive's
manifest ``componentName`` names the target directory; the uploaded file
name is only used for diagnostics.
"""
from __future__ import annotations

import asyncio
import io
import logging
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable

from .errors import (
    AlreadyExistsError,
    FileTooLargeError,
    InstallError,
    InvalidArchiveError,
    InvalidManifestError,
    MainFileMissingError,
    MissingManifestError,
)
from .manifest import MANIFEST_FILE, parse_descriptor
from .paths import is_safe_segment, resolve_inside
from .types import ExtensionDescriptor

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # per archive entry


@dataclass
class InstallResult:
    """Successful installation"""
    extension_id: str
    path: Path
    descriptor: ExtensionDescriptor


@dataclass
class _ArchivePlan:
    """What will be written, computed before touching the filesystem"""
    descriptor: ExtensionDescriptor
    prefix: str
    members: list[tuple[zipfile.ZipInfo, str]]


def _find_manifest(names: list[str]) -> str | None:
    """Locate manifest.json at the archive root or one folder deep."""
    if MANIFEST_FILE in names:
        return MANIFEST_FILE
    for name in names:
        parts = PurePosixPath(name).parts
        if len(parts) == 2 and parts[1] == MANIFEST_FILE:
            return name
    return None


def _relative_member_path(name: str, prefix: str) -> str | None:
    """Path of an archive member relative to the wrapper folder, if any."""
    if prefix:
        if not name.startswith(prefix):
            return None
        name = name[len(prefix):]
    return name or None


class ArchiveInstaller:
    """
    Installs extension archives into an install root.

    Installs of the same component are serialized with a per-identifier lock,
    so the "already exists" check and the extraction happen atomically with
    respect to each other.
    """

    def __init__(
        self,
        install_root: Path,
        max_file_size: int = MAX_FILE_SIZE,
        on_installed: Callable[[str], Awaitable[None]] | None = None,
    ):
        self.install_root = Path(install_root)
        self.max_file_size = max_file_size
        self.on_installed = on_installed
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, extension_id: str) -> asyncio.Lock:
        lock = self._locks.get(extension_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[extension_id] = lock
        return lock

    async def install(self, archive_bytes: bytes, declared_file_name: str = "") -> InstallResult:
        """
        Validate and extract an extension archive.

        Args:
            archive_bytes: Raw zip content
            declared_file_name: Uploaded file name (diagnostics only)

        Returns:
            InstallResult

        Raises:
            InstallError: MissingManifest, InvalidArchive, AlreadyExists,
                FileTooLarge or MainFileMissing
            InvalidManifestError: if the descriptor is malformed
        """
        logger.info(f"Installing extension archive {declared_file_name or '<upload>'} ({len(archive_bytes)} bytes)")

        try:
            archive = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, ValueError) as e:
            raise InvalidArchiveError(f"Invalid extension archive: {e}")

        with archive:
            descriptor, prefix = self._read_descriptor(archive)
            extension_id = descriptor.component_name
            if not is_safe_segment(extension_id):
                raise InvalidManifestError(
                    f"Invalid manifest: componentName '{extension_id}' is not a valid directory name"
                )

            async with self._lock_for(extension_id):
                target = self.install_root / extension_id
                if target.exists():
                    raise AlreadyExistsError(extension_id)

                plan = self._plan(archive, descriptor, prefix)
                await asyncio.to_thread(self._extract, archive, plan, target)

        logger.info(f"Installed extension {extension_id} to {target}")

        if self.on_installed:
            await self.on_installed(extension_id)

        return InstallResult(extension_id=extension_id, path=target, descriptor=descriptor)

    def _read_descriptor(self, archive: zipfile.ZipFile) -> tuple[ExtensionDescriptor, str]:
        manifest_name = _find_manifest(archive.namelist())
        if manifest_name is None:
            raise MissingManifestError()

        try:
            raw = archive.read(manifest_name)
        except (zipfile.BadZipFile, KeyError, OSError) as e:
            raise InvalidArchiveError(f"Could not read {manifest_name}: {e}")

        descriptor = parse_descriptor(raw)
        prefix = manifest_name[: -len(MANIFEST_FILE)]
        return descriptor, prefix

    def _plan(self, archive: zipfile.ZipFile, descriptor: ExtensionDescriptor, prefix: str) -> _ArchivePlan:
        infos = archive.infolist()

        for info in infos:
            if info.file_size > self.max_file_size:
                raise FileTooLargeError(info.filename, self.max_file_size)

        members: list[tuple[zipfile.ZipInfo, str]] = []
        for info in infos:
            relative = _relative_member_path(info.filename, prefix)
            if relative is None:
                continue
            path = PurePosixPath(relative)
            if path.is_absolute() or ".." in path.parts or "\\" in relative:
                raise InvalidArchiveError(f"Archive entry escapes extension directory: {info.filename}")
            members.append((info, relative))

        return _ArchivePlan(descriptor=descriptor, prefix=prefix, members=members)

    def _extract(self, archive: zipfile.ZipFile, plan: _ArchivePlan, target: Path) -> None:
        try:
            target.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise AlreadyExistsError(target.name)
        try:
            for info, relative in plan.members:
                destination = target / relative
                if info.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as source, open(destination, "wb") as out:
                    shutil.copyfileobj(source, out)

            main_path = resolve_inside(target, plan.descriptor.main)
            if main_path is None or not main_path.is_file():
                raise MainFileMissingError(plan.descriptor.main)
        except InstallError as e:
            logger.warning(f"Rolling back install of {target.name}: {e}")
            shutil.rmtree(target, ignore_errors=True)
            raise
        except (OSError, zipfile.BadZipFile) as e:
            logger.warning(f"Rolling back install of {target.name}: {e}")
            shutil.rmtree(target, ignore_errors=True)
            raise InvalidArchiveError(f"Failed to extract extension: {e}") from e


__all__ = [
    "MAX_FILE_SIZE",
    "ArchiveInstaller",
    "InstallResult",
]
