"""Extension lifecycle: validation, installation, scanning, watching, catalog.

Extensions are stored in the per-OS application data directory by default
(e.g. ~/.config/vibenodes/extensions on Linux), one directory per
``componentName``.
"""

from .catalog import CatalogService, NodeCatalogService
from .errors import (
    AlreadyExistsError,
    ErrorCode,
    ExtensionError,
    FileTooLargeError,
    InstallError,
    InvalidArchiveError,
    InvalidManifestError,
    LoadFailure,
    MainFileMissingError,
    MissingManifestError,
    NotFoundError,
)
from .installer import ArchiveInstaller, InstallResult
from .manifest import parse_descriptor, validate_descriptor, validate_node_descriptor
from .scanner import scan_extensions, scan_nodes
from .types import (
    CatalogEntry,
    CatalogSnapshot,
    ExtensionDescriptor,
    ExtensionStatus,
    NodeDescriptor,
    OperationResult,
)
from .watcher import DelayedTask, ExtensionWatcher

__all__ = [
    "ArchiveInstaller",
    "InstallResult",
    "CatalogService",
    "NodeCatalogService",
    "ExtensionWatcher",
    "DelayedTask",
    "scan_extensions",
    "scan_nodes",
    "validate_descriptor",
    "validate_node_descriptor",
    "parse_descriptor",
    "CatalogEntry",
    "CatalogSnapshot",
    "ExtensionDescriptor",
    "NodeDescriptor",
    "ExtensionStatus",
    "OperationResult",
    "ErrorCode",
    "ExtensionError",
    "InvalidManifestError",
    "InstallError",
    "MissingManifestError",
    "InvalidArchiveError",
    "AlreadyExistsError",
    "FileTooLargeError",
    "MainFileMissingError",
    "NotFoundError",
    "LoadFailure",
]
