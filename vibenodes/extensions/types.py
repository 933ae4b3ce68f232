"""Extension type definitions

Descriptors are authored by extension developers (manifest.json); catalog
entries are derived by the server from the install root.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ExtensionStatus(str, Enum):
    """Catalog entry status"""

    INSTALLED = "installed"
    ENABLED = "enabled"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass
class ExtensionDescriptor:
    """Extension descriptor (manifest.json)"""
    name: str
    component_name: str
    version: str
    author: str
    main: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    min_app_version: str | None = None
    icon: str | None = None
    dependencies: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


@dataclass
class NodeDescriptor:
    """Node-style descriptor, inferred mostly from the project directory"""
    component: str
    name: str
    version: str
    main: str
    description: str = ""
    category: str = "Basic"
    author: str = "Unknown"
    default_config: dict[str, Any] = field(default_factory=dict)


class CatalogEntry(BaseModel):
    """One row of the server catalog; exactly one per install directory.

    Serialized with camelCase keys (``componentName``, ``installedAt``...)
    so existing graph clients can consume the payloads unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )

    id: str
    name: str
    component_name: str
    description: str = ""
    author: str = "Unknown"
    version: str = "0.0.0"
    main: str = ""
    url: str = ""
    file: str = ""
    tags: list[str] = []
    min_app_version: str | None = None
    icon: str | None = None
    category: str | None = None
    default_config: dict[str, Any] | None = None
    installed_at: str
    updated_at: str
    status: ExtensionStatus = ExtensionStatus.INSTALLED
    error_message: str | None = None

    @property
    def is_loadable(self) -> bool:
        return self.status in (ExtensionStatus.INSTALLED, ExtensionStatus.ENABLED)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable result of one scan; swapped into the service as a whole."""
    version: int
    entries: tuple[CatalogEntry, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def get(self, extension_id: str) -> CatalogEntry | None:
        for entry in self.entries:
            if entry.id == extension_id:
                return entry
        return None

    def replace(self, entry: CatalogEntry) -> CatalogSnapshot:
        """Return the next snapshot with *entry* substituted by id."""
        entries = tuple(entry if e.id == entry.id else e for e in self.entries)
        return CatalogSnapshot(version=self.version + 1, entries=entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class OperationResult(BaseModel):
    """Outcome of a catalog mutation, never raised past the service"""

    success: bool
    extension_id: str | None = None
    error: str | None = None
    code: str | None = None


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


__all__ = [
    "ExtensionStatus",
    "ExtensionDescriptor",
    "NodeDescriptor",
    "CatalogEntry",
    "CatalogSnapshot",
    "OperationResult",
    "utc_now_iso",
]
