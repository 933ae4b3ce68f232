"""
Catalog HTTP client.

Talks to the catalog service's HTTP surface and keeps a small metadata
cache keyed by extension id.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from ..extensions.errors import ErrorCode
from ..extensions.types import CatalogEntry, ExtensionStatus, OperationResult, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8888"


class CatalogClient:
    """
    Async client for the ``/api/extensions`` endpoints.

    Example:
        async with CatalogClient("http://localhost:8888") as client:
            entries = await client.get_extensions()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._metadata: dict[str, CatalogEntry] = {}

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_extensions(self) -> list[CatalogEntry]:
        """List all extensions; returns [] on any failure."""
        try:
            response = await self._http.get(self._url("/api/extensions"))
            response.raise_for_status()
            data = response.json()
            if not data.get("success"):
                raise RuntimeError(data.get("error") or "Failed to fetch extensions")
            entries = [CatalogEntry.model_validate(item) for item in data.get("extensions", [])]
        except Exception as e:
            logger.error(f"Failed to fetch extensions: {e}")
            return []

        for entry in entries:
            self._metadata[entry.id] = entry
        return entries

    async def get_metadata(self, extension_id: str) -> CatalogEntry | None:
        """Metadata for one extension (cached); None if unknown or unreachable."""
        cached = self._metadata.get(extension_id)
        if cached is not None:
            return cached

        try:
            response = await self._http.get(self._url(f"/api/extensions/{extension_id}/metadata"))
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
            if not data.get("success"):
                raise RuntimeError(data.get("error") or "Failed to fetch extension metadata")
            entry = CatalogEntry.model_validate(data["extension"])
        except Exception as e:
            logger.error(f"Failed to get extension metadata for {extension_id}: {e}")
            return None

        self._metadata[extension_id] = entry
        return entry

    def cached_metadata(self, extension_id: str) -> CatalogEntry | None:
        """Metadata already known locally, without touching the network."""
        return self._metadata.get(extension_id)

    def invalidate(self, extension_id: str | None = None) -> None:
        if extension_id is None:
            self._metadata.clear()
        else:
            self._metadata.pop(extension_id, None)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upload(self, archive: bytes | Path, file_name: str | None = None) -> OperationResult:
        """Upload a zip archive as multipart field ``extension``."""
        if isinstance(archive, Path):
            file_name = file_name or archive.name
            archive = archive.read_bytes()
        file_name = file_name or "extension.zip"

        try:
            response = await self._http.post(
                self._url("/api/extensions/upload"),
                files={"extension": (file_name, archive, "application/zip")},
            )
            data = response.json()
        except Exception as e:
            logger.error(f"Failed to upload extension: {e}")
            return OperationResult(success=False, error=str(e), code=ErrorCode.INTERNAL.value)

        self._metadata.clear()
        if data.get("success"):
            return OperationResult(success=True, extension_id=data.get("extensionId"))
        return OperationResult(success=False, error=data.get("error") or "Upload failed")

    async def set_status(self, extension_id: str, status: ExtensionStatus | str) -> OperationResult:
        status = ExtensionStatus(status)
        try:
            response = await self._http.put(
                self._url(f"/api/extensions/{extension_id}/status"),
                json={"status": status.value},
            )
            data = response.json()
        except Exception as e:
            logger.error(f"Failed to update extension status for {extension_id}: {e}")
            return OperationResult(success=False, error=str(e), code=ErrorCode.INTERNAL.value)

        if not data.get("success"):
            return OperationResult(success=False, error=data.get("error") or "Status update failed")

        cached = self._metadata.get(extension_id)
        if cached is not None:
            self._metadata[extension_id] = cached.model_copy(
                update={"status": status, "updated_at": utc_now_iso()}
            )
        return OperationResult(success=True, extension_id=extension_id)

    async def delete(self, extension_id: str) -> OperationResult:
        try:
            response = await self._http.delete(self._url(f"/api/extensions/{extension_id}"))
            data = response.json()
        except Exception as e:
            logger.error(f"Failed to delete extension {extension_id}: {e}")
            return OperationResult(success=False, error=str(e), code=ErrorCode.INTERNAL.value)

        if not data.get("success"):
            return OperationResult(success=False, error=data.get("error") or "Deletion failed")

        self._metadata.pop(extension_id, None)
        return OperationResult(success=True, extension_id=extension_id)

    # ------------------------------------------------------------------
    # Module bytes
    # ------------------------------------------------------------------

    async def fetch_module(self, url: str) -> bytes:
        """
        Fetch module source from an absolute URL or a server-relative path.

        Raises:
            httpx.HTTPError: on transport failures or non-2xx responses
        """
        if url.startswith("/"):
            url = self._url(url)
        response = await self._http.get(url)
        response.raise_for_status()
        return response.content


__all__ = ["CatalogClient", "DEFAULT_BASE_URL"]
