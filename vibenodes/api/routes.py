"""
HTTP routes for the extension and node catalogs.

Every JSON response carries ``success``; failures use
``{"success": false, "error": ...}`` with 400 (validation), 404 (not found)
or 500 (internal).
"""
from __future__ import annotations

import logging
import mimetypes
import platform
from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel

from ..extensions.catalog import CatalogService, NodeCatalogService
from ..extensions.errors import HTTP_STATUS, ErrorCode
from ..extensions.types import OperationResult

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 50 * 1024 * 1024
ZIP_CONTENT_TYPES = {"application/zip", "application/x-zip-compressed"}


class StatusUpdateRequest(BaseModel):
    """Extension status update request"""

    status: str


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _result_response(result: OperationResult, message: str, **extra: Any) -> JSONResponse:
    if result.success:
        return JSONResponse(content={"success": True, "message": message, **extra})
    status_code = 400
    if result.code:
        status_code = HTTP_STATUS.get(ErrorCode(result.code), 400)
    return error_response(result.error or "Operation failed", status_code)


def module_media_type(path: Path) -> str:
    if path.suffix == ".py":
        return "text/x-python"
    if path.suffix in (".js", ".mjs", ".cjs", ".jsx"):
        return "application/javascript"
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def create_extensions_router(
    service: CatalogService,
    max_upload_size: int = MAX_UPLOAD_SIZE,
) -> APIRouter:
    """Routes mounted under ``/api/extensions``."""
    router = APIRouter(prefix="/extensions", tags=["extensions"])

    @router.get("")
    async def list_extensions():
        extensions = [entry.to_payload() for entry in service.list()]
        return {"success": True, "extensions": extensions, "count": len(extensions)}

    @router.get("/path")
    async def get_extensions_path():
        path = service.get_path()
        return {
            "success": True,
            "path": str(path),
            "platform": platform.system().lower(),
            "exists": path.exists(),
        }

    @router.post("/upload")
    async def upload_extension(extension: UploadFile | None = File(default=None)):
        if extension is None:
            return error_response("No extension file provided")

        file_name = extension.filename or ""
        if extension.content_type not in ZIP_CONTENT_TYPES and not file_name.endswith(".zip"):
            return error_response("Only ZIP files are allowed")

        payload = await extension.read(max_upload_size + 1)
        if len(payload) > max_upload_size:
            return error_response(f"Upload exceeds {max_upload_size // (1024 * 1024)}MB limit")

        result = await service.install(payload, file_name)
        if result.success:
            return {
                "success": True,
                "extensionId": result.extension_id,
                "message": "Extension uploaded successfully",
            }
        return _result_response(result, "Extension uploaded successfully")

    @router.get("/{extension_id}")
    async def get_extension_file(extension_id: str):
        path = service.get_entry_path(extension_id)
        content = await service.get_file_contents(extension_id)
        if path is None or content is None:
            return error_response(f"Extension '{extension_id}' not found", 404)
        return Response(content=content, media_type=module_media_type(path))

    @router.get("/{extension_id}/metadata")
    async def get_extension_metadata(extension_id: str):
        entry = service.get_metadata(extension_id)
        if entry is None:
            return error_response(f"Extension '{extension_id}' not found", 404)
        return {"success": True, "extension": entry.to_payload()}

    @router.get("/{extension_id}/files/{file_path:path}")
    async def get_extension_asset(extension_id: str, file_path: str):
        path = service.resolve_asset(extension_id, file_path)
        if path is None:
            return error_response(f"File '{file_path}' not found in '{extension_id}'", 404)
        return FileResponse(path, media_type=module_media_type(path))

    @router.put("/{extension_id}/status")
    async def update_extension_status(extension_id: str, request: StatusUpdateRequest):
        if request.status not in ("enabled", "disabled"):
            return error_response('Invalid status. Must be "enabled" or "disabled"')
        result = service.set_status(extension_id, request.status)
        return _result_response(result, f"Extension {request.status} successfully")

    @router.delete("/{extension_id}")
    async def delete_extension(extension_id: str):
        result = await service.delete(extension_id)
        return _result_response(result, "Extension deleted successfully")

    return router


def create_nodes_router(service: NodeCatalogService) -> APIRouter:
    """Routes mounted under ``/api/nodes``."""
    router = APIRouter(prefix="/nodes", tags=["nodes"])

    @router.get("")
    async def list_nodes():
        nodes = [entry.to_payload() for entry in service.list()]
        return {"success": True, "nodes": nodes, "count": len(nodes)}

    @router.get("/{node_id}")
    async def get_node_file(node_id: str):
        path = service.get_entry_path(node_id)
        content = await service.get_file_contents(node_id)
        if path is None or content is None:
            return error_response(f"Node '{node_id}' not found", 404)
        return Response(content=content, media_type=module_media_type(path))

    @router.get("/{node_id}/metadata")
    async def get_node_metadata(node_id: str):
        entry = service.get_metadata(node_id)
        if entry is None:
            return error_response(f"Node '{node_id}' not found", 404)
        return {"success": True, "node": entry.to_payload()}

    return router


def create_module_router(service: CatalogService) -> APIRouter:
    """
    Browser addressing scheme: ``/extensions/<id>/<entry file>``.

    Disabled extensions are still served; whether to load them is the
    client's decision.
    """
    router = APIRouter(tags=["modules"])

    @router.get("/extensions/{extension_id}/{file_path:path}")
    async def get_module(extension_id: str, file_path: str):
        path = service.resolve_asset(extension_id, file_path)
        if path is None:
            return error_response(f"Module '{extension_id}/{file_path}' not found", 404)
        return FileResponse(path, media_type=module_media_type(path))

    return router


__all__ = [
    "MAX_UPLOAD_SIZE",
    "StatusUpdateRequest",
    "create_extensions_router",
    "create_nodes_router",
    "create_module_router",
    "module_media_type",
]
