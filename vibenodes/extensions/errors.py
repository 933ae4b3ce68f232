from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_MANIFEST = "INVALID_MANIFEST"
    MISSING_MANIFEST = "MISSING_MANIFEST"
    INVALID_ARCHIVE = "INVALID_ARCHIVE"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    MAIN_FILE_MISSING = "MAIN_FILE_MISSING"
    NOT_FOUND = "NOT_FOUND"
    LOAD_FAILURE = "LOAD_FAILURE"
    INTERNAL = "INTERNAL"


# HTTP status reported for each error category
HTTP_STATUS = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_MANIFEST: 400,
    ErrorCode.MISSING_MANIFEST: 400,
    ErrorCode.INVALID_ARCHIVE: 400,
    ErrorCode.ALREADY_EXISTS: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.MAIN_FILE_MISSING: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.LOAD_FAILURE: 500,
    ErrorCode.INTERNAL: 500,
}


class ExtensionError(Exception):
    def __init__(self, message: str, error_code: ErrorCode, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.error_code, 500)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code.value,
            "message": str(self),
            "details": self.details,
        }


class InvalidManifestError(ExtensionError):
    def __init__(self, message: str | None = None, missing_field: str | None = None):
        if message is None:
            message = (
                f"Invalid manifest: missing required field '{missing_field}'"
                if missing_field
                else "Invalid manifest"
            )
        details = {"missing_field": missing_field} if missing_field else None
        super().__init__(message, ErrorCode.INVALID_MANIFEST, details)
        self.missing_field = missing_field


class InstallError(ExtensionError):
    """Base class for failures raised while installing an archive."""


class MissingManifestError(InstallError):
    def __init__(self, message: str | None = None):
        super().__init__(message or "Missing manifest.json file", ErrorCode.MISSING_MANIFEST)


class InvalidArchiveError(InstallError):
    def __init__(self, message: str | None = None):
        super().__init__(message or "Invalid extension archive", ErrorCode.INVALID_ARCHIVE)


class AlreadyExistsError(InstallError):
    def __init__(self, component_name: str):
        msg = (
            f'Component "{component_name}" already exists. '
            "Please uninstall the existing version first."
        )
        super().__init__(msg, ErrorCode.ALREADY_EXISTS, {"component_name": component_name})
        self.component_name = component_name


class FileTooLargeError(InstallError):
    def __init__(self, entry_name: str, limit: int):
        msg = f"File {entry_name} exceeds {limit // (1024 * 1024)}MB limit"
        super().__init__(msg, ErrorCode.FILE_TOO_LARGE, {"entry": entry_name, "limit": limit})
        self.entry_name = entry_name


class MainFileMissingError(InstallError):
    def __init__(self, main: str):
        msg = f"Main file {main} not found in extracted extension"
        super().__init__(msg, ErrorCode.MAIN_FILE_MISSING, {"main": main})
        self.main = main


class NotFoundError(ExtensionError):
    def __init__(self, extension_id: str):
        super().__init__("Extension not found", ErrorCode.NOT_FOUND, {"id": extension_id})
        self.extension_id = extension_id


class LoadFailure(ExtensionError):
    def __init__(self, extension_id: str, message: str):
        super().__init__(
            f"Failed to load extension component {extension_id}: {message}",
            ErrorCode.LOAD_FAILURE,
            {"id": extension_id},
        )
        self.extension_id = extension_id


__all__ = [
    "ErrorCode",
    "HTTP_STATUS",
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
