"""
Manifest validation for extension and node descriptors.

Everything here is pure: callers read the bytes, these functions only
check them.
"""
from __future__ import annotations

import json
from typing import Any

from .errors import InvalidManifestError
from .types import ExtensionDescriptor, NodeDescriptor

MANIFEST_FILE = "manifest.json"

# Checked in order; the first missing one is reported
REQUIRED_FIELDS = ("name", "version", "author", "main", "componentName")
NODE_REQUIRED_FIELDS = ("component", "name", "version", "main")


def _is_present(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None and value != ""


def _first_missing(data: dict[str, Any], fields: tuple[str, ...]) -> str | None:
    for name in fields:
        if not _is_present(data.get(name)):
            return name
    return None


def _optional_string(data: dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    raise InvalidManifestError(f"Invalid manifest: field '{name}' must be a string")


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def validate_descriptor(data: Any) -> ExtensionDescriptor:
    """
    Validate an extension descriptor.

    Args:
        data: Decoded manifest.json content

    Returns:
        ExtensionDescriptor

    Raises:
        InvalidManifestError: naming the first missing required field
    """
    if not isinstance(data, dict):
        raise InvalidManifestError("Invalid manifest: expected a JSON object")

    missing = _first_missing(data, REQUIRED_FIELDS)
    if missing:
        raise InvalidManifestError(missing_field=missing)

    for name in REQUIRED_FIELDS:
        if not isinstance(data[name], str):
            raise InvalidManifestError(f"Invalid manifest: field '{name}' must be a string")

    return ExtensionDescriptor(
        name=data["name"],
        component_name=data["componentName"],
        version=data["version"],
        author=data["author"],
        main=data["main"],
        description=_optional_string(data, "description") or "No description provided",
        tags=_string_list(data.get("tags")),
        min_app_version=_optional_string(data, "minAppVersion"),
        icon=_optional_string(data, "icon"),
        dependencies=_string_list(data.get("dependencies")),
        permissions=_string_list(data.get("permissions")),
    )


def validate_node_descriptor(data: Any) -> NodeDescriptor:
    """Validate a node-style descriptor (relaxed field set)."""
    if not isinstance(data, dict):
        raise InvalidManifestError("Invalid node descriptor: expected a mapping")

    missing = _first_missing(data, NODE_REQUIRED_FIELDS)
    if missing:
        raise InvalidManifestError(missing_field=missing)

    component = str(data["component"])
    default_config = data.get("defaultConfig") or {}
    if not isinstance(default_config, dict):
        raise InvalidManifestError("Invalid node descriptor: field 'defaultConfig' must be an object")
    return NodeDescriptor(
        component=component,
        name=str(data["name"]),
        version=str(data["version"]),
        main=str(data["main"]),
        description=_optional_string(data, "description") or f"A {component.lower()} node component",
        category=_optional_string(data, "category") or "Basic",
        author=_optional_string(data, "author") or "Unknown",
        default_config=dict(default_config),
    )


def parse_descriptor(text: str | bytes) -> ExtensionDescriptor:
    """Decode manifest.json text and validate it."""
    try:
        data = json.loads(text)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidManifestError(f"Invalid manifest: could not parse {MANIFEST_FILE} ({e})")
    return validate_descriptor(data)


__all__ = [
    "MANIFEST_FILE",
    "REQUIRED_FIELDS",
    "NODE_REQUIRED_FIELDS",
    "validate_descriptor",
    "validate_node_descriptor",
    "parse_descriptor",
]
