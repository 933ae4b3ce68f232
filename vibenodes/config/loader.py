"""Configuration loader for the extension host.

Loads configuration from a JSON5 file and environment variables:
- JSON5 parsing (comments, trailing commas, unquoted keys)
- ${ENV_VAR} substitution inside string values
- VIBENODES_* environment overrides, applied last
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import fields
from pathlib import Path
from typing import Any, Optional

import json5

from .settings import ExtensionHostConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "vibenodes.json"

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

# Environment variable -> config field
_ENV_OVERRIDES = {
    "VIBENODES_EXTENSIONS_DIR": "extensions_dir",
    "VIBENODES_NODES_DIR": "nodes_dir",
    "VIBENODES_HOST": "host",
    "VIBENODES_PORT": "port",
    "VIBENODES_SERVER_URL": "server_url",
    "VIBENODES_DEBOUNCE_MS": "debounce_ms",
    "VIBENODES_HOST_CONTEXT": "host_context",
}

# camelCase keys accepted in config files
_KEY_ALIASES = {
    "appName": "app_name",
    "extensionsDir": "extensions_dir",
    "nodesDir": "nodes_dir",
    "serverUrl": "server_url",
    "maxFileSize": "max_file_size",
    "maxUploadSize": "max_upload_size",
    "debounceMs": "debounce_ms",
    "watchPatterns": "watch_patterns",
    "hostContext": "host_context",
}

_INT_FIELDS = {"port", "max_file_size", "max_upload_size", "debounce_ms"}


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ${VAR} with os.environ values (unresolved tokens are kept)."""
    if isinstance(obj, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), m.group(0))

        return _ENV_VAR_RE.sub(_replace, obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v) for v in obj]
    return obj


def get_config_path() -> Path:
    """Active config file path (may not exist)."""
    candidates = [
        Path.cwd() / CONFIG_FILE_NAME,
        Path.cwd() / "config" / CONFIG_FILE_NAME,
        Path.home() / ".vibenodes" / CONFIG_FILE_NAME,
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return Path.home() / ".vibenodes" / CONFIG_FILE_NAME


def load_config_raw(path: Path) -> dict[str, Any]:
    """Parse a config file and substitute environment variables."""
    obj = json5.loads(path.read_text(encoding="utf-8"))
    obj = _substitute_env_vars(obj)
    return obj if isinstance(obj, dict) else {}


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(ExtensionHostConfig)}
    result: dict[str, Any] = {}
    for key, value in raw.items():
        name = _KEY_ALIASES.get(key, key)
        if name not in known:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue
        if name in _INT_FIELDS and value is not None:
            value = int(value)
        result[name] = value
    return result


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            overrides[field_name] = value
    return overrides


def load_config(config_path: Optional[str | Path] = None) -> ExtensionHostConfig:
    """Load extension host configuration.

    Args:
        config_path: Optional path to a JSON5 config file. Defaults to the
            first existing well-known location.

    Returns:
        ExtensionHostConfig (defaults when no file exists or it is unreadable)
    """
    path = Path(config_path) if config_path else get_config_path()

    raw: dict[str, Any] = {}
    if path.exists():
        try:
            raw = load_config_raw(path)
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to load config from {path}: {exc}")

    try:
        values = _normalize({**raw, **_env_overrides()})
        return ExtensionHostConfig(**values)
    except (TypeError, ValueError) as exc:
        logger.warning(f"Invalid config, using defaults: {exc}")
        return ExtensionHostConfig()


__all__ = ["CONFIG_FILE_NAME", "get_config_path", "load_config", "load_config_raw"]
