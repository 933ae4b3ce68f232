"""Install-root resolution"""
from __future__ import annotations

import os
import platform
from pathlib import Path

DEFAULT_APP_NAME = "vibenodes"


def get_app_data_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Per-OS application data directory for *app_name*."""
    system = platform.system().lower()
    home = Path.home()

    if system == "darwin":
        return home / "Library" / "Application Support" / app_name

    if system == "windows":
        app_data = os.environ.get("APPDATA")
        base = Path(app_data) if app_data else home / "AppData" / "Roaming"
        return base / app_name

    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else home / ".config"
    return base / app_name


def get_default_extensions_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    return get_app_data_dir(app_name) / "extensions"


def get_default_nodes_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    return get_app_data_dir(app_name) / "nodes"


def is_safe_segment(name: str) -> bool:
    """True if *name* can be used as a single directory name under a root."""
    if not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return not Path(name).is_absolute()


def resolve_inside(root: Path, relative: str) -> Path | None:
    """Join *relative* onto *root*, or None if the result escapes root."""
    root = root.resolve()
    candidate = (root / relative).resolve()
    if candidate == root or root in candidate.parents:
        return candidate
    return None


__all__ = [
    "DEFAULT_APP_NAME",
    "get_app_data_dir",
    "get_default_extensions_dir",
    "get_default_nodes_dir",
    "is_safe_segment",
    "resolve_inside",
]
