"""
Directory scanning for installed extensions and node projects.

Every scan rebuilds the catalog from scratch. Each extension directory yields
exactly one entry: broken installs become ``status=error`` rows instead of
being dropped, so they can be surfaced for cleanup.
"""
from __future__ import annotations

import ast
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import ExtensionError, InvalidManifestError
from .manifest import MANIFEST_FILE, parse_descriptor, validate_node_descriptor
from .paths import resolve_inside
from .types import CatalogEntry, ExtensionStatus, utc_now_iso

logger = logging.getLogger(__name__)

# Entries at the install root that are never extensions
IGNORED_NAMES = {"README.md", "__pycache__"}

# Node entry files, in order of preference
NODE_ENTRY_CANDIDATES = ("dist/index.py", "index.py")


def _iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()


def _file_times(path: Path) -> tuple[str, str]:
    """(installed_at, updated_at) from filesystem metadata"""
    st = path.stat()
    created = getattr(st, "st_birthtime", None) or st.st_ctime
    return _iso_timestamp(created), _iso_timestamp(st.st_mtime)


def _list_project_dirs(root: Path) -> list[Path]:
    if not root.is_dir():
        logger.debug(f"Scan root does not exist: {root}")
        return []

    dirs = []
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.name in IGNORED_NAMES or entry.name.startswith("."):
            continue
        if not entry.is_dir():
            continue
        dirs.append(entry)
    return dirs


def build_extension_entry(project_dir: Path, base_url: str) -> CatalogEntry:
    """
    Build the catalog entry for one extension directory.

    Raises:
        ExtensionError: if the descriptor is missing or invalid
    """
    extension_id = project_dir.name
    manifest_path = project_dir / MANIFEST_FILE

    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InvalidManifestError(f"{MANIFEST_FILE} not found")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidManifestError(f"Could not read {MANIFEST_FILE}: {e}")

    descriptor = parse_descriptor(raw)

    main_path = resolve_inside(project_dir, descriptor.main)
    if main_path is None or not main_path.is_file():
        raise InvalidManifestError(f"Main file not found: {descriptor.main}")

    installed_at, updated_at = _file_times(manifest_path)

    return CatalogEntry(
        id=extension_id,
        name=descriptor.name,
        component_name=descriptor.component_name,
        description=descriptor.description,
        author=descriptor.author,
        version=descriptor.version,
        main=descriptor.main,
        url=f"{base_url.rstrip('/')}/api/extensions/{extension_id}",
        file=f"{extension_id}/{descriptor.main}",
        tags=descriptor.tags,
        min_app_version=descriptor.min_app_version,
        icon=descriptor.icon,
        installed_at=installed_at,
        updated_at=updated_at,
        status=ExtensionStatus.INSTALLED,
    )


def build_error_entry(project_dir: Path, message: str) -> CatalogEntry:
    now = utc_now_iso()
    return CatalogEntry(
        id=project_dir.name,
        name=f"Invalid Extension ({project_dir.name})",
        component_name=project_dir.name,
        description="Failed to load extension",
        author="Unknown",
        version="0.0.0",
        main="",
        url="",
        file="",
        installed_at=now,
        updated_at=now,
        status=ExtensionStatus.ERROR,
        error_message=message,
    )


def scan_extensions(install_root: Path, base_url: str) -> list[CatalogEntry]:
    """
    Scan the install root and return one catalog entry per subdirectory.

    Args:
        install_root: Directory holding one subdirectory per extension
        base_url: Server URL used to build each entry's ``url``

    Returns:
        Entries sorted by directory name; empty if the root is missing
    """
    entries: list[CatalogEntry] = []

    for project_dir in _list_project_dirs(Path(install_root)):
        try:
            entries.append(build_extension_entry(project_dir, base_url))
        except ExtensionError as e:
            logger.warning(f"Invalid extension in {project_dir.name}: {e}")
            entries.append(build_error_entry(project_dir, str(e)))
        except OSError as e:
            logger.warning(f"Failed to read extension {project_dir.name}: {e}")
            entries.append(build_error_entry(project_dir, str(e)))
        except ValidationError as e:
            logger.warning(f"Invalid extension metadata in {project_dir.name}: {e}")
            entries.append(build_error_entry(project_dir, f"Invalid manifest: {e}"))

    logger.info(f"Extension scan complete: {len(entries)} entries in {install_root}")
    return entries


# ---------------------------------------------------------------------------
# Node projects
# ---------------------------------------------------------------------------

def infer_category(component: str) -> str:
    lowered = component.lower()
    if "math" in lowered or component == "Calculator":
        return "Math"
    if "ai" in lowered or component == "OpenAI":
        return "AI"
    if "text" in lowered:
        return "Text"
    return "Basic"


def extract_default_config(source: str) -> dict[str, Any]:
    """
    Pull a literal ``default_config = {...}`` out of module source.

    The module is parsed, never executed; non-literal values yield ``{}``.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return {}

    for node in ast.walk(tree):
        if isinstance(node, ast.Assign):
            targets = [t.id for t in node.targets if isinstance(t, ast.Name)]
            value = node.value
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            targets = [node.target.id]
            value = node.value
        else:
            continue

        if "default_config" not in targets or value is None:
            continue
        try:
            config = ast.literal_eval(value)
        except (ValueError, SyntaxError):
            return {}
        return config if isinstance(config, dict) else {}

    return {}


def _find_node_entry(project_dir: Path) -> str | None:
    for candidate in NODE_ENTRY_CANDIDATES:
        if (project_dir / candidate).is_file():
            return candidate
    return None


def build_node_entry(project_dir: Path, base_url: str) -> CatalogEntry | None:
    """Catalog entry for a node project, or None if it has no entry file."""
    main = _find_node_entry(project_dir)
    if main is None:
        logger.debug(f"Skipping node project without entry file: {project_dir.name}")
        return None

    component = project_dir.name
    data: dict[str, Any] = {
        "component": component,
        "name": f"{component} Node",
        "version": "1.0.0",
        "main": main,
        "category": infer_category(component),
    }

    # An optional manifest.json may refine the inferred fields
    manifest_path = project_dir / MANIFEST_FILE
    if manifest_path.is_file():
        try:
            overrides = json.loads(manifest_path.read_text(encoding="utf-8"))
            if isinstance(overrides, dict):
                data.update({k: v for k, v in overrides.items() if k != "component"})
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable node manifest {manifest_path}: {e}")

    entry_path = project_dir / main
    if "defaultConfig" not in data:
        try:
            data["defaultConfig"] = extract_default_config(entry_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            data["defaultConfig"] = {}

    descriptor = validate_node_descriptor(data)
    installed_at, updated_at = _file_times(entry_path)

    return CatalogEntry(
        id=component,
        name=descriptor.name,
        component_name=descriptor.component,
        description=descriptor.description,
        author=descriptor.author,
        version=descriptor.version,
        main=descriptor.main,
        url=f"{base_url.rstrip('/')}/api/nodes/{component}",
        file=f"{component}/{descriptor.main}",
        category=descriptor.category,
        default_config=descriptor.default_config,
        installed_at=installed_at,
        updated_at=updated_at,
        status=ExtensionStatus.INSTALLED,
    )


def scan_nodes(nodes_root: Path, base_url: str) -> list[CatalogEntry]:
    """Scan a nodes directory; projects without an entry file are skipped."""
    entries: list[CatalogEntry] = []

    for project_dir in _list_project_dirs(Path(nodes_root)):
        try:
            entry = build_node_entry(project_dir, base_url)
        except (ExtensionError, OSError, ValidationError) as e:
            logger.warning(f"Skipping node project {project_dir.name}: {e}")
            continue
        if entry is not None:
            entries.append(entry)

    logger.info(f"Node scan complete: {len(entries)} nodes in {nodes_root}")
    return entries


def directory_signature(root: Path) -> tuple[tuple[str, float], ...]:
    """Cheap fingerprint of the watched files, used by the polling fallback."""
    root = Path(root)
    if not root.is_dir():
        return ()
    items = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            path = Path(dirpath) / filename
            try:
                items.append((str(path.relative_to(root)), path.stat().st_mtime))
            except OSError:
                continue
    return tuple(sorted(items))


__all__ = [
    "IGNORED_NAMES",
    "NODE_ENTRY_CANDIDATES",
    "scan_extensions",
    "scan_nodes",
    "build_extension_entry",
    "build_error_entry",
    "build_node_entry",
    "infer_category",
    "extract_default_config",
    "directory_signature",
]
