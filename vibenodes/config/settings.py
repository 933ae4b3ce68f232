"""
Extension host configuration

Defaults: server on port 8888, a 10MB per-file archive limit, 50MB
uploads and a 500ms rescan debounce.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from ..extensions.paths import DEFAULT_APP_NAME, get_default_extensions_dir, get_default_nodes_dir
from ..extensions.watcher import DEFAULT_WATCH_PATTERNS


@dataclass
class ExtensionHostConfig:
    """
    Extension host configuration

    Paths left as None resolve to the per-OS application data directory
    of ``app_name``.
    """
    app_name: str = DEFAULT_APP_NAME
    extensions_dir: Path | None = None
    nodes_dir: Path | None = None

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8888
    server_url: str | None = None  # Public URL used in catalog entries

    # Limits
    max_file_size: int = 10 * 1024 * 1024  # Per archive entry
    max_upload_size: int = 50 * 1024 * 1024  # Whole upload

    # Watching
    watch: bool = True
    debounce_ms: int = 500
    watch_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_WATCH_PATTERNS))

    # Client side
    host_context: Literal["embedded", "browser"] = "browser"

    def __post_init__(self) -> None:
        if self.extensions_dir is not None:
            self.extensions_dir = Path(self.extensions_dir).expanduser()
        if self.nodes_dir is not None:
            self.nodes_dir = Path(self.nodes_dir).expanduser()

    @property
    def resolved_extensions_dir(self) -> Path:
        return self.extensions_dir or get_default_extensions_dir(self.app_name)

    @property
    def resolved_nodes_dir(self) -> Path:
        return self.nodes_dir or get_default_nodes_dir(self.app_name)

    @property
    def resolved_server_url(self) -> str:
        return (self.server_url or f"http://localhost:{self.port}").rstrip("/")

    @classmethod
    def default(cls) -> "ExtensionHostConfig":
        """Create default configuration"""
        return cls()


__all__ = ["ExtensionHostConfig"]
