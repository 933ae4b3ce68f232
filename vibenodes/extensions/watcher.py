"""Install-root watcher with debounced rescans.

Filesystem events arrive on the watchdog observer thread and are marshalled
onto the event loop, where they (re)arm a single-slot delayed task:

- a new event while a rescan is pending replaces the pending rescan
- at most one rescan is scheduled at any time; bursts coalesce into one
- a rescan that is already running is never cancelled

Examples::

    watcher = ExtensionWatcher(
        root=Path("~/.config/vibenodes/extensions"),
        on_change=catalog.rescan,
        debounce_ms=500,
    )
    await watcher.start()
"""

from __future__ import annotations

import asyncio
import logging
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .scanner import directory_signature

logger = logging.getLogger(__name__)

DEFAULT_WATCH_PATTERNS = (
    "*/manifest.json",
    "*/*.py",
    "*/dist/*.py",
)


class DelayedTask:
    """Single-slot delayed task: scheduling replaces any pending run."""

    def __init__(self, callback: Callable[[], Awaitable[None]], delay_ms: int = 500) -> None:
        self.callback = callback
        self.delay_ms = delay_ms
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done() and not self._running

    def schedule(self) -> None:
        """(Re)arm the timer. Must be called on the event loop thread."""
        if self.pending:
            self._task.cancel()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        await asyncio.sleep(self.delay_ms / 1000.0)
        self._running = True
        try:
            await self.callback()
        except Exception as exc:
            logger.error(f"Delayed task failed: {exc}", exc_info=True)
        finally:
            self._running = False


def matches_patterns(relative: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """Match a root-relative posix path against depth-anchored glob patterns."""
    parts = PurePosixPath(relative).parts
    for pattern in patterns:
        pattern_parts = PurePosixPath(pattern).parts
        if len(parts) != len(pattern_parts):
            continue
        if all(fnmatch(p, q) for p, q in zip(parts, pattern_parts)):
            return True
    return False


class ExtensionWatcher:
    """
    Watches an install root and triggers debounced rescans.

    Replaces polling with an event-driven watchdog observer; polling is only
    used when the observer cannot be started (e.g. inotify watch limits).
    """

    def __init__(
        self,
        root: Path,
        on_change: Callable[[], Awaitable[None]],
        patterns: tuple[str, ...] | list[str] = DEFAULT_WATCH_PATTERNS,
        debounce_ms: int = 500,
        poll_interval: float = 2.0,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.on_change = on_change
        self.patterns = tuple(patterns)
        self.debounce_ms = debounce_ms
        self.poll_interval = poll_interval
        self._delayed = DelayedTask(self._handle_change, debounce_ms)
        self._observer = None
        self._poll_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._signature: tuple = ()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._observer is not None or self._poll_task is not None

    async def start(self) -> None:
        """Start watching the install root."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        logger.info(f"Starting extension watcher: root={self.root} patterns={list(self.patterns)}")
        try:
            self._start_observer()
        except OSError as exc:
            logger.warning(f"File observer unavailable ({exc}); polling {self.root} instead")
            self._signature = directory_signature(self.root)
            self._poll_task = asyncio.create_task(self._polling_loop())

    async def stop(self) -> None:
        """Stop watching and drop any pending rescan."""
        if self._observer:
            observer = self._observer
            self._observer = None
            observer.stop()
            await asyncio.to_thread(observer.join, 3)
        if self._poll_task:
            self._poll_task.cancel()
            self._poll_task = None
        self._delayed.cancel()
        logger.info("Extension watcher stopped")

    def notify(self, path: str | Path) -> None:
        """Feed a changed path (thread-safe)."""
        try:
            relative = Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return
        if not matches_patterns(relative, self.patterns):
            return
        if self._loop is None or self._loop.is_closed():
            return
        logger.debug(f"Extension file changed: {relative}")
        self._loop.call_soon_threadsafe(self._delayed.schedule)

    async def force_rescan(self) -> None:
        """Run a rescan immediately, bypassing the debounce window."""
        self._delayed.cancel()
        await self._handle_change()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _start_observer(self) -> None:
        watcher = self

        class _Handler(FileSystemEventHandler):
            def on_any_event(self, event: FileSystemEvent) -> None:
                watcher.notify(event.src_path)
                dest = getattr(event, "dest_path", "")
                if dest:
                    watcher.notify(dest)

        observer = Observer()
        observer.schedule(_Handler(), str(self.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer

    async def _polling_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            signature = await asyncio.to_thread(directory_signature, self.root)
            if signature != self._signature:
                self._signature = signature
                self._delayed.schedule()

    async def _handle_change(self) -> None:
        logger.info(f"Extension files changed under {self.root}, rescanning")
        await self.on_change()


__all__ = [
    "DEFAULT_WATCH_PATTERNS",
    "DelayedTask",
    "ExtensionWatcher",
    "matches_patterns",
]
