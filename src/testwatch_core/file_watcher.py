"""File watcher implementation using watchdog.

Change events arrive on the watchdog observer thread; they are debounced
there and handed to the event loop with call_soon_threadsafe.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from threading import Timer

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from testwatch_core.watchers import WatcherConfig

logger = logging.getLogger(__name__)


class _DebouncedHandler(FileSystemEventHandler):
    """Debounced file system event handler."""

    def __init__(
        self,
        on_change: Callable[[Path], None],
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int,
        patterns: list[str] | None = None,
        extensions: list[str] | None = None,
        ignore_dirs: list[str] | None = None,
    ):
        """Initialize handler.

        Args:
            on_change: Called on the event loop with the last changed path
            loop: Event loop for scheduling
            debounce_ms: Debounce delay in milliseconds
            patterns: Optional glob patterns to match
            extensions: Optional extensions to match
            ignore_dirs: Directory names whose contents are ignored
        """
        self.on_change = on_change
        self.loop = loop
        self.debounce_ms = debounce_ms
        self.patterns = patterns
        self.extensions = extensions
        self.ignore_dirs = set(ignore_dirs or [])
        self._timer: Timer | None = None
        self._last_path: Path | None = None

    def matches_filters(self, path: Path) -> bool:
        """Check if path matches configured filters.

        Args:
            path: Path to check

        Returns:
            True if path matches filters
        """
        if self.ignore_dirs.intersection(path.parts[:-1]):
            return False

        if self.patterns:
            return any(path.match(pattern.removeprefix("**/")) for pattern in self.patterns)

        if self.extensions:
            return path.suffix in self.extensions

        return True

    def _schedule(self, path: Path) -> None:
        """Schedule the change callback after the debounce delay."""
        if self._timer:
            self._timer.cancel()
        self._last_path = path

        def fire():
            changed = self._last_path
            try:
                self.loop.call_soon_threadsafe(self.on_change, changed)
                logger.debug(f"Scheduled rerun for change in {changed}")
            except RuntimeError as e:
                # loop already closed during shutdown
                logger.error(f"Failed to schedule rerun for {changed}: {e}")

        self._timer = Timer(self.debounce_ms / 1000.0, fire)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer:
            self._timer.cancel()
            self._timer = None

    def _handle(self, event: FileSystemEvent, verb: str) -> None:
        if event.is_directory:
            return

        path = Path(event.src_path)
        if self.matches_filters(path):
            logger.debug(f"File {verb}: {path}")
            self._schedule(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event, "modified")

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event, "created")

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle(event, "deleted")


class FileWatcherManager:
    """Watches project directories and reports changes to a callback."""

    def __init__(self, on_change: Callable[[Path], None], loop: asyncio.AbstractEventLoop):
        """Initialize file watcher manager.

        Args:
            on_change: Called on the event loop when a watched file changes
            loop: Event loop for scheduling
        """
        self.on_change = on_change
        self.loop = loop
        self.observer = Observer()
        self.handlers: list[_DebouncedHandler] = []

    def add_watch(self, config: WatcherConfig) -> None:
        """Add a file watcher.

        Args:
            config: Watcher configuration
        """
        if not config.dir.exists():
            logger.warning(f"Watcher directory does not exist: {config.dir}")
            return

        handler = _DebouncedHandler(
            on_change=self.on_change,
            loop=self.loop,
            debounce_ms=config.debounce_ms,
            patterns=config.patterns,
            extensions=config.extensions,
            ignore_dirs=config.ignore_dirs,
        )

        self.observer.schedule(handler, str(config.dir), recursive=True)
        self.handlers.append(handler)

        logger.info(f"Watching {config.dir} (debounce: {config.debounce_ms}ms)")

    def start(self) -> None:
        """Start all file watchers."""
        if not self.handlers:
            logger.debug("No file watchers configured")
            return

        self.observer.start()
        logger.info(f"Started {len(self.handlers)} file watcher(s)")

    def stop(self) -> None:
        """Stop all file watchers."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped file watchers")

        for handler in self.handlers:
            handler.cancel()
