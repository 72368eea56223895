"""File watcher settings and the interface the app drives watchers through."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

DEFAULT_IGNORE_DIRS = ("__pycache__", ".git")


@dataclass
class WatcherConfig:
    """One ``[[file_watcher]]`` table: a directory whose changes request a rerun."""

    dir: Path
    """Directory to watch (recursively)."""

    patterns: list[str] | None = None
    """Glob patterns a changed file must match."""

    extensions: list[str] | None = None
    """Suffixes a changed file must have; used when patterns is unset."""

    ignore_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_DIRS))
    """Directory names whose contents never request a rerun."""

    debounce_ms: int = 300
    """Quiet period before a burst of changes requests one rerun."""

    @classmethod
    def from_table(cls, table: Mapping[str, Any], base_dir: Path) -> "WatcherConfig":
        """Build from a parsed TOML table; ``dir`` is relative to base_dir.

        Raises:
            ValueError: If ``dir`` is missing or debounce_ms is negative
        """
        if "dir" not in table:
            raise ValueError("[[file_watcher]] entry is missing 'dir'")
        debounce_ms = int(table.get("debounce_ms", 300))
        if debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {debounce_ms}")
        return cls(
            dir=base_dir / Path(table["dir"]),
            patterns=table.get("patterns"),
            extensions=table.get("extensions"),
            ignore_dirs=list(table.get("ignore_dirs", DEFAULT_IGNORE_DIRS)),
            debounce_ms=debounce_ms,
        )


class ChangeSourceWatcher(Protocol):
    """Source of file changes, started and stopped with the app."""

    def add_watch(self, config: WatcherConfig) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...
