"""Shared data models for testwatch_core."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from testwatch_core.test_watcher import TestWatcher

UpdateSnapshotMode = Literal["all", "new", "none"]

UPDATE_SNAPSHOT_MODES = ("all", "new", "none")


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable snapshot of the settings for one run session.

    Never edited in place: every change produces a new instance through
    the functions in testwatch_core.transitions.
    """

    watch: bool = False
    """Plain watch mode (only tests related to changed files)."""

    watch_all: bool = False
    """Watch-all mode. Never true together with ``watch``."""

    only_changed: bool = False
    """Restrict the run to changed files."""

    update_snapshot: UpdateSnapshotMode = "none"
    """One-shot snapshot update request, reset after the run completes."""

    test_path_pattern: str = ""
    """Filename regex filter ("" means no filter)."""

    test_name_pattern: str = ""
    """Test name regex filter ("" means no filter)."""

    pass_with_no_tests: bool = False
    """Whether an empty match set counts as success."""

    root_dir: str = "."
    """Project root; plugin locators resolve relative to it."""

    watch_plugins: tuple[str, ...] = ()
    """Plugin locators, in load order."""

    def __post_init__(self):
        # frozen, so coercions go through object.__setattr__
        if self.test_path_pattern is None:
            object.__setattr__(self, "test_path_pattern", "")
        if self.test_name_pattern is None:
            object.__setattr__(self, "test_name_pattern", "")
        if not isinstance(self.watch_plugins, tuple):
            object.__setattr__(self, "watch_plugins", tuple(self.watch_plugins))
        object.__setattr__(self, "root_dir", str(self.root_dir))

        if self.update_snapshot not in UPDATE_SNAPSHOT_MODES:
            raise ValueError(
                f"Invalid update_snapshot '{self.update_snapshot}'. "
                f"Expected one of: {', '.join(UPDATE_SNAPSHOT_MODES)}"
            )
        if self.watch and self.watch_all:
            raise ValueError("watch and watch_all cannot both be enabled")

    @classmethod
    def field_names(cls) -> set[str]:
        """Names of all configuration fields."""
        return {f.name for f in fields(cls)}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RunConfiguration":
        """Build a configuration from a plain mapping.

        Args:
            data: Mapping of field name -> value

        Raises:
            ValueError: If the mapping contains unknown fields
        """
        unknown = set(data) - cls.field_names()
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")
        return cls(**data)

    @property
    def has_filters(self) -> bool:
        """Whether a path or name pattern is active."""
        return bool(self.test_path_pattern or self.test_name_pattern)


@dataclass
class RunResult:
    """Outcome of one run session, as reported to on_complete."""

    success: bool = True
    """Whether the run passed."""

    snapshot_failure: bool = False
    """Whether any snapshot assertion failed."""

    error: str | None = None
    """Error description when the runner itself failed."""

    output_file: Path | None = None
    """Path to captured runner output (if available)."""


@dataclass
class RunOptions:
    """Everything the runner receives for one run session."""

    configuration: RunConfiguration
    """Configuration snapshot for this run."""

    test_watcher: "TestWatcher"
    """Run token; interrupted when a newer run supersedes this one."""

    on_complete: Callable[[RunResult | None], None]
    """Must be called exactly once when the run finishes."""

    output_stream: Any = None
    """Sink with a write(text) method."""

    contexts: Sequence[Any] = field(default_factory=tuple)
    """Opaque per-project contexts, passed through untouched."""
