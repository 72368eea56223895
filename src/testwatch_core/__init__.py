"""testwatch-core: UI-agnostic watch-mode models, transitions and plugins."""

__version__ = "0.1.0"

# Models
from testwatch_core.models import RunConfiguration, RunOptions, RunResult

# Plugins
from testwatch_core.plugins import PluginLoadError, PluginRegistry, WatchPlugin, load_plugins

# Run token
from testwatch_core.test_watcher import TestWatcher

# Transitions
from testwatch_core.transitions import (
    clear_one_shot_flags,
    clear_patterns,
    normalize_for_watch,
    request_update_snapshot,
    set_pattern,
    toggle_only_changed,
    toggle_watch_all,
    update_configuration,
)

__all__ = [
    "__version__",
    # Models
    "RunConfiguration",
    "RunOptions",
    "RunResult",
    "TestWatcher",
    # Plugins
    "PluginLoadError",
    "PluginRegistry",
    "WatchPlugin",
    "load_plugins",
    # Transitions
    "clear_one_shot_flags",
    "clear_patterns",
    "normalize_for_watch",
    "request_update_snapshot",
    "set_pattern",
    "toggle_only_changed",
    "toggle_watch_all",
    "update_configuration",
]
