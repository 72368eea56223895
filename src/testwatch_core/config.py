"""Configuration file parsing for testwatch.

A single TOML file holds the watch settings, the file watchers and the
cmdorc command that actually runs the tests::

    [watch]
    command = "Tests"
    test_path_pattern = ""
    plugins = ["plugins/focus.py"]

    [[file_watcher]]
    dir = "."
    patterns = ["**/*.py"]

    [[command]]
    name = "Tests"
    command = "pytest {{ test_args }}"
    triggers = []
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from cmdorc import RunnerConfig, load_config

from testwatch_core.models import RunConfiguration
from testwatch_core.watchers import WatcherConfig

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "Tests"

# [watch] keys mapped onto RunConfiguration fields. only_changed is not
# configurable: watch mode derives it from watch_all.
_RUN_CONFIGURATION_KEYS = {
    "watch_all": "watch_all",
    "test_path_pattern": "test_path_pattern",
    "test_name_pattern": "test_name_pattern",
    "pass_with_no_tests": "pass_with_no_tests",
    "plugins": "watch_plugins",
}


@dataclass
class WatchSettings:
    """Everything loaded from a testwatch config file."""

    configuration: RunConfiguration
    """Initial run configuration (not yet normalized for watch mode)."""

    runner_config: RunnerConfig
    """cmdorc runner configuration."""

    command: str = DEFAULT_COMMAND
    """Name of the cmdorc command that runs the tests."""

    watchers: list[WatcherConfig] = field(default_factory=list)
    """File watchers that trigger reruns."""


def load_watch_config(path: str | Path) -> WatchSettings:
    """Load a testwatch config file.

    Args:
        path: Path to TOML config file

    Returns:
        WatchSettings

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be parsed or holds invalid values
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\nRun 'testwatch' without arguments to auto-create a default config."
        )

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e

    watch_raw = raw.get("watch", {})
    unknown = set(watch_raw) - set(_RUN_CONFIGURATION_KEYS) - {"root_dir", "command"}
    if unknown:
        logger.warning(f"Ignoring unknown [watch] keys in {path}: {', '.join(sorted(unknown))}")

    # root_dir is relative to the config file, like watcher dirs
    root_dir = (path.parent / watch_raw.get("root_dir", ".")).resolve()
    values = {
        field_name: watch_raw[key]
        for key, field_name in _RUN_CONFIGURATION_KEYS.items()
        if key in watch_raw
    }
    try:
        configuration = RunConfiguration(root_dir=str(root_dir), **values)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid [watch] section in {path}: {e}") from e

    try:
        watchers = [WatcherConfig.from_table(w, path.parent) for w in raw.get("file_watcher", [])]
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid [[file_watcher]] section in {path}: {e}") from e

    # Use cmdorc's loader for runner config
    runner_config = load_config(path)

    return WatchSettings(
        configuration=configuration,
        runner_config=runner_config,
        command=watch_raw.get("command", DEFAULT_COMMAND),
        watchers=watchers,
    )
