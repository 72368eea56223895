"""CLI entry point for testwatch: auto-generates default config and launches the TUI."""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from testwatch_core.config import WatchSettings, load_watch_config
from textual_testwatch import __version__
from textual_testwatch.app import main as run_app

logging.getLogger("textual_testwatch").setLevel(logging.DEBUG)

# Default config template for pytest projects
DEFAULT_CONFIG_TEMPLATE = """\
# Auto-generated testwatch.toml

[watch]
command = "Tests"
test_path_pattern = ""
test_name_pattern = ""
plugins = []

[[file_watcher]]
dir = "."
patterns = ["**/*.py"]
debounce_ms = 300
ignore_dirs = ["__pycache__", ".git", "venv", ".venv"]

[[command]]
name = "Tests"
command = "pytest {{ test_args }}"
triggers = []
"""


def create_default_config(config_path: Path) -> bool:
    """
    Create a default testwatch.toml if it doesn't exist.

    Args:
        config_path: Path where config should be created

    Returns:
        True if config was created, False if it already exists

    Raises:
        PermissionError: If unable to write to the directory
        OSError: If other file system errors occur
    """
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="testwatch",
        description="Interactive watch mode for your test suite.",
        epilog="Examples:\n"
        "  testwatch                            # Auto-create testwatch.toml and launch\n"
        "  testwatch --config ci/watch.toml     # Use custom config\n"
        "  testwatch --test-name-pattern login  # Start with a name filter\n"
        "  testwatch --version                  # Show version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="testwatch.toml",
        help="Path to config file (default: testwatch.toml)",
    )
    parser.add_argument(
        "--test-path-pattern",
        default=None,
        help="Initial filename regex filter",
    )
    parser.add_argument(
        "--test-name-pattern",
        default=None,
        help="Initial test name regex filter",
    )
    parser.add_argument(
        "--watch-all",
        action="store_true",
        help="Start in watch-all mode instead of only changed files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def apply_overrides(settings: WatchSettings, args: argparse.Namespace) -> WatchSettings:
    """Apply command-line overrides on top of the config file."""
    overrides = {}
    if args.test_path_pattern is not None:
        overrides["test_path_pattern"] = args.test_path_pattern
    if args.test_name_pattern is not None:
        overrides["test_name_pattern"] = args.test_name_pattern
    if args.watch_all:
        overrides["watch_all"] = True
        overrides["watch"] = False
    if not overrides:
        return settings
    return replace(settings, configuration=replace(settings.configuration, **overrides))


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for testwatch CLI.

    Handles:
    - Argument parsing
    - Auto-creation of testwatch.toml
    - Launching WatchApp
    - Error handling and exit codes
    """
    args = parse_args(argv)

    config_path = Path(args.config).resolve()

    try:
        if create_default_config(config_path):
            print(f"Created default config at: {config_path}")

        settings = apply_overrides(load_watch_config(config_path), args)
        sys.exit(run_app(settings))

    except KeyboardInterrupt:
        sys.exit(130)
    except (PermissionError, OSError) as e:
        print(f"Error: Failed to create config: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
