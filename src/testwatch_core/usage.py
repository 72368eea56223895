"""Usage footer text printed between runs."""

from collections.abc import Iterable

from testwatch_core.models import RunConfiguration
from testwatch_core.plugins import WatchPlugin

ARROW = " › "
CLEAR_SCREEN = "\x1b[2J\x1b[3J\x1b[H"
PRE_RUN_MESSAGE = "Determining test suites to run..."


def press(key: str, description: str) -> str:
    return f"{ARROW}Press {key} to {description}."


def active_filters(cfg: RunConfiguration, delimiter: str = "\n") -> str:
    """Summary of the active path/name filters, or "" if there are none."""
    if not cfg.has_filters:
        return ""
    filters = []
    if cfg.test_path_pattern:
        filters.append(f"filename /{cfg.test_path_pattern}/")
    if cfg.test_name_pattern:
        filters.append(f"test name /{cfg.test_name_pattern}/")
    return f"\nActive Filters: {', '.join(filters)}{delimiter}"


def usage(cfg: RunConfiguration, plugins: Iterable[WatchPlugin], delimiter: str = "\n") -> str:
    """Full usage footer: built-in prompts plus plugin prompts sorted by text."""
    plugin_lines = [
        press(plugin.display_key, plugin.prompt)
        for plugin in sorted(plugins, key=lambda p: p.prompt)
    ]
    messages = [
        active_filters(cfg),
        press("c", "clear filters") if cfg.has_filters else None,
        "\nWatch Usage",
        press("a", "run all tests"),
        press("o", "only run tests related to changed files"),
        press("u", "update failing snapshots"),
        press("p", "filter by a filename regex pattern"),
        press("t", "filter by a test name regex pattern"),
        *plugin_lines,
        press("q", "quit watch mode"),
        press("Enter", "trigger a test run"),
    ]
    return delimiter.join(m for m in messages if m) + delimiter


def toggle_usage_prompt() -> str:
    """Compact footer for non-interactive output."""
    return "\nWatch Usage: Press w to show more."
