"""Pure configuration transitions.

Every function takes a RunConfiguration and returns a new one; the input
is never modified.
"""

from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Literal

from testwatch_core.models import RunConfiguration

PatternKind = Literal["test_path_pattern", "test_name_pattern"]

PATTERN_KINDS = ("test_path_pattern", "test_name_pattern")

# fixed for the whole watch session; plugins cannot patch them
SESSION_FIELDS = ("root_dir", "watch_plugins")


def normalize_for_watch(cfg: RunConfiguration) -> RunConfiguration:
    """Derive the configuration used while watch mode is active.

    - pass_with_no_tests is forced on (an empty match set is not a failure)
    - exactly one of watch / watch_all is set, watch_all winning if requested
    - only_changed follows the watch sub-mode
    """
    if cfg.watch_all:
        return replace(cfg, watch=False, only_changed=False, pass_with_no_tests=True)
    return replace(cfg, watch=True, only_changed=True, pass_with_no_tests=True)


def toggle_only_changed(cfg: RunConfiguration) -> RunConfiguration:
    return replace(cfg, only_changed=True, watch=True, watch_all=False)


def toggle_watch_all(cfg: RunConfiguration) -> RunConfiguration:
    return replace(cfg, watch_all=True, watch=False, only_changed=False)


def request_update_snapshot(cfg: RunConfiguration) -> RunConfiguration:
    return replace(cfg, update_snapshot="all")


def clear_one_shot_flags(cfg: RunConfiguration) -> RunConfiguration:
    """Reset fields that only apply to a single run."""
    if cfg.update_snapshot == "none":
        return cfg
    return replace(cfg, update_snapshot="none")


def set_pattern(cfg: RunConfiguration, kind: PatternKind, value: str | None) -> RunConfiguration:
    """Set the path or name filter.

    Args:
        cfg: Current configuration
        kind: "test_path_pattern" or "test_name_pattern"
        value: Regex source; None or "" clears the filter

    Raises:
        ValueError: If kind is not a pattern field
    """
    if kind not in PATTERN_KINDS:
        raise ValueError(f"Unknown pattern kind '{kind}'. Expected one of: {', '.join(PATTERN_KINDS)}")
    return replace(cfg, **{kind: value or ""})


def clear_patterns(cfg: RunConfiguration) -> RunConfiguration:
    return replace(cfg, test_path_pattern="", test_name_pattern="")


def update_configuration(
    cfg: RunConfiguration, changes: Mapping[str, Any] | RunConfiguration
) -> RunConfiguration:
    """Apply a patch returned by a plugin.

    The result is re-normalized, so a plugin can switch watch sub-modes
    but cannot turn off pass_with_no_tests while watching. root_dir and
    watch_plugins always keep their current values.

    Args:
        cfg: Current configuration
        changes: Mapping of field -> value, or a complete RunConfiguration

    Raises:
        ValueError: On unknown fields, session fields or invalid values
    """
    if isinstance(changes, RunConfiguration):
        session = {name: getattr(cfg, name) for name in SESSION_FIELDS}
        return normalize_for_watch(replace(changes, **session))

    unknown = set(changes) - RunConfiguration.field_names()
    if unknown:
        raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

    fixed = set(changes) & set(SESSION_FIELDS)
    if fixed:
        raise ValueError(f"Cannot change session fields: {', '.join(sorted(fixed))}")

    patch = dict(changes)
    # switching sub-mode through a patch clears the other one
    if patch.get("watch_all"):
        patch.setdefault("watch", False)
    elif patch.get("watch"):
        patch.setdefault("watch_all", False)

    updated = replace(cfg, **patch)
    if updated.watch_all:
        return replace(updated, pass_with_no_tests=True)
    return replace(updated, watch=True, pass_with_no_tests=True)
