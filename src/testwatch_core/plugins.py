"""Watch plugin loading, validation and lookup.

A watch plugin is any object (usually a module) exposing:

- ``key``: code point, one-character string, or a collection of those
- ``prompt``: one-line description shown in the usage footer
- ``enter(configuration, end)``: take focus until ``end()`` is called
- ``apply(configuration)``: immediate change, no focus (optional)
- ``on_key(key)``: receives keys while focused (optional)

At least one of ``enter`` / ``apply`` is required. Everything is checked at
load time so a broken plugin fails before watch mode starts.
"""

import hashlib
import importlib
import importlib.util
import inspect
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from types import ModuleType
from typing import Any

from testwatch_core.keys import RESERVED_KEYS, display_key, key_from_code

logger = logging.getLogger(__name__)


class PluginLoadError(ValueError):
    """A watch plugin could not be loaded or failed validation."""


class WatchPlugin:
    """Validated view over a plugin capability object."""

    def __init__(self, locator: str, source: Any, keys: frozenset[str], prompt: str):
        self.locator = locator
        self.source = source
        self.keys = keys
        self.prompt = prompt

    @property
    def name(self) -> str:
        return self.locator

    @property
    def display_key(self) -> str:
        """Keys as shown in the footer, e.g. "s" or "s/S"."""
        return "/".join(display_key(k) for k in sorted(self.keys))

    @property
    def has_enter(self) -> bool:
        return callable(getattr(self.source, "enter", None))

    @property
    def has_apply(self) -> bool:
        return callable(getattr(self.source, "apply", None))

    @property
    def has_on_key(self) -> bool:
        return callable(getattr(self.source, "on_key", None))

    # Hooks resolve on the source at call time so a plugin can rebind them.
    def enter(self, configuration, end) -> None:
        self.source.enter(configuration, end)

    def apply(self, configuration):
        return self.source.apply(configuration)

    def on_key(self, key: str) -> None:
        handler = getattr(self.source, "on_key", None)
        if callable(handler):
            handler(key)

    def __repr__(self) -> str:
        return f"WatchPlugin({self.locator!r}, keys={sorted(self.keys)}, prompt={self.prompt!r})"


class PluginRegistry:
    """Loaded plugins indexed by trigger key.

    Load order is kept for iteration; display order is by prompt.
    """

    def __init__(self, plugins: Sequence[WatchPlugin] = ()):
        self._plugins: list[WatchPlugin] = []
        self._by_key: dict[str, WatchPlugin] = {}
        for plugin in plugins:
            self.add(plugin)

    def add(self, plugin: WatchPlugin) -> None:
        """Register a plugin.

        Raises:
            PluginLoadError: If a key is reserved or already taken
        """
        for key in sorted(plugin.keys):
            if key in RESERVED_KEYS:
                raise PluginLoadError(
                    f"Watch plugin '{plugin.locator}' uses reserved key "
                    f"'{display_key(key)}'"
                )
            owner = self._by_key.get(key)
            if owner is not None:
                raise PluginLoadError(
                    f"Watch plugins '{owner.locator}' and '{plugin.locator}' "
                    f"both use key '{display_key(key)}'"
                )
        for key in plugin.keys:
            self._by_key[key] = plugin
        self._plugins.append(plugin)

    def get(self, key: str) -> WatchPlugin | None:
        return self._by_key.get(key)

    def sorted_for_display(self) -> list[WatchPlugin]:
        """Plugins ordered by prompt text, independent of load order."""
        return sorted(self._plugins, key=lambda p: p.prompt)

    @property
    def keys(self) -> set[str]:
        return set(self._by_key)

    def __iter__(self):
        return iter(self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)

    def __getitem__(self, index: int) -> WatchPlugin:
        return self._plugins[index]


def load_plugins(locators: Iterable[str], root_dir: str | Path = ".") -> PluginRegistry:
    """Load and validate watch plugins.

    Args:
        locators: File paths (relative to root_dir or absolute), dotted module
            names, or "module:attribute" references
        root_dir: Directory relative paths are resolved against

    Returns:
        PluginRegistry with plugins in locator order

    Raises:
        PluginLoadError: On import failure, invalid plugin, or key collision
    """
    registry = PluginRegistry()
    for locator in locators:
        source = resolve_locator(locator, Path(root_dir))
        plugin = validate_plugin(locator, source)
        registry.add(plugin)
        logger.info(f"Loaded watch plugin '{locator}' on [{plugin.display_key}]")
    return registry


def resolve_locator(locator: str, root_dir: Path) -> Any:
    """Import the capability object a locator points at."""
    target, _, attribute = locator.rpartition(":")
    if not target or not attribute.isidentifier():
        # plain locator, or a Windows drive letter rather than an attribute
        target, attribute = locator, ""

    path = _locate_file(target, root_dir)
    try:
        module = _load_file(path) if path is not None else importlib.import_module(target)
    except Exception as e:
        raise PluginLoadError(f"Failed to load watch plugin '{locator}': {e}") from e

    if not attribute:
        return module

    try:
        source = getattr(module, attribute)
    except AttributeError as e:
        raise PluginLoadError(f"Watch plugin '{locator}': '{target}' has no attribute '{attribute}'") from e

    if inspect.isclass(source):
        try:
            source = source()
        except Exception as e:
            raise PluginLoadError(f"Failed to instantiate watch plugin '{locator}': {e}") from e
    return source


def validate_plugin(locator: str, source: Any) -> WatchPlugin:
    """Check the plugin interface and build a WatchPlugin.

    Raises:
        PluginLoadError: If key/prompt are missing or invalid, or the plugin
            has neither enter nor apply
    """
    raw_key = getattr(source, "key", None)
    if raw_key is None:
        raise PluginLoadError(f"Watch plugin '{locator}' does not define 'key'")

    prompt = getattr(source, "prompt", None)
    if not isinstance(prompt, str) or not prompt.strip():
        raise PluginLoadError(f"Watch plugin '{locator}' must define a non-empty 'prompt'")

    try:
        if isinstance(raw_key, (int, str)):
            keys = frozenset([key_from_code(raw_key)])
        else:
            keys = frozenset(key_from_code(k) for k in raw_key)
    except (TypeError, ValueError) as e:
        raise PluginLoadError(f"Watch plugin '{locator}' has an invalid key: {e}") from e
    if not keys:
        raise PluginLoadError(f"Watch plugin '{locator}' must define at least one key")

    plugin = WatchPlugin(locator, source, keys, prompt.strip())
    if not (plugin.has_enter or plugin.has_apply):
        raise PluginLoadError(f"Watch plugin '{locator}' must define 'enter' or 'apply'")
    return plugin


def _locate_file(target: str, root_dir: Path) -> Path | None:
    """Resolve a path-like locator to an existing file, or None."""
    looks_like_path = "/" in target or "\\" in target or target.endswith(".py")
    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = root_dir / candidate

    for path in (candidate, candidate.with_name(candidate.name + ".py")):
        if path.is_file():
            return path.resolve()

    if looks_like_path:
        raise PluginLoadError(f"Watch plugin not found: {candidate}")
    return None


def _load_file(path: Path) -> ModuleType:
    # unique module name per file so two plugins named alike do not clash
    digest = hashlib.sha1(str(path).encode()).hexdigest()[:8]
    spec = importlib.util.spec_from_file_location(f"_testwatch_plugin_{path.stem}_{digest}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
