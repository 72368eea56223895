"""Key dispatch with an exclusive focus lock.

Two states:
- Idle: keys go to built-in actions, then to plugins by trigger key
- Focused(holder): keys go only to the holder's on_key (if any)

Focus is released through the lease returned by acquire(); there is no
timeout, a holder that never releases keeps the input.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from testwatch_core.keys import QUIT_KEYS, display_key
from testwatch_core.plugins import PluginRegistry, WatchPlugin

logger = logging.getLogger(__name__)


class FocusLease:
    """Handle for one focus acquisition."""

    def __init__(self, holder: Any):
        self.holder = holder

    def __repr__(self) -> str:
        return f"FocusLease({self.holder!r})"


class KeyDispatcher:
    """Routes raw keys to built-in actions, plugins, or the focus holder."""

    def __init__(
        self,
        actions: Mapping[str, Callable[[], None]],
        plugins: PluginRegistry,
        on_plugin: Callable[[WatchPlugin], None],
        on_quit: Callable[[], None] | None = None,
        on_holder_error: Callable[[Any, Exception], None] | None = None,
    ):
        """Initialize dispatcher.

        Args:
            actions: key -> built-in action
            plugins: Loaded plugins, looked up by key when Idle
            on_plugin: Called with the plugin whose key was pressed
            on_quit: Called for Ctrl-C / Ctrl-D, even while focused
            on_holder_error: Called with the holder and the error when its
                on_key raises; focus is released first
        """
        self.actions = dict(actions)
        self.plugins = plugins
        self.on_plugin = on_plugin
        self.on_quit = on_quit
        self.on_holder_error = on_holder_error
        self._lease: FocusLease | None = None

    @property
    def focused(self) -> Any:
        """Current focus holder, or None when Idle."""
        return self._lease.holder if self._lease else None

    @property
    def is_focused(self) -> bool:
        return self._lease is not None

    def acquire(self, holder: Any) -> FocusLease:
        """Give exclusive focus to ``holder``.

        Raises:
            RuntimeError: If another holder already has focus
        """
        if self._lease is not None:
            raise RuntimeError(f"Focus already held by {self._lease.holder!r}")
        self._lease = FocusLease(holder)
        logger.debug(f"Focus acquired by {holder!r}")
        return self._lease

    def release(self, lease: FocusLease) -> bool:
        """Release focus if ``lease`` is still current.

        Returns:
            True if focus was released, False for a stale lease
        """
        if self._lease is not lease:
            logger.debug(f"Ignoring stale release from {lease!r}")
            return False
        self._lease = None
        logger.debug(f"Focus released by {lease.holder!r}")
        return True

    def dispatch(self, key: str) -> bool:
        """Handle one key.

        Returns:
            True if the key was consumed by an action, plugin, or focus holder
        """
        if key in QUIT_KEYS and self.on_quit is not None:
            self.on_quit()
            return True

        if self._lease is not None:
            return self._dispatch_focused(self._lease, key)

        action = self.actions.get(key)
        if action is not None:
            action()
            return True

        plugin = self.plugins.get(key)
        if plugin is not None:
            self.on_plugin(plugin)
            return True

        logger.debug(f"Unmapped key [{display_key(key)}]")
        return False

    def _dispatch_focused(self, lease: FocusLease, key: str) -> bool:
        holder = lease.holder
        handler = getattr(holder, "on_key", None)
        if not callable(handler) or not getattr(holder, "has_on_key", True):
            logger.debug(f"Key [{display_key(key)}] swallowed while {holder!r} has focus")
            return False

        try:
            handler(key)
        except Exception as e:
            logger.exception(f"Error in {holder!r} handling key [{display_key(key)}]: {e}")
            self.release(lease)
            if self.on_holder_error is not None:
                self.on_holder_error(holder, e)
        return True

    def get_binding_help(self) -> str:
        """Formatted list of plugin bindings, sorted by key."""
        help_text = "Plugin Keys:\n"
        plugins = sorted(self.plugins, key=lambda p: p.display_key)
        if not plugins:
            return help_text + "  (none configured)\n"
        for plugin in plugins:
            help_text += f"  [{plugin.display_key}] → {plugin.prompt}\n"
        return help_text
