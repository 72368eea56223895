"""Non-Textual watch controller. Primary embed point.

Owns the current RunConfiguration, the key dispatcher and the run tokens.
Everything happens on one event loop: key events and run completions are
interleaved callbacks, never concurrent.

Stable methods: attach(), detach(), start(), on_data(), trigger_run(),
request_rerun(), show_usage(), quit().
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, Optional

from testwatch_core.keys import KEYS
from testwatch_core.models import RunConfiguration, RunOptions, RunResult
from testwatch_core.notifier import NoOpNotifier, WatchNotifier
from testwatch_core.plugins import WatchPlugin, load_plugins
from testwatch_core.prompts import PatternPrompt
from testwatch_core.test_watcher import TestWatcher
from testwatch_core.transitions import (
    clear_one_shot_flags,
    clear_patterns,
    normalize_for_watch,
    request_update_snapshot,
    toggle_only_changed,
    toggle_watch_all,
    update_configuration,
)
from testwatch_core.usage import CLEAR_SCREEN, PRE_RUN_MESSAGE, toggle_usage_prompt, usage
from textual_testwatch.keyboard_handler import FocusLease, KeyDispatcher

logger = logging.getLogger(__name__)


class WatchController:
    """Watch-mode loop state: Idle -> Running -> (completion) -> Idle.

    The runner is any object with ``run(options)``; it may return None or an
    awaitable and must call ``options.on_complete(result)`` once per run.
    """

    def __init__(
        self,
        configuration: RunConfiguration | Mapping[str, Any],
        runner: Any,
        output_stream: Any,
        contexts: Sequence[Any] = (),
        notifier: WatchNotifier | None = None,
        interactive: bool | None = None,
    ):
        """Initialize controller.

        Args:
            configuration: Initial configuration (RunConfiguration or mapping)
            runner: Test runner with run(options)
            output_stream: Sink with write(text); clear() is used if present
            contexts: Opaque contexts passed through to the runner
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            interactive: Full usage footer and screen clearing; defaults to
                output_stream.isatty()

        Raises:
            PluginLoadError: If a watch plugin fails to load or collides
        """
        if not isinstance(configuration, RunConfiguration):
            configuration = RunConfiguration.from_mapping(configuration)
        self.configuration = normalize_for_watch(configuration)

        self.runner = runner
        self.output_stream = output_stream
        self.contexts = contexts
        self.notifier = notifier or NoOpNotifier()
        if interactive is None:
            isatty = getattr(output_stream, "isatty", None)
            interactive = bool(isatty()) if callable(isatty) else False
        self.interactive = interactive

        self.plugins = load_plugins(self.configuration.watch_plugins, Path(self.configuration.root_dir))

        self._path_prompt = PatternPrompt("test_path_pattern", output_stream)
        self._name_prompt = PatternPrompt("test_name_pattern", output_stream)
        self.dispatcher = KeyDispatcher(
            actions=self._builtin_actions(),
            plugins=self.plugins,
            on_plugin=self._activate_plugin,
            on_quit=self.quit,
            on_holder_error=self._on_holder_error,
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._current_token: TestWatcher | None = None
        self._running = False
        self._rerun_pending = False
        self._closed = False
        self._tasks: set[asyncio.Task] = set()

        # Outbound events (host wires these)
        self.on_run_started: Callable[[RunConfiguration, TestWatcher], None] | None = None
        self.on_run_finished: Callable[[RunResult | None], None] | None = None

        # Intent signals
        self.on_quit_requested: Callable[[], None] | None = None

    def _builtin_actions(self) -> dict[str, Callable[[], None]]:
        return {
            KEYS.Q: self.quit,
            KEYS.ENTER: self.request_rerun,
            KEYS.LINE_FEED: self.request_rerun,
            KEYS.A: lambda: self._apply(toggle_watch_all),
            KEYS.O: lambda: self._apply(toggle_only_changed),
            KEYS.U: lambda: self._apply(request_update_snapshot, keep_one_shot=True),
            KEYS.C: lambda: self._apply(clear_patterns),
            KEYS.P: lambda: self._focus(self._path_prompt),
            KEYS.T: lambda: self._focus(self._name_prompt),
            KEYS.W: self.show_usage,
            KEYS.QUESTION_MARK: self.show_usage,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether a run is in flight."""
        return self._running

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def current_token(self) -> TestWatcher | None:
        return self._current_token

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach to the event loop asynchronous runs are scheduled on.

        Idempotent - guards against double-attach and non-running loop.
        """
        if self._loop is not None:
            return

        if not loop.is_running():
            raise RuntimeError(
                "Event loop must be running before attach(). "
                "Call attach() from within on_mount() or after loop started."
            )

        self._loop = loop

    def detach(self) -> None:
        """Cancel outstanding run tasks and forget the loop."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._loop = None

    def start(self, key_source: Any = None) -> None:
        """Start watching: subscribe to keys and trigger the first run.

        Args:
            key_source: Optional object with on_data(callback) delivering keys
        """
        if key_source is not None:
            key_source.on_data(self.on_data)
        self.trigger_run(self.configuration)

    def quit(self) -> None:
        """Leave watch mode."""
        if self._closed:
            return
        self._closed = True
        self._rerun_pending = False
        self.output_stream.write("\n")
        if self._current_token is not None and self._running:
            self._current_token.interrupt()
        logger.info("Watch mode stopped")
        if self.on_quit_requested:
            self.on_quit_requested()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def on_data(self, key: str) -> None:
        """Handle one key from the input stream."""
        if self._closed:
            return
        self.dispatcher.dispatch(key)

    def _apply(
        self,
        transition: Callable[[RunConfiguration], RunConfiguration],
        keep_one_shot: bool = False,
    ) -> None:
        """Replace the configuration and start a run with it."""
        base = self.configuration
        if self._running and not keep_one_shot:
            # the superseded run never completes, its one-shot flags end with it
            base = clear_one_shot_flags(base)
        self.configuration = transition(base)
        self.trigger_run(self.configuration)

    def _focus(self, holder: Any) -> None:
        lease = self.dispatcher.acquire(holder)
        try:
            holder.enter(self.configuration, self._make_end(lease))
        except Exception as e:
            logger.exception(f"Error entering {holder!r}: {e}")
            self.notifier.notify(f"{getattr(holder, 'name', holder)} failed: {e}", severity="error")
            self.dispatcher.release(lease)

    def _on_holder_error(self, holder: Any, error: Exception) -> None:
        self.notifier.notify(f"{getattr(holder, 'name', holder)} failed: {error}", severity="error")

    def _activate_plugin(self, plugin: WatchPlugin) -> None:
        if plugin.has_enter:
            self._focus(plugin)
            return

        try:
            changes = plugin.apply(self.configuration)
        except Exception as e:
            logger.exception(f"Error applying watch plugin '{plugin.name}': {e}")
            self.notifier.notify(f"Watch plugin '{plugin.name}' failed: {e}", severity="error")
            return
        self._apply_changes(plugin.name, changes)

    def _make_end(self, lease: FocusLease) -> Callable[..., None]:
        def end(changes: Mapping[str, Any] | RunConfiguration | None = None) -> None:
            if not self.dispatcher.release(lease):
                return
            if self._closed:
                return
            if changes:
                self._apply_changes(getattr(lease.holder, "name", repr(lease.holder)), changes)
            else:
                self._print_footer()

        return end

    def _apply_changes(self, source: str, changes: Mapping[str, Any] | RunConfiguration | None) -> None:
        if not changes:
            self.trigger_run(self.configuration)
            return
        try:
            self._apply(lambda cfg: update_configuration(cfg, changes))
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid configuration change from {source}: {e}")
            self.notifier.notify(f"Invalid configuration change from {source}: {e}", severity="error")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def request_rerun(self) -> None:
        """Rerun with the current configuration.

        While a run is in flight this queues a single follow-up run;
        repeated requests are coalesced.
        """
        if self._closed:
            return
        if self._running:
            self._rerun_pending = True
            logger.debug("Rerun queued until the current run completes")
            return
        self.trigger_run(self.configuration)

    def notify_file_change(self, path: Path) -> None:
        """File watcher callback."""
        logger.debug(f"Change detected in {path}")
        self.request_rerun()

    def trigger_run(self, configuration: RunConfiguration) -> TestWatcher:
        """Start a run, superseding any run in flight.

        Returns:
            The new run token
        """
        if self._current_token is not None and self._running:
            logger.debug("Interrupting in-flight run")
            self._current_token.interrupt()
        self._rerun_pending = False

        token = TestWatcher(is_watch_mode=True)
        self._current_token = token
        self._running = True

        if self.interactive:
            clear = getattr(self.output_stream, "clear", None)
            if callable(clear):
                clear()
            else:
                self.output_stream.write(CLEAR_SCREEN)
            self.output_stream.write(PRE_RUN_MESSAGE)

        if self.on_run_started:
            self.on_run_started(configuration, token)

        options = RunOptions(
            configuration=configuration,
            contexts=self.contexts,
            output_stream=self.output_stream,
            test_watcher=token,
            on_complete=self._make_on_complete(token),
        )
        self._invoke_runner(options)
        return token

    def _make_on_complete(self, token: TestWatcher) -> Callable[[RunResult | None], None]:
        fired = False

        def on_complete(result: RunResult | None = None) -> None:
            nonlocal fired
            if fired:
                logger.debug("Ignoring repeated completion of the same run")
                return
            fired = True
            self._on_complete(token, result)

        return on_complete

    def _invoke_runner(self, options: RunOptions) -> None:
        try:
            outcome = self.runner.run(options)
        except Exception as e:
            logger.exception(f"Runner failed to start: {e}")
            options.on_complete(RunResult(success=False, error=str(e)))
            return

        if not inspect.isawaitable(outcome):
            return

        if self._loop is None:
            close = getattr(outcome, "close", None)
            if callable(close):
                close()
            raise RuntimeError("Controller not attached to event loop. Call attach() first.")

        task = self._loop.create_task(self._await_run(outcome, options))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _await_run(self, outcome, options: RunOptions) -> None:
        try:
            await outcome
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Runner failed: {e}")
            # completes the run unless the runner already did
            options.on_complete(RunResult(success=False, error=str(e)))

    def _on_complete(self, token: TestWatcher, result: RunResult | None) -> None:
        if token is not self._current_token or self._closed:
            logger.debug("Ignoring completion of a superseded run")
            return

        self._running = False
        self.configuration = clear_one_shot_flags(self.configuration)

        if result is not None and not result.success and result.error:
            self.notifier.notify(f"Test run failed: {result.error}", severity="warning")

        if self.on_run_finished:
            self.on_run_finished(result)

        if self._rerun_pending:
            self._rerun_pending = False
            self.trigger_run(self.configuration)
            return

        self._print_footer()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_footer(self) -> None:
        if self.dispatcher.is_focused or self._running:
            return
        if self.interactive:
            self.output_stream.write(self.usage_text())
        else:
            self.output_stream.write(toggle_usage_prompt())

    def usage_text(self) -> str:
        return usage(self.configuration, self.plugins)

    def show_usage(self) -> None:
        """Print the full usage footer on request."""
        self.output_stream.write(self.usage_text())
