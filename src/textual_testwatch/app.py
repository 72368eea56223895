"""Standalone TUI application for textual-testwatch.

Thin shell around WatchController: a Log widget is the output stream and
key presses are forwarded to the controller as raw keys.
"""

import asyncio
import logging
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Log, Static

from testwatch_core.config import WatchSettings
from testwatch_core.file_watcher import FileWatcherManager
from testwatch_core.keys import KEYS
from testwatch_core.runner_adapter import CmdorcTestRunner
from testwatch_core.watchers import ChangeSourceWatcher
from textual_testwatch.controller import WatchController

logger = logging.getLogger(__name__)

_SPECIAL_KEYS = {
    "enter": KEYS.ENTER,
    "escape": KEYS.ESCAPE,
    "backspace": KEYS.BACKSPACE,
    "ctrl+c": KEYS.CONTROL_C,
    "ctrl+d": KEYS.CONTROL_D,
    "space": " ",
    "tab": "\t",
}


def translate_key(key: str, character: str | None) -> str | None:
    """Map a Textual key event to the raw key the controller expects.

    Returns:
        One-character key, or None for keys watch mode does not use
    """
    if key in _SPECIAL_KEYS:
        return _SPECIAL_KEYS[key]
    if character and len(character) == 1 and character.isprintable():
        return character
    return None


class LogStream:
    """Output stream writing into a Textual Log widget."""

    def __init__(self, log: Log):
        self.log = log

    def write(self, text: str) -> None:
        self.log.write(text)

    def clear(self) -> None:
        self.log.clear()

    def isatty(self) -> bool:
        return True


class HelpScreen(ModalScreen):
    """Modal help screen showing usage and plugin keys."""

    BINDINGS = [("escape", "dismiss", "Close")]

    def __init__(self, usage_text: str, plugin_help: str, **kwargs):
        """Initialize help screen.

        Args:
            usage_text: Full usage footer
            plugin_help: Plugin key listing
        """
        super().__init__(**kwargs)
        self.usage_text = usage_text
        self.plugin_help = plugin_help

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("Watch Usage", classes="help-header")
            yield Static(self.usage_text.strip("\n"))
            yield Static("")
            yield Static(self.plugin_help.rstrip("\n"))
            yield Static("")
            yield Static("Press ESC to close", classes="help-footer")


class WatchApp(App):
    """TUI shell for watch mode.

    Every key that is not an app binding goes to WatchController.on_data.
    """

    TITLE = "testwatch"
    BINDINGS = [
        Binding("f1", "show_help", "Help"),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }

    #output {
        height: 1fr;
        border: solid $accent;
    }

    HelpScreen {
        align: center middle;
    }

    HelpScreen > Vertical {
        width: 70;
        height: auto;
        background: $panel;
        border: solid $accent;
        padding: 2;
    }

    .help-header {
        text-style: bold;
        color: $accent;
    }

    .help-footer {
        text-style: italic;
        color: $text-muted;
    }
    """

    def __init__(self, settings: WatchSettings, runner: Any = None, **kwargs):
        """Initialize app.

        Args:
            settings: Loaded watch settings
            runner: Test runner; defaults to a CmdorcTestRunner built from settings
        """
        super().__init__(**kwargs)
        self.settings = settings
        self._runner = runner
        self.controller: WatchController | None = None
        self.file_watcher: ChangeSourceWatcher | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Log(id="output")
        yield Footer()

    async def on_mount(self) -> None:
        """Create the controller, start file watchers and the first run."""
        try:
            stream = LogStream(self.query_one("#output", Log))
            runner = self._runner or CmdorcTestRunner.from_settings(self.settings)
            self.controller = WatchController(
                self.settings.configuration,
                runner,
                stream,
                notifier=self,
                interactive=True,
            )
            self.controller.on_quit_requested = self.exit

            loop = asyncio.get_running_loop()
            self.controller.attach(loop)

            if self.settings.watchers:
                self.file_watcher = FileWatcherManager(self.controller.notify_file_change, loop)
                for watcher_config in self.settings.watchers:
                    self.file_watcher.add_watch(watcher_config)
                self.file_watcher.start()

            self.controller.start()
            logger.info("WatchApp mounted successfully")
        except Exception as e:
            logger.error(f"Failed to mount app: {e}")
            self.exit(return_code=1, message=f"Error: {e}")

    async def on_unmount(self) -> None:
        """Stop watchers and detach controller on exit."""
        if self.file_watcher:
            try:
                self.file_watcher.stop()
            except Exception as e:
                logger.error(f"Error stopping file watcher: {e}")
            self.file_watcher = None
        if self.controller:
            self.controller.detach()

    def on_key(self, event: Key) -> None:
        """Forward raw keys to the controller."""
        if not self.controller or self.screen is not self.screen_stack[0]:
            return

        key = translate_key(event.key, event.character)
        if key is None:
            return

        event.prevent_default()
        event.stop()
        self.controller.on_data(key)

    def action_show_help(self) -> None:
        if not self.controller:
            return
        self.push_screen(
            HelpScreen(
                self.controller.usage_text(),
                self.controller.dispatcher.get_binding_help(),
            )
        )


def main(settings: WatchSettings) -> int:
    """Run standalone app.

    Returns:
        Process exit code
    """
    app = WatchApp(settings)
    app.run()
    return app.return_code or 0
