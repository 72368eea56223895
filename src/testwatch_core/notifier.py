"""Pluggable notification protocol for testwatch_core.

Lets the controller report plugin faults and failed runs without depending
on a particular UI. The signature matches ``textual.app.App.notify``, so a
Textual app can be passed as the notifier directly.
"""

import logging
from typing import Literal, Protocol

Severity = Literal["information", "warning", "error"]

_LOG_LEVELS = {
    "information": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class WatchNotifier(Protocol):
    """Anything with a Textual-style notify()."""

    def notify(self, message: str, *, severity: Severity = "information") -> None:
        ...


class NoOpNotifier:
    """Silent notifier - default when the controller is embedded headless."""

    def notify(self, message: str, *, severity: Severity = "information") -> None:
        pass


class LoggingNotifier:
    """Writes notifications to a logger at the matching level."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("testwatch")

    def notify(self, message: str, *, severity: Severity = "information") -> None:
        self.logger.log(_LOG_LEVELS.get(severity, logging.INFO), message)
