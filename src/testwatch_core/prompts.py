"""Interactive pattern prompts bound to the p / t keys.

A prompt takes focus the same way a watch plugin does: enter() receives an
``end`` callback and keys arrive through on_key() until it is called.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from testwatch_core.keys import KEYS, is_printable
from testwatch_core.models import RunConfiguration
from testwatch_core.transitions import PATTERN_KINDS, PatternKind
from testwatch_core.usage import ARROW

logger = logging.getLogger(__name__)

_DESCRIPTIONS = {
    "test_path_pattern": "filenames",
    "test_name_pattern": "test names",
}


class PatternPrompt:
    """Line editor that collects a regex and submits it as a config patch."""

    def __init__(self, kind: PatternKind, output_stream: Any):
        """Initialize prompt.

        Args:
            kind: Configuration field the pattern is written to
            output_stream: Sink with a write(text) method
        """
        if kind not in PATTERN_KINDS:
            raise ValueError(f"Unknown pattern kind '{kind}'")
        self.kind = kind
        self.output_stream = output_stream
        self._buffer = ""
        self._end: Callable[..., None] | None = None

    @property
    def name(self) -> str:
        return f"{_DESCRIPTIONS[self.kind]} pattern prompt"

    @property
    def is_entering(self) -> bool:
        return self._end is not None

    @property
    def buffer(self) -> str:
        return self._buffer

    def enter(self, configuration: RunConfiguration, end: Callable[..., None]) -> None:
        self._buffer = ""
        self._end = end
        self.output_stream.write(
            "\nPattern Mode Usage\n"
            f"{ARROW}Press Esc to exit pattern mode.\n"
            f"{ARROW}Press Enter to filter by a {_DESCRIPTIONS[self.kind]} regex pattern.\n"
            "\n"
            f" pattern{ARROW}"
        )

    def on_key(self, key: str) -> None:
        if self._end is None:
            return

        if key in (KEYS.ENTER, KEYS.LINE_FEED):
            self._submit()
        elif key == KEYS.ESCAPE:
            self._finish()
        elif key in (KEYS.BACKSPACE, "\b"):
            if self._buffer:
                self._buffer = self._buffer[:-1]
                self.output_stream.write("\b \b")
        elif is_printable(key):
            self._buffer += key
            self.output_stream.write(key)

    def _submit(self) -> None:
        try:
            re.compile(self._buffer)
        except re.error as e:
            logger.debug(f"Rejected {self.kind} {self._buffer!r}: {e}")
            self.output_stream.write(f"\n{ARROW}Invalid regex pattern: {e}\n pattern{ARROW}{self._buffer}")
            return
        self._finish({self.kind: self._buffer})

    def _finish(self, changes: dict[str, str] | None = None) -> None:
        end, self._end = self._end, None
        self.output_stream.write("\n")
        if changes is None:
            end()
        else:
            end(changes)
