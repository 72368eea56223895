"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from testwatch_core.models import RunResult  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class Pipe:
    """Output stream recording each write call."""

    def __init__(self, tty=False):
        self.writes = []
        self._tty = tty

    def write(self, text):
        self.writes.append(text)

    def isatty(self):
        return self._tty

    @property
    def text(self):
        return "".join(self.writes)


class FakeRunner:
    """Runner completing every run synchronously, like a mocked test engine."""

    def __init__(self, result=None, complete=True):
        self.calls = []
        self.result = result or RunResult()
        self.complete = complete

    def run(self, options):
        self.calls.append(options)
        if self.complete:
            options.on_complete(self.result)

    def finish(self, index=-1, result=None):
        """Complete a run that was left pending."""
        self.calls[index].on_complete(result or self.result)


class MockStdin:
    """Key source with a single on_data registration point."""

    def __init__(self):
        self._callbacks = []

    def on_data(self, callback):
        self._callbacks.append(callback)

    def emit(self, key):
        for callback in self._callbacks:
            callback(key)


@pytest.fixture
def pipe():
    return Pipe()


@pytest.fixture
def tty_pipe():
    return Pipe(tty=True)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def stdin():
    return MockStdin()


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR
