"""textual-testwatch: interactive watch mode for test runners."""

__version__ = "0.1.0"

# Public API
from textual_testwatch.controller import WatchController

__all__ = [
    "__version__",
    "WatchController",
]
