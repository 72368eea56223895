"""Key constants for watch mode.

Keys are single-character strings as delivered by a raw-mode terminal.
"""

from types import SimpleNamespace

KEYS = SimpleNamespace(
    A="a",
    BACKSPACE="\x7f",
    C="c",
    CONTROL_C="\x03",
    CONTROL_D="\x04",
    ENTER="\r",
    ESCAPE="\x1b",
    LINE_FEED="\n",
    O="o",
    P="p",
    Q="q",
    QUESTION_MARK="?",
    T="t",
    U="u",
    W="w",
)

# Keys owned by the controller; plugins may not claim them.
RESERVED_KEYS = frozenset(
    [
        KEYS.A,
        KEYS.C,
        KEYS.CONTROL_C,
        KEYS.CONTROL_D,
        KEYS.ENTER,
        KEYS.ESCAPE,
        KEYS.LINE_FEED,
        KEYS.O,
        KEYS.P,
        KEYS.Q,
        KEYS.QUESTION_MARK,
        KEYS.T,
        KEYS.U,
        KEYS.W,
    ]
)

# Handled even while a plugin holds focus.
QUIT_KEYS = frozenset([KEYS.CONTROL_C, KEYS.CONTROL_D])

_DISPLAY_NAMES = {
    KEYS.ENTER: "Enter",
    KEYS.LINE_FEED: "Enter",
    KEYS.ESCAPE: "Esc",
    KEYS.BACKSPACE: "Backspace",
    " ": "Space",
    "\t": "Tab",
}


def key_from_code(code: int | str) -> str:
    """Normalize an integer code point or one-character string to a key.

    Raises:
        ValueError: If the value is not a single character or valid code point
    """
    if isinstance(code, bool):
        raise ValueError(f"Invalid key: {code!r}")
    if isinstance(code, int):
        try:
            return chr(code)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid key code: {code}") from e
    if isinstance(code, str) and len(code) == 1:
        return code
    raise ValueError(f"Invalid key: {code!r} (expected a code point or one character)")


def display_key(key: str) -> str:
    """Human-readable name for a key, as shown in the usage footer."""
    return _DISPLAY_NAMES.get(key, key)


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()
