"""Console UI helpers (color and messages).

Tiny helpers for terminal output used by the CLI and the console presenter:
 - ANSI color/style codes gated by a conservative capability check
 - Convenience printers for info/ok/warn/error with consistent prefixes

Respects ``NO_COLOR`` and only emits ANSI when stdout is a TTY.
"""

from __future__ import annotations
import os
import sys

RESET = "\033[0m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"


def supports_color() -> bool:
    """Return True when ANSI colors are likely supported."""
    try:
        if os.environ.get("NO_COLOR"):
            return False
        return bool(getattr(sys.stdout, "isatty", lambda: False)())
    except Exception:
        return False


def c(s: str, color: str) -> str:
    """Colorize ``s`` when the terminal supports it."""
    return f"{color}{s}{RESET}" if supports_color() else s


def info(msg: str) -> None:
    print(c("ℹ ", BLUE) + msg)


def ok(msg: str) -> None:
    print(c("✓ ", GREEN) + msg)


def warn(msg: str) -> None:
    print(c("! ", YELLOW) + msg)


def err(msg: str) -> None:
    print(c("✗ ", RED) + msg)


__all__ = [
    "supports_color",
    "c",
    "info",
    "ok",
    "warn",
    "err",
    "RESET",
    "RED",
    "GREEN",
    "YELLOW",
    "BLUE",
]
