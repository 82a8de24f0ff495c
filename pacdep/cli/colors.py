"""Color output support for pacdep CLI.

Package names in listings are colored after their classification:
  - Green: exclusive dependencies (what removal frees)
  - Blue: shared dependencies
  - Cyan: optional dependencies
Errors are red, root packages bold.
"""

import os
import sys
from typing import Callable

from ..core.closure import Classification

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'green': '\033[92m',
    'blue': '\033[94m',
    'cyan': '\033[96m',
}

# Base classification -> color name
_PALETTE = {
    Classification.EXCLUSIVE: 'green',
    Classification.SHARED: 'blue',
    Classification.OPTIONAL: 'cyan',
}

_colors_enabled = True


def init(nocolor: bool = False):
    """Initialize color support.

    Colors are off with --nocolor, when NO_COLOR is set
    (https://no-color.org/), or when stdout is not a terminal.
    """
    global _colors_enabled
    _colors_enabled = not (nocolor or os.environ.get('NO_COLOR')
                           or not sys.stdout.isatty())


def _wrap(text: str, color: str) -> str:
    if not _colors_enabled:
        return text
    return f"{_COLORS[color]}{text}{_COLORS['reset']}"


def error(text: str) -> str:
    return _wrap(text, 'red')


def bold(text: str) -> str:
    return _wrap(text, 'bold')


def for_classification(classification: Classification) -> Callable[[str], str]:
    """Coloring function for package names of a classification.

    Explicit variants share the color of their base; UNKNOWN is left
    uncolored.
    """
    color = _PALETTE.get(classification.base)
    if color is None:
        return str
    return lambda text: _wrap(text, color)
