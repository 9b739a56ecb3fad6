"""
Plain-text formatting primitives for the CLI summary.

Every function returns plain text drawn with box-drawing characters; ANSI
color is added afterwards by colorize() when the terminal supports it.
"""

import os
import re
import sys
from typing import Any, Optional, Sequence, Tuple


def supports_color() -> bool:
    """Detect whether the terminal supports ANSI color output.

    Respects NO_COLOR (https://no-color.org/) and FORCE_COLOR env vars.
    """
    if os.environ.get('NO_COLOR') is not None:
        return False
    if os.environ.get('FORCE_COLOR') is not None:
        return True
    if not hasattr(sys.stdout, 'isatty'):
        return False
    return sys.stdout.isatty()


_HEAVY_H = '═'
_LIGHT_H = '─'

_TL, _TR, _BL, _BR = '┌', '┐', '└', '┘'
_VL = '│'
_TJ, _BJ, _CJ, _LJ, _RJ = '┬', '┴', '┼', '├', '┤'

_INFO = '◆'
_NOTE = '·'


def title(text: str, width: int = 60) -> str:
    """Title centered between heavy rules.

    Example::

        ═════════ Footprint: t2.micro ═════════
    """
    padding = max(width - len(text) - 2, 4)
    left = padding // 2
    return f"{_HEAVY_H * left} {text} {_HEAVY_H * (padding - left)}"


def kv_block(items: Sequence[Tuple[str, str]], indent: int = 2) -> str:
    """Aligned key-value pairs with dot leaders.

    Example::

        Vendor ·········· aws
        Instance type ··· t2.micro
    """
    if not items:
        return ""
    max_key = max(len(k) for k, _ in items)
    prefix = ' ' * indent
    return "\n".join(
        f"{prefix}{key} {_NOTE * (max_key - len(key) + 2)} {value}"
        for key, value in items
    )


def table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    aligns: Optional[Sequence[str]] = None,
) -> str:
    """Bordered table.

    Args:
        headers: Column header strings.
        rows: Row values; short rows are padded with blanks.
        aligns: Per-column alignment, 'l', 'r' or 'c' (default left).

    Example::

        ┌───┬──────────┬──────────┐
        │ # │ cpu-util │   energy │
        ├───┼──────────┼──────────┤
        │ 0 │       50 │ 0.002535 │
        └───┴──────────┴──────────┘
    """
    if not headers:
        return ""

    n_cols = len(headers)
    if aligns is None:
        aligns = ['l'] * n_cols

    widths = [len(str(h)) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[:n_cols]):
            widths[i] = max(widths[i], len(str(cell)))

    def _cell(value: Any, width: int, align: str) -> str:
        s = str(value)
        if align == 'r':
            s = s.rjust(width)
        elif align == 'c':
            s = s.center(width)
        else:
            s = s.ljust(width)
        return f" {s} "

    def _rule(left: str, mid: str, right: str) -> str:
        return left + mid.join(_LIGHT_H * (w + 2) for w in widths) + right

    def _row(values: Sequence[Any]) -> str:
        cells = [_cell(values[i] if i < len(values) else '', widths[i], aligns[i])
                 for i in range(n_cols)]
        return _VL + _VL.join(cells) + _VL

    lines = [_rule(_TL, _TJ, _TR), _row(headers), _rule(_LJ, _CJ, _RJ)]
    lines.extend(_row(row) for row in rows)
    lines.append(_rule(_BL, _BJ, _BR))
    return "\n".join(lines)


def info_line(text: str, indent: int = 2) -> str:
    """Indented line with a diamond marker, for headline figures."""
    return f"{' ' * indent}{_INFO} {text}"


def note_block(lines_list: Sequence[str], indent: int = 2) -> str:
    """Indented notes with dot markers."""
    prefix = ' ' * indent
    return "\n".join(f"{prefix}{_NOTE} {line}" for line in lines_list)


# ── ANSI color ──────────────────────────────────────────────────────

_RESET = '\033[0m'
_BOLD = '\033[1m'
_DIM = '\033[2m'
_RED = '\033[31m'
_YELLOW = '\033[33m'
_CYAN = '\033[36m'

_ERROR_PATTERN = re.compile(r'\b(error|Error|ERROR)\b')


def colorize(text: str) -> str:
    """Apply ANSI colors to formatted text line by line.

    Titles are bold cyan, rules, borders and notes are dimmed, info markers
    are yellow and the word "error" is red.
    """
    return '\n'.join(_colorize_line(line) for line in text.split('\n'))


def _colorize_line(line: str) -> str:
    stripped = line.strip()

    if _HEAVY_H in line and not stripped.startswith(_VL):
        return f"{_BOLD}{_CYAN}{line}{_RESET}"

    if stripped and all(c == _LIGHT_H for c in stripped):
        return f"{_DIM}{line}{_RESET}"

    if _VL in line:
        return f"{_DIM}{_VL}{_RESET}".join(line.split(_VL))

    if stripped and stripped[0] in (_TL, _BL, _LJ):
        return f"{_DIM}{line}{_RESET}"

    if stripped.startswith(_INFO):
        return line.replace(_INFO, f"{_YELLOW}{_INFO}{_RESET}", 1)

    if stripped.startswith(_NOTE):
        return f"{_DIM}{line}{_RESET}"

    return _ERROR_PATTERN.sub(lambda m: f"{_RED}{m.group(0)}{_RESET}", line)
