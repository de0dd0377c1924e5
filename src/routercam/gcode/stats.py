"""Quick statistics over generated G-code text."""

from __future__ import annotations

import re
from dataclasses import dataclass

_WORD_RE = re.compile(r"([XYZ])(-?\d+(?:\.\d+)?)")


@dataclass(frozen=True)
class GCodeStats:
    line_count: int
    rapid_moves: int
    linear_moves: int
    arc_moves: int
    has_spindle_on: bool
    has_spindle_off: bool


def _code(line: str) -> str:
    """Strip a trailing ``;`` comment."""
    return line.split(";", 1)[0].strip()


def parse_gcode_stats(gcode: str) -> GCodeStats:
    """Count program lines (ignoring blanks and comments) and move types."""
    lines = [c for c in (_code(l) for l in gcode.splitlines()) if c]
    words = [l.split()[0] for l in lines]
    return GCodeStats(
        line_count=len(lines),
        rapid_moves=sum(w == "G0" for w in words),
        linear_moves=sum(w == "G1" for w in words),
        arc_moves=sum(w in ("G2", "G3") for w in words),
        has_spindle_on=any("M3" in l.split() for l in lines),
        has_spindle_off=any("M5" in l.split() for l in lines),
    )


def motion_positions(gcode: str) -> list[tuple[str, float, float, float]]:
    """Absolute (command, x, y, z) after each G0-G3 line.

    Omitted axes keep their modal value; axes start at 0.
    """
    x = y = z = 0.0
    out = []
    for line in gcode.splitlines():
        code = _code(line)
        if not code:
            continue
        cmd = code.split()[0]
        if cmd not in ("G0", "G1", "G2", "G3"):
            continue
        for axis, value in _WORD_RE.findall(code):
            if axis == "X":
                x = float(value)
            elif axis == "Y":
                y = float(value)
            else:
                z = float(value)
        out.append((cmd, x, y, z))
    return out
