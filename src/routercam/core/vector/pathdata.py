"""SVG path-data (``d`` attribute) decoding into polylines.

Curves are flattened with the helpers in :mod:`.discretizer`.  Every
emitted point has the element transform applied.  A closed subpath ends
with an explicit copy of its start point.
"""

from __future__ import annotations

import logging
import math
import re

from ..errors import MalformedInputError
from ..geometry import AffineTransform, IDENTITY, Point2D, Polyline
from .discretizer import flatten_arc, flatten_cubic, flatten_quadratic

log = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"(?P<cmd>[A-Za-z])"
    r"|(?P<num>[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<sep>[\s,]+)"
)

# Number of arguments consumed per repetition of each command
_ARITY = {
    "M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4,
    "Q": 4, "T": 2, "A": 7, "Z": 0,
}


def tokenize_path_data(d: str) -> list[str | float]:
    """Split path data into command letters and floats.

    Raises
    ------
    MalformedInputError:
        On characters that are neither commands, numbers nor separators,
        and on numbers that overflow to infinity.
    """
    tokens: list[str | float] = []
    pos = 0
    while pos < len(d):
        m = _TOKEN_RE.match(d, pos)
        if m is None:
            raise MalformedInputError(
                f"Unexpected character {d[pos]!r} at offset {pos} in path data"
            )
        if m.group("cmd"):
            tokens.append(m.group("cmd"))
        elif m.group("num"):
            value = float(m.group("num"))
            if not math.isfinite(value):
                raise MalformedInputError(
                    f"Non-finite number {m.group('num')!r} at offset {pos} in path data"
                )
            tokens.append(value)
        pos = m.end()
    return tokens


class _PathBuilder:
    """Cursor and subpath state while walking path commands."""

    def __init__(self, transform: AffineTransform):
        self.transform = transform
        self.polylines: list[Polyline] = []
        self.points: list[Point2D] = []
        self.x = 0.0
        self.y = 0.0
        self.start_x = 0.0
        self.start_y = 0.0
        # Last curve control point, for S/T reflection
        self.ctrl: tuple[float, float] | None = None

    def move_to(self, x: float, y: float) -> None:
        self.finish(closed=False)
        self.start_x, self.start_y = x, y
        self.points.append(self.transform.apply((x, y)))
        self.x, self.y = x, y

    def ensure_started(self) -> None:
        # Drawing right after Z (or with no M) starts at the current point
        if not self.points:
            self.points.append(self.transform.apply((self.x, self.y)))
            self.start_x, self.start_y = self.x, self.y

    def line_to(self, x: float, y: float) -> None:
        self.ensure_started()
        self.points.append(self.transform.apply((x, y)))
        self.x, self.y = x, y

    def extend(self, pts: list[Point2D], x: float, y: float) -> None:
        self.ensure_started()
        self.points.extend(self.transform.apply(p) for p in pts)
        self.x, self.y = x, y

    def close(self) -> None:
        if self.points:
            self.points.append(self.transform.apply((self.start_x, self.start_y)))
            self.finish(closed=True)
        self.x, self.y = self.start_x, self.start_y

    def finish(self, closed: bool) -> None:
        if len(self.points) >= 2:
            self.polylines.append(Polyline(tuple(self.points), closed))
        self.points = []


def parse_path_data(d: str, transform: AffineTransform = IDENTITY) -> list[Polyline]:
    """Decode SVG path data into flattened polylines.

    Supports M L H V C S Q T A Z in absolute and relative forms, implicit
    command repetition and the implicit line-to after a move-to.

    Raises
    ------
    MalformedInputError:
        For an unrecognised command letter, numbers before the first
        command, truncated argument lists or non-finite numbers.
    """
    tokens = tokenize_path_data(d)
    b = _PathBuilder(transform)
    i = 0
    prev_cmd = ""

    while i < len(tokens):
        cmd = tokens[i]
        if not isinstance(cmd, str):
            raise MalformedInputError(
                f"Path data must start with a command, found number {cmd!r}"
            )
        upper = cmd.upper()
        if upper not in _ARITY:
            raise MalformedInputError(f"Unrecognized path command {cmd!r}")
        i += 1
        rel = cmd.islower()

        if upper == "Z":
            b.close()
            b.ctrl = None
            prev_cmd = "Z"
            continue

        arity = _ARITY[upper]
        first = True
        while True:
            args = []
            while len(args) < arity and i < len(tokens) and not isinstance(tokens[i], str):
                args.append(tokens[i])
                i += 1
            if not args and not first:
                break
            if len(args) < arity:
                raise MalformedInputError(
                    f"Path command {cmd!r} expects {arity} arguments, got {len(args)}"
                )
            ox, oy = (b.x, b.y) if rel else (0.0, 0.0)

            if upper == "M":
                if first:
                    b.move_to(ox + args[0], oy + args[1])
                else:
                    b.line_to(ox + args[0], oy + args[1])
                b.ctrl = None
            elif upper == "L":
                b.line_to(ox + args[0], oy + args[1])
                b.ctrl = None
            elif upper == "H":
                b.line_to((b.x if rel else 0.0) + args[0], b.y)
                b.ctrl = None
            elif upper == "V":
                b.line_to(b.x, (b.y if rel else 0.0) + args[0])
                b.ctrl = None
            elif upper in ("C", "S"):
                if upper == "C":
                    c1 = (ox + args[0], oy + args[1])
                    c2 = (ox + args[2], oy + args[3])
                    end = (ox + args[4], oy + args[5])
                else:
                    c1 = _reflect(b, prev_cmd, "CS")
                    c2 = (ox + args[0], oy + args[1])
                    end = (ox + args[2], oy + args[3])
                b.extend(flatten_cubic((b.x, b.y), c1, c2, end), *end)
                b.ctrl = c2
            elif upper in ("Q", "T"):
                if upper == "Q":
                    c1 = (ox + args[0], oy + args[1])
                    end = (ox + args[2], oy + args[3])
                else:
                    c1 = _reflect(b, prev_cmd, "QT")
                    end = (ox + args[0], oy + args[1])
                b.extend(flatten_quadratic((b.x, b.y), c1, end), *end)
                b.ctrl = c1
            else:
                end = (ox + args[5], oy + args[6])
                pts = flatten_arc(
                    (b.x, b.y), args[0], args[1], args[2],
                    bool(args[3]), bool(args[4]), end,
                )
                b.extend(pts, *end)
                b.ctrl = None

            prev_cmd = upper
            first = False

    b.finish(closed=False)
    log.debug("Decoded %d polylines from %d path tokens", len(b.polylines), len(tokens))
    return b.polylines


def _reflect(b: _PathBuilder, prev_cmd: str, family: str) -> tuple[float, float]:
    """Reflect the previous control point about the current point."""
    if prev_cmd in family and b.ctrl is not None:
        return (2 * b.x - b.ctrl[0], 2 * b.y - b.ctrl[1])
    return (b.x, b.y)
