"""Low-level G-code line formatting helpers."""

from __future__ import annotations

from typing import Optional

from ..config.defaults import COORD_DECIMALS


def fmt(value: float, decimals: int = COORD_DECIMALS) -> str:
    """Format a float with a fixed number of decimals (never ``-0.000``)."""
    text = f"{value:.{decimals}f}"
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return text


def _axes(
    x: Optional[float],
    y: Optional[float],
    z: Optional[float],
) -> list[str]:
    parts = []
    if x is not None:
        parts.append(f"X{fmt(x)}")
    if y is not None:
        parts.append(f"Y{fmt(y)}")
    if z is not None:
        parts.append(f"Z{fmt(z)}")
    return parts


def rapid(
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
) -> str:
    """G0 rapid traverse."""
    return " ".join(["G0", *_axes(x, y, z)])


def linear(
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
    f: Optional[float] = None,
) -> str:
    """G1 linear interpolation."""
    parts = ["G1", *_axes(x, y, z)]
    if f is not None:
        parts.append(f"F{fmt(f, 0)}")
    return " ".join(parts)


def arc(
    clockwise: bool,
    i: float,
    j: float,
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
    f: Optional[float] = None,
) -> str:
    """G2 (clockwise) or G3 circular interpolation, centre given by I/J."""
    parts = ["G2" if clockwise else "G3", *_axes(x, y, z)]
    parts.append(f"I{fmt(i)}")
    parts.append(f"J{fmt(j)}")
    if f is not None:
        parts.append(f"F{fmt(f, 0)}")
    return " ".join(parts)


def comment(text: str) -> str:
    """A ``;`` line comment."""
    return f"; {text}"


def with_comment(line: str, text: str) -> str:
    """Append a trailing ``;`` comment to a G-code line."""
    return f"{line} ; {text}"
