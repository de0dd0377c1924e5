"""2D profile toolpaths: follow each polyline at a constant depth.

Every polyline is entered from safe Z, cut at ``-cut_depth`` and left with
a vertical retract.  Long enough polylines are entered on a shallow ramp
instead of a straight plunge:

- closed paths ramp down along the loop, then cut the full loop starting
  and ending at the ramp's end point
- open paths use a zigzag ramp (forward then back) that arrives at the
  start point at full depth, then cut the whole path

Either way each path is cut exactly once at full depth, so the cutting
distance equals the total path length.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from ...config.defaults import MOVE_EPSILON, RAMP_ANGLE_DEG, RAMP_MIN_LENGTH_FACTOR
from ..geometry import Point3D, Polyline
from .base import MoveType, Toolpath, ToolpathSegment

log = logging.getLogger(__name__)


@dataclass
class ContourParams:
    """Parameters for constant-depth profile cutting."""

    cut_depth: float
    safe_z: float
    feed_rate: float
    plunge_rate: float
    ramp_entry: bool = True
    ramp_angle: float = RAMP_ANGLE_DEG   # degrees from horizontal

    @property
    def ramp_length(self) -> float:
        """Horizontal distance needed to descend ``cut_depth`` at the ramp angle."""
        return self.cut_depth / math.tan(math.radians(self.ramp_angle))


def _walk(pts: np.ndarray, cum: np.ndarray, dist: float):
    """Points along *pts* from the start up to arc length ``dist > 0``.

    Returns ``(points, positions, k)``: the walked points (the last one
    interpolated when *dist* falls inside a segment), their arc-length
    positions, and the number of original vertices included.
    """
    k = int(np.searchsorted(cum, dist, side="right"))
    out = [pts[i] for i in range(k)]
    s = [float(cum[i]) for i in range(k)]
    if k < len(pts) and dist > cum[k - 1]:
        t = (dist - cum[k - 1]) / (cum[k] - cum[k - 1])
        out.append(pts[k - 1] + (pts[k] - pts[k - 1]) * t)
        s.append(dist)
    return out, s, k


def _ramp_closed(pts: np.ndarray, cum: np.ndarray, depth: float, ramp_len: float):
    """Ramp along the loop; returns ramp points and cut points."""
    r = min(ramp_len, float(cum[-1]))
    ramp_xy, s, k = _walk(pts, cum, r)
    ramp = [Point3D(p[0], p[1], -depth * si / r) for p, si in zip(ramp_xy, s)]

    # Whole loop, starting and finishing at the ramp end
    end = ramp_xy[-1]
    loop = [end] + list(pts[k:]) + list(pts[1:k])
    if len(ramp_xy) > k:
        loop.append(end)
    cut = [Point3D(p[0], p[1], -depth) for p in loop]
    return ramp, cut


def _ramp_open(pts: np.ndarray, cum: np.ndarray, depth: float, ramp_len: float):
    """Zigzag ramp out along the path and back to the start."""
    f = min(ramp_len / 2.0, float(cum[-1]))
    out_xy, s, _ = _walk(pts, cum, f)
    total = 2.0 * f
    forward = [Point3D(p[0], p[1], -depth * si / total) for p, si in zip(out_xy, s)]
    back = [
        Point3D(p[0], p[1], -depth * (total - si) / total)
        for p, si in zip(reversed(out_xy[:-1]), reversed(s[:-1]))
    ]
    ramp = forward + back
    ramp[-1] = Point3D(pts[0][0], pts[0][1], -depth)
    cut = [Point3D(p[0], p[1], -depth) for p in pts]
    return ramp, cut


def _should_ramp(poly: Polyline, length: float, params: ContourParams) -> bool:
    return (
        params.ramp_entry
        and len(poly) >= 3
        and params.cut_depth > 0
        and length >= RAMP_MIN_LENGTH_FACTOR * params.cut_depth
    )


def generate_contour_toolpath(
    polylines: Sequence[Polyline],
    params: ContourParams,
    on_progress: Optional[Callable[[float], None]] = None,
) -> Toolpath:
    """Turn ordered 2D polylines into a 3D profile toolpath.

    Parameters
    ----------
    polylines:
        Cutter-centreline paths in cutting order.  Polylines with fewer
        than two points are skipped.
    params:
        Depth, clearance height and rates.
    on_progress:
        Optional callback receiving a 0-100 completion percentage.

    Returns
    -------
    A Toolpath starting from home (0, 0) at safe Z.
    """
    depth = params.cut_depth
    safe_z = params.safe_z
    segments: list[ToolpathSegment] = []
    last = Point3D(0.0, 0.0, safe_z)
    ramped = 0

    for n, poly in enumerate(polylines):
        if len(poly) < 2:
            continue
        pts = poly.as_array()
        seg_len = np.hypot(*np.diff(pts, axis=0).T)
        cum = np.concatenate(([0.0], np.cumsum(seg_len)))
        first = poly.start

        above = Point3D(first.x, first.y, safe_z)
        if math.dist(last, above) > MOVE_EPSILON:
            segments.append(ToolpathSegment((last, above), MoveType.RAPID))

        if _should_ramp(poly, float(cum[-1]), params):
            if poly.closed:
                ramp, cut = _ramp_closed(pts, cum, depth, params.ramp_length)
            else:
                ramp, cut = _ramp_open(pts, cum, depth, params.ramp_length)
            # Ramp starts at the stock surface directly below *above*
            entry = [above] + ramp
            ramped += 1
        else:
            entry = [above, Point3D(first.x, first.y, -depth)]
            cut = [Point3D(p[0], p[1], -depth) for p in pts]

        segments.append(ToolpathSegment(tuple(entry), MoveType.PLUNGE))
        segments.append(ToolpathSegment(tuple(cut), MoveType.CUT))

        end = cut[-1]
        last = Point3D(end.x, end.y, safe_z)
        segments.append(ToolpathSegment((end, last), MoveType.RETRACT))

        if on_progress is not None:
            on_progress(100.0 * (n + 1) / len(polylines))

    log.debug("Profile toolpath: %d paths, %d ramped entries", len(polylines), ramped)
    return Toolpath.from_segments(segments, params.feed_rate, params.plunge_rate)
