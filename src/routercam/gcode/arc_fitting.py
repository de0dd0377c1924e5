"""Replace runs of cut points lying on a circle with G2/G3 arcs.

Only constant-Z runs are fitted.  A circle is fitted through an early,
middle and candidate-end point of a run; the run is then extended while
further points stay within tolerance of that radius.  Runs that are too
short, or that have an intermediate point off the circle, stay linear.
Neighbouring arc points must all turn the same way, by at most
``ARC_MAX_STEP_ANGLE``, so the corners of a polygon inscribed in a circle
are not taken for an arc.
An arc never ends on its own start point, so no full circles are emitted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from ..config.defaults import (
    ARC_MAX_RADIUS,
    ARC_MAX_STEP_ANGLE,
    ARC_MIN_POINTS,
    ARC_TOLERANCE,
)
from ..core.geometry import Point3D


@dataclass(frozen=True)
class LinearMove:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class ArcMove:
    """Circular move in the XY plane at constant ``z``.

    ``i`` / ``j`` locate the centre relative to the start point.
    """
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    i: float
    j: float
    z: float
    clockwise: bool


FittedMove = Union[LinearMove, ArcMove]


def fit_circle(
    p1: Sequence[float],
    p2: Sequence[float],
    p3: Sequence[float],
) -> Optional[tuple[float, float, float]]:
    """Circle ``(cx, cy, r)`` through three XY points, None if collinear."""
    ax, ay = p1[0], p1[1]
    bx, by = p2[0], p2[1]
    cx, cy = p3[0], p3[1]
    d = 2.0 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < 1e-10:
        return None
    a2 = ax * ax + ay * ay
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy
    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d
    return ux, uy, math.hypot(ax - ux, ay - uy)


def is_clockwise(p1: Sequence[float], p2: Sequence[float], p3: Sequence[float]) -> bool:
    """True when p1 -> p2 -> p3 turns clockwise (negative signed area)."""
    cross = (p2[0] - p1[0]) * (p3[1] - p1[1]) - (p2[1] - p1[1]) * (p3[0] - p1[0])
    return cross < 0


def _on_circle(p: Sequence[float], cx: float, cy: float, r: float, tol: float) -> bool:
    return abs(math.hypot(p[0] - cx, p[1] - cy) - r) <= tol


def detect_arcs(
    points: Sequence[Point3D],
    tolerance: float = ARC_TOLERANCE,
    min_arc_points: int = ARC_MIN_POINTS,
    max_radius: float = ARC_MAX_RADIUS,
) -> list[FittedMove]:
    """Split *points* into linear moves and arcs.

    Every input point is represented: a LinearMove for each point not in
    an arc, and one ArcMove covering the start through end of each arc.

    Parameters
    ----------
    points:
        Consecutive cut points.
    tolerance:
        Maximum radial deviation (mm) for a point to count as on the arc,
        and maximum Z variation within an arc.
    min_arc_points:
        Shortest run, in points, that may become an arc.
    max_radius:
        Larger circles are treated as straight.
    """
    n = len(points)
    result: list[FittedMove] = []
    i = 0
    while i < n:
        p = points[i]
        if i + min_arc_points - 1 >= n:
            result.extend(LinearMove(q[0], q[1], q[2]) for q in points[i:])
            break

        mid = min(i + min_arc_points // 2, n - 2)
        end = min(i + min_arc_points - 1, n - 1)
        circle = fit_circle(p, points[mid], points[end])
        arc_end = _arc_extent(points, i, end, circle, tolerance, max_radius)
        if arc_end is None or arc_end - i + 1 < min_arc_points:
            result.append(LinearMove(p[0], p[1], p[2]))
            i += 1
            continue

        cx, cy, _ = circle
        q = points[arc_end]
        result.append(ArcMove(
            start_x=p[0], start_y=p[1],
            end_x=q[0], end_y=q[1],
            i=cx - p[0], j=cy - p[1],
            z=p[2],
            clockwise=is_clockwise(p, points[i + 1], points[i + 2]),
        ))
        i = arc_end + 1
    return result


def _step_angle(a: Sequence[float], b: Sequence[float], cx: float, cy: float) -> float:
    """Signed angle swept from *a* to *b* about (cx, cy), in (-pi, pi]."""
    a0 = math.atan2(a[1] - cy, a[0] - cx)
    a1 = math.atan2(b[1] - cy, b[0] - cx)
    return math.pi - (math.pi - (a1 - a0)) % (2 * math.pi)


def _arc_extent(points, i, end, circle, tol, max_radius) -> Optional[int]:
    """Index of the last point of an arc starting at *i*, or None."""
    if circle is None:
        return None
    cx, cy, r = circle
    if not (tol < r < max_radius):
        return None
    z0 = points[i][2]
    start = points[i]
    direction = math.copysign(1.0, _step_angle(start, points[i + 1], cx, cy))

    def continues(j: int) -> bool:
        q = points[j]
        if abs(q[2] - z0) > tol or not _on_circle(q, cx, cy, r, tol):
            return False
        step = _step_angle(points[j - 1], q, cx, cy) * direction
        if not 0 < step <= ARC_MAX_STEP_ANGLE:
            return False
        # Closing the loop would make a full circle
        return math.hypot(q[0] - start[0], q[1] - start[1]) > tol

    if not all(continues(j) for j in range(i + 1, end + 1)):
        return None
    arc_end = end
    while arc_end + 1 < len(points) and continues(arc_end + 1):
        arc_end += 1
    return arc_end


def simplify_collinear(points: Sequence[Point3D], tolerance: float = 0.001) -> list[Point3D]:
    """Drop points within *tolerance* (3D perpendicular distance) of the
    line joining their kept predecessor and their successor."""
    if len(points) <= 2:
        return list(points)
    pts = np.asarray(points, dtype=np.float64)
    kept = [0]
    for k in range(1, len(pts) - 1):
        prev = pts[kept[-1]]
        line = pts[k + 1] - prev
        length = float(np.linalg.norm(line))
        if length < 1e-10:
            continue
        dist = float(np.linalg.norm(np.cross(pts[k] - prev, line))) / length
        if dist > tolerance:
            kept.append(k)
    kept.append(len(pts) - 1)
    return [Point3D(*map(float, pts[k])) for k in kept]
