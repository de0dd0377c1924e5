"""Curve flattening and polyline clean-up.

Everything downstream of this module works on straight segments only.
Curves are flattened here (cubic/quadratic Beziers, elliptical arcs,
full ellipses) and decoded polylines go through a fixed clean-up
pipeline before offsetting:

1. drop consecutive points closer than ``dedupe_tolerance``
2. drop polylines left with fewer than two points
3. Douglas-Peucker simplification at ``simplify_epsilon``
4. subdivide segments longer than ``max_segment_length``
"""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np

from ...config.defaults import (
    ARC_ANGLE_STEP,
    ARC_MIN_SEGMENTS,
    CURVE_FLATNESS,
    CURVE_MAX_DEPTH,
    DEDUPE_TOLERANCE,
    MAX_SEGMENT_LENGTH,
    SIMPLIFY_EPSILON,
)
from ..errors import MalformedInputError
from ..geometry import AffineTransform, IDENTITY, Point2D, Polyline


# ---------------------------------------------------------------------------
# Polyline clean-up
# ---------------------------------------------------------------------------


def deduplicate_points(polyline: Polyline, tolerance: float = DEDUPE_TOLERANCE) -> Polyline:
    """Remove points closer than *tolerance* to the last kept point."""
    if len(polyline) <= 1:
        return polyline
    kept = [polyline.points[0]]
    for p in polyline.points[1:]:
        last = kept[-1]
        if math.hypot(p.x - last.x, p.y - last.y) > tolerance:
            kept.append(p)
    return Polyline(tuple(kept), polyline.closed)


def _perpendicular_distances(pts: np.ndarray, first: np.ndarray, last: np.ndarray) -> np.ndarray:
    d = last - first
    len_sq = float(d @ d)
    if len_sq == 0.0:
        return np.linalg.norm(pts - first, axis=1)
    cross = np.abs(d[1] * pts[:, 0] - d[0] * pts[:, 1] + last[0] * first[1] - last[1] * first[0])
    return cross / math.sqrt(len_sq)


def douglas_peucker(pts: np.ndarray, epsilon: float) -> np.ndarray:
    """Return a boolean mask of the points kept by Douglas-Peucker.

    Endpoints are always kept.
    """
    n = len(pts)
    keep = np.zeros(n, dtype=bool)
    if n == 0:
        return keep
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]
    while stack:
        lo, hi = stack.pop()
        if hi - lo < 2:
            continue
        dists = _perpendicular_distances(pts[lo + 1:hi], pts[lo], pts[hi])
        idx = int(np.argmax(dists))
        if dists[idx] > epsilon:
            mid = lo + 1 + idx
            keep[mid] = True
            stack.append((lo, mid))
            stack.append((mid, hi))
    return keep


def simplify_polyline(polyline: Polyline, epsilon: float = SIMPLIFY_EPSILON) -> Polyline:
    """Douglas-Peucker simplification preserving both endpoints.

    Any run of collinear points reduces to exactly its two endpoints.
    """
    if len(polyline) <= 2:
        return polyline
    pts = polyline.as_array()
    mask = douglas_peucker(pts, epsilon)
    return Polyline.from_array(pts[mask], polyline.closed)


def subdivide_polyline(polyline: Polyline, max_length: float = MAX_SEGMENT_LENGTH) -> Polyline:
    """Split every segment longer than *max_length* into equal pieces."""
    if max_length <= 0 or len(polyline) < 2:
        return polyline
    pts = polyline.as_array()
    out = [pts[:1]]
    for a, b in zip(pts[:-1], pts[1:]):
        dist = float(np.hypot(*(b - a)))
        if dist > max_length:
            n = math.ceil(dist / max_length)
            t = np.arange(1, n)[:, None] / n
            out.append(a + (b - a) * t)
        out.append(b[None, :])
    return Polyline.from_array(np.vstack(out), polyline.closed)


def process_polylines(
    polylines: Iterable[Polyline],
    max_segment_length: float = MAX_SEGMENT_LENGTH,
    simplify_epsilon: float = SIMPLIFY_EPSILON,
    dedupe_tolerance: float = DEDUPE_TOLERANCE,
) -> list[Polyline]:
    """Run the dedupe / filter / simplify / subdivide pipeline.

    Raises MalformedInputError for a polyline with a non-finite coordinate.
    """
    result = []
    for i, p in enumerate(polylines):
        if len(p) and not np.isfinite(p.as_array()).all():
            raise MalformedInputError(f"Polyline {i} has a non-finite coordinate")
        p = deduplicate_points(p, dedupe_tolerance)
        if len(p) < 2:
            continue
        p = simplify_polyline(p, simplify_epsilon)
        result.append(subdivide_polyline(p, max_segment_length))
    return result


# ---------------------------------------------------------------------------
# Curve flattening
# ---------------------------------------------------------------------------


def flatten_cubic(
    p0: tuple[float, float],
    p1: tuple[float, float],
    p2: tuple[float, float],
    p3: tuple[float, float],
    tolerance: float = CURVE_FLATNESS,
    max_depth: int = CURVE_MAX_DEPTH,
) -> list[Point2D]:
    """Flatten a cubic Bezier by De Casteljau bisection.

    Returns the points after *p0* up to and including *p3*.
    """
    out: list[Point2D] = []
    tol_sq = tolerance * tolerance
    # Explicit stack, right half pushed first so output stays in order
    stack = [(p0, p1, p2, p3, 0)]
    while stack:
        a, b, c, d, depth = stack.pop()
        dx = d[0] - a[0]
        dy = d[1] - a[1]
        d2 = abs((b[0] - d[0]) * dy - (b[1] - d[1]) * dx)
        d3 = abs((c[0] - d[0]) * dy - (c[1] - d[1]) * dx)
        if depth > max_depth or (d2 + d3) ** 2 <= tol_sq * (dx * dx + dy * dy):
            out.append(Point2D(float(d[0]), float(d[1])))
            continue
        ab = ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)
        bc = ((b[0] + c[0]) / 2, (b[1] + c[1]) / 2)
        cd = ((c[0] + d[0]) / 2, (c[1] + d[1]) / 2)
        abc = ((ab[0] + bc[0]) / 2, (ab[1] + bc[1]) / 2)
        bcd = ((bc[0] + cd[0]) / 2, (bc[1] + cd[1]) / 2)
        mid = ((abc[0] + bcd[0]) / 2, (abc[1] + bcd[1]) / 2)
        stack.append((mid, bcd, cd, d, depth + 1))
        stack.append((a, ab, abc, mid, depth + 1))
    return out


def flatten_quadratic(
    p0: tuple[float, float],
    p1: tuple[float, float],
    p2: tuple[float, float],
    tolerance: float = CURVE_FLATNESS,
) -> list[Point2D]:
    """Flatten a quadratic Bezier by degree elevation to a cubic."""
    c1 = (p0[0] + 2.0 / 3.0 * (p1[0] - p0[0]), p0[1] + 2.0 / 3.0 * (p1[1] - p0[1]))
    c2 = (p2[0] + 2.0 / 3.0 * (p1[0] - p2[0]), p2[1] + 2.0 / 3.0 * (p1[1] - p2[1]))
    return flatten_cubic(p0, c1, c2, p2, tolerance)


def flatten_arc(
    start: tuple[float, float],
    rx: float,
    ry: float,
    rotation: float,
    large_arc: bool,
    sweep: bool,
    end: tuple[float, float],
) -> list[Point2D]:
    """Flatten an SVG endpoint-parameterised elliptical arc.

    Returns the points after *start* up to and including *end*.  Radii that
    are too small to span the chord are scaled up; a zero radius degrades
    to a straight line.
    """
    x1, y1 = start
    x2, y2 = end
    if rx == 0 or ry == 0:
        return [Point2D(float(x2), float(y2))]

    rx, ry = abs(rx), abs(ry)
    phi = math.radians(rotation)
    cos_phi, sin_phi = math.cos(phi), math.sin(phi)

    dx2 = (x1 - x2) / 2
    dy2 = (y1 - y2) / 2
    x1p = cos_phi * dx2 + sin_phi * dy2
    y1p = -sin_phi * dx2 + cos_phi * dy2

    lam = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lam > 1:
        s = math.sqrt(lam)
        rx *= s
        ry *= s
    rx_sq, ry_sq = rx * rx, ry * ry
    x1p_sq, y1p_sq = x1p * x1p, y1p * y1p

    denom = rx_sq * y1p_sq + ry_sq * x1p_sq
    if denom == 0:
        return [Point2D(float(x2), float(y2))]
    sq = math.sqrt(max(0.0, (rx_sq * ry_sq - rx_sq * y1p_sq - ry_sq * x1p_sq) / denom))
    if large_arc == sweep:
        sq = -sq
    cxp = sq * rx * y1p / ry
    cyp = -sq * ry * x1p / rx

    cx = cos_phi * cxp - sin_phi * cyp + (x1 + x2) / 2
    cy = sin_phi * cxp + cos_phi * cyp + (y1 + y2) / 2

    theta1 = math.atan2((y1p - cyp) / ry, (x1p - cxp) / rx)
    dtheta = math.atan2((-y1p - cyp) / ry, (-x1p - cxp) / rx) - theta1
    if sweep and dtheta < 0:
        dtheta += 2 * math.pi
    elif not sweep and dtheta > 0:
        dtheta -= 2 * math.pi

    n = max(ARC_MIN_SEGMENTS, math.ceil(abs(dtheta) / ARC_ANGLE_STEP))
    t = theta1 + dtheta * np.arange(1, n + 1) / n
    xr = rx * np.cos(t)
    yr = ry * np.sin(t)
    xs = cos_phi * xr - sin_phi * yr + cx
    ys = sin_phi * xr + cos_phi * yr + cy
    pts = [Point2D(float(x), float(y)) for x, y in zip(xs, ys)]
    # Land exactly on the requested end point
    pts[-1] = Point2D(float(x2), float(y2))
    return pts


def flatten_ellipse(
    cx: float,
    cy: float,
    rx: float,
    ry: float,
    transform: AffineTransform = IDENTITY,
) -> Polyline | None:
    """Closed polyline approximating an ellipse (or circle when rx == ry).

    Returns None for a non-positive radius.
    """
    if rx <= 0 or ry <= 0:
        return None
    n = max(32, math.ceil(max(rx, ry) * 4))
    angles = 2 * math.pi * np.arange(n + 1) / n
    pts = np.column_stack((cx + rx * np.cos(angles), cy + ry * np.sin(angles)))
    pts[-1] = pts[0]
    if not transform.is_identity:
        pts = transform.apply_array(pts)
    return Polyline.from_array(pts, closed=True)


def rectangle(
    x: float,
    y: float,
    width: float,
    height: float,
    transform: AffineTransform = IDENTITY,
) -> Polyline | None:
    """Closed polyline for an axis-aligned rectangle, None if degenerate."""
    if width <= 0 or height <= 0:
        return None
    corners = [(x, y), (x + width, y), (x + width, y + height), (x, y + height), (x, y)]
    return Polyline(tuple(transform.apply(c) for c in corners), closed=True)
