"""Miter-join polyline offsetting for tool-radius compensation.

Each vertex moves along the bisector of its adjacent left-hand edge
normals by ``offset / dot(n1, bisector)``.  Positive offsets move to the
left of the direction of travel.  Joins are not clamped and
self-intersections are not cleaned up, so sharp concave corners can
produce crossing offsets.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from ..geometry import Polyline

CLOSE_TOLERANCE = 0.001
BISECTOR_MIN_NORM = 1e-4


def edge_normals(pts: np.ndarray, closed: bool) -> np.ndarray:
    """Unit left-hand normals of each edge; zero-length edges give (0, 0)."""
    nxt = np.roll(pts, -1, axis=0) if closed else pts[1:]
    d = nxt - (pts if closed else pts[:-1])
    length = np.hypot(d[:, 0], d[:, 1])
    normals = np.zeros_like(d)
    ok = length > 0
    normals[ok, 0] = -d[ok, 1] / length[ok]
    normals[ok, 1] = d[ok, 0] / length[ok]
    return normals


def _miter_displacements(n1: np.ndarray, n2: np.ndarray, offset: float) -> np.ndarray:
    """Offset vectors for vertices between edges with normals n1 and n2."""
    b = n1 + n2
    norm = np.hypot(b[:, 0], b[:, 1])
    degenerate = norm < BISECTOR_MIN_NORM
    safe = np.where(degenerate, 1.0, norm)
    bisector = np.where(degenerate[:, None], n1, b / safe[:, None])
    dot = np.einsum("ij,ij->i", n1, bisector)
    miter = np.where(dot != 0, offset / np.where(dot != 0, dot, 1.0), offset)
    return bisector * miter[:, None]


def offset_polyline(polyline: Polyline, offset: float) -> Polyline:
    """Offset *polyline* by *offset* millimetres.

    A zero offset, or fewer than two points, returns the input unchanged.
    Closed polylines with fewer than three distinct points are also
    returned unchanged.
    """
    if offset == 0 or len(polyline) < 2:
        return polyline

    pts = polyline.as_array()
    if polyline.closed:
        if np.all(np.abs(pts[0] - pts[-1]) < CLOSE_TOLERANCE):
            pts = pts[:-1]
        if len(pts) < 3:
            return polyline
        normals = edge_normals(pts, closed=True)
        disp = _miter_displacements(np.roll(normals, 1, axis=0), normals, offset)
        out = pts + disp
        out = np.vstack([out, out[:1]])
        return Polyline.from_array(out, closed=True)

    normals = edge_normals(pts, closed=False)
    disp = np.empty_like(pts)
    disp[0] = normals[0] * offset
    disp[-1] = normals[-1] * offset
    if len(pts) > 2:
        disp[1:-1] = _miter_displacements(normals[:-1], normals[1:], offset)
    return Polyline.from_array(pts + disp, closed=False)


def offset_polylines(polylines: Iterable[Polyline], offset: float) -> list[Polyline]:
    """Offset every polyline in a batch, e.g. by the tool radius."""
    if offset == 0:
        return list(polylines)
    return [offset_polyline(p, offset) for p in polylines]
