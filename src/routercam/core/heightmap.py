"""Drop-cutter height-field sampling of a triangle mesh.

For every grid point the tool is "dropped" from above until it first
touches the mesh; the recorded value is the tool-tip Z at that moment.
Contact is tested against each triangle's face, its three edges and its
three vertices, for flat, ball-nose and V-bit tools.

Triangles are bucketed into a uniform XY grid (cell size
``max(4 * radius, max(width, height) / 32)``).  A triangle joins every
bucket its radius-expanded bounding box overlaps, so a grid point only
tests the triangles in its own bucket.  Within a bucket triangles are
visited highest first and skipped once their top cannot beat the
current best.

Cells with no contact are stored as 0, the same value a real surface at
Z=0 produces.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .geometry import Triangle
from .model import as_triangle_array
from .tool import ToolConfig, ToolType, contact_height

log = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

MIN_NORMAL_Z = 1e-4
EDGE_MIN_LEN_SQ = 1e-20
BUCKETS_PER_EXTENT = 32


@dataclass(frozen=True)
class ZMapConfig:
    """Sampling grid: ``grid_width`` x ``grid_height`` points spanning the
    physical extent, corners included."""

    resolution: float
    grid_width: int
    grid_height: int
    physical_width: float
    physical_height: float

    @classmethod
    def for_extent(cls, width: float, height: float, resolution: float) -> ZMapConfig:
        return cls(
            resolution=resolution,
            grid_width=max(2, math.ceil(width / resolution)),
            grid_height=max(2, math.ceil(height / resolution)),
            physical_width=width,
            physical_height=height,
        )

    @property
    def cell_width(self) -> float:
        return self.physical_width / (self.grid_width - 1) if self.grid_width > 1 else 0.0

    @property
    def cell_height(self) -> float:
        return self.physical_height / (self.grid_height - 1) if self.grid_height > 1 else 0.0

    def xs(self) -> np.ndarray:
        return np.arange(self.grid_width) * self.cell_width

    def ys(self) -> np.ndarray:
        return np.arange(self.grid_height) * self.cell_height


@dataclass(frozen=True)
class HeightMap:
    """Row-major Z samples: ``data[gy * grid_width + gx]``."""

    config: ZMapConfig
    data: np.ndarray

    @property
    def grid(self) -> np.ndarray:
        """The samples as a ``(grid_height, grid_width)`` view."""
        return self.data.reshape(self.config.grid_height, self.config.grid_width)

    def at(self, gx: int, gy: int) -> float:
        return float(self.data[gy * self.config.grid_width + gx])


# ---------------------------------------------------------------------------
# Per-triangle contact
# ---------------------------------------------------------------------------


def _in_triangle(px, py, a, b, c):
    """Vectorised XY point-in-triangle test (edges count as inside)."""
    d1 = (px - b[0]) * (a[1] - b[1]) - (a[0] - b[0]) * (py - b[1])
    d2 = (px - c[0]) * (b[1] - c[1]) - (b[0] - c[0]) * (py - c[1])
    d3 = (px - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (py - a[1])
    has_neg = (d1 < 0) | (d2 < 0) | (d3 < 0)
    has_pos = (d1 > 0) | (d2 > 0) | (d3 > 0)
    return ~(has_neg & has_pos)


def point_in_triangle_xy(px: float, py: float, triangle) -> bool:
    """True when (px, py) lies inside or on the XY projection of *triangle*."""
    a, b, c = np.asarray(triangle, dtype=np.float64)
    return bool(_in_triangle(px, py, a, b, c))


def _face_contact(px, py, tri, tool: ToolConfig, tan_half: float) -> np.ndarray:
    a, b, c = tri
    out = np.full(px.shape, -np.inf)
    n = np.cross(b - a, c - a)
    n_len = float(np.linalg.norm(n))
    if n_len == 0.0:
        return out
    nu = n / n_len
    if nu[2] < 0:
        nu = -nu
    if nu[2] < MIN_NORMAL_Z:
        return out

    def plane_z(x, y):
        return a[2] - (nu[0] * (x - a[0]) + nu[1] * (y - a[1])) / nu[2]

    r = tool.radius
    if tool.tool_type is ToolType.BALL_NOSE:
        # Sphere touches the plane at centre - r * normal
        tx = px - r * nu[0]
        ty = py - r * nu[1]
        inside = _in_triangle(tx, ty, a, b, c)
        out[inside] = plane_z(px[inside], py[inside]) + r * (1.0 / nu[2] - 1.0)
        return out

    inside = _in_triangle(px, py, a, b, c)
    out[inside] = plane_z(px[inside], py[inside])

    slope_xy = math.hypot(nu[0], nu[1])
    if slope_xy == 0.0:
        return out
    tan_alpha = slope_xy / nu[2]
    if tool.tool_type is ToolType.V_BIT:
        rise = r * (tan_alpha - 1.0 / tan_half)
        if rise <= 0:
            return out
    else:
        rise = r * tan_alpha

    # Upslope rim point of the cutter
    ux = -nu[0] / slope_xy
    uy = -nu[1] / slope_xy
    rim = _in_triangle(px + r * ux, py + r * uy, a, b, c)
    if rim.any():
        z = plane_z(px[rim], py[rim]) + rise
        out[rim] = np.maximum(out[rim], z)
    return out


def _edge_contact(px, py, p0, p1, tool: ToolConfig) -> np.ndarray:
    ex, ey = p1[0] - p0[0], p1[1] - p0[1]
    len_sq = ex * ex + ey * ey
    if len_sq > EDGE_MIN_LEN_SQ:
        t = np.clip(((px - p0[0]) * ex + (py - p0[1]) * ey) / len_sq, 0.0, 1.0)
    else:
        t = np.zeros_like(px)
    d = np.hypot(p0[0] + t * ex - px, p0[1] + t * ey - py)
    z = p0[2] + t * (p1[2] - p0[2])
    return _within(tool, d, z)


def _vertex_contact(px, py, v, tool: ToolConfig) -> np.ndarray:
    d = np.hypot(v[0] - px, v[1] - py)
    return _within(tool, d, np.full(px.shape, v[2]))


def _within(tool: ToolConfig, d: np.ndarray, z: np.ndarray) -> np.ndarray:
    r = tool.radius
    ok = d <= r if tool.tool_type is ToolType.FLAT_END else d < r
    out = np.full(d.shape, -np.inf)
    out[ok] = contact_height(tool, z[ok], d[ok])
    return out


def _drop(px: np.ndarray, py: np.ndarray, tri: np.ndarray, tool: ToolConfig, tan_half: float) -> np.ndarray:
    best = _face_contact(px, py, tri, tool, tan_half)
    a, b, c = tri
    for p0, p1 in ((a, b), (b, c), (c, a)):
        best = np.maximum(best, _edge_contact(px, py, p0, p1, tool))
    for v in tri:
        best = np.maximum(best, _vertex_contact(px, py, v, tool))
    return best


def drop_cutter_on_triangle(
    px: float,
    py: float,
    triangle: Triangle,
    tool: ToolConfig,
) -> float:
    """Tool-tip Z where the cutter at (px, py) touches *triangle*.

    Returns ``-inf`` when the tool does not reach the triangle.
    """
    tri = np.asarray(triangle, dtype=np.float64)
    z = _drop(np.array([px], dtype=np.float64), np.array([py], dtype=np.float64),
              tri, tool, math.tan(tool.half_angle))
    return float(z[0])


# ---------------------------------------------------------------------------
# Grid sampling
# ---------------------------------------------------------------------------


def _bucket_triangles(tris: np.ndarray, config: ZMapConfig, radius: float, cell: float,
                      cols: int, rows: int) -> list[list[np.ndarray]]:
    """Triangle indices per bucket, each list sorted by max Z descending."""
    lo = tris[:, :, :2].min(axis=1) - radius
    hi = tris[:, :, :2].max(axis=1) + radius
    max_z = tris[:, :, 2].max(axis=1)

    overlaps = ~(
        (hi[:, 0] < 0) | (lo[:, 0] > config.physical_width)
        | (hi[:, 1] < 0) | (lo[:, 1] > config.physical_height)
    )
    c0 = np.maximum(0, np.trunc(lo[:, 0] / cell)).astype(int)
    c1 = np.minimum(cols - 1, np.trunc(hi[:, 0] / cell)).astype(int)
    r0 = np.maximum(0, np.trunc(lo[:, 1] / cell)).astype(int)
    r1 = np.minimum(rows - 1, np.trunc(hi[:, 1] / cell)).astype(int)

    order = np.argsort(-max_z, kind="stable")
    buckets: list[list[np.ndarray]] = []
    for br in range(rows):
        in_row = overlaps & (r0 <= br) & (r1 >= br)
        row = []
        for bc in range(cols):
            mask = in_row & (c0 <= bc) & (c1 >= bc)
            row.append(order[mask[order]])
        buckets.append(row)
    return buckets


def compute_height_map(
    triangles,
    config: ZMapConfig,
    tool: ToolConfig,
    on_progress: Optional[ProgressCallback] = None,
) -> HeightMap:
    """Sample the highest safe tool-tip Z at every grid point.

    Parameters
    ----------
    triangles:
        Mesh input in any form :func:`~routercam.core.model.as_triangle_array`
        accepts.
    config:
        Sampling grid.
    tool:
        Cutter shape.  V-bit samples are clamped at 0 so the tip never
        goes below the stock base.
    on_progress:
        Optional callback receiving a 0-100 percentage after each bucket
        row.

    Returns
    -------
    HeightMap with float64 samples; cells the tool never touches are 0.
    """
    tris = as_triangle_array(triangles)
    gw, gh = config.grid_width, config.grid_height
    data = np.zeros(gw * gh, dtype=np.float64)
    if len(tris) == 0:
        log.debug("Empty mesh: height map is all zero")
        return HeightMap(config, data)

    r = tool.radius
    tan_half = math.tan(tool.half_angle)
    cell = max(r * 4, max(config.physical_width, config.physical_height) / BUCKETS_PER_EXTENT)
    cols = max(1, int(config.physical_width / cell) + 2)
    rows = max(1, int(config.physical_height / cell) + 2)
    buckets = _bucket_triangles(tris, config, r, cell, cols, rows)
    tri_max_z = tris[:, :, 2].max(axis=1)

    xs = config.xs()
    ys = config.ys()
    col_of_x = np.clip(np.trunc(xs / cell).astype(int), 0, cols - 1)
    row_of_y = np.clip(np.trunc(ys / cell).astype(int), 0, rows - 1)

    grid = np.full((gh, gw), -np.inf)
    tested = 0
    for br in range(rows):
        gy_idx = np.nonzero(row_of_y == br)[0]
        if len(gy_idx):
            for bc in range(cols):
                gx_idx = np.nonzero(col_of_x == bc)[0]
                bucket = buckets[br][bc]
                if not len(gx_idx) or not len(bucket):
                    continue
                px, py = np.meshgrid(xs[gx_idx], ys[gy_idx])
                px = px.ravel()
                py = py.ravel()
                best = np.full(px.shape, -np.inf)
                for ti in bucket:
                    active = best < tri_max_z[ti]
                    if not active.any():
                        # Remaining triangles are all lower
                        break
                    z = _drop(px[active], py[active], tris[ti], tool, tan_half)
                    best[active] = np.maximum(best[active], z)
                    tested += 1
                grid[np.ix_(gy_idx, gx_idx)] = best.reshape(len(gy_idx), len(gx_idx))
        if on_progress is not None:
            on_progress(100.0 * (br + 1) / rows)

    grid[np.isneginf(grid)] = 0.0

    log.debug(
        "Sampled %dx%d grid over %d triangles (%d bucket tests, %dx%d buckets)",
        gw, gh, len(tris), tested, cols, rows,
    )
    return HeightMap(config, grid.ravel())
