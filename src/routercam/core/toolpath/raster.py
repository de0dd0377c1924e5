"""Zigzag raster toolpaths over a sampled height field.

Rows run along X and are spaced ``round(stepover / cell)`` grid rows apart
(at least one).  Even rows cut towards +X, odd rows towards -X.  The tool
enters once (rapid then plunge onto the first sample), stays in the
material between rows, and retracts after the last row.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..geometry import Point3D
from ..heightmap import HeightMap
from .base import MoveType, Toolpath, ToolpathSegment

log = logging.getLogger(__name__)

PROGRESS_EVERY_ROWS = 10


@dataclass
class RasterParams:
    """Parameters for height-field raster finishing."""

    stepover: float
    safe_z: float
    feed_rate: float
    plunge_rate: float


def row_spacing(height_map: HeightMap, stepover: float) -> int:
    """Grid rows between raster passes, rounded half up, minimum 1."""
    cell = height_map.config.cell_width
    if cell <= 0:
        return 1
    return max(1, int(math.floor(stepover / cell + 0.5)))


def invert_height_map(height_map: HeightMap) -> HeightMap:
    """Negate every sample into a new map for engraving.

    Tall features become the deepest cuts; zero stays zero.
    """
    data = -height_map.data
    data[data == 0] = 0.0   # no negative zeros
    return HeightMap(height_map.config, data)


def generate_raster_toolpath(
    height_map: HeightMap,
    params: RasterParams,
    on_progress: Optional[Callable[[float], None]] = None,
) -> Toolpath:
    """Build a connected zigzag toolpath following *height_map*.

    Parameters
    ----------
    height_map:
        Tool-tip heights from the drop-cutter sampler.
    params:
        Stepover, clearance height and rates.
    on_progress:
        Optional callback receiving a 0-100 percentage every few rows.
    """
    cfg = height_map.config
    grid = height_map.grid
    xs = cfg.xs()
    ys = cfg.ys()
    step = row_spacing(height_map, params.stepover)
    rows = list(range(0, cfg.grid_height, step))
    safe_z = params.safe_z

    segments: list[ToolpathSegment] = []
    prev_end: Optional[Point3D] = None
    for i, gy in enumerate(rows):
        zs = grid[gy]
        order = np.arange(cfg.grid_width)
        if i % 2:
            order = order[::-1]
        row = [Point3D(xs[gx], ys[gy], zs[gx]) for gx in order]

        if prev_end is None:
            start = row[0]
            home = Point3D(0.0, 0.0, safe_z)
            above = Point3D(start.x, start.y, safe_z)
            if math.dist(home, above) > 0:
                segments.append(ToolpathSegment((home, above), MoveType.RAPID))
            segments.append(ToolpathSegment((above, start), MoveType.PLUNGE))
            segments.append(ToolpathSegment(tuple(row), MoveType.CUT))
        else:
            # Step over to the next row without leaving the material
            segments.append(ToolpathSegment((prev_end, *row), MoveType.CUT))
        prev_end = row[-1]

        if on_progress is not None and ((i + 1) % PROGRESS_EVERY_ROWS == 0 or i + 1 == len(rows)):
            on_progress(100.0 * (i + 1) / len(rows))

    if prev_end is not None:
        segments.append(ToolpathSegment(
            (prev_end, Point3D(prev_end.x, prev_end.y, safe_z)), MoveType.RETRACT,
        ))

    log.debug("Raster toolpath: %d rows every %d grid rows", len(rows), step)
    return Toolpath.from_segments(segments, params.feed_rate, params.plunge_rate)
