"""Job orchestrators: input geometry + tool + machine + stock to G-code.

:class:`VectorJob` runs the 2D pipeline (discretize, offset, order,
profile toolpath); :class:`MeshJob` runs the 3D pipeline (drop-cutter
height map, raster toolpath).  Both finish with validation and the G-code
emitter and return a :class:`JobResult`.  They are the entry point for
the CLI and for any host that wants a whole run in one call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from ..config.defaults import (
    DEFAULT_CUT_DEPTH,
    DEFAULT_MACHINE,
    DEFAULT_RESOLUTION,
    DEFAULT_STOCK,
    DEFAULT_TOOL,
)
from ..gcode.emitter import generate_gcode, generate_mesh_gcode
from ..gcode.validate import (
    ValidationIssue,
    check_machine,
    check_mesh_params,
    check_tool,
    check_vector_params,
    validate_toolpath,
)
from .errors import MalformedInputError
from .geometry import IDENTITY, Polyline, parse_transform
from .heightmap import ZMapConfig, compute_height_map
from .machine import MachineConfig, OriginPosition
from .model import as_triangle_array
from .stock import StockConfig
from .tool import ToolConfig, default_stepover
from .toolpath.base import Toolpath, ToolpathStats
from .toolpath.contour import ContourParams, generate_contour_toolpath
from .toolpath.optimizer import optimize_path_order
from .toolpath.raster import RasterParams, generate_raster_toolpath, invert_height_map
from .vector.discretizer import flatten_ellipse, process_polylines, rectangle
from .vector.offset import offset_polylines
from .vector.pathdata import parse_path_data

log = logging.getLogger(__name__)

StageCallback = Callable[[str, float], None]


@dataclass
class JobResult:
    """Everything a host needs after a run."""

    gcode: str
    toolpath: Toolpath
    toolpath_data: np.ndarray       # float32 [x, y, z, kind] * n
    stats: ToolpathStats
    grid_size: Optional[tuple[int, int]] = None
    issues: list[ValidationIssue] = field(default_factory=list)


def _resolve_machine(
    machine: MachineConfig,
    origin: Optional[OriginPosition | str],
    stock: StockConfig,
) -> MachineConfig:
    if origin is None:
        return machine
    return machine.with_origin(origin, stock)


def _report(on_progress: Optional[StageCallback], stage: str, pct: float) -> None:
    if on_progress is not None:
        on_progress(stage, pct)


def _log_issues(issues: Sequence[ValidationIssue]) -> None:
    for issue in issues:
        if issue.severity == "error":
            log.error(issue.message)
        else:
            log.warning(issue.message)


@dataclass
class VectorJob:
    """Profile-cut a set of 2D polylines at constant depth.

    ``offset`` shifts every path sideways by that many millimetres
    (positive to the left of travel, i.e. inside a counter-clockwise
    shape); 0 cuts on the line.
    """

    polylines: list[Polyline] = field(default_factory=list)
    tool: ToolConfig = DEFAULT_TOOL
    machine: MachineConfig = DEFAULT_MACHINE
    stock: StockConfig = DEFAULT_STOCK
    cut_depth: float = DEFAULT_CUT_DEPTH
    origin_position: Optional[OriginPosition | str] = None
    offset: float = 0.0
    optimize: bool = True
    ramp_entry: bool = True
    name: str = ""

    def run(self, on_progress: Optional[StageCallback] = None) -> JobResult:
        """Run the whole 2D pipeline.

        Raises
        ------
        ConfigurationError:
            If the tool, machine, stock or depth is unusable.
        MalformedInputError:
            If a polyline has a non-finite coordinate.
        """
        check_tool(self.tool)
        check_machine(self.machine, self.stock)
        check_vector_params(self.cut_depth)
        machine = _resolve_machine(self.machine, self.origin_position, self.stock)

        _report(on_progress, "discretize", 10)
        paths = process_polylines(self.polylines)
        log.info("Prepared %d of %d input paths", len(paths), len(self.polylines))

        _report(on_progress, "offset", 30)
        if self.offset:
            paths = offset_polylines(paths, self.offset)

        _report(on_progress, "optimize", 50)
        if self.optimize:
            paths = optimize_path_order(paths)

        _report(on_progress, "toolpath", 70)
        params = ContourParams(
            cut_depth=self.cut_depth,
            safe_z=machine.safe_z,
            feed_rate=self.tool.feed_rate,
            plunge_rate=self.tool.plunge_rate,
            ramp_entry=self.ramp_entry,
        )
        toolpath = generate_contour_toolpath(paths, params)

        result = validate_toolpath(toolpath, self.stock, machine)
        _log_issues(result.issues)

        _report(on_progress, "gcode", 90)
        gcode = generate_gcode(toolpath, self.tool, machine, job_name=self.name)
        _report(on_progress, "done", 100)

        stats = toolpath.stats
        log.info(
            "Vector job: %d segments, cutting %.1f mm, est. %.1f min",
            len(toolpath.segments), stats.cutting_distance, stats.estimated_time,
        )
        return JobResult(
            gcode=gcode,
            toolpath=toolpath,
            toolpath_data=toolpath.to_buffer(),
            stats=stats,
            issues=result.issues,
        )


@dataclass
class MeshJob:
    """Raster-finish a triangle mesh positioned in stock coordinates.

    The mesh is expected with its footprint inside the stock (X 0..width,
    Y 0..height) and its height as Z >= 0; the tool tip follows the
    sampled surface.  ``invert`` negates the height map to engrave the
    relief into the stock instead. Without a ``stepover`` the rows are
    spaced by a fraction of the tool diameter.
    """

    triangles: object = None
    tool: ToolConfig = DEFAULT_TOOL
    machine: MachineConfig = DEFAULT_MACHINE
    stock: StockConfig = DEFAULT_STOCK
    resolution: float = DEFAULT_RESOLUTION
    stepover: Optional[float] = None
    origin_position: Optional[OriginPosition | str] = None
    invert: bool = False
    name: str = ""

    def run(self, on_progress: Optional[StageCallback] = None) -> JobResult:
        """Run the whole 3D pipeline.

        Raises
        ------
        ConfigurationError:
            If the tool, machine, stock, resolution or stepover is unusable.
        MalformedInputError:
            If the triangle input has the wrong shape or non-finite values.
        """
        check_tool(self.tool)
        check_machine(self.machine, self.stock)
        stepover = self.stepover if self.stepover is not None else default_stepover(self.tool)
        check_mesh_params(self.resolution, stepover)
        machine = _resolve_machine(self.machine, self.origin_position, self.stock)

        _report(on_progress, "load", 5)
        tris = as_triangle_array([] if self.triangles is None else self.triangles)
        zmap = ZMapConfig.for_extent(self.stock.width, self.stock.height, self.resolution)
        log.info(
            "Sampling %d triangles on a %dx%d grid",
            len(tris), zmap.grid_width, zmap.grid_height,
        )

        height_map = compute_height_map(
            tris, zmap, self.tool,
            on_progress=lambda pct: _report(on_progress, "heightmap", 10 + pct * 0.6),
        )
        if self.invert:
            height_map = invert_height_map(height_map)

        params = RasterParams(
            stepover=stepover,
            safe_z=machine.safe_z,
            feed_rate=self.tool.feed_rate,
            plunge_rate=self.tool.plunge_rate,
        )
        toolpath = generate_raster_toolpath(
            height_map, params,
            on_progress=lambda pct: _report(on_progress, "toolpath", 75 + pct * 0.1),
        )

        result = validate_toolpath(toolpath, self.stock, machine)
        _log_issues(result.issues)

        _report(on_progress, "gcode", 90)
        gcode = generate_mesh_gcode(toolpath, self.tool, machine, job_name=self.name)
        _report(on_progress, "done", 100)

        stats = toolpath.stats
        log.info(
            "Mesh job: %d points, cutting %.1f mm, est. %.1f min",
            toolpath.total_points, stats.cutting_distance, stats.estimated_time,
        )
        return JobResult(
            gcode=gcode,
            toolpath=toolpath,
            toolpath_data=toolpath.to_buffer(),
            stats=stats,
            grid_size=(zmap.grid_width, zmap.grid_height),
            issues=result.issues,
        )


# ---------------------------------------------------------------------------
# JSON vector input
# ---------------------------------------------------------------------------


def _number(entry: dict, key: str) -> float:
    try:
        return float(entry[key])
    except (KeyError, TypeError, ValueError):
        raise MalformedInputError(f"Shape {entry!r} needs a numeric {key!r}") from None


def _entry_polylines(entry: dict) -> list[Polyline]:
    transform = parse_transform(entry["transform"]) if entry.get("transform") else IDENTITY

    if "d" in entry:
        return parse_path_data(str(entry["d"]), transform)

    if "points" in entry:
        try:
            pts = np.asarray(entry["points"], dtype=np.float64)
        except (TypeError, ValueError):
            raise MalformedInputError("Polyline points must be [x, y] number pairs") from None
        if pts.size == 0:
            return []
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise MalformedInputError(
                f"Polyline points must be [x, y] pairs, got shape {pts.shape}"
            )
        if not np.isfinite(pts).all():
            raise MalformedInputError("Polyline points must be finite")
        if not transform.is_identity:
            pts = transform.apply_array(pts)
        closed = bool(entry.get("closed", False))
        if closed and len(pts) > 1 and not np.array_equal(pts[0], pts[-1]):
            pts = np.vstack((pts, pts[:1]))
        return [Polyline.from_array(pts, closed)]

    kind = entry.get("type")
    if kind == "rect":
        poly = rectangle(
            _number(entry, "x"), _number(entry, "y"),
            _number(entry, "width"), _number(entry, "height"),
            transform,
        )
    elif kind == "circle":
        r = _number(entry, "r")
        poly = flatten_ellipse(_number(entry, "cx"), _number(entry, "cy"), r, r, transform)
    elif kind == "ellipse":
        poly = flatten_ellipse(
            _number(entry, "cx"), _number(entry, "cy"),
            _number(entry, "rx"), _number(entry, "ry"),
            transform,
        )
    else:
        raise MalformedInputError(f"Unrecognised vector entry: {entry!r}")
    return [] if poly is None else [poly]


def polylines_from_json(data) -> list[Polyline]:
    """Decode the CLI's JSON vector format.

    *data* is a list of entries (or an object with a ``"paths"`` list).
    Each entry is one of::

        {"points": [[x, y], ...], "closed": false}
        {"d": "M 0 0 L 10 0", "transform": "translate(5)"}
        {"type": "rect", "x": 0, "y": 0, "width": 20, "height": 10}
        {"type": "circle", "cx": 10, "cy": 10, "r": 5}
        {"type": "ellipse", "cx": 10, "cy": 10, "rx": 8, "ry": 4}

    Every entry accepts an optional ``"transform"`` attribute string.

    Raises
    ------
    MalformedInputError:
        For entries that cannot be decoded.
    """
    if isinstance(data, dict):
        data = data.get("paths", [])
    if not isinstance(data, list):
        raise MalformedInputError("Vector input must be a list of path entries")

    polylines: list[Polyline] = []
    for entry in data:
        if not isinstance(entry, dict):
            raise MalformedInputError(f"Path entry must be an object, got {entry!r}")
        polylines.extend(_entry_polylines(entry))
    log.debug("Decoded %d polylines from %d entries", len(polylines), len(data))
    return polylines
