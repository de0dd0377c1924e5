"""Parameter checks and toolpath sanity checks.

``check_*`` functions raise :class:`ConfigurationError` for parameters no
run can use.  :func:`validate_toolpath` collects non-fatal issues with a
finished toolpath (cutting outside the stock, through the stock, or
nothing at all) so callers can report them before cutting.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import shapely
from shapely.geometry import MultiPoint

from ..core.errors import ConfigurationError
from ..core.geometry import Point3D
from ..core.machine import MachineConfig
from ..core.stock import StockConfig
from ..core.tool import ToolConfig, ToolType
from ..core.toolpath.base import MoveType, Toolpath

# Cut positions may sit this far outside the stock before a warning
FOOTPRINT_TOLERANCE = 1e-6


@dataclass
class ValidationIssue:
    """A single validation problem found in the toolpath."""

    severity: str  # "error" or "warning"
    message: str
    point: Optional[Point3D] = None


@dataclass
class ValidationResult:
    """Result of validating a toolpath."""

    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "error" for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(i.severity == "warning" for i in self.issues)

    @property
    def is_ok(self) -> bool:
        return len(self.issues) == 0


def _positive(name: str, value: float) -> None:
    if not (isinstance(value, (int, float)) and math.isfinite(value) and value > 0):
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")


def check_tool(tool: ToolConfig) -> None:
    _positive("Tool diameter", tool.diameter)
    _positive("Spindle speed", tool.spindle_speed)
    _positive("Feed rate", tool.feed_rate)
    _positive("Plunge rate", tool.plunge_rate)
    if tool.tool_type is ToolType.V_BIT and not 0 < tool.angle < 180:
        raise ConfigurationError(
            f"V-bit angle must be between 0 and 180 degrees, got {tool.angle!r}"
        )


def check_machine(machine: MachineConfig, stock: StockConfig) -> None:
    if not math.isfinite(machine.safe_z):
        raise ConfigurationError(f"Safe Z must be finite, got {machine.safe_z!r}")
    _positive("Stock width", stock.width)
    _positive("Stock height", stock.height)
    _positive("Stock thickness", stock.thickness)


def check_vector_params(cut_depth: float) -> None:
    if not (math.isfinite(cut_depth) and cut_depth >= 0):
        raise ConfigurationError(f"Cut depth must be zero or positive, got {cut_depth!r}")


def check_mesh_params(resolution: float, stepover: float) -> None:
    _positive("Resolution", resolution)
    _positive("Stepover", stepover)


def validate_toolpath(
    toolpath: Toolpath,
    stock: StockConfig,
    machine: MachineConfig,
) -> ValidationResult:
    """Check *toolpath* against the stock block and clearance height.

    Checks performed:
    - Safe Z is above the stock top and above the highest cutting move
    - Cutting moves stay over the stock footprint
    - Cutting moves do not go below the stock bottom
    - Toolpath is non-empty
    """
    result = ValidationResult()

    if machine.safe_z <= 0:
        result.issues.append(ValidationIssue(
            "error",
            f"Safe Z {machine.safe_z:.3f} is not above the stock top (Z=0)",
        ))

    if toolpath.is_empty:
        result.issues.append(ValidationIssue(
            "warning",
            "Toolpath is empty; no cutting moves will be generated",
        ))
        return result

    if machine.safe_z > 0:
        top = max(
            (p for seg in toolpath.segments if seg.move_type is MoveType.CUT for p in seg.points),
            key=lambda p: p.z,
            default=None,
        )
        if top is not None and top.z >= machine.safe_z:
            result.issues.append(ValidationIssue(
                "warning",
                f"Safe Z {machine.safe_z:.3f} is not above the highest cut (Z={top.z:.3f}); "
                "retracts will not clear the part",
                top,
            ))

    cut_pts = [
        p for seg in toolpath.segments
        if seg.move_type in (MoveType.CUT, MoveType.PLUNGE)
        for p in seg.points
        if p.z < 0
    ]
    if cut_pts:
        footprint = stock.as_shapely_polygon().buffer(FOOTPRINT_TOLERANCE)
        xy = np.array([(p.x, p.y) for p in cut_pts])
        inside = shapely.covers(footprint, shapely.points(xy))
        outside = [p for p, ok in zip(cut_pts, inside) if not ok]
        if outside:
            hull = MultiPoint([(p.x, p.y) for p in outside]).bounds
            result.issues.append(ValidationIssue(
                "warning",
                f"{len(outside)} cutting positions lie outside the "
                f"{stock.width:g} x {stock.height:g} stock "
                f"(X {hull[0]:.3f}..{hull[2]:.3f}, Y {hull[1]:.3f}..{hull[3]:.3f})",
                outside[0],
            ))

        deepest = min(cut_pts, key=lambda p: p.z)
        if deepest.z < stock.z_bottom:
            result.issues.append(ValidationIssue(
                "warning",
                f"Cut depth Z={deepest.z:.3f} goes through the stock bottom "
                f"(Z={stock.z_bottom:.3f})",
                deepest,
            ))

    return result
