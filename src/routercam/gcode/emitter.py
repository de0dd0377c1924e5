"""Toolpath to G-code post-processor for hobby routers (GRBL-style dialect).

Output is absolute, metric G-code.  Coordinates and feed are modal: a
word is written only when its value, as printed, changes, and moves that
would not change the printed position are dropped.  X/Y are shifted by
the machine origin offset; Z and arc centre offsets are not.

Program structure
-----------------
1. Header comments, ``G90``, ``G21``, spindle on, rapid to safe Z
2. Body: ``G0`` rapids/retracts, ``G1`` plunges and cuts, ``G2``/``G3``
   arcs fitted from cut segments
3. Footer: retract to safe Z, return to ``X0 Y0``, ``M5``, ``M2``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config.defaults import MESH_COLLINEAR_TOLERANCE
from ..core.machine import MachineConfig
from ..core.tool import ToolConfig
from ..core.toolpath.base import MoveType, Toolpath, ToolpathSegment
from .arc_fitting import ArcMove, detect_arcs, simplify_collinear
from .gcode_writer import arc, comment, fmt, linear, rapid, with_comment

log = logging.getLogger(__name__)

PROGRAM_NAME = "RouterCAM G-code"
ARC_FIT_MIN_POINTS = 4


@dataclass
class PostProcessorConfig:
    """Settings that control G-code output.

    ``collinear_tolerance`` removes nearly collinear cut points before arc
    fitting; raster toolpaths use :data:`MESH_COLLINEAR_TOLERANCE`.
    """

    tool: ToolConfig = field(default_factory=ToolConfig)
    machine: MachineConfig = field(default_factory=MachineConfig)
    job_name: str = ""
    arc_fitting: bool = True
    collinear_tolerance: Optional[float] = None


class _ModalState:
    """Last printed X/Y/Z/F values."""

    def __init__(self):
        self.x: Optional[str] = None
        self.y: Optional[str] = None
        self.z: Optional[str] = None
        self.f: Optional[float] = None

    def changed(self, x: float, y: float, z: float):
        """Return (x, y, z) with unchanged axes replaced by None."""
        sx, sy, sz = fmt(x), fmt(y), fmt(z)
        return (
            x if sx != self.x else None,
            y if sy != self.y else None,
            z if sz != self.z else None,
        )

    def update(self, x: float, y: float, z: float) -> None:
        self.x, self.y, self.z = fmt(x), fmt(y), fmt(z)


class GCodeEmitter:
    """Generates G-code from a :class:`Toolpath`."""

    def __init__(self, config: PostProcessorConfig):
        self.cfg = config
        self._lines: list[str] = []
        self._state = _ModalState()

    # -- public API ----------------------------------------------------------

    def generate(self, toolpath: Toolpath, output_path: Path) -> None:
        """Write G-code for *toolpath* to *output_path*."""
        text = self.to_text(toolpath)
        Path(output_path).write_text(text)
        log.info("Wrote %d lines to %s", text.count("\n"), output_path)

    def to_text(self, toolpath: Toolpath) -> str:
        return "\n".join(self.get_lines(toolpath)) + "\n"

    def get_lines(self, toolpath: Toolpath) -> list[str]:
        """Return G-code lines (useful for testing and previews)."""
        self._lines = []
        self._state = _ModalState()
        self._header()
        for seg in toolpath.segments:
            self._segment(seg)
        self._footer()
        return list(self._lines)

    # -- sections ------------------------------------------------------------

    def _emit(self, line: str) -> None:
        self._lines.append(line)

    def _header(self) -> None:
        tool = self.cfg.tool
        safe_z = self.cfg.machine.safe_z
        self._emit(comment(PROGRAM_NAME))
        if self.cfg.job_name:
            self._emit(comment(f"Job: {self.cfg.job_name}"))
        self._emit(comment(f"Tool: {tool.tool_type.value} D{tool.diameter}mm"))
        self._emit("")
        self._emit(with_comment("G90", "Absolute positioning"))
        self._emit(with_comment("G21", "Units: millimeters"))
        self._emit("")
        self._emit(with_comment(f"S{tool.spindle_speed:.0f} M3", "Spindle ON clockwise"))
        self._emit("")
        self._emit(with_comment(rapid(z=safe_z), "Move to safe Z"))
        self._emit("")
        self._state.z = fmt(safe_z)

    def _footer(self) -> None:
        safe_z = self.cfg.machine.safe_z
        st = self._state
        self._emit("")
        if st.z != fmt(safe_z):
            self._emit(with_comment(rapid(z=safe_z), "Retract to safe Z"))
            st.z = fmt(safe_z)
        if st.x != fmt(0.0) or st.y != fmt(0.0):
            self._emit(with_comment(rapid(x=0.0, y=0.0), "Return to origin"))
            st.x = st.y = fmt(0.0)
        self._emit(with_comment("M5", "Spindle OFF"))
        self._emit(with_comment("M2", "Program end"))

    # -- body ----------------------------------------------------------------

    def _segment(self, seg: ToolpathSegment) -> None:
        points = seg.points
        if seg.move_type is MoveType.CUT:
            if self.cfg.collinear_tolerance is not None and len(points) > 2:
                points = simplify_collinear(points, self.cfg.collinear_tolerance)
            if self.cfg.arc_fitting and len(points) >= ARC_FIT_MIN_POINTS:
                self._fitted_cut(points)
                return
        for p in points:
            self._move(seg.move_type, p[0], p[1], p[2])

    def _fitted_cut(self, points) -> None:
        for move in detect_arcs(points):
            if isinstance(move, ArcMove):
                self._arc(move)
            else:
                self._move(MoveType.CUT, move.x, move.y, move.z)

    def _move(self, move_type: MoveType, x: float, y: float, z: float) -> None:
        m = self.cfg.machine
        x += m.origin_x
        y += m.origin_y
        cx, cy, cz = self._state.changed(x, y, z)
        if cx is None and cy is None and cz is None:
            return
        if self._state.x is None:
            # XY unknown after the header: position with a rapid
            move_type = MoveType.RAPID
        if move_type in (MoveType.RAPID, MoveType.RETRACT):
            self._emit(rapid(cx, cy, cz))
        else:
            rate = self.cfg.tool.plunge_rate if move_type is MoveType.PLUNGE else self.cfg.tool.feed_rate
            self._emit(linear(cx, cy, cz, self._feed(rate)))
        self._state.update(x, y, z)

    def _arc(self, a: ArcMove) -> None:
        m = self.cfg.machine
        # Arc centre is relative to its start; make sure we are there
        self._move(MoveType.CUT, a.start_x, a.start_y, a.z)
        x = a.end_x + m.origin_x
        y = a.end_y + m.origin_y
        cx, cy, cz = self._state.changed(x, y, a.z)
        self._emit(arc(a.clockwise, a.i, a.j, cx, cy, cz, self._feed(self.cfg.tool.feed_rate)))
        self._state.update(x, y, a.z)

    def _feed(self, rate: float) -> Optional[float]:
        if self._state.f == rate:
            return None
        self._state.f = rate
        return rate


def generate_gcode(
    toolpath: Toolpath,
    tool: ToolConfig,
    machine: MachineConfig,
    collinear_tolerance: Optional[float] = None,
    job_name: str = "",
) -> str:
    """Convenience wrapper returning the full program text."""
    cfg = PostProcessorConfig(
        tool=tool,
        machine=machine,
        job_name=job_name,
        collinear_tolerance=collinear_tolerance,
    )
    return GCodeEmitter(cfg).to_text(toolpath)


def generate_mesh_gcode(toolpath: Toolpath, tool: ToolConfig, machine: MachineConfig,
                        job_name: str = "") -> str:
    """G-code for raster toolpaths, with collinear sample points removed."""
    return generate_gcode(toolpath, tool, machine, MESH_COLLINEAR_TOLERANCE, job_name)
