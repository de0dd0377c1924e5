"""Core toolpath data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

import numpy as np

from ...config.defaults import RAPID_RATE
from ..geometry import Point3D, polyline_length


class MoveType(Enum):
    """Type of CNC motion."""
    RAPID = "rapid"          # G0, no cutting, full speed
    CUT = "cut"              # G1 at feed rate
    PLUNGE = "plunge"        # G1 at plunge rate, entering material
    RETRACT = "retract"      # G0, pulling out of material

    @property
    def code(self) -> int:
        """Numeric kind used in the visualisation buffer."""
        return _MOVE_CODES[self]


_MOVE_CODES = {
    MoveType.RAPID: 0,
    MoveType.CUT: 1,
    MoveType.PLUNGE: 2,
    MoveType.RETRACT: 3,
}


@dataclass(frozen=True)
class ToolpathSegment:
    """A connected run of tool-tip points sharing one move type.

    The first point is where the move starts, so a single move has two
    points.
    """
    points: tuple[Point3D, ...]
    move_type: MoveType

    def __post_init__(self):
        object.__setattr__(
            self, "points",
            tuple(Point3D(float(p[0]), float(p[1]), float(p[2])) for p in self.points),
        )

    @property
    def length(self) -> float:
        return polyline_length(self.points)

    def is_empty(self) -> bool:
        return len(self.points) == 0


@dataclass(frozen=True)
class ToolpathStats:
    """Aggregate distances (mm) and estimated machining time (minutes)."""
    total_distance: float = 0.0
    cutting_distance: float = 0.0
    rapid_distance: float = 0.0
    estimated_time: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_distance": self.total_distance,
            "cutting_distance": self.cutting_distance,
            "rapid_distance": self.rapid_distance,
            "estimated_time": self.estimated_time,
        }


def compute_stats(
    segments: Iterable[ToolpathSegment],
    feed_rate: float,
    plunge_rate: float,
    rapid_rate: float = RAPID_RATE,
) -> ToolpathStats:
    """Sum segment lengths per move type and estimate time.

    Rapids and retracts run at *rapid_rate*; plunges count toward the
    total distance and time but not the cutting distance.
    """
    cutting = rapid = plunge = 0.0
    for seg in segments:
        length = seg.length
        if seg.move_type is MoveType.CUT:
            cutting += length
        elif seg.move_type is MoveType.PLUNGE:
            plunge += length
        else:
            rapid += length
    time = 0.0
    if feed_rate > 0:
        time += cutting / feed_rate
    if plunge_rate > 0:
        time += plunge / plunge_rate
    if rapid_rate > 0:
        time += rapid / rapid_rate
    return ToolpathStats(
        total_distance=cutting + rapid + plunge,
        cutting_distance=cutting,
        rapid_distance=rapid,
        estimated_time=time,
    )


@dataclass(frozen=True)
class Toolpath:
    """An ordered, immutable collection of toolpath segments."""
    segments: tuple[ToolpathSegment, ...] = ()
    stats: ToolpathStats = field(default_factory=ToolpathStats)

    @classmethod
    def from_segments(
        cls,
        segments: Sequence[ToolpathSegment],
        feed_rate: float,
        plunge_rate: float,
    ) -> Toolpath:
        segs = tuple(s for s in segments if not s.is_empty())
        return cls(segs, compute_stats(segs, feed_rate, plunge_rate))

    @property
    def total_points(self) -> int:
        return sum(len(s.points) for s in self.segments)

    @property
    def is_empty(self) -> bool:
        return all(s.is_empty() for s in self.segments)

    def to_buffer(self) -> np.ndarray:
        """Flat float32 ``[x, y, z, kind] * n`` array for previews."""
        rows = [
            (p.x, p.y, p.z, seg.move_type.code)
            for seg in self.segments
            for p in seg.points
        ]
        return np.asarray(rows, dtype=np.float32).reshape(-1)
