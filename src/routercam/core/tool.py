"""Cutting tool definitions, tip-profile maths and a JSON tool library."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np


class ToolType(Enum):
    FLAT_END = "flat_end"
    BALL_NOSE = "ball_nose"
    V_BIT = "v_bit"


@dataclass(frozen=True)
class ToolConfig:
    """A cutting tool and its feeds and speeds.

    Dimensions are in millimetres, rates in mm/min.  ``angle`` is the full
    included angle of a V-bit in degrees and is ignored for other types.
    """
    tool_type: ToolType = ToolType.FLAT_END
    diameter: float = 3.175
    angle: float = 60.0
    spindle_speed: int = 12000
    feed_rate: float = 800.0
    plunge_rate: float = 300.0

    @property
    def radius(self) -> float:
        return self.diameter / 2.0

    @property
    def half_angle(self) -> float:
        """Half the included V angle, in radians."""
        return math.radians(self.angle / 2.0)

    def describe(self) -> str:
        if self.tool_type is ToolType.V_BIT:
            return f"{self.tool_type.value} D{self.diameter} {self.angle:g}deg"
        return f"{self.tool_type.value} D{self.diameter}"

    def to_dict(self) -> dict:
        d = asdict(self)
        d["tool_type"] = self.tool_type.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ToolConfig:
        d = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        if "tool_type" in d:
            d["tool_type"] = ToolType(d["tool_type"])
        return cls(**d)


def contact_height(tool: ToolConfig, feature_z, offset):
    """Tool-tip Z when the cutter touches a feature at horizontal *offset*.

    Works on scalars or numpy arrays.  Offsets beyond the tool radius are
    the caller's concern.

    - flat end: the feature Z itself
    - ball nose: ``z - r + sqrt(r^2 - d^2)``
    - V-bit: ``z - d / tan(half_angle)``
    """
    r = tool.radius
    if tool.tool_type is ToolType.BALL_NOSE:
        d2 = np.minimum(np.square(offset), r * r)
        return feature_z - r + np.sqrt(r * r - d2)
    if tool.tool_type is ToolType.V_BIT:
        return feature_z - np.abs(offset) / math.tan(tool.half_angle)
    return feature_z + 0.0 * np.asarray(offset)


def default_stepover(tool: ToolConfig, fraction: float = 0.4) -> float:
    """Raster row spacing used when none is given."""
    return tool.diameter * fraction


class ToolLibrary:
    """Named tool presets backed by a JSON file."""

    def __init__(self, path: Optional[Path] = None):
        if path is None:
            path = Path.home() / ".routercam" / "tools.json"
        self._path = path
        self._tools: dict[str, ToolConfig] = {}
        if self._path is not None and self._path.exists():
            self.load()

    def add(self, name: str, tool: ToolConfig) -> None:
        self._tools[name] = tool

    def remove(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[ToolConfig]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {name: self._tools[name].to_dict() for name in self.names()}
        self._path.write_text(json.dumps(data, indent=2))

    def load(self) -> None:
        data = json.loads(self._path.read_text())
        self._tools = {name: ToolConfig.from_dict(d) for name, d in data.items()}
