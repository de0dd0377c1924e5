"""Application preferences (persisted to disk)."""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from ..core.machine import OriginPosition
from .defaults import (
    DEFAULT_CUT_DEPTH,
    DEFAULT_MACHINE,
    DEFAULT_RESOLUTION,
)


@dataclass
class AppSettings:
    """User preferences, serialized to ~/.routercam/settings.json."""

    origin_position: str = OriginPosition.FRONT_LEFT.value
    tool_preset: str = "flat-3.175"
    safe_z: float = DEFAULT_MACHINE.safe_z
    cut_depth: float = DEFAULT_CUT_DEPTH
    resolution: float = DEFAULT_RESOLUTION
    stepover: Optional[float] = None  # None: derived from the tool
    last_output_dir: str = ""

    @staticmethod
    def default_path() -> Path:
        return Path.home() / ".routercam" / "settings.json"

    def save(self, path: Optional[Path] = None) -> None:
        p = path or self.default_path()
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(asdict(self), indent=2))

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppSettings":
        p = path or cls.default_path()
        if p.exists():
            data = json.loads(p.read_text())
            return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        return cls()
