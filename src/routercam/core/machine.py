"""Machine settings and the work-origin vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .errors import ConfigurationError
from .stock import StockConfig


class OriginPosition(Enum):
    """Where the machine's work zero sits on the stock footprint."""
    FRONT_LEFT = "front-left"
    FRONT_CENTER = "front-center"
    FRONT_RIGHT = "front-right"
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    BACK_LEFT = "back-left"
    BACK_CENTER = "back-center"
    BACK_RIGHT = "back-right"

    @classmethod
    def parse(cls, name: str) -> OriginPosition:
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ConfigurationError(
                f"Unknown origin position {name!r} (expected one of: {valid})"
            ) from None


# (x factor, y factor) applied to (-width, -height)
_ORIGIN_FACTORS: dict[OriginPosition, tuple[float, float]] = {
    OriginPosition.FRONT_LEFT: (0.0, 0.0),
    OriginPosition.FRONT_CENTER: (0.5, 0.0),
    OriginPosition.FRONT_RIGHT: (1.0, 0.0),
    OriginPosition.LEFT: (0.0, 0.5),
    OriginPosition.CENTER: (0.5, 0.5),
    OriginPosition.RIGHT: (1.0, 0.5),
    OriginPosition.BACK_LEFT: (0.0, 1.0),
    OriginPosition.BACK_CENTER: (0.5, 1.0),
    OriginPosition.BACK_RIGHT: (1.0, 1.0),
}


def compute_origin_offsets(
    position: OriginPosition | str,
    stock: StockConfig,
) -> tuple[float, float]:
    """Return the (x, y) offset added to every emitted X/Y coordinate.

    >>> compute_origin_offsets("center", StockConfig(200, 150))
    (-100.0, -75.0)
    """
    if isinstance(position, str):
        position = OriginPosition.parse(position)
    fx, fy = _ORIGIN_FACTORS[position]
    # 0.0 - 0 keeps a positive zero for the left/front anchors
    return (0.0 - fx * stock.width, 0.0 - fy * stock.height)


@dataclass(frozen=True)
class MachineConfig:
    """Per-run machine parameters.

    ``origin_x`` / ``origin_y`` are added to design X/Y on output; they are
    normally derived from ``origin_position`` with :meth:`with_origin`.
    """

    safe_z: float = 5.0
    origin_x: float = 0.0
    origin_y: float = 0.0
    origin_position: OriginPosition = OriginPosition.FRONT_LEFT

    def with_origin(
        self,
        position: OriginPosition | str,
        stock: StockConfig,
    ) -> MachineConfig:
        """Copy of this config with offsets derived from *position*."""
        if isinstance(position, str):
            position = OriginPosition.parse(position)
        ox, oy = compute_origin_offsets(position, stock)
        return replace(self, origin_x=ox, origin_y=oy, origin_position=position)
