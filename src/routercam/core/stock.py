"""Stock (workpiece blank) definition."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StockConfig:
    """Rectangular stock blank, in millimetres.

    The design coordinate system has its origin at the front-left corner
    of the stock.  Z=0 is the **top** of the stock and negative Z values go
    down into the material.

    Parameters
    ----------
    width, height:
        Footprint along X and Y.
    thickness:
        Depth of the blank along Z.
    """

    width: float = 200.0
    height: float = 200.0
    thickness: float = 10.0

    @property
    def z_bottom(self) -> float:
        return -self.thickness

    @property
    def bounds_2d(self) -> tuple[float, float, float, float]:
        """(xmin, ymin, xmax, ymax) of the stock footprint."""
        return (0.0, 0.0, self.width, self.height)

    def as_shapely_polygon(self):
        """Return a Shapely Polygon of the stock XY footprint."""
        from shapely.geometry import box

        return box(*self.bounds_2d)
