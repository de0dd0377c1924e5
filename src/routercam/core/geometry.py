"""Geometric primitives and 2D affine transforms.

Points are immutable named tuples, polylines are frozen dataclasses that
own a tuple of points.  Closed polylines carry an explicit duplicate of
their first point at the end.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence

import numpy as np

from .errors import MalformedInputError


class Point2D(NamedTuple):
    x: float
    y: float


class Point3D(NamedTuple):
    x: float
    y: float
    z: float


class Triangle(NamedTuple):
    v0: Point3D
    v1: Point3D
    v2: Point3D


@dataclass(frozen=True)
class Polyline:
    """An ordered run of 2D points, optionally closed."""

    points: tuple[Point2D, ...]
    closed: bool = False

    def __post_init__(self):
        # Accept lists of plain tuples and normalise them
        object.__setattr__(
            self, "points",
            tuple(Point2D(float(p[0]), float(p[1])) for p in self.points),
        )

    def __len__(self) -> int:
        return len(self.points)

    @property
    def start(self) -> Point2D:
        return self.points[0]

    @property
    def end(self) -> Point2D:
        return self.points[-1]

    @property
    def length(self) -> float:
        return polyline_length(self.points)

    def as_array(self) -> np.ndarray:
        """Return the points as an ``(n, 2)`` float array."""
        return np.asarray(self.points, dtype=np.float64).reshape(-1, 2)

    def reversed(self) -> Polyline:
        return Polyline(tuple(reversed(self.points)), self.closed)

    @classmethod
    def from_array(cls, arr: np.ndarray, closed: bool = False) -> Polyline:
        return cls(tuple(Point2D(float(x), float(y)) for x, y in arr), closed)


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def bounding_box(polylines: Iterable[Polyline]) -> BoundingBox | None:
    """XY bounds of all *polylines*, or None when there are no points."""
    pts = [p.as_array() for p in polylines if len(p) > 0]
    if not pts:
        return None
    allp = np.vstack(pts)
    lo = allp.min(axis=0)
    hi = allp.max(axis=0)
    return BoundingBox(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))


# ---------------------------------------------------------------------------
# Distance helpers
# ---------------------------------------------------------------------------


def distance_2d(a: Sequence[float], b: Sequence[float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def distance_3d(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(
        (b[0] - a[0]) ** 2 + (b[1] - a[1]) ** 2 + (b[2] - a[2]) ** 2
    )


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def polyline_length(points: Sequence[Sequence[float]]) -> float:
    """Sum of segment lengths (2D or 3D points)."""
    if len(points) < 2:
        return 0.0
    arr = np.asarray(points, dtype=np.float64)
    return float(np.linalg.norm(np.diff(arr, axis=0), axis=1).sum())


# ---------------------------------------------------------------------------
# Affine transforms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AffineTransform:
    """2D affine matrix ``[a c e; b d f; 0 0 1]``.

    ``x' = a*x + c*y + e`` and ``y' = b*x + d*y + f``.
    """

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> AffineTransform:
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float = 0.0) -> AffineTransform:
        return cls(e=tx, f=ty)

    @classmethod
    def scaling(cls, sx: float, sy: float | None = None) -> AffineTransform:
        return cls(a=sx, d=sx if sy is None else sy)

    @classmethod
    def rotation(cls, degrees: float, cx: float = 0.0, cy: float = 0.0) -> AffineTransform:
        rad = math.radians(degrees)
        cos, sin = math.cos(rad), math.sin(rad)
        rot = cls(cos, sin, -sin, cos, 0.0, 0.0)
        if cx == 0 and cy == 0:
            return rot
        return cls.translation(cx, cy) @ rot @ cls.translation(-cx, -cy)

    def __matmul__(self, other: AffineTransform) -> AffineTransform:
        """Compose: ``(self @ other).apply(p) == self.apply(other.apply(p))``."""
        return AffineTransform(
            self.a * other.a + self.c * other.b,
            self.b * other.a + self.d * other.b,
            self.a * other.c + self.c * other.d,
            self.b * other.c + self.d * other.d,
            self.a * other.e + self.c * other.f + self.e,
            self.b * other.e + self.d * other.f + self.f,
        )

    multiply = __matmul__

    @property
    def is_identity(self) -> bool:
        return self == AffineTransform()

    def apply(self, point: Sequence[float]) -> Point2D:
        x, y = point[0], point[1]
        return Point2D(
            self.a * x + self.c * y + self.e,
            self.b * x + self.d * y + self.f,
        )

    def apply_array(self, pts: np.ndarray) -> np.ndarray:
        """Transform an ``(n, 2)`` array of points."""
        m = np.array([[self.a, self.c], [self.b, self.d]])
        return pts @ m.T + np.array([self.e, self.f])

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)


IDENTITY = AffineTransform()

_TRANSFORM_RE = re.compile(r"(translate|scale|rotate|matrix|skewX|skewY)\s*\(([^)]*)\)")
_ARG_SPLIT_RE = re.compile(r"[\s,]+")


def _transform_args(kind: str, raw: str) -> list[float]:
    values = []
    for tok in _ARG_SPLIT_RE.split(raw.strip()):
        if not tok:
            continue
        try:
            v = float(tok)
        except ValueError:
            raise MalformedInputError(
                f"Non-numeric argument {tok!r} in {kind}() transform"
            ) from None
        if not math.isfinite(v):
            raise MalformedInputError(
                f"Non-finite argument {tok!r} in {kind}() transform"
            )
        values.append(v)
    return values


def parse_transform(text: str) -> AffineTransform:
    """Parse an SVG ``transform`` attribute.

    Transforms in the list compose left to right, so the rightmost one is
    applied to points first.  Unknown text between transforms is ignored.

    Raises
    ------
    MalformedInputError:
        If an argument is not a finite number or ``matrix()`` has fewer
        than six values.
    """
    result = IDENTITY
    for match in _TRANSFORM_RE.finditer(text or ""):
        kind = match.group(1)
        v = _transform_args(kind, match.group(2))
        if kind == "translate":
            m = AffineTransform.translation(
                v[0] if v else 0.0, v[1] if len(v) > 1 else 0.0
            )
        elif kind == "scale":
            sx = v[0] if v else 1.0
            m = AffineTransform.scaling(sx, v[1] if len(v) > 1 else sx)
        elif kind == "rotate":
            m = AffineTransform.rotation(
                v[0] if v else 0.0,
                v[1] if len(v) > 1 else 0.0,
                v[2] if len(v) > 2 else 0.0,
            )
        elif kind == "matrix":
            if len(v) < 6:
                raise MalformedInputError(
                    f"matrix() transform needs 6 values, got {len(v)}"
                )
            m = AffineTransform(*v[:6])
        elif kind == "skewX":
            m = AffineTransform(c=math.tan(math.radians(v[0] if v else 0.0)))
        else:
            m = AffineTransform(b=math.tan(math.radians(v[0] if v else 0.0)))
        result = result @ m
    return result
