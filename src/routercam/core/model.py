"""Mesh input: trimesh file loading and triangle-array adapters.

Any format trimesh reads (STL, OBJ, PLY, 3MF, ...) can be loaded.  The
engine itself only needs an ``(n, 3, 3)`` float array of triangle
vertices; :func:`as_triangle_array` accepts the other shapes callers
commonly hold.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import trimesh

from .errors import MalformedInputError
from .stock import StockConfig

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {
    ".stl", ".obj", ".ply", ".off", ".glb", ".gltf", ".3mf",
}


@dataclass
class MeshModel:
    """A mesh read from disk, in file coordinates until placed."""

    mesh: trimesh.Trimesh
    source_path: Path
    was_repaired: bool = False

    @property
    def extents(self) -> np.ndarray:
        return self.mesh.extents

    @property
    def triangles(self) -> np.ndarray:
        """``(n, 3, 3)`` float64 vertex array, one row per face."""
        return np.asarray(self.mesh.triangles, dtype=np.float64)

    def translate_to_origin(self) -> None:
        """Place the footprint's front-left corner at X0 Y0 and the lowest
        point on Z=0."""
        self.mesh.apply_translation(-self.mesh.bounds[0])

    def fitted_stock(self) -> StockConfig:
        """Smallest stock block holding the placed mesh."""
        width, height, thickness = (float(v) for v in self.mesh.extents)
        return StockConfig(width, height, thickness)


def _repair(mesh: trimesh.Trimesh, name: str) -> None:
    trimesh.repair.fill_holes(mesh)
    trimesh.repair.fix_winding(mesh)
    trimesh.repair.fix_normals(mesh)
    if not mesh.is_watertight:
        warnings.warn(
            f"{name}: mesh still has open edges after repair; "
            "only the faces present are sampled",
            UserWarning,
            stacklevel=3,
        )


def load_mesh(path: Path, repair: bool = True) -> MeshModel:
    """Read a triangle mesh; scenes are merged into one mesh.

    Open meshes are patched with trimesh's repair helpers unless *repair*
    is False.

    Raises
    ------
    FileNotFoundError:
        If *path* does not exist.
    MalformedInputError:
        If the file holds no triangles.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Mesh file not found: {path}")

    mesh = trimesh.load(str(path), force="mesh")
    if not isinstance(mesh, trimesh.Trimesh) or len(mesh.faces) == 0:
        raise MalformedInputError(f"No triangles found in {path}")

    repaired = repair and not mesh.is_watertight
    if repaired:
        _repair(mesh, path.name)
    log.info("Loaded %s: %d faces", path.name, len(mesh.faces))
    return MeshModel(mesh=mesh, source_path=path, was_repaired=repaired)


def as_triangle_array(triangles) -> np.ndarray:
    """Normalise mesh input to an ``(n, 3, 3)`` float64 array.

    Accepts a flat sequence of 9 floats per triangle, ``(n, 9)`` or
    ``(n, 3, 3)`` arrays, a trimesh mesh, or a sequence of
    :class:`~routercam.core.geometry.Triangle` records.

    Raises
    ------
    MalformedInputError:
        If the input does not hold whole triangles or contains
        non-finite coordinates.
    """
    if isinstance(triangles, MeshModel):
        triangles = triangles.mesh
    if isinstance(triangles, trimesh.Trimesh):
        arr = np.asarray(triangles.triangles, dtype=np.float64)
    else:
        try:
            arr = np.asarray(triangles, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise MalformedInputError(f"Cannot read triangle data: {exc}") from None

    if arr.size == 0:
        return np.zeros((0, 3, 3), dtype=np.float64)
    if arr.ndim == 1:
        if arr.size % 9 != 0:
            raise MalformedInputError(
                f"Flat vertex array length {arr.size} is not a multiple of 9"
            )
        arr = arr.reshape(-1, 3, 3)
    elif arr.ndim == 2 and arr.shape[1] == 9:
        arr = arr.reshape(-1, 3, 3)
    elif arr.ndim != 3 or arr.shape[1:] != (3, 3):
        raise MalformedInputError(f"Unsupported triangle array shape {arr.shape}")

    if not np.all(np.isfinite(arr)):
        bad = int(np.argwhere(~np.isfinite(arr))[0][0])
        raise MalformedInputError(f"Triangle {bad} has a non-finite coordinate")
    return arr
