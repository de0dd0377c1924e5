"""2D vector input: path-data decoding, flattening and tool offsets."""

from .discretizer import process_polylines
from .offset import offset_polyline, offset_polylines
from .pathdata import parse_path_data

__all__ = ["offset_polyline", "offset_polylines", "parse_path_data", "process_polylines"]
