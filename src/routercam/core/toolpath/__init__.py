"""Toolpath generation package."""

from .base import MoveType, ToolpathSegment, ToolpathStats, Toolpath

__all__ = ["MoveType", "ToolpathSegment", "ToolpathStats", "Toolpath"]
