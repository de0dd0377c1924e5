"""Default tools, machine settings and engine tolerances.

The tool presets are conservative starting points for wood and plastics;
users should adjust to their specific tooling and material.
"""

import math

from ..core.machine import MachineConfig
from ..core.stock import StockConfig
from ..core.tool import ToolConfig, ToolLibrary, ToolType

# Curve discretizer
DEDUPE_TOLERANCE = 0.001
SIMPLIFY_EPSILON = 0.05
MAX_SEGMENT_LENGTH = 1.0
CURVE_FLATNESS = 0.5
CURVE_MAX_DEPTH = 12
ARC_ANGLE_STEP = math.pi / 16
ARC_MIN_SEGMENTS = 4

# Toolpath synthesis
RAPID_RATE = 5000.0             # nominal mm/min used for time estimates
RAMP_ANGLE_DEG = 3.0
RAMP_MIN_LENGTH_FACTOR = 3.0    # ramp only when path length >= factor * depth
MOVE_EPSILON = 0.001

# Arc fitting
ARC_TOLERANCE = 0.01
ARC_MIN_POINTS = 4
ARC_MAX_RADIUS = 1000.0
ARC_MAX_STEP_ANGLE = math.radians(30.0)  # between neighbouring points of one arc

# G-code output
COORD_DECIMALS = 3
MESH_COLLINEAR_TOLERANCE = 0.005

# Job parameters
DEFAULT_CUT_DEPTH = 1.0
DEFAULT_RESOLUTION = 0.5

DEFAULT_TOOL = ToolConfig()
DEFAULT_MACHINE = MachineConfig()
DEFAULT_STOCK = StockConfig()


def build_default_tool_library() -> ToolLibrary:
    """Return an in-memory ToolLibrary with common router bits."""
    lib = ToolLibrary.__new__(ToolLibrary)
    lib._path = None   # in-memory only
    lib._tools = {}

    lib.add("flat-3.175", ToolConfig(
        tool_type=ToolType.FLAT_END,
        diameter=3.175,
        spindle_speed=12000,
        feed_rate=800.0,
        plunge_rate=300.0,
    ))
    lib.add("flat-6", ToolConfig(
        tool_type=ToolType.FLAT_END,
        diameter=6.0,
        spindle_speed=16000,
        feed_rate=1200.0,
        plunge_rate=400.0,
    ))
    lib.add("ball-3.175", ToolConfig(
        tool_type=ToolType.BALL_NOSE,
        diameter=3.175,
        spindle_speed=14000,
        feed_rate=700.0,
        plunge_rate=250.0,
    ))
    lib.add("ball-1", ToolConfig(
        tool_type=ToolType.BALL_NOSE,
        diameter=1.0,
        spindle_speed=18000,
        feed_rate=400.0,
        plunge_rate=150.0,
    ))
    lib.add("vbit-60", ToolConfig(
        tool_type=ToolType.V_BIT,
        diameter=6.35,
        angle=60.0,
        spindle_speed=16000,
        feed_rate=600.0,
        plunge_rate=200.0,
    ))
    lib.add("vbit-90", ToolConfig(
        tool_type=ToolType.V_BIT,
        diameter=6.35,
        angle=90.0,
        spindle_speed=16000,
        feed_rate=600.0,
        plunge_rate=200.0,
    ))
    return lib
