"""End-to-end tests for the vector and mesh job pipelines."""

import numpy as np
import pytest
import trimesh

from routercam.core.errors import ConfigurationError, MalformedInputError
from routercam.core.geometry import Polyline
from routercam.core.job import JobResult, MeshJob, VectorJob, polylines_from_json
from routercam.core.machine import MachineConfig
from routercam.core.stock import StockConfig
from routercam.core.tool import ToolConfig
from routercam.core.toolpath.base import MoveType
from routercam.gcode.stats import motion_positions, parse_gcode_stats


@pytest.fixture
def stock() -> StockConfig:
    return StockConfig(50.0, 50.0, 10.0)


@pytest.fixture
def pyramid() -> np.ndarray:
    """Square pyramid on a 40 x 40 base at (5, 5), apex 8 mm high."""
    base = [(5, 5, 0), (45, 5, 0), (45, 45, 0), (5, 45, 0)]
    apex = (25, 25, 8)
    return np.array(
        [[base[k], base[(k + 1) % 4], apex] for k in range(4)], dtype=float,
    )


# ---------------------------------------------------------------------------
# 2D profile jobs
# ---------------------------------------------------------------------------


class TestVectorJob:
    def test_single_line(self, stock):
        job = VectorJob([Polyline([(0, 0), (10, 0)])], stock=stock, cut_depth=1.0)
        result = job.run()
        assert isinstance(result, JobResult)
        assert result.stats.cutting_distance == pytest.approx(10.0)
        assert "Z-1.000" in result.gcode
        assert "G0 Z5.000" in result.gcode
        assert result.issues == []

    def test_buffer_matches_toolpath(self, stock):
        result = VectorJob([Polyline([(0, 0), (10, 0)])], stock=stock).run()
        assert result.toolpath_data.shape == (4 * result.toolpath.total_points,)
        kinds = set(result.toolpath_data[3::4].tolist())
        assert kinds <= {m.code for m in MoveType}

    def test_closed_square_with_inside_offset(self, stock):
        square = Polyline([(10, 10), (30, 10), (30, 30), (10, 30), (10, 10)], closed=True)
        result = VectorJob([square], stock=stock, offset=2.0, ramp_entry=False).run()
        cuts = [s for s in result.toolpath.segments if s.move_type is MoveType.CUT]
        xs = [p.x for s in cuts for p in s.points]
        assert min(xs) == pytest.approx(12.0)
        assert max(xs) == pytest.approx(28.0)
        assert result.stats.cutting_distance == pytest.approx(4 * 16.0)

    def test_ends_at_safe_z_with_spindle_off(self, stock):
        paths = [Polyline([(5, 5), (20, 5)]), Polyline([(40, 40), (45, 20)])]
        result = VectorJob(paths, stock=stock).run()
        stats = parse_gcode_stats(result.gcode)
        assert stats.has_spindle_on and stats.has_spindle_off
        assert motion_positions(result.gcode)[-1][3] == 5.0

    def test_centre_origin(self, stock):
        line = Polyline([(25, 25), (35, 25)])
        result = VectorJob([line], stock=stock, origin_position="center", ramp_entry=False).run()
        assert "G0 X0.000 Y0.000" in result.gcode.splitlines()
        assert "G1 X10.000" in result.gcode.splitlines()

    def test_outside_stock_reported(self, stock):
        result = VectorJob([Polyline([(10, 10), (80, 10)])], stock=stock).run()
        assert any("outside" in i.message for i in result.issues)

    def test_progress_is_monotonic(self, stock):
        seen = []
        VectorJob([Polyline([(0, 0), (10, 0)])], stock=stock).run(
            on_progress=lambda stage, pct: seen.append((stage, pct)),
        )
        pcts = [p for _, p in seen]
        assert pcts == sorted(pcts)
        assert seen[-1] == ("done", 100)

    def test_empty_input(self, stock):
        result = VectorJob([], stock=stock).run()
        assert result.toolpath.is_empty
        assert result.toolpath_data.size == 0
        assert "M2" in result.gcode
        assert any("empty" in i.message for i in result.issues)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf")])
    def test_non_finite_point(self, stock, bad):
        job = VectorJob([Polyline([(0, 0), (bad, 5), (10, 0)])], stock=stock)
        with pytest.raises(MalformedInputError, match="Polyline 0"):
            job.run()

    def test_bad_depth(self, stock):
        with pytest.raises(ConfigurationError, match="Cut depth"):
            VectorJob([Polyline([(0, 0), (1, 0)])], stock=stock, cut_depth=-1.0).run()

    def test_bad_tool(self, stock):
        with pytest.raises(ConfigurationError, match="Tool diameter"):
            VectorJob([], tool=ToolConfig(diameter=0.0), stock=stock).run()


# ---------------------------------------------------------------------------
# 3D raster jobs
# ---------------------------------------------------------------------------


class TestMeshJob:
    def test_pyramid(self, stock, pyramid):
        tool = ToolConfig(diameter=3.0)
        result = MeshJob(pyramid, tool=tool, stock=stock, resolution=1.0, stepover=2.0).run()
        assert result.grid_size == (50, 50)
        zs = result.toolpath_data[2::4]
        assert zs.max() <= 8.0 + 1e-9
        assert zs.max() == pytest.approx(8.0)
        assert zs.min() >= 0.0
        assert result.toolpath.segments[0].points[-1] == (0, 0, 0)
        assert result.stats.cutting_distance > 0
        assert "G1" in result.gcode

    def test_invert_cuts_into_stock(self, stock, pyramid):
        tool = ToolConfig(diameter=3.0)
        result = MeshJob(
            pyramid, tool=tool, stock=stock, resolution=1.0, stepover=2.0, invert=True,
        ).run()
        cut_z = [p.z for s in result.toolpath.segments
                 if s.move_type is MoveType.CUT for p in s.points]
        assert max(cut_z) <= 0.0
        assert min(cut_z) == pytest.approx(-8.0)

    def test_trimesh_input(self, stock):
        mesh = trimesh.creation.box(extents=(20.0, 20.0, 3.0))
        mesh.apply_translation((25.0, 25.0, 1.5))
        result = MeshJob(mesh, stock=stock, resolution=1.0, stepover=1.0).run()
        assert result.toolpath_data[2::4].max() == pytest.approx(5.0)
        cut_z = [p.z for s in result.toolpath.segments
                 if s.move_type is MoveType.CUT for p in s.points]
        assert max(cut_z) == pytest.approx(3.0)

    def test_empty_mesh_cuts_stock_top(self, stock):
        result = MeshJob(None, stock=stock, resolution=5.0, stepover=5.0).run()
        cut_z = {p.z for s in result.toolpath.segments
                 if s.move_type is MoveType.CUT for p in s.points}
        assert cut_z == {0.0}

    def test_progress_stages(self, stock, pyramid):
        seen = []
        MeshJob(pyramid, stock=stock, resolution=2.0, stepover=2.0).run(
            on_progress=lambda stage, pct: seen.append((stage, pct)),
        )
        stages = [s for s, _ in seen]
        assert stages[0] == "load"
        assert "heightmap" in stages and "toolpath" in stages
        pcts = [p for _, p in seen]
        assert pcts == sorted(pcts)
        assert seen[-1] == ("done", 100)

    def test_stepover_defaults_from_tool(self, stock, pyramid):
        tool = ToolConfig(diameter=5.0)

        def row_ys(job):
            return {p.y for s in job.run().toolpath.segments
                    if s.move_type is MoveType.CUT for p in s.points}

        derived = row_ys(MeshJob(pyramid, tool=tool, stock=stock, resolution=1.0))
        explicit = row_ys(MeshJob(pyramid, tool=tool, stock=stock, resolution=1.0, stepover=2.0))
        assert derived == explicit
        assert len(derived) == 25

    def test_malformed_triangles(self, stock):
        with pytest.raises(MalformedInputError):
            MeshJob([1.0, 2.0, 3.0, 4.0], stock=stock).run()

    def test_bad_resolution(self, stock):
        with pytest.raises(ConfigurationError, match="Resolution"):
            MeshJob([], stock=stock, resolution=0.0).run()

    def test_safe_z_at_stock_top_is_error(self, stock, pyramid):
        result = MeshJob(
            pyramid, stock=stock, machine=MachineConfig(safe_z=0.0),
            resolution=5.0, stepover=5.0,
        ).run()
        assert any(i.severity == "error" for i in result.issues)


# ---------------------------------------------------------------------------
# JSON vector input
# ---------------------------------------------------------------------------


class TestPolylinesFromJson:
    def test_points_entry(self):
        (p,) = polylines_from_json([{"points": [[0, 0], [10, 0]]}])
        assert p == Polyline([(0, 0), (10, 0)])

    def test_closed_points_gain_closing_point(self):
        (p,) = polylines_from_json([{"points": [[0, 0], [10, 0], [10, 10]], "closed": True}])
        assert p.closed
        assert p.points[-1] == (0, 0)
        assert len(p) == 4

    def test_paths_wrapper_and_transform(self):
        data = {"paths": [{"d": "M 0 0 L 10 0", "transform": "translate(5, 5)"}]}
        (p,) = polylines_from_json(data)
        assert p.start == pytest.approx((5.0, 5.0))
        assert p.end == pytest.approx((15.0, 5.0))

    def test_shapes(self):
        polys = polylines_from_json([
            {"type": "rect", "x": 0, "y": 0, "width": 20, "height": 10},
            {"type": "circle", "cx": 10, "cy": 10, "r": 5},
            {"type": "ellipse", "cx": 10, "cy": 10, "rx": 8, "ry": 4},
        ])
        assert len(polys) == 3
        assert all(p.closed for p in polys)
        assert polys[0].length == pytest.approx(60.0)

    def test_degenerate_shape_dropped(self):
        assert polylines_from_json([{"type": "circle", "cx": 0, "cy": 0, "r": 0}]) == []

    @pytest.mark.parametrize("data, message", [
        ("nope", "must be a list"),
        ([42], "must be an object"),
        ([{"type": "star"}], "Unrecognised vector entry"),
        ([{"type": "circle", "cx": 1, "cy": 1}], "numeric 'r'"),
        ([{"points": [[0, 0, 0], [1, 1, 1]]}], "x, y"),
        ([{"points": [[0, 0], [1, None]]}], "finite"),
    ])
    def test_malformed(self, data, message):
        with pytest.raises(MalformedInputError, match=message):
            polylines_from_json(data)
