"""Tests for zigzag raster toolpaths over a height map."""

import numpy as np
import pytest

from routercam.core.heightmap import HeightMap, ZMapConfig
from routercam.core.toolpath.base import MoveType
from routercam.core.toolpath.raster import (
    RasterParams,
    generate_raster_toolpath,
    invert_height_map,
    row_spacing,
)


@pytest.fixture
def grid_cfg() -> ZMapConfig:
    """11 x 11 samples, 1 mm apart."""
    return ZMapConfig(1.0, 11, 11, 10.0, 10.0)


@pytest.fixture
def params() -> RasterParams:
    return RasterParams(stepover=2.5, safe_z=5.0, feed_rate=1000.0, plunge_rate=200.0)


def _flat_map(cfg: ZMapConfig, z: float = 0.0) -> HeightMap:
    return HeightMap(cfg, np.full(cfg.grid_width * cfg.grid_height, z))


class TestRowSpacing:
    def test_rounds_half_up(self, grid_cfg):
        hm = _flat_map(grid_cfg)
        assert row_spacing(hm, 2.5) == 3
        assert row_spacing(hm, 2.49) == 2
        assert row_spacing(hm, 1.0) == 1

    def test_minimum_one(self, grid_cfg):
        assert row_spacing(_flat_map(grid_cfg), 0.1) == 1


class TestInvert:
    def test_negates_into_new_map(self, grid_cfg):
        data = np.zeros(121)
        data[:3] = [0.0, 1.5, -2.0]
        hm = HeightMap(grid_cfg, data)
        inv = invert_height_map(hm)
        assert inv.data[:3].tolist() == [0.0, -1.5, 2.0]
        assert not np.signbit(inv.data[0])
        assert hm.data[1] == 1.5


class TestRasterToolpath:
    def test_segment_sequence(self, grid_cfg, params):
        tp = generate_raster_toolpath(_flat_map(grid_cfg), params)
        kinds = [s.move_type for s in tp.segments]
        # Rows 0, 3, 6, 9; home is above the first sample
        assert kinds == [MoveType.PLUNGE] + [MoveType.CUT] * 4 + [MoveType.RETRACT]
        assert tp.segments[0].points == ((0, 0, 5), (0, 0, 0))
        assert tp.segments[-1].points[-1] == (0, 9, 5)

    def test_rows_alternate_direction(self, grid_cfg, params):
        tp = generate_raster_toolpath(_flat_map(grid_cfg), params)
        first, second = tp.segments[1], tp.segments[2]
        assert first.points[0] == (0, 0, 0)
        assert first.points[-1] == (10, 0, 0)
        # Second row starts where the first ended, then runs -X at Y=3
        assert second.points[0] == (10, 0, 0)
        assert second.points[1] == (10, 3, 0)
        assert second.points[-1] == (0, 3, 0)

    def test_cutting_distance(self, grid_cfg, params):
        tp = generate_raster_toolpath(_flat_map(grid_cfg), params)
        assert tp.stats.cutting_distance == pytest.approx(4 * 10.0 + 3 * 3.0)

    def test_follows_heights(self, grid_cfg, params):
        z = np.tile(np.arange(11) * 0.1, 11)
        tp = generate_raster_toolpath(HeightMap(grid_cfg, z), params)
        cut = tp.segments[1]
        assert [p.z for p in cut.points] == pytest.approx(list(np.arange(11) * 0.1))

    def test_progress_every_ten_rows(self, params):
        cfg = ZMapConfig(1.0, 5, 25, 4.0, 24.0)
        p = RasterParams(stepover=1.0, safe_z=5.0, feed_rate=1000.0, plunge_rate=200.0)
        seen = []
        generate_raster_toolpath(_flat_map(cfg), p, on_progress=seen.append)
        assert seen == pytest.approx([40.0, 80.0, 100.0])
