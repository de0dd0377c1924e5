"""Tests for circle fitting and arc detection in cut point runs."""

import math

import pytest

from routercam.core.geometry import Point3D
from routercam.gcode.arc_fitting import (
    ArcMove,
    LinearMove,
    detect_arcs,
    fit_circle,
    is_clockwise,
    simplify_collinear,
)


def _arc_points(cx, cy, r, start_deg, stop_deg, step_deg, z=-1.0):
    n = int(round((stop_deg - start_deg) / step_deg))
    out = []
    for k in range(n + 1):
        a = math.radians(start_deg + k * step_deg)
        out.append(Point3D(cx + r * math.cos(a), cy + r * math.sin(a), z))
    return out


class TestFitCircle:
    def test_three_points_on_unit_circle(self):
        cx, cy, r = fit_circle((1, 0), (0, 1), (-1, 0))
        assert (cx, cy, r) == pytest.approx((0.0, 0.0, 1.0))

    def test_offset_circle(self):
        pts = _arc_points(20, -5, 7.5, 10, 80, 35)
        assert fit_circle(*pts) == pytest.approx((20.0, -5.0, 7.5))

    def test_collinear_is_none(self):
        assert fit_circle((0, 0), (1, 1), (2, 2)) is None

    def test_winding(self):
        assert not is_clockwise((1, 0), (0, 1), (-1, 0))
        assert is_clockwise((-1, 0), (0, 1), (1, 0))


class TestDetectArcs:
    def test_half_circle_becomes_one_arc(self):
        pts = _arc_points(20, 20, 10, 0, 180, 15)
        moves = detect_arcs(pts)
        assert len(moves) == 1
        (a,) = moves
        assert isinstance(a, ArcMove)
        assert (a.start_x, a.start_y) == pytest.approx((30.0, 20.0))
        assert (a.end_x, a.end_y) == pytest.approx((10.0, 20.0))
        assert (a.i, a.j) == pytest.approx((-10.0, 0.0))
        assert a.z == -1.0
        assert not a.clockwise

    def test_clockwise_direction(self):
        pts = _arc_points(0, 0, 5, 90, 0, -10)
        (a,) = detect_arcs(pts)
        assert a.clockwise

    def test_never_closes_a_full_circle(self):
        pts = _arc_points(0, 0, 10, 0, 360, 15)
        moves = detect_arcs(pts)
        assert isinstance(moves[0], ArcMove)
        assert moves[0].end_x != pytest.approx(moves[0].start_x)
        assert isinstance(moves[-1], LinearMove)
        assert (moves[-1].x, moves[-1].y) == pytest.approx((10.0, 0.0))

    def test_straight_line_stays_linear(self):
        pts = [Point3D(float(x), 0.0, -1.0) for x in range(6)]
        moves = detect_arcs(pts)
        assert moves == [LinearMove(float(x), 0.0, -1.0) for x in range(6)]

    def test_changing_z_stays_linear(self):
        pts = [Point3D(p.x, p.y, -0.1 * k) for k, p in enumerate(_arc_points(0, 0, 10, 0, 90, 15))]
        assert all(isinstance(m, LinearMove) for m in detect_arcs(pts))

    def test_too_few_points(self):
        pts = _arc_points(0, 0, 10, 0, 30, 15)
        assert len(detect_arcs(pts)) == 3

    def test_huge_radius_treated_as_straight(self):
        pts = _arc_points(0, 0, 5000, 0, 0.4, 0.1)
        assert all(isinstance(m, LinearMove) for m in detect_arcs(pts))

    def test_inscribed_polygon_corners_stay_linear(self):
        corners = [(0, 0, -1), (20, 0, -1), (20, 10, -1), (0, 10, -1), (0, 0, -1)]
        moves = detect_arcs([Point3D(*c) for c in corners])
        assert all(isinstance(m, LinearMove) for m in moves)

    def test_direction_reversal_ends_arc(self):
        there = _arc_points(0, 0, 10, 0, 60, 10)
        back = there[-2::-1]
        moves = detect_arcs(there + back)
        assert isinstance(moves[0], ArcMove)
        assert (moves[0].end_x, moves[0].end_y) == pytest.approx((there[-1].x, there[-1].y))

    def test_line_then_arc(self):
        lead = [Point3D(10.0, -3.0, -1.0), Point3D(10.0, -1.5, -1.0)]
        pts = lead + _arc_points(0, 0, 10, 0, 90, 10)
        moves = detect_arcs(pts)
        assert moves[:2] == [LinearMove(10.0, -3.0, -1.0), LinearMove(10.0, -1.5, -1.0)]
        assert isinstance(moves[2], ArcMove)
        assert (moves[-1].end_x, moves[-1].end_y) == pytest.approx((0.0, 10.0))


class TestSimplifyCollinear:
    def test_drops_middle_points(self):
        pts = [(0, 0, 0), (1, 0, 0), (2, 0, 0), (3, 1, 0)]
        assert simplify_collinear(pts) == [(0, 0, 0), (2, 0, 0), (3, 1, 0)]

    def test_uses_z(self):
        pts = [(0, 0, 0), (1, 0, 0.5), (2, 0, 0)]
        assert len(simplify_collinear(pts)) == 3

    def test_tolerance(self):
        pts = [(0, 0, 0), (5, 0.004, 0), (10, 0, 0)]
        assert len(simplify_collinear(pts, tolerance=0.005)) == 2
        assert len(simplify_collinear(pts, tolerance=0.001)) == 3

    def test_short_input_unchanged(self):
        assert simplify_collinear([(0, 0, 0), (1, 1, 1)]) == [(0, 0, 0), (1, 1, 1)]
