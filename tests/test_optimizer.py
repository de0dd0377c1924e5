"""Tests for travel-order optimisation."""

import numpy as np
import pytest

from routercam.core.geometry import Polyline
from routercam.core.toolpath.optimizer import (
    greedy_order,
    optimize_path_order,
    travel_distance,
    two_opt,
)


def _random_paths(seed: int, n: int) -> list[Polyline]:
    rng = np.random.default_rng(seed)
    paths = []
    for k in range(n):
        a = rng.uniform(0, 100, 2)
        if k % 4 == 0:
            # Small closed triangle
            pts = [a, a + (3, 0), a + (0, 3), a]
            paths.append(Polyline(pts, closed=True))
        else:
            b = a + rng.uniform(-20, 20, 2)
            paths.append(Polyline([a, b]))
    return paths


class TestTravelDistance:
    def test_from_home(self):
        paths = [Polyline([(3, 4), (10, 4)]), Polyline([(10, 8), (0, 8)])]
        assert travel_distance(paths) == pytest.approx(5.0 + 4.0)

    def test_custom_home(self):
        paths = [Polyline([(3, 4), (10, 4)])]
        assert travel_distance(paths, home=(3, 0)) == pytest.approx(4.0)

    def test_empty(self):
        assert travel_distance([]) == 0.0


class TestGreedy:
    def test_nearest_first(self):
        far = Polyline([(50, 0), (51, 0)])
        near = Polyline([(1, 0), (2, 0)])
        mid = Polyline([(10, 0), (11, 0)])
        assert greedy_order([far, near, mid]) == [near, mid, far]

    def test_open_path_reversed_when_end_is_closer(self):
        path = Polyline([(20, 0), (1, 0)])
        (out,) = greedy_order([path])
        assert out.start == (1, 0)
        assert out.end == (20, 0)

    def test_closed_path_never_reversed(self):
        loop = Polyline([(5, 5), (10, 5), (10, 10), (5, 5)], closed=True)
        (out,) = greedy_order([loop])
        assert out == loop

    def test_tie_goes_to_first(self):
        a = Polyline([(3, 4), (3, 5)])
        b = Polyline([(4, 3), (5, 3)])
        assert greedy_order([a, b])[0] == a


class TestTwoOpt:
    def test_small_inputs_untouched(self):
        paths = [Polyline([(9, 0), (10, 0)]), Polyline([(1, 0), (2, 0)])]
        assert two_opt(paths) == paths

    def test_fixes_crossing_order(self):
        paths = [
            Polyline([(1, 0), (2, 0)]),
            Polyline([(30, 0), (31, 0)]),
            Polyline([(10, 0), (11, 0)]),
            Polyline([(40, 0), (41, 0)]),
        ]
        out = two_opt(paths)
        assert travel_distance(out) < travel_distance(paths)


class TestOptimizePathOrder:
    @pytest.mark.parametrize("seed", range(6))
    def test_never_worse_than_input(self, seed):
        paths = _random_paths(seed, 25)
        out = optimize_path_order(paths)
        assert travel_distance(out) <= travel_distance(paths) + 1e-9

    def test_keeps_every_path(self):
        paths = _random_paths(42, 12)
        out = optimize_path_order(paths)
        assert len(out) == len(paths)
        key = lambda p: tuple(sorted(p.points))
        assert sorted(map(key, out)) == sorted(map(key, paths))

    def test_drops_empty_paths(self):
        out = optimize_path_order([Polyline([]), Polyline([(1, 1), (2, 2)])])
        assert out == [Polyline([(1, 1), (2, 2)])]

    def test_single_and_empty(self):
        assert optimize_path_order([]) == []
        p = Polyline([(5, 5), (6, 6)])
        assert optimize_path_order([p]) == [p]

    def test_reorders_obvious_case(self):
        paths = [
            Polyline([(20, 0), (21, 0)]),
            Polyline([(0, 1), (1, 1)]),
            Polyline([(10, 0), (11, 0)]),
        ]
        out = optimize_path_order(paths)
        assert out[0].start == (0, 1)
        assert travel_distance(out) < travel_distance(paths)
