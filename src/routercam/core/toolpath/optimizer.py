"""Travel-order optimisation for 2D cut paths.

Paths are ordered to shorten the rapid travel between them: a greedy
nearest-neighbour tour from machine home seeds a bounded 2-opt
refinement.  Open polylines may be cut in reverse; closed ones keep
their direction.  The result never travels further than the input order.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from ..geometry import Polyline

log = logging.getLogger(__name__)

HOME = (0.0, 0.0)
MIN_IMPROVEMENT = 0.001
MAX_PASSES = 20


def travel_distance(polylines: Sequence[Polyline], home: tuple[float, float] = HOME) -> float:
    """Rapid distance from *home* through every path in the given order."""
    total = 0.0
    cx, cy = home
    for p in polylines:
        if len(p) == 0:
            continue
        total += math.hypot(p.start.x - cx, p.start.y - cy)
        cx, cy = p.end
    return total


def greedy_order(polylines: Sequence[Polyline], home: tuple[float, float] = HOME) -> list[Polyline]:
    """Nearest-neighbour ordering; ties go to the first candidate found."""
    n = len(polylines)
    starts = np.array([p.start for p in polylines], dtype=np.float64)
    ends = np.array([p.end for p in polylines], dtype=np.float64)
    is_open = np.array([not p.closed for p in polylines])

    used = np.zeros(n, dtype=bool)
    cursor = np.asarray(home, dtype=np.float64)
    result: list[Polyline] = []
    for _ in range(n):
        d_start = np.hypot(*(starts - cursor).T)
        d_end = np.where(is_open, np.hypot(*(ends - cursor).T), np.inf)
        # Interleave so argmin scans start-then-end per path
        cand = np.column_stack((d_start, d_end))
        cand[used] = np.inf
        flat = int(np.argmin(cand))
        idx, rev = divmod(flat, 2)
        used[idx] = True
        poly = polylines[idx].reversed() if rev else polylines[idx]
        result.append(poly)
        cursor = np.asarray(poly.end, dtype=np.float64)
    return result


def _endpoint_arrays(order: Sequence[Polyline]):
    s = np.array([p.start for p in order], dtype=np.float64)
    e = np.array([p.end for p in order], dtype=np.float64)
    closed = np.array([p.closed for p in order])[:, None]
    # Endpoints each path would have if its block were reversed
    s_rev = np.where(closed, s, e)
    e_rev = np.where(closed, e, s)
    return s, e, s_rev, e_rev


def _dist(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    d = a - b
    return np.hypot(d[..., 0], d[..., 1])


def _best_reversal(order: Sequence[Polyline], home: np.ndarray) -> tuple[float, int, int]:
    """Find the block reversal with the largest travel saving.

    Returns ``(delta, i, j)``; a negative delta is an improvement.
    """
    n = len(order)
    s, e, s_rev, e_rev = _endpoint_arrays(order)

    # Change of each internal link when a block containing it is reversed
    diff = _dist(e_rev[1:], s_rev[:-1]) - _dist(e[:-1], s[1:])
    prefix = np.concatenate(([0.0], np.cumsum(diff)))

    best = (0.0, -1, -1)
    for i in range(n):
        prev = home if i == 0 else e[i - 1]
        j = np.arange(i, n)
        delta = _dist(prev, s_rev[j]) - _dist(prev, s[i])
        delta += prefix[j] - prefix[i]
        inner = j < n - 1
        jn = j[inner]
        delta[inner] += _dist(e_rev[i], s[jn + 1]) - _dist(e[jn], s[jn + 1])
        k = int(np.argmin(delta))
        if delta[k] < best[0]:
            best = (float(delta[k]), i, int(j[k]))
    return best


def _reverse_block(order: list[Polyline], i: int, j: int) -> list[Polyline]:
    block = [p if p.closed else p.reversed() for p in reversed(order[i:j + 1])]
    return order[:i] + block + order[j + 1:]


def two_opt(order: Sequence[Polyline], home: tuple[float, float] = HOME) -> list[Polyline]:
    """Bounded 2-opt: apply the best improving block reversal per pass.

    Stops when no reversal saves more than ``MIN_IMPROVEMENT`` or after
    ``min(MAX_PASSES, n)`` passes.
    """
    result = list(order)
    n = len(result)
    if n <= 3:
        return result
    h = np.asarray(home, dtype=np.float64)
    for _ in range(min(MAX_PASSES, n)):
        delta, i, j = _best_reversal(result, h)
        if i < 0 or -delta <= MIN_IMPROVEMENT:
            break
        result = _reverse_block(result, i, j)
    return result


def optimize_path_order(
    polylines: Sequence[Polyline],
    home: tuple[float, float] = HOME,
) -> list[Polyline]:
    """Reorder (and possibly reverse open) polylines to cut travel.

    Parameters
    ----------
    polylines:
        Paths to order.  Empty polylines are dropped.
    home:
        Machine position the tour starts from.

    Returns
    -------
    A new list whose travel distance is never larger than the input's.
    """
    paths = [p for p in polylines if len(p) > 0]
    if len(paths) <= 1:
        return paths

    result = two_opt(greedy_order(paths, home), home)

    before = travel_distance(paths, home)
    after = travel_distance(result, home)
    if after > before:
        log.debug("Optimised order (%.3f) worse than input (%.3f); keeping input", after, before)
        return paths
    log.debug("Travel reduced from %.3f to %.3f mm over %d paths", before, after, len(paths))
    return result
