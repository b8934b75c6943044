from __future__ import annotations

"""
Banded dynamic time warping between two 2D point sequences.

Only two rows of the cost matrix are kept alive. The shorter sequence is
laid along the row so memory stays proportional to it; the warping
distance is symmetric, so the swap does not change the result.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from .pipeline_types import Point2D

# outside-band sentinel
INF = 1e12


def dtw(a: Sequence[Point2D], b: Sequence[Point2D], window: int = -1) -> float:
    """
    Sakoe-Chiba banded DTW with Euclidean step cost.

    ``window < 0`` means ``max(len(a), len(b))``. The band is never narrower
    than ``abs(len(a) - len(b))`` so the end cell stays reachable. An empty
    input yields ``0.0``.
    """
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return 0.0

    if window < 0:
        window = max(n, m)
    window = max(window, abs(n - m))

    if m > n:
        a, b = b, a
        n, m = m, n

    prev: List[float] = [INF] * (m + 1)
    curr: List[float] = [INF] * (m + 1)
    prev[0] = 0.0

    for i in range(1, n + 1):
        ax, ay = a[i - 1]
        jstart = max(1, i - window)
        jend = min(m, i + window)

        curr[jstart - 1] = INF
        if jend < m:
            curr[jend + 1] = INF

        for j in range(jstart, jend + 1):
            bx, by = b[j - 1]
            cost = math.sqrt((ax - bx) * (ax - bx) + (ay - by) * (ay - by))
            best = prev[j] if prev[j] < curr[j - 1] else curr[j - 1]
            if prev[j - 1] < best:
                best = prev[j - 1]
            curr[j] = cost + best

        prev, curr = curr, prev

    return prev[m]


@dataclass(frozen=True)
class DtwMetrics:
    raw: float
    by_max: float
    by_min: float
    by_sum: float
    len_swipe: int
    len_word: int

    @property
    def path_length_ratio(self) -> float:
        return self.len_swipe / self.len_word if self.len_word > 0 else 0.0


def dtw_metrics(gesture: Sequence[Point2D], word_path: Sequence[Point2D], window: int = -1) -> DtwMetrics:
    """Raw DTW plus its three length normalizations (0 when the denominator is 0)."""
    raw = dtw(gesture, word_path, window)
    len_swipe, len_word = len(gesture), len(word_path)
    max_len = max(len_swipe, len_word)
    min_len = min(len_swipe, len_word)
    sum_len = len_swipe + len_word
    return DtwMetrics(
        raw=raw,
        by_max=raw / max_len if max_len > 0 else 0.0,
        by_min=raw / min_len if min_len > 0 else 0.0,
        by_sum=raw / sum_len if sum_len > 0 else 0.0,
        len_swipe=len_swipe,
        len_word=len_word,
    )
