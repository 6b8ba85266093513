# Obliterator - 2D Threshold Search
"""
Search for the 2D threshold pair maximizing between-class separation.

The score of a pair ``(t1, t2)`` is

    w0 * w1 * ((muI1 - muI0)^2 + (muJ1 - muJ0)^2)

with normalized class weights, i.e. the trace of the between-class scatter.
Within-class covariance is not part of the score.

All candidates are scored at once from summed-area tables, so a full
``B x B`` scan costs O(B^2). The selection still follows a sequential scan:
``t1`` ascending in the outer loop, ``t2`` ascending in the inner loop, and
a candidate only replaces the current best on a strictly larger score.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from .binning import bin_to_intensity
from .errors import EmptyHistogramError, InvariantViolation, ValidationError
from .histogram2d import Histogram2D
from .statistics import ClassStatistics2D, GlobalStatistics2D

logger = logging.getLogger(__name__)

REFINE_RADIUS = 2

# Relative weight below which a class counts as empty
_DEGENERATE_WEIGHT = 1e-12


class Quality(Enum):
    """Search resolution."""
    FAST = 'Fast'  # Step 2 scan followed by local refinement
    BEST = 'Best'  # Exhaustive step 1 scan

    @classmethod
    def parse(cls, value: 'Quality | str') -> 'Quality':
        if isinstance(value, Quality):
            return value
        for member in cls:
            if str(value).lower() == member.value.lower():
                return member
        raise ValidationError(f"quality must be 'Fast' or 'Best', got {value!r}")

    @property
    def step(self) -> int:
        return 2 if self is Quality.FAST else 1


@dataclass(frozen=True)
class Threshold2D:
    """Threshold pair in bin indices plus its separation score."""

    pixel_threshold: int
    feature_threshold: int
    variance: float

    def is_valid(self, bins: int) -> bool:
        return (
            0 <= self.pixel_threshold < bins
            and 0 <= self.feature_threshold < bins
            and math.isfinite(self.variance)
            and self.variance >= 0.0
        )

    def to_intensity(self, bins: int) -> tuple[float, float]:
        """Both thresholds on the 0-255 intensity scale."""
        return (
            bin_to_intensity(self.pixel_threshold, bins),
            bin_to_intensity(self.feature_threshold, bins),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'pixel_threshold': self.pixel_threshold,
            'feature_threshold': self.feature_threshold,
            'variance': self.variance,
            'threshold_type': '2D_Otsu',
        }


@dataclass(frozen=True)
class ScoreTable:
    """Class weights and scores for every candidate ``(t1, t2)``.

    Arrays are indexed by ``[t1, t2]`` over the full ``B x B`` range.
    Degenerate candidates carry a score of ``-inf``.
    """

    weight_background: np.ndarray
    weight_foreground: np.ndarray
    scores: np.ndarray
    total_weight: float

    @property
    def valid(self) -> np.ndarray:
        return np.isfinite(self.scores)


def score_table(histogram: Histogram2D | np.ndarray) -> ScoreTable:
    """Score every threshold pair of ``histogram``.

    :raises EmptyHistogramError: If the histogram has no positive weight.
    """
    values = histogram.values if isinstance(histogram, Histogram2D) else np.asarray(histogram, dtype=np.float64)
    bins = values.shape[0]
    total = float(values.sum())
    if total <= 0:
        raise EmptyHistogramError("histogram contains no data")

    idx = np.arange(bins, dtype=np.float64)
    ii = idx[:, None]
    jj = idx[None, :]

    w0 = values.cumsum(axis=0).cumsum(axis=1)
    s_i0 = (values * ii).cumsum(axis=0).cumsum(axis=1)
    s_j0 = (values * jj).cumsum(axis=0).cumsum(axis=1)
    w1 = total - w0
    s_i1 = float((values * ii).sum()) - s_i0
    s_j1 = float((values * jj).sum()) - s_j0

    valid = (w0 > total * _DEGENERATE_WEIGHT) & (w1 > total * _DEGENERATE_WEIGHT)
    safe_w0 = np.where(valid, w0, 1.0)
    safe_w1 = np.where(valid, w1, 1.0)
    diff_i = s_i1 / safe_w1 - s_i0 / safe_w0
    diff_j = s_j1 / safe_w1 - s_j0 / safe_w0
    scores = (safe_w0 / total) * (safe_w1 / total) * (diff_i * diff_i + diff_j * diff_j)
    scores = np.where(valid, scores, -np.inf)

    return ScoreTable(
        weight_background=w0,
        weight_foreground=w1,
        scores=scores,
        total_weight=total,
    )


@dataclass
class ThresholdOptimizer2D:
    """Finds the variance-maximizing :class:`Threshold2D`.

    Parameters:
        quality: ``Quality.FAST`` scans every second bin and refines the
            result locally, ``Quality.BEST`` scans every bin
    """

    quality: Quality = Quality.FAST

    def __post_init__(self):
        self.quality = Quality.parse(self.quality)

    @staticmethod
    def default_threshold(bins: int) -> Threshold2D:
        return Threshold2D(bins // 2, bins // 2, 0.0)

    def find(self, histogram: Histogram2D) -> Threshold2D:
        """Search the threshold pair for ``histogram``.

        Falls back to ``(B // 2, B // 2)`` with score 0 when the histogram
        is empty or no partition separates anything.
        """
        bins = histogram.bins
        if bins < 2:
            raise ValidationError(f"histogram has insufficient bins: {bins}")

        try:
            table = score_table(histogram)
        except EmptyHistogramError:
            logger.warning("2D histogram is empty, using default threshold")
            return self.default_threshold(bins)

        step = self.quality.step
        candidates = range(1, bins - 1, step)
        best = self._scan(table.scores, self.default_threshold(bins), candidates, candidates)

        if step > 1:
            lo1 = max(1, best.pixel_threshold - REFINE_RADIUS)
            hi1 = min(bins - 2, best.pixel_threshold + REFINE_RADIUS)
            lo2 = max(1, best.feature_threshold - REFINE_RADIUS)
            hi2 = min(bins - 2, best.feature_threshold + REFINE_RADIUS)
            best = self._scan(table.scores, best, range(lo1, hi1 + 1), range(lo2, hi2 + 1))

        if not best.is_valid(bins):
            raise InvariantViolation(f"invalid threshold result: {best}")

        logger.debug(
            f"2D threshold ({best.pixel_threshold}, {best.feature_threshold}) "
            f"variance={best.variance:.6f} quality={self.quality.value}"
        )
        return best

    @staticmethod
    def _scan(scores: np.ndarray, current: Threshold2D, rows: range, cols: range) -> Threshold2D:
        """Strict-improvement scan of ``scores`` over ``rows x cols``."""
        if len(rows) == 0 or len(cols) == 0:
            return current
        window = scores[rows.start:rows.stop:rows.step, cols.start:cols.stop:cols.step]
        flat = int(np.argmax(window))
        value = float(window.flat[flat])
        if value == -math.inf:
            # every candidate in the window is degenerate
            return current
        if not math.isfinite(value) or value < 0:
            raise InvariantViolation(f"non-finite or negative score {value}")
        if value > current.variance:
            r, c = divmod(flat, window.shape[1])
            return Threshold2D(rows[r], cols[c], value)
        return current

    def evaluate_quality(self, histogram: Histogram2D, threshold: Threshold2D) -> dict[str, float]:
        """Separability measures of ``threshold`` on ``histogram``.

        Raises :class:`DegeneratePartitionError` for a threshold that leaves
        a class empty (e.g. the fallback threshold of a flat histogram).
        """
        global_stats = GlobalStatistics2D.from_histogram(histogram)
        class_stats = ClassStatistics2D.compute(
            histogram, threshold.pixel_threshold, threshold.feature_threshold, global_stats
        )
        within = class_stats.within_class_variance(histogram)
        between = class_stats.between_class_variance()
        return {
            'between_class_variance': between,
            'within_class_variance': within,
            'total_variance': global_stats.total_variance,
            'separability': between / within if within > 0 else math.inf,
            'class_balance': class_stats.class_balance(),
        }


__all__ = [
    'Quality',
    'Threshold2D',
    'ScoreTable',
    'score_table',
    'ThresholdOptimizer2D',
    'REFINE_RADIUS',
]
