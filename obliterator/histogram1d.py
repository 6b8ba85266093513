# Obliterator - 1D Histogram and Threshold Selection
"""
Histogram over the active pixels of a region and 1D threshold selection.

A region marks decided pixels with 0, so only nonzero pixels are counted.
Thresholds are returned on the 0-255 intensity scale. Otsu and median pick
a split bin ``t`` and report the intensity separating bins ``<= t`` from
bins ``> t``; the mean method reports the mean bin position.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .binning import bin_to_intensity, bin_upper_edge, map_to_bins
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 127.5


@dataclass
class Histogram1D:
    """Integer counts per bin, built from nonzero pixels only."""

    counts: np.ndarray
    bins: int

    @classmethod
    def from_region(cls, region: np.ndarray, bins: int) -> 'Histogram1D':
        if bins < 2:
            raise ValidationError(f"bins must be at least 2, got {bins}")
        active = region[region > 0]
        counts = np.bincount(map_to_bins(active, bins), minlength=bins).astype(np.int64)
        return cls(counts=counts, bins=bins)

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    @property
    def is_empty(self) -> bool:
        return self.total == 0


class ThresholdMethod(Enum):
    """How the per-iteration threshold is derived from the histogram."""
    OTSU = 'otsu'
    MEAN = 'mean'
    MEDIAN = 'median'

    @classmethod
    def parse(cls, value: 'ThresholdMethod | str') -> 'ThresholdMethod':
        if isinstance(value, ThresholdMethod):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            options = ', '.join(m.value for m in cls)
            raise ValidationError(
                f"initial_threshold_method must be one of {options}, got {value!r}"
            ) from e


def otsu_threshold(histogram: Histogram1D) -> float:
    """Classic Otsu on bin indices.

    The first split with the largest between-class variance wins. A
    histogram with no positive between-class variance (empty, or all
    pixels in one bin) yields :data:`DEFAULT_THRESHOLD`.
    """
    counts = histogram.counts.astype(np.float64)
    total = counts.sum()
    if total == 0:
        return DEFAULT_THRESHOLD

    idx = np.arange(histogram.bins, dtype=np.float64)
    weight_b = counts.cumsum()
    sum_b = (idx * counts).cumsum()
    weight_f = total - weight_b
    valid = (weight_b > 0) & (weight_f > 0)

    safe_b = np.where(valid, weight_b, 1.0)
    safe_f = np.where(valid, weight_f, 1.0)
    mean_b = sum_b / safe_b
    mean_f = (sum_b[-1] - sum_b) / safe_f
    variance = np.where(valid, safe_b * safe_f * (mean_b - mean_f) ** 2, -np.inf)

    best = int(np.argmax(variance))
    if not variance[best] > 0:
        return DEFAULT_THRESHOLD
    threshold = bin_upper_edge(best, histogram.bins)
    logger.debug(f"Otsu threshold: bin {best} -> {threshold:.3f} (variance={variance[best]:.3f})")
    return threshold


def mean_threshold(histogram: Histogram1D) -> float:
    total = histogram.total
    if total == 0:
        return DEFAULT_THRESHOLD
    mean_bin = float((np.arange(histogram.bins) * histogram.counts).sum()) / total
    return bin_to_intensity(mean_bin, histogram.bins)


def median_threshold(histogram: Histogram1D) -> float:
    """First bin whose cumulative count reaches half of the total."""
    total = histogram.total
    if total == 0:
        return DEFAULT_THRESHOLD
    cumulative = histogram.counts.cumsum()
    median_bin = int(np.argmax(cumulative >= total / 2.0))
    return bin_upper_edge(median_bin, histogram.bins)


_SELECTORS = {
    ThresholdMethod.OTSU: otsu_threshold,
    ThresholdMethod.MEAN: mean_threshold,
    ThresholdMethod.MEDIAN: median_threshold,
}


@dataclass
class ThresholdSelector1D:
    """Computes the threshold of a :class:`Histogram1D` with a fixed method."""

    method: ThresholdMethod = ThresholdMethod.OTSU

    def __post_init__(self):
        self.method = ThresholdMethod.parse(self.method)

    def select(self, histogram: Histogram1D) -> float:
        return _SELECTORS[self.method](histogram)


__all__ = [
    'DEFAULT_THRESHOLD',
    'Histogram1D',
    'ThresholdMethod',
    'ThresholdSelector1D',
    'otsu_threshold',
    'mean_threshold',
    'median_threshold',
]
