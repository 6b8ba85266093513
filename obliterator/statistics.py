# Obliterator - 2D Histogram Statistics
"""
Weighted moments of a 2D histogram and of a two-way partition of its bins.

Bin coordinates ``(i, j)`` are the intensity and feature bin indices. The
"background" class of a threshold pair ``(t1, t2)`` is the rectangle
``i <= t1 and j <= t2``; the "foreground" class is every other bin.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .errors import DegeneratePartitionError, EmptyHistogramError, InvariantViolation
from .histogram2d import Histogram2D

WEIGHT_TOLERANCE = 1e-6


def _histogram_values(histogram: Histogram2D | np.ndarray) -> np.ndarray:
    if isinstance(histogram, Histogram2D):
        return histogram.values
    return np.asarray(histogram, dtype=np.float64)


def _bin_coordinates(bins: int) -> tuple[np.ndarray, np.ndarray]:
    idx = np.arange(bins, dtype=np.float64)
    return idx[:, None], idx[None, :]


@dataclass(frozen=True)
class GlobalStatistics2D:
    """Moments of the whole histogram."""

    total_weight: float
    weighted_sum_i: float
    weighted_sum_j: float
    weighted_sum_ij: float
    weighted_sum_i2: float
    weighted_sum_j2: float
    mean_i: float
    mean_j: float
    variance_i: float
    variance_j: float
    covariance_ij: float

    @classmethod
    def from_histogram(cls, histogram: Histogram2D | np.ndarray) -> 'GlobalStatistics2D':
        """Compute the global moments.

        :raises EmptyHistogramError: If the histogram has no positive weight.
        """
        values = _histogram_values(histogram)
        ii, jj = _bin_coordinates(values.shape[0])

        total = float(values.sum())
        if total <= 0:
            raise EmptyHistogramError("histogram contains no data")

        sum_i = float((values * ii).sum())
        sum_j = float((values * jj).sum())
        sum_ij = float((values * ii * jj).sum())
        sum_i2 = float((values * ii * ii).sum())
        sum_j2 = float((values * jj * jj).sum())

        mean_i = sum_i / total
        mean_j = sum_j / total
        return cls(
            total_weight=total,
            weighted_sum_i=sum_i,
            weighted_sum_j=sum_j,
            weighted_sum_ij=sum_ij,
            weighted_sum_i2=sum_i2,
            weighted_sum_j2=sum_j2,
            mean_i=mean_i,
            mean_j=mean_j,
            variance_i=sum_i2 / total - mean_i * mean_i,
            variance_j=sum_j2 / total - mean_j * mean_j,
            covariance_ij=sum_ij / total - mean_i * mean_j,
        )

    @property
    def total_variance(self) -> float:
        return self.variance_i + self.variance_j


@dataclass(frozen=True)
class ClassStatistics2D:
    """Weights and centroids of the background / foreground split at ``(t1, t2)``."""

    t1: int
    t2: int
    weight_background: float
    weight_foreground: float
    mean_i_background: float
    mean_j_background: float
    mean_i_foreground: float
    mean_j_foreground: float

    @classmethod
    def compute(
        cls,
        histogram: Histogram2D | np.ndarray,
        t1: int,
        t2: int,
        global_stats: GlobalStatistics2D | None = None,
    ) -> 'ClassStatistics2D':
        """Partition the histogram at ``(t1, t2)``.

        :raises DegeneratePartitionError: If either class has zero weight.
        :raises InvariantViolation: If the class weights do not add up to
            the global total weight.
        """
        values = _histogram_values(histogram)
        ii, jj = _bin_coordinates(values.shape[0])
        if global_stats is None:
            global_stats = GlobalStatistics2D.from_histogram(values)

        in_background = (ii <= t1) & (jj <= t2)
        background = np.where(in_background, values, 0.0)
        foreground = np.where(in_background, 0.0, values)

        w0 = float(background.sum())
        s_i0 = float((background * ii).sum())
        s_j0 = float((background * jj).sum())
        w1 = float(foreground.sum())
        s_i1 = float((foreground * ii).sum())
        s_j1 = float((foreground * jj).sum())

        if abs((w0 + w1) - global_stats.total_weight) > WEIGHT_TOLERANCE:
            raise InvariantViolation(
                f"class weight sum mismatch: {w0 + w1:.6f} vs {global_stats.total_weight:.6f}"
            )
        if w0 <= 0 or w1 <= 0:
            raise DegeneratePartitionError(t1, t2, w0, w1)

        return cls(
            t1=t1,
            t2=t2,
            weight_background=w0,
            weight_foreground=w1,
            mean_i_background=s_i0 / w0,
            mean_j_background=s_j0 / w0,
            mean_i_foreground=s_i1 / w1,
            mean_j_foreground=s_j1 / w1,
        )

    @property
    def total_weight(self) -> float:
        return self.weight_background + self.weight_foreground

    def between_class_variance(self) -> float:
        """``w0 * w1 * |mu1 - mu0|^2`` with normalized class weights."""
        total = self.total_weight
        if total <= 0:
            return 0.0
        w0 = self.weight_background / total
        w1 = self.weight_foreground / total
        diff_i = self.mean_i_foreground - self.mean_i_background
        diff_j = self.mean_j_foreground - self.mean_j_background
        return w0 * w1 * (diff_i * diff_i + diff_j * diff_j)

    def within_class_variance(self, histogram: Histogram2D | np.ndarray) -> float:
        """Weight-averaged squared distance of each class to its centroid."""
        values = _histogram_values(histogram)
        ii, jj = _bin_coordinates(values.shape[0])
        in_background = (ii <= self.t1) & (jj <= self.t2)

        dist0 = (ii - self.mean_i_background) ** 2 + (jj - self.mean_j_background) ** 2
        dist1 = (ii - self.mean_i_foreground) ** 2 + (jj - self.mean_j_foreground) ** 2
        var0 = float((values * dist0)[in_background].sum()) / self.weight_background
        var1 = float((values * dist1)[~in_background].sum()) / self.weight_foreground

        return (self.weight_background * var0 + self.weight_foreground * var1) / self.total_weight

    def class_balance(self) -> float:
        """Binary entropy of the class weights (1.0 means a 50/50 split)."""
        total = self.total_weight
        entropy = 0.0
        for weight in (self.weight_background, self.weight_foreground):
            p = weight / total
            if p > 0:
                entropy -= p * math.log2(p)
        return entropy


__all__ = ['GlobalStatistics2D', 'ClassStatistics2D', 'WEIGHT_TOLERANCE']
