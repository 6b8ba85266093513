# Obliterator - 2D Histogram
"""
Joint histogram of pixel intensity and blended neighborhood feature.

The feature axis combines each pixel with its precomputed neighborhood
aggregate:

    feature = alpha * intensity + (1 - alpha) * neighborhood

Optional transforms run in a fixed order: Gaussian smoothing, log1p
scaling, normalization. The flags on :class:`Histogram2D` record which of
them ran.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy.ndimage import convolve

from .binning import map_to_bins
from .errors import ValidationError
from .grids import as_grid, check_same_shape

logger = logging.getLogger(__name__)


@dataclass
class Histogram2D:
    """B x B grid of non-negative weights.

    Rows index the intensity bin, columns the feature bin. Until a transform
    runs, ``values.sum() == total_pixels``.
    """

    values: np.ndarray
    bins: int
    total_pixels: int
    smoothed: bool = False
    log_scaled: bool = False
    normalized: bool = False

    @property
    def total_weight(self) -> float:
        return float(self.values.sum())

    @property
    def transformed(self) -> bool:
        return self.smoothed or self.log_scaled or self.normalized

    def statistics(self) -> dict[str, Any]:
        """Summary used for reporting and low-confidence detection.

        ``non_zero_bins == 0`` flags an empty histogram whose threshold is
        a fallback value.
        """
        positive = self.values[self.values > 0]
        non_zero = int(positive.size)
        stats: dict[str, Any] = {
            'bins': self.bins,
            'total_pixels': self.total_pixels,
            'total_weight': self.total_weight,
            'smoothed': self.smoothed,
            'normalized': self.normalized,
            'log_scaled': self.log_scaled,
            'non_zero_bins': non_zero,
            'sparsity': 1.0 - non_zero / float(self.bins * self.bins),
        }
        if non_zero:
            stats['min_value'] = float(positive.min())
            stats['max_value'] = float(positive.max())
            stats['dynamic_range'] = stats['max_value'] - stats['min_value']
        else:
            stats['min_value'] = 0.0
            stats['max_value'] = 0.0
            stats['dynamic_range'] = 0.0
        return stats


def gaussian_kernel(sigma: float) -> np.ndarray:
    """Normalized 2D Gaussian kernel of size ``2 * round(3 * sigma) + 1``."""
    radius = int(math.floor(3.0 * sigma + 0.5))
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    xx, yy = np.meshgrid(offsets, offsets, indexing='ij')
    kernel = np.exp(-(xx * xx + yy * yy) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


@dataclass
class Histogram2DBuilder:
    """Builds :class:`Histogram2D` instances.

    Parameters:
        bins: Bins per axis (at least 2)
        pixel_weight_factor: Weight of the raw intensity in the blended feature
        smoothing_sigma: Gaussian sigma in bins, 0 disables smoothing
        use_log_histogram: Apply log1p to positive cells
        normalize_histogram: Divide by the total so the grid sums to 1
    """

    bins: int = 64
    pixel_weight_factor: float = 0.5
    smoothing_sigma: float = 0.0
    use_log_histogram: bool = False
    normalize_histogram: bool = False

    def __post_init__(self):
        if self.bins < 2:
            raise ValidationError(f"bins must be at least 2, got {self.bins}")
        if not 0.0 <= self.pixel_weight_factor <= 1.0:
            raise ValidationError(
                f"pixel_weight_factor must be in [0, 1], got {self.pixel_weight_factor}"
            )
        if not math.isfinite(self.smoothing_sigma) or self.smoothing_sigma < 0.0:
            raise ValidationError(
                f"smoothing_sigma must be finite and >= 0, got {self.smoothing_sigma}"
            )

    def blend(self, intensity: np.ndarray, neighborhood: np.ndarray) -> np.ndarray:
        """Blended feature grid (float64)."""
        alpha = self.pixel_weight_factor
        return alpha * intensity.astype(np.float64) + (1.0 - alpha) * neighborhood.astype(np.float64)

    def build(self, intensity, neighborhood) -> Histogram2D:
        """Count every pixel and apply the enabled transforms.

        :param intensity: 2-D grid of 8-bit intensities.
        :param neighborhood: Precomputed neighborhood aggregate, same shape.
        :raises DimensionMismatchError: If the grids differ in shape.
        """
        intensity = as_grid(intensity, 'intensity')
        neighborhood = as_grid(neighborhood, 'feature')
        check_same_shape(intensity, neighborhood)

        bins = self.bins
        pixel_bins = map_to_bins(intensity, bins)
        feature_bins = map_to_bins(self.blend(intensity, neighborhood), bins)

        flat = (pixel_bins * bins + feature_bins).ravel()
        counts = np.bincount(flat, minlength=bins * bins)
        histogram = Histogram2D(
            values=counts.reshape(bins, bins).astype(np.float64),
            bins=bins,
            total_pixels=int(intensity.size),
        )

        self._transform(histogram)
        logger.debug(
            f"2D histogram built: {bins}x{bins} bins, {histogram.total_pixels} pixels, "
            f"smoothed={histogram.smoothed}, log={histogram.log_scaled}, "
            f"normalized={histogram.normalized}"
        )
        return histogram

    def _transform(self, histogram: Histogram2D) -> None:
        if self.smoothing_sigma > 0.0:
            smooth_histogram(histogram, self.smoothing_sigma)
        if self.use_log_histogram:
            log_scale_histogram(histogram)
        if self.normalize_histogram:
            normalize_histogram(histogram)


def smooth_histogram(histogram: Histogram2D, sigma: float) -> None:
    """Gaussian smoothing with zero padding at the histogram edges."""
    kernel = gaussian_kernel(sigma)
    histogram.values = convolve(histogram.values, kernel, mode='constant', cval=0.0)
    histogram.smoothed = True


def log_scale_histogram(histogram: Histogram2D) -> None:
    """Replace every strictly positive cell ``v`` by ``log1p(v)``."""
    values = histogram.values
    positive = values > 0
    values[positive] = np.log1p(values[positive])
    histogram.log_scaled = True


def normalize_histogram(histogram: Histogram2D) -> None:
    """Scale the grid to sum 1. Leaves an all-zero grid untouched."""
    total = histogram.values.sum()
    if total > 0:
        histogram.values = histogram.values / total
    histogram.normalized = True


__all__ = [
    'Histogram2D',
    'Histogram2DBuilder',
    'gaussian_kernel',
    'smooth_histogram',
    'log_scale_histogram',
    'normalize_histogram',
]
