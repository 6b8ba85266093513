# Obliterator - 2D Otsu
"""
Two-dimensional Otsu thresholding.

Builds a joint histogram of pixel intensity and a blended neighborhood
feature, searches the threshold pair with the largest between-class
separation and binarizes the input with it. The neighborhood grid itself
(mean, median or Gaussian aggregate) is computed by the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

import numpy as np
from pydantic import Field, field_validator

from ..binning import map_to_bins
from ..errors import DegeneratePartitionError, ValidationError
from ..grids import as_grid, check_same_shape
from ..histogram2d import Histogram2DBuilder
from ..optimizer import Quality, Threshold2D, ThresholdOptimizer2D
from .base import SegmentationAlgorithm, SegmentationContext, register_algorithm

logger = logging.getLogger(__name__)


class BinarizationRule(Enum):
    """How a pixel's bin pair is tested against the 2D threshold pair."""
    AND = 'and'  # intensity bin and feature bin both above their thresholds
    COMPLEMENT = 'complement'  # bin pair outside the background rectangle

    @classmethod
    def parse(cls, value: 'BinarizationRule | str') -> 'BinarizationRule':
        if isinstance(value, BinarizationRule):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise ValidationError(
                f"binarization_rule must be 'and' or 'complement', got {value!r}"
            ) from e


def binarize_2d(
    intensity: np.ndarray,
    feature: np.ndarray,
    threshold: Threshold2D,
    bins: int,
    pixel_weight_factor: float = 0.5,
    rule: BinarizationRule = BinarizationRule.AND,
) -> np.ndarray:
    """Binarize ``intensity`` with a 2D threshold pair.

    Pixels are compared in bin space, with the same mapping the histogram
    was built with, so a pixel counted in bin ``t1`` is on the background
    side of ``t1``. The feature value of a pixel is the blend
    ``alpha * intensity + (1 - alpha) * feature``.

    :param intensity: Intensity grid.
    :param feature: Neighborhood grid of the same shape.
    :param threshold: Threshold pair in bin indices.
    :param bins: Bin count the threshold was found with.
    :param pixel_weight_factor: Blend weight ``alpha``.
    :param rule: Foreground test.
    :returns: ``uint8`` mask with values in {0, 255}.
    """
    intensity = as_grid(intensity, 'intensity')
    feature = as_grid(feature, 'feature')
    check_same_shape(intensity, feature)

    alpha = pixel_weight_factor
    blended = alpha * intensity.astype(np.float64) + (1.0 - alpha) * feature.astype(np.float64)
    above_pixel = map_to_bins(intensity, bins) > threshold.pixel_threshold
    above_feature = map_to_bins(blended, bins) > threshold.feature_threshold

    if BinarizationRule.parse(rule) is BinarizationRule.AND:
        foreground = above_pixel & above_feature
    else:
        foreground = above_pixel | above_feature

    return foreground.astype(np.uint8) * 255


@dataclass
class Otsu2DResult:
    """Mask plus everything the 2D search found out."""

    mask: np.ndarray
    threshold: Threshold2D
    bins: int
    histogram_stats: dict[str, Any] = field(default_factory=dict)
    quality: dict[str, float] | None = None  # None when the partition is degenerate
    elapsed_ms: float = 0.0

    @property
    def threshold_intensity(self) -> tuple[float, float]:
        return self.threshold.to_intensity(self.bins)

    def to_dict(self) -> dict[str, Any]:
        """Scalar summary, without the mask."""
        pixel_thr, feature_thr = self.threshold_intensity
        return {
            'threshold': self.threshold.to_dict(),
            'pixel_threshold_intensity': pixel_thr,
            'feature_threshold_intensity': feature_thr,
            'histogram': dict(self.histogram_stats),
            'quality': None if self.quality is None else dict(self.quality),
            'foreground_count': int(np.count_nonzero(self.mask)),
            'elapsed_ms': self.elapsed_ms,
        }


@register_algorithm
class Otsu2D(SegmentationAlgorithm):
    """2D Otsu thresholding on intensity and neighborhood feature.

    Requires a feature grid (neighborhood aggregate) of the same shape as
    the intensity grid.

    Parameters:
        histogram_bins: Bins per histogram axis
        pixel_weight_factor: Weight of the raw intensity in the blended feature
        smoothing_sigma: Gaussian smoothing of the histogram in bins, 0 disables it
        use_log_histogram: Apply log1p to the histogram before the search
        normalize_histogram: Normalize the histogram to sum 1
        binarization_rule: Foreground test, 'and' or 'complement'
        quality: 'Fast' scans every second bin and refines, 'Best' scans all

    Example:
        'otsu2d' or 'otsu2d histogram_bins=32 quality=Best'
    """

    name: ClassVar[str] = '2D Otsu'
    primary_param: ClassVar[str] = 'histogram_bins'
    requires_feature: ClassVar[bool] = True

    histogram_bins: int = Field(default=64, ge=8, strict=True)
    pixel_weight_factor: float = Field(default=0.5, ge=0.0, le=1.0, allow_inf_nan=False)
    smoothing_sigma: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)
    use_log_histogram: bool = Field(default=False, strict=True)
    normalize_histogram: bool = Field(default=True, strict=True)
    binarization_rule: BinarizationRule = BinarizationRule.AND
    quality: Quality = Quality.FAST

    @field_validator('binarization_rule', mode='before')
    @classmethod
    def _parse_rule(cls, value: Any) -> BinarizationRule:
        return BinarizationRule.parse(value)

    @field_validator('quality', mode='before')
    @classmethod
    def _parse_quality(cls, value: Any) -> Quality:
        return Quality.parse(value)

    def histogram_builder(self) -> Histogram2DBuilder:
        return Histogram2DBuilder(
            bins=self.histogram_bins,
            pixel_weight_factor=self.pixel_weight_factor,
            smoothing_sigma=self.smoothing_sigma,
            use_log_histogram=self.use_log_histogram,
            normalize_histogram=self.normalize_histogram,
        )

    def run(
        self,
        intensity: np.ndarray,
        feature: np.ndarray | None = None,
        context: SegmentationContext | None = None,
    ) -> Otsu2DResult:
        if feature is None:
            raise ValidationError("2D Otsu requires a feature grid")
        start = time.perf_counter()

        histogram = self.histogram_builder().build(intensity, feature)
        optimizer = ThresholdOptimizer2D(self.quality)
        threshold = optimizer.find(histogram)

        try:
            quality = optimizer.evaluate_quality(histogram, threshold)
        except DegeneratePartitionError as e:
            logger.warning(f"No separable partition in 2D histogram: {e}")
            quality = None

        mask = binarize_2d(
            intensity, feature, threshold, self.histogram_bins,
            self.pixel_weight_factor, self.binarization_rule,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        result = Otsu2DResult(
            mask=mask,
            threshold=threshold,
            bins=self.histogram_bins,
            histogram_stats=histogram.statistics(),
            quality=quality,
            elapsed_ms=elapsed_ms,
        )
        pixel_thr, feature_thr = result.threshold_intensity
        logger.info(
            f"2D Otsu: threshold bins ({threshold.pixel_threshold}, {threshold.feature_threshold}) "
            f"-> ({pixel_thr:.2f}, {feature_thr:.2f}), {elapsed_ms:.1f}ms"
        )

        if context is not None:
            context['otsu2d_threshold'] = threshold.to_dict()
            context['otsu2d_threshold_intensity'] = (pixel_thr, feature_thr)
            context['otsu2d_histogram'] = result.histogram_stats
            context['otsu2d_quality'] = quality
        return result


__all__ = ['BinarizationRule', 'binarize_2d', 'Otsu2DResult', 'Otsu2D']
