# Obliterator - Errors
"""
Exception hierarchy for the segmentation core.

Validation problems are raised before any computation starts. Degenerate
data (empty histograms, single-class partitions) is reported through
dedicated exceptions that the algorithms catch and turn into fallback
thresholds. ``InvariantViolation`` marks programmer errors and derives from
``AssertionError`` so it is never mistaken for a user-facing error.
"""

from __future__ import annotations


class ObliteratorError(Exception):
    """Base class for all errors raised by obliterator."""


class ValidationError(ObliteratorError, ValueError):
    """Invalid parameter value or malformed input grid."""


class DimensionMismatchError(ValidationError):
    """Intensity grid and feature grid differ in shape."""

    def __init__(self, intensity_shape: tuple[int, ...], feature_shape: tuple[int, ...]):
        self.intensity_shape = tuple(intensity_shape)
        self.feature_shape = tuple(feature_shape)
        super().__init__(
            f"dimension mismatch: intensity {self.intensity_shape} "
            f"vs feature {self.feature_shape}"
        )


class EmptyHistogramError(ObliteratorError):
    """Histogram carries no weight, statistics are undefined."""


class DegeneratePartitionError(ObliteratorError):
    """A candidate threshold leaves one of the classes without weight."""

    def __init__(self, t1: int, t2: int, weight_background: float, weight_foreground: float):
        self.t1 = t1
        self.t2 = t2
        self.weight_background = weight_background
        self.weight_foreground = weight_foreground
        super().__init__(
            f"degenerate partition at ({t1}, {t2}): "
            f"w0={weight_background:.6f}, w1={weight_foreground:.6f}"
        )


class InvariantViolation(ObliteratorError, AssertionError):
    """Internal consistency check failed."""


__all__ = [
    'ObliteratorError',
    'ValidationError',
    'DimensionMismatchError',
    'EmptyHistogramError',
    'DegeneratePartitionError',
    'InvariantViolation',
]
