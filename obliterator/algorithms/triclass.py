# Obliterator - Iterative Triclass
"""
Iterative triclass thresholding.

Thin algorithm wrapper around :class:`~obliterator.iterative.IterativeController`
that adds parameter validation, serialization and context reporting.
"""

from typing import Any, ClassVar

import numpy as np
from pydantic import Field, field_validator

from ..histogram1d import ThresholdMethod
from ..iterative import IterativeController, TriclassResult
from ..optimizer import Quality
from .base import SegmentationAlgorithm, SegmentationContext, register_algorithm


@register_algorithm
class IterativeTriclass(SegmentationAlgorithm):
    """Iterative triclass thresholding of the undecided pixels.

    Each pass thresholds the still-undecided pixels, decides the ones
    clearly above or below a band around the threshold and repeats on the
    rest until the threshold settles, the undecided share runs out, the
    threshold oscillates or stagnates, or the iteration budget is spent.
    The feature grid is ignored.

    Parameters:
        histogram_bins: Bins of the per-iteration histogram
        quality: Accepted for parameter compatibility with 2D Otsu, no effect on the loop
        initial_threshold_method: 'otsu', 'mean' or 'median'
        convergence_epsilon: Threshold change treated as converged
        max_iterations: Iteration budget
        minimum_tbd_fraction: Undecided share below which the loop stops
        lower_upper_gap_factor: Relative half-width of the undecided band

    Example:
        'iterativetriclass' or 'iterativetriclass initial_threshold_method=median'
    """

    name: ClassVar[str] = 'Iterative Triclass'
    primary_param: ClassVar[str] = 'initial_threshold_method'

    histogram_bins: int = Field(default=64, ge=8, strict=True)
    quality: Quality = Quality.FAST
    initial_threshold_method: ThresholdMethod = ThresholdMethod.OTSU
    convergence_epsilon: float = Field(default=1.0, gt=0.0, le=50.0, allow_inf_nan=False)
    max_iterations: int = Field(default=10, ge=1, le=100, strict=True)
    minimum_tbd_fraction: float = Field(default=0.01, ge=0.0001, le=0.5, allow_inf_nan=False)
    lower_upper_gap_factor: float = Field(default=0.5, ge=0.0, le=1.0, allow_inf_nan=False)

    @field_validator('quality', mode='before')
    @classmethod
    def _parse_quality(cls, value: Any) -> Quality:
        return Quality.parse(value)

    @field_validator('initial_threshold_method', mode='before')
    @classmethod
    def _parse_method(cls, value: Any) -> ThresholdMethod:
        return ThresholdMethod.parse(value)

    def controller(self) -> IterativeController:
        """Fresh controller configured with this parameter set."""
        return IterativeController(
            bins=self.histogram_bins,
            method=self.initial_threshold_method,
            gap_factor=self.lower_upper_gap_factor,
            convergence_epsilon=self.convergence_epsilon,
            max_iterations=self.max_iterations,
            minimum_tbd_fraction=self.minimum_tbd_fraction,
        )

    def run(
        self,
        intensity: np.ndarray,
        feature: np.ndarray | None = None,
        context: SegmentationContext | None = None,
    ) -> TriclassResult:
        result = self.controller().run(intensity)
        if context is not None:
            context['triclass_threshold'] = result.final_threshold
            context['triclass_termination'] = result.termination_reason.value
            context['triclass_iterations'] = result.iterations
            context['triclass_history'] = result.history
            context['triclass_analysis'] = result.analysis
        return result


__all__ = ['IterativeTriclass']
