# Obliterator - Iterative Triclass Controller
"""
State machine driving the iterative triclass segmentation.

Each iteration thresholds the still-undecided ("active") pixels, splits them
into foreground, background and TBD, merges the foreground into the
cumulative mask and shrinks the active region to the TBD pixels. Decided
pixels are marked with 0 in the active region, so an intensity of 0 never
takes part in threshold selection.

Phases::

    ACTIVE -> CONVERGED | DEPLETED | OSCILLATING | STAGNANT | MAX_ITER -> DONE

On termination the pixels still TBD are hard-assigned against the last
threshold (foreground iff ``value >= threshold``).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from .convergence import ConvergenceHistory, ConvergenceMonitor, TerminationReason
from .grids import as_grid
from .histogram1d import DEFAULT_THRESHOLD, Histogram1D, ThresholdMethod, ThresholdSelector1D
from .triclass import TriclassSegmenter

logger = logging.getLogger(__name__)


class IterationPhase(Enum):
    ACTIVE = 'active'
    CONVERGED = 'converged'
    DEPLETED = 'depleted'
    OSCILLATING = 'oscillating'
    STAGNANT = 'stagnant'
    MAX_ITER = 'max_iterations'
    DONE = 'done'

    @classmethod
    def for_reason(cls, reason: TerminationReason) -> 'IterationPhase':
        return _REASON_PHASES[reason]


_REASON_PHASES = {
    TerminationReason.CONVERGED: IterationPhase.CONVERGED,
    TerminationReason.DEPLETED: IterationPhase.DEPLETED,
    TerminationReason.OSCILLATING: IterationPhase.OSCILLATING,
    TerminationReason.STAGNANT: IterationPhase.STAGNANT,
    TerminationReason.MAX_ITER: IterationPhase.MAX_ITER,
}


@dataclass
class TriclassResult:
    """Outcome of one iterative triclass run.

    :param mask: ``uint8`` mask with values in {0, 255}
    :param termination_reason: Why the loop stopped
    :param final_threshold: Threshold of the last iteration (intensity scale)
    :param iterations: Number of recorded iterations
    :param history: Per-iteration records
    :param analysis: Output of :meth:`ConvergenceMonitor.analyze`
    :param elapsed_ms: Wall time of the whole run
    """

    mask: np.ndarray
    termination_reason: TerminationReason
    final_threshold: float
    iterations: int
    history: ConvergenceHistory
    analysis: dict[str, Any] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def foreground_count(self) -> int:
        return int(np.count_nonzero(self.mask))

    @property
    def background_count(self) -> int:
        return int(self.mask.size - np.count_nonzero(self.mask))

    def to_dict(self) -> dict[str, Any]:
        """Scalar summary, without the mask."""
        return {
            'termination_reason': self.termination_reason.value,
            'final_threshold': self.final_threshold,
            'iterations': self.iterations,
            'foreground_count': self.foreground_count,
            'background_count': self.background_count,
            'elapsed_ms': self.elapsed_ms,
            'history': self.history.to_list(),
        }


@dataclass
class IterativeController:
    """Runs the iterative triclass loop on an intensity grid.

    Parameters:
        bins: Number of 1D histogram bins
        method: Threshold selection method per iteration
        gap_factor: Relative half-width of the TBD band
        convergence_epsilon: Threshold change treated as converged
        max_iterations: Iteration budget
        minimum_tbd_fraction: TBD share below which the loop stops
    """

    bins: int = 64
    method: ThresholdMethod = ThresholdMethod.OTSU
    gap_factor: float = 0.5
    convergence_epsilon: float = 1.0
    max_iterations: int = 10
    minimum_tbd_fraction: float = 0.01

    def __post_init__(self):
        self.selector = ThresholdSelector1D(self.method)
        self.method = self.selector.method
        self.segmenter = TriclassSegmenter(self.gap_factor)
        self.monitor = ConvergenceMonitor(
            convergence_epsilon=self.convergence_epsilon,
            max_iterations=self.max_iterations,
            minimum_tbd_fraction=self.minimum_tbd_fraction,
        )
        self.phase = IterationPhase.DONE

    def _enter(self, phase: IterationPhase) -> None:
        logger.debug(f"Phase {self.phase.value} -> {phase.value}")
        self.phase = phase

    def run(self, intensity: np.ndarray) -> TriclassResult:
        """Segment ``intensity`` and return the mask with its history."""
        grid = as_grid(intensity, 'intensity')
        start = time.perf_counter()
        total_pixels = grid.size

        self.monitor.reset()
        self.phase = IterationPhase.ACTIVE
        region = grid.copy()
        result = np.zeros_like(grid)
        previous = None
        threshold = DEFAULT_THRESHOLD
        reason = None

        while reason is None:
            if not np.any(region):
                reason = TerminationReason.DEPLETED
                break

            iteration_start = time.perf_counter()
            histogram = Histogram1D.from_region(region, self.bins)
            threshold = self.selector.select(histogram)
            split = self.segmenter.split(region, threshold)
            result[split.foreground] = 255

            delta = float('inf') if previous is None else abs(threshold - previous)
            self.monitor.record(
                threshold=threshold,
                convergence_delta=delta,
                foreground_count=split.foreground_count,
                background_count=split.background_count,
                tbd_count=split.tbd_count,
                total_pixels=total_pixels,
                elapsed_time=time.perf_counter() - iteration_start,
            )
            previous = threshold

            reason = self.monitor.check_termination()
            if reason is None:
                next_region = np.zeros_like(region)
                next_region[split.tbd] = region[split.tbd]
                region = next_region
            else:
                # hard-assign what is still undecided
                result[split.tbd & (region >= threshold)] = 255

        self._enter(IterationPhase.for_reason(reason))
        self._enter(IterationPhase.DONE)

        history = ConvergenceHistory(list(self.monitor.history))
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            f"Iterative triclass finished after {len(history)} iterations "
            f"({reason.value}), threshold={threshold:.3f}, {elapsed_ms:.1f}ms"
        )
        return TriclassResult(
            mask=result,
            termination_reason=reason,
            final_threshold=threshold,
            iterations=len(history),
            history=history,
            analysis=self.monitor.analyze(),
            elapsed_ms=elapsed_ms,
        )


__all__ = ['IterationPhase', 'TriclassResult', 'IterativeController']
