# Obliterator - Convergence Monitoring
"""
Per-iteration bookkeeping and termination analysis for the iterative
triclass loop.

The monitor owns an append-only :class:`ConvergenceHistory`. After every
iteration the controller appends an :class:`IterationRecord` and asks
:meth:`ConvergenceMonitor.check_termination` whether to stop. Checks run in
a fixed priority order:

1. no TBD pixel left (the next active region would be empty)
2. threshold change below epsilon (not on the first iteration)
3. iteration budget exhausted
4. TBD fraction below the minimum
5. period-2 / period-3 oscillation of the threshold
6. stagnation of the convergence delta

The monitor also derives summary metrics (stability classes, convergence
rates, efficiency and a remaining-iterations estimate) for reporting.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from .errors import ValidationError

logger = logging.getLogger(__name__)

OSCILLATION_TOLERANCE = 0.1
STAGNATION_WINDOW = 5
STAGNATION_MIN_SLOW = 4
STAGNATION_EPSILON_FACTOR = 10.0
STAGNATION_MIN_IMPROVEMENT = 0.01
PREDICTION_SAFETY_MARGIN = 1.2


class TerminationReason(Enum):
    """Why the iterative loop stopped."""
    CONVERGED = 'threshold_convergence'
    MAX_ITER = 'max_iterations'
    DEPLETED = 'tbd_depletion'
    OSCILLATING = 'oscillation_detected'
    STAGNANT = 'stagnation_detected'


@dataclass(frozen=True)
class IterationRecord:
    """Outcome of one iteration. ``convergence_delta`` is ``inf`` for the
    first iteration, which has no previous threshold. ``elapsed_time`` is
    in seconds."""

    index: int
    threshold: float
    convergence_delta: float
    foreground_count: int
    background_count: int
    tbd_count: int
    tbd_fraction: float
    elapsed_time: float

    @property
    def classified_count(self) -> int:
        return self.foreground_count + self.background_count + self.tbd_count

    def to_dict(self) -> dict[str, Any]:
        return {
            'index': self.index,
            'threshold': self.threshold,
            'convergence_delta': self.convergence_delta,
            'foreground_count': self.foreground_count,
            'background_count': self.background_count,
            'tbd_count': self.tbd_count,
            'tbd_fraction': self.tbd_fraction,
            'elapsed_time': self.elapsed_time,
        }


class ConvergenceHistory(Sequence):
    """Ordered, append-only sequence of :class:`IterationRecord`."""

    def __init__(self, records: list[IterationRecord] | None = None):
        self._records: list[IterationRecord] = []
        for record in records or []:
            self.append(record)

    def append(self, record: IterationRecord) -> None:
        if record.index != len(self._records):
            raise ValueError(
                f"iteration record out of order: expected index {len(self._records)}, "
                f"got {record.index}"
            )
        self._records.append(record)

    def clear(self) -> None:
        self._records = []

    def __getitem__(self, index):
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[IterationRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"ConvergenceHistory({len(self._records)} records)"

    @property
    def thresholds(self) -> list[float]:
        return [r.threshold for r in self._records]

    @property
    def deltas(self) -> list[float]:
        return [r.convergence_delta for r in self._records]

    @property
    def tbd_fractions(self) -> list[float]:
        return [r.tbd_fraction for r in self._records]

    def to_list(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self._records]


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _sample_variance(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = _mean(values)
    return sum((v - mean) ** 2 for v in values) / (len(values) - 1)


def classify_stability(variance: float) -> str:
    if variance < 0.01:
        return 'very_stable'
    elif variance < 0.1:
        return 'stable'
    elif variance < 1.0:
        return 'moderately_stable'
    return 'unstable'


@dataclass
class ConvergenceMonitor:
    """Records iterations and decides when the loop has to stop.

    Parameters:
        convergence_epsilon: Threshold change (intensity units) treated as converged
        max_iterations: Iteration budget
        minimum_tbd_fraction: TBD share of all pixels below which the loop stops
    """

    convergence_epsilon: float = 1.0
    max_iterations: int = 10
    minimum_tbd_fraction: float = 0.01
    history: ConvergenceHistory = field(default_factory=ConvergenceHistory)

    def __post_init__(self):
        if not self.convergence_epsilon > 0:
            raise ValidationError(f"convergence_epsilon must be > 0, got {self.convergence_epsilon}")
        if self.max_iterations < 1:
            raise ValidationError(f"max_iterations must be >= 1, got {self.max_iterations}")

    def reset(self) -> None:
        """Clear the history before a new run."""
        self.history.clear()

    def record(
        self,
        threshold: float,
        convergence_delta: float,
        foreground_count: int,
        background_count: int,
        tbd_count: int,
        total_pixels: int,
        elapsed_time: float = 0.0,
    ) -> IterationRecord:
        """Append the outcome of the next iteration and return its record."""
        tbd_fraction = tbd_count / total_pixels if total_pixels > 0 else 0.0
        record = IterationRecord(
            index=len(self.history),
            threshold=float(threshold),
            convergence_delta=float(convergence_delta),
            foreground_count=int(foreground_count),
            background_count=int(background_count),
            tbd_count=int(tbd_count),
            tbd_fraction=tbd_fraction,
            elapsed_time=float(elapsed_time),
        )
        self.history.append(record)
        logger.debug(
            f"Iteration {record.index}: threshold={record.threshold:.3f}, "
            f"delta={record.convergence_delta:.6f}, fg={record.foreground_count}, "
            f"bg={record.background_count}, tbd={record.tbd_count}"
        )
        return record

    # Termination

    def check_termination(self) -> TerminationReason | None:
        """Evaluate the stop criteria against the latest record."""
        if not self.history:
            return None
        current = self.history[-1]

        reason = None
        if current.tbd_count == 0:
            # next active region would be empty
            reason = TerminationReason.DEPLETED
        elif current.index > 0 and current.convergence_delta < self.convergence_epsilon:
            reason = TerminationReason.CONVERGED
        elif current.index + 1 >= self.max_iterations:
            reason = TerminationReason.MAX_ITER
        elif current.tbd_fraction < self.minimum_tbd_fraction:
            reason = TerminationReason.DEPLETED
        elif self.detect_oscillation():
            reason = TerminationReason.OSCILLATING
        elif self.detect_stagnation():
            reason = TerminationReason.STAGNANT

        if reason is not None:
            logger.info(f"Termination at iteration {current.index}: {reason.value}")
        return reason

    def detect_oscillation(self) -> bool:
        """Period-2 (>= 6 thresholds) or period-3 (>= 9 thresholds) cycles."""
        h = self.history.thresholds
        n = len(h)
        tol = OSCILLATION_TOLERANCE
        if n < 6:
            return False

        if (abs(h[n - 4] - h[n - 2]) < tol
                and abs(h[n - 3] - h[n - 1]) < tol
                and abs(h[n - 1] - h[n - 2]) > tol):
            logger.debug("Period-2 oscillation detected in threshold values")
            return True

        if n >= 9:
            repeats = all(abs(h[k] - h[k + 3]) < tol for k in range(n - 6, n - 3))
            recent = h[n - 3:]
            if repeats and max(recent) - min(recent) > tol:
                logger.debug("Period-3 oscillation detected in threshold values")
                return True

        return False

    def detect_stagnation(self) -> bool:
        """At least 4 of the last 5 deltas are small and barely improving."""
        n = len(self.history)
        if n < STAGNATION_WINDOW:
            return False

        limit = self.convergence_epsilon * STAGNATION_EPSILON_FACTOR
        slow = 0
        for k in range(n - STAGNATION_WINDOW, n):
            delta = self.history[k].convergence_delta
            if k == 0 or not 0 < delta < limit:
                continue
            previous = self.history[k - 1].convergence_delta
            if not math.isfinite(previous) or previous <= 0:
                continue
            if (previous - delta) / previous < STAGNATION_MIN_IMPROVEMENT:
                slow += 1

        if slow >= STAGNATION_MIN_SLOW:
            logger.debug(
                f"Stagnation detected: {slow} of {STAGNATION_WINDOW} recent iterations "
                f"with <1% improvement"
            )
            return True
        return False

    # Derived metrics

    def finite_deltas(self) -> list[float]:
        return [d for d in self.history.deltas if math.isfinite(d)]

    def convergence_rates(self) -> list[float]:
        """Ratio of each delta to its predecessor, where both are usable."""
        rates = []
        deltas = self.history.deltas
        for previous, current in zip(deltas, deltas[1:]):
            if math.isfinite(previous) and previous > 0 and math.isfinite(current) and current >= 0:
                rates.append(current / previous)
        return rates

    def efficiency(self) -> float:
        """``0.6 * unused budget share + 0.4 * decided pixel share``."""
        if not self.history:
            return 0.0
        used = len(self.history)
        final_tbd = self.history[-1].tbd_fraction
        return 0.6 * (1.0 - used / self.max_iterations) + 0.4 * (1.0 - final_tbd)

    def predict_remaining_iterations(self) -> int:
        """Geometric-series estimate of the iterations left until convergence."""
        used = len(self.history)
        budget = max(0, self.max_iterations - used)
        rates = self.convergence_rates()
        if used < 2 or not rates:
            return budget

        rate = rates[-1]
        current = self.history[-1].convergence_delta
        if rate <= 0 or rate >= 1.0 or current <= self.convergence_epsilon:
            return 0

        predicted = math.log(self.convergence_epsilon / current) / math.log(rate)
        estimated = math.ceil(math.ceil(predicted) * PREDICTION_SAFETY_MARGIN)
        return max(0, min(budget, estimated))

    def analyze(self) -> dict[str, Any]:
        """Summary of the convergence behaviour of the current run."""
        if not self.history:
            return {'status': 'no_data'}

        last = self.history[-1]
        deltas = self.finite_deltas()
        thresholds = self.history.thresholds
        rates = self.convergence_rates()
        times_ms = [r.elapsed_time * 1000.0 for r in self.history]

        delta_variance = _sample_variance(deltas)
        threshold_variance = _sample_variance(thresholds)
        return {
            'status': 'ok',
            'total_iterations': len(self.history),
            'final_threshold': last.threshold,
            'final_convergence': last.convergence_delta,
            'final_tbd_fraction': last.tbd_fraction,
            'mean_convergence_delta': _mean(deltas),
            'convergence_delta_variance': delta_variance,
            'convergence_stability': classify_stability(delta_variance),
            'mean_convergence_rate': _mean(rates),
            'convergence_rate_variance': _sample_variance(rates),
            'mean_threshold': _mean(thresholds),
            'threshold_variance': threshold_variance,
            'threshold_stability': classify_stability(threshold_variance),
            'tbd_fraction_variance': _sample_variance(self.history.tbd_fractions),
            'mean_processing_time_ms': _mean(times_ms),
            'total_processing_time_ms': sum(times_ms),
            'has_oscillation': self.detect_oscillation(),
            'has_stagnation': self.detect_stagnation(),
            'convergence_efficiency': self.efficiency(),
            'predicted_remaining_iterations': self.predict_remaining_iterations(),
        }

    def generate_report(self) -> str:
        """Human-readable convergence report."""
        if not self.history:
            return "No convergence data available"

        a = self.analyze()
        lines = [
            "Iterative Triclass Convergence Report:",
            "",
            "Basic Statistics:",
            f"- Total Iterations: {a['total_iterations']}",
            f"- Final Threshold: {a['final_threshold']:.3f}",
            f"- Final Convergence Value: {a['final_convergence']:.6f}",
            f"- Final TBD Fraction: {a['final_tbd_fraction']:.6f}",
            "",
            "Convergence Analysis:",
            f"- Mean Convergence Rate: {a['mean_convergence_rate']:.4f}",
            f"- Threshold Variance: {a['threshold_variance']:.6f}",
            f"- Threshold Stability: {a['threshold_stability']}",
            f"- Convergence Efficiency: {a['convergence_efficiency']:.3f}",
            "",
            "Behavioral Flags:",
            f"- Oscillation Detected: {a['has_oscillation']}",
            f"- Stagnation Detected: {a['has_stagnation']}",
            "",
            "Performance:",
            f"- Mean Processing Time: {a['mean_processing_time_ms']:.2f} ms",
            f"- Total Processing Time: {a['total_processing_time_ms']:.2f} ms",
            "",
            "Iteration Details:",
        ]
        for r in self.history:
            lines.append(
                f"  Iteration {r.index}: threshold={r.threshold:.3f}, "
                f"convergence={r.convergence_delta:.6f}, TBD={r.tbd_fraction:.4f}, "
                f"time={r.elapsed_time * 1000.0:.1f}ms"
            )
        return '\n'.join(lines)


__all__ = [
    'TerminationReason',
    'IterationRecord',
    'ConvergenceHistory',
    'ConvergenceMonitor',
    'classify_stability',
]
