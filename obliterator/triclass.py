# Obliterator - Triclass Segmentation
"""
Three-way split of the active pixels of a region around a threshold.

A gap factor ``g`` widens the threshold ``theta`` into an indecision band
``[theta * (1 - g), theta * (1 + g)]``. Active pixels strictly above the
band are foreground, strictly below it background, everything inside the
band (bounds included) stays to-be-determined (TBD).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from .binning import MAX_INTENSITY
from .errors import ValidationError


@dataclass(frozen=True)
class TriclassBounds:
    lower: float
    upper: float

    @classmethod
    def around(cls, threshold: float, gap_factor: float) -> 'TriclassBounds':
        """Band around ``threshold``, clamped to [0, 255] and at least 1 wide."""
        lower = min(MAX_INTENSITY, max(0.0, threshold * (1.0 - gap_factor)))
        upper = min(MAX_INTENSITY, max(0.0, threshold * (1.0 + gap_factor)))
        if upper <= lower:
            upper = lower + 1.0
            if upper > MAX_INTENSITY:
                upper = MAX_INTENSITY
                lower = MAX_INTENSITY - 1.0
        return cls(lower, upper)


@dataclass
class TriclassSplit:
    """Boolean masks of one split. The three masks are disjoint and cover
    exactly the active pixels."""

    foreground: np.ndarray
    background: np.ndarray
    tbd: np.ndarray
    bounds: TriclassBounds

    @property
    def foreground_count(self) -> int:
        return int(np.count_nonzero(self.foreground))

    @property
    def background_count(self) -> int:
        return int(np.count_nonzero(self.background))

    @property
    def tbd_count(self) -> int:
        return int(np.count_nonzero(self.tbd))

    def statistics(self) -> dict[str, Any]:
        """Class counts, ratios and the entropy of the class distribution."""
        counts = {
            'foreground': self.foreground_count,
            'background': self.background_count,
            'tbd': self.tbd_count,
        }
        total = sum(counts.values())
        stats: dict[str, Any] = {'total_pixels': total}
        entropy = 0.0
        for name, count in counts.items():
            ratio = count / total if total > 0 else 0.0
            stats[f'{name}_count'] = count
            stats[f'{name}_ratio'] = ratio
            if ratio > 0:
                entropy -= ratio * math.log2(ratio)
        stats['class_entropy'] = entropy
        return stats


@dataclass
class TriclassSegmenter:
    """Splits active pixels into foreground, background and TBD.

    Parameters:
        gap_factor: Relative half-width of the TBD band, in [0, 1]
    """

    gap_factor: float = 0.5

    def __post_init__(self):
        if not 0.0 <= self.gap_factor <= 1.0:
            raise ValidationError(
                f"lower_upper_gap_factor must be in [0, 1], got {self.gap_factor}"
            )

    def bounds(self, threshold: float) -> TriclassBounds:
        return TriclassBounds.around(threshold, self.gap_factor)

    def split(self, region: np.ndarray, threshold: float) -> TriclassSplit:
        """Classify the nonzero pixels of ``region``."""
        bounds = self.bounds(threshold)
        values = region.astype(np.float64)
        active = region > 0

        foreground = active & (values > bounds.upper)
        background = active & (values < bounds.lower)
        tbd = active & ~foreground & ~background
        return TriclassSplit(foreground, background, tbd, bounds)


__all__ = ['TriclassBounds', 'TriclassSplit', 'TriclassSegmenter']
