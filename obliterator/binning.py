# Obliterator - Bin Mapping
"""
Mapping between 8-bit intensities and histogram bin indices.

All histogram code shares the same mapping so that a value lands in the
same bin whether it is counted by the 2D or the 1D histogram:

    bin = int(value * (bins - 1) / 255), clamped to [0, bins - 1]
"""

from __future__ import annotations

import numpy as np

MAX_INTENSITY = 255.0


def map_to_bin(value: float, bins: int) -> int:
    """Map a single intensity in [0, 255] to its bin index."""
    index = int(value * (bins - 1) / MAX_INTENSITY)
    if index < 0:
        return 0
    if index >= bins:
        return bins - 1
    return index


def map_to_bins(values: np.ndarray, bins: int) -> np.ndarray:
    """Vectorized :func:`map_to_bin` for arrays of any shape.

    Truncates toward zero like ``int()`` does, so negative inputs clamp
    to bin 0.
    """
    scaled = np.asarray(values, dtype=np.float64) * (bins - 1) / MAX_INTENSITY
    indices = np.trunc(scaled).astype(np.int64)
    return np.clip(indices, 0, bins - 1)


def bin_to_intensity(index: float, bins: int) -> float:
    """Convert a (possibly fractional) bin index back to intensity scale."""
    return float(index) * MAX_INTENSITY / (bins - 1)


def bin_upper_edge(index: int, bins: int) -> float:
    """Intensity separating bins ``<= index`` from bins ``> index``.

    Every value that maps to a bin ``<= index`` is strictly below the
    returned intensity. Capped at 255 for the last bin.
    """
    return min(MAX_INTENSITY, (index + 1) * MAX_INTENSITY / (bins - 1))


__all__ = [
    'MAX_INTENSITY',
    'map_to_bin',
    'map_to_bins',
    'bin_to_intensity',
    'bin_upper_edge',
]
