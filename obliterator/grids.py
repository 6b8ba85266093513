# Obliterator - Grid Validation
"""
Input checks for intensity and feature grids.

Callers hand in plain numpy arrays. Grids are validated and converted to
``uint8`` once at the algorithm boundary; the core never writes to them.
"""

from __future__ import annotations

import numpy as np

from .errors import DimensionMismatchError, ValidationError


def as_grid(array, name: str = 'intensity') -> np.ndarray:
    """Validate a 2-D grid of 8-bit values and return it as ``uint8``.

    Accepts any integer array with values in [0, 255], or a float array
    whose values are integral and within that range.

    :param array: Array-like input.
    :param name: Grid name used in error messages.
    :returns: ``uint8`` array (the input itself if already ``uint8``).
    :raises ValidationError: If the input is not a non-empty 2-D grid of
        8-bit values.
    """
    grid = np.asarray(array)
    if grid.ndim != 2:
        raise ValidationError(f"{name} grid must be 2-D, got shape {grid.shape}")
    if grid.size == 0:
        raise ValidationError(f"{name} grid is empty")
    if grid.dtype == np.uint8:
        return grid
    if grid.dtype == np.bool_:
        raise ValidationError(f"{name} grid must hold 8-bit values, got bool")
    if not (np.issubdtype(grid.dtype, np.integer) or np.issubdtype(grid.dtype, np.floating)):
        raise ValidationError(f"{name} grid has unsupported dtype {grid.dtype}")
    if np.issubdtype(grid.dtype, np.floating):
        if not np.all(np.isfinite(grid)) or not np.all(grid == np.round(grid)):
            raise ValidationError(f"{name} grid must contain integral values")
    low, high = grid.min(), grid.max()
    if low < 0 or high > 255:
        raise ValidationError(
            f"{name} grid values must lie in [0, 255], got [{low}, {high}]"
        )
    return grid.astype(np.uint8)


def check_same_shape(intensity: np.ndarray, feature: np.ndarray) -> None:
    """Raise :class:`DimensionMismatchError` if the grids differ in shape."""
    if intensity.shape != feature.shape:
        raise DimensionMismatchError(intensity.shape, feature.shape)


__all__ = ['as_grid', 'check_same_shape']
