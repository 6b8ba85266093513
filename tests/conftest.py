"""
Pytest fixtures for Obliterator tests
"""

import numpy as np
import pytest
from scipy.ndimage import uniform_filter


def neighborhood_mean(grid: np.ndarray, size: int = 3) -> np.ndarray:
    """3x3 mean of a grid, rounded back to uint8 like an external filter would."""
    mean = uniform_filter(grid.astype(np.float64), size=size, mode='nearest')
    return np.clip(np.round(mean), 0, 255).astype(np.uint8)


@pytest.fixture
def neighborhood():
    """The neighborhood function, for tests that build their own grids."""
    return neighborhood_mean


@pytest.fixture
def two_region() -> np.ndarray:
    """40x40 grid, left half 40, right half 200."""
    grid = np.full((40, 40), 40, dtype=np.uint8)
    grid[:, 20:] = 200
    return grid


@pytest.fixture
def two_region_feature(two_region) -> np.ndarray:
    return neighborhood_mean(two_region)


@pytest.fixture
def gradient() -> np.ndarray:
    """32x32 horizontal gradient, columns 0, 8, ..., 248."""
    return np.tile(np.arange(0, 256, 8, dtype=np.uint8), (32, 1))


@pytest.fixture
def noisy_bimodal() -> np.ndarray:
    """Two regions (60 / 180) with Gaussian noise, seeded."""
    rng = np.random.default_rng(7)
    grid = np.full((48, 48), 60.0)
    grid[:, 24:] = 180.0
    grid += rng.normal(0.0, 12.0, grid.shape)
    return np.clip(np.round(grid), 1, 255).astype(np.uint8)


@pytest.fixture
def random_grid() -> np.ndarray:
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(48, 48), dtype=np.uint8)


@pytest.fixture
def uniform_100() -> np.ndarray:
    """4x4 grid where every pixel is 100."""
    return np.full((4, 4), 100, dtype=np.uint8)
