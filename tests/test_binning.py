"""
Tests for intensity <-> bin mapping and grid validation.
"""

import numpy as np
import pytest

from obliterator import ValidationError, DimensionMismatchError
from obliterator.binning import map_to_bin, map_to_bins, bin_to_intensity, bin_upper_edge
from obliterator.grids import as_grid, check_same_shape


class TestMapToBin:
    """Tests for the scalar bin mapping."""

    def test_extremes(self):
        assert map_to_bin(0, 64) == 0
        assert map_to_bin(255, 64) == 63
        assert map_to_bin(255, 4) == 3

    def test_truncates(self):
        # 128 * 63 / 255 = 31.6
        assert map_to_bin(128, 64) == 31
        # 100 * 3 / 255 = 1.18
        assert map_to_bin(100, 4) == 1
        # 250 * 15 / 255 = 14.7
        assert map_to_bin(250, 16) == 14
        assert map_to_bin(10, 16) == 0

    def test_clamps_out_of_range(self):
        assert map_to_bin(-20, 64) == 0
        assert map_to_bin(400, 64) == 63

    def test_vectorized_matches_scalar(self):
        """Array mapping agrees with the scalar form for every 8-bit value."""
        values = np.arange(256)
        for bins in (4, 16, 64, 256):
            expected = [map_to_bin(v, bins) for v in values]
            np.testing.assert_array_equal(map_to_bins(values, bins), expected)

    def test_vectorized_keeps_shape(self):
        grid = np.zeros((3, 5), dtype=np.uint8)
        assert map_to_bins(grid, 16).shape == (3, 5)

    def test_fractional_values(self):
        blended = np.array([0.4, 16.9, 17.0, 254.9])
        np.testing.assert_array_equal(map_to_bins(blended, 16), [0, 0, 1, 14])


class TestBinToIntensity:
    """Tests for the conversions back to the intensity scale."""

    def test_bin_to_intensity(self):
        assert bin_to_intensity(0, 64) == 0.0
        assert bin_to_intensity(63, 64) == pytest.approx(255.0)
        assert bin_to_intensity(2, 4) == pytest.approx(170.0)

    def test_upper_edge(self):
        assert bin_upper_edge(0, 16) == pytest.approx(17.0)
        assert bin_upper_edge(15, 16) == 255.0

    def test_upper_edge_separates_bins(self):
        """Every value in a bin <= t lies below the edge, every value above does not."""
        bins = 16
        values = np.arange(256)
        mapped = map_to_bins(values, bins)
        for t in range(bins - 1):
            edge = bin_upper_edge(t, bins)
            assert np.all(values[mapped <= t] < edge)
            assert np.all(values[mapped > t] >= edge)


class TestGrids:
    """Tests for input grid validation."""

    def test_uint8_passthrough(self, two_region):
        assert as_grid(two_region) is two_region

    def test_integer_conversion(self):
        grid = as_grid(np.array([[0, 255], [10, 20]], dtype=np.int32))
        assert grid.dtype == np.uint8
        np.testing.assert_array_equal(grid, [[0, 255], [10, 20]])

    def test_integral_floats_accepted(self):
        grid = as_grid(np.array([[1.0, 2.0]]))
        assert grid.dtype == np.uint8

    def test_fractional_floats_rejected(self):
        with pytest.raises(ValidationError):
            as_grid(np.array([[1.5, 2.0]]))

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            as_grid(np.array([[0, 256]]))
        with pytest.raises(ValidationError):
            as_grid(np.array([[-1, 0]]))

    def test_shape_rejected(self):
        with pytest.raises(ValidationError):
            as_grid(np.zeros(10, dtype=np.uint8))
        with pytest.raises(ValidationError):
            as_grid(np.zeros((0, 4), dtype=np.uint8))
        with pytest.raises(ValidationError):
            as_grid(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            as_grid(np.ones((2, 2), dtype=bool))

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError) as exc_info:
            check_same_shape(np.zeros((2, 3)), np.zeros((3, 2)))
        assert exc_info.value.intensity_shape == (2, 3)
        assert exc_info.value.feature_shape == (3, 2)
        assert isinstance(exc_info.value, ValueError)
