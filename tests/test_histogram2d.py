"""
Tests for the 2D histogram builder and its transforms.
"""

import numpy as np
import pytest

from obliterator import DimensionMismatchError, ValidationError
from obliterator.histogram2d import (
    Histogram2D,
    Histogram2DBuilder,
    gaussian_kernel,
    normalize_histogram,
)


class TestGaussianKernel:
    """Tests for the smoothing kernel."""

    def test_size_and_sum(self):
        kernel = gaussian_kernel(1.0)
        assert kernel.shape == (7, 7)
        assert kernel.sum() == pytest.approx(1.0)

    def test_small_sigma(self):
        assert gaussian_kernel(0.5).shape == (5, 5)

    def test_symmetric_with_center_peak(self):
        kernel = gaussian_kernel(1.5)
        np.testing.assert_allclose(kernel, kernel.T)
        np.testing.assert_allclose(kernel, kernel[::-1, ::-1])
        center = kernel.shape[0] // 2
        assert kernel[center, center] == kernel.max()


class TestHistogram2DBuilder:
    """Tests for counting and transforms."""

    def test_sum_equals_pixel_count(self, random_grid, neighborhood):
        hist = Histogram2DBuilder(bins=32).build(random_grid, neighborhood(random_grid))
        assert hist.values.shape == (32, 32)
        assert hist.values.sum() == random_grid.size
        assert hist.total_pixels == random_grid.size
        assert not hist.transformed

    def test_single_bin_for_uniform_grid(self, uniform_100):
        """All 100 with 4 bins lands in cell (1, 1)."""
        hist = Histogram2DBuilder(bins=4).build(uniform_100, uniform_100)
        assert hist.values[1, 1] == 16
        assert np.count_nonzero(hist.values) == 1

    def test_feature_axis_uses_blend(self):
        intensity = np.array([[200]], dtype=np.uint8)
        neighborhood = np.array([[0]], dtype=np.uint8)
        # blended = 0.5 * 200 = 100 -> bin 1 of 4; intensity 200 -> bin 2
        hist = Histogram2DBuilder(bins=4, pixel_weight_factor=0.5).build(intensity, neighborhood)
        assert hist.values[2, 1] == 1
        # alpha 1 ignores the neighborhood
        hist = Histogram2DBuilder(bins=4, pixel_weight_factor=1.0).build(intensity, neighborhood)
        assert hist.values[2, 2] == 1

    def test_normalized_sums_to_one(self, random_grid, neighborhood):
        builder = Histogram2DBuilder(bins=64, smoothing_sigma=1.0, normalize_histogram=True)
        hist = builder.build(random_grid, neighborhood(random_grid))
        assert hist.values.sum() == pytest.approx(1.0, abs=1e-9)
        assert hist.smoothed and hist.normalized
        assert not hist.log_scaled

    def test_log_scaling(self, uniform_100):
        hist = Histogram2DBuilder(bins=4, use_log_histogram=True).build(uniform_100, uniform_100)
        assert hist.values[1, 1] == pytest.approx(np.log1p(16))
        assert hist.values[0, 0] == 0.0
        assert hist.log_scaled

    def test_smoothing_spreads_mass(self, uniform_100):
        plain = Histogram2DBuilder(bins=16).build(uniform_100, uniform_100)
        smooth = Histogram2DBuilder(bins=16, smoothing_sigma=1.0).build(uniform_100, uniform_100)
        assert np.count_nonzero(smooth.values) > np.count_nonzero(plain.values)
        assert np.all(smooth.values >= 0)
        # 100 -> bin 5 of 16, far enough from the border to keep all mass
        assert smooth.values.sum() == pytest.approx(16.0)

    def test_dimension_mismatch(self, two_region):
        with pytest.raises(DimensionMismatchError):
            Histogram2DBuilder().build(two_region, two_region[:10])

    def test_invalid_parameters(self):
        with pytest.raises(ValidationError):
            Histogram2DBuilder(bins=1)
        with pytest.raises(ValidationError):
            Histogram2DBuilder(pixel_weight_factor=1.5)
        with pytest.raises(ValidationError):
            Histogram2DBuilder(smoothing_sigma=-1.0)
        with pytest.raises(ValidationError):
            Histogram2DBuilder(smoothing_sigma=float('inf'))

    def test_input_not_modified(self, two_region, two_region_feature):
        before = two_region.copy()
        Histogram2DBuilder(bins=16, smoothing_sigma=1.0).build(two_region, two_region_feature)
        np.testing.assert_array_equal(two_region, before)


class TestHistogram2D:
    """Tests for histogram reporting."""

    def test_statistics(self, uniform_100):
        hist = Histogram2DBuilder(bins=4).build(uniform_100, uniform_100)
        stats = hist.statistics()
        assert stats['bins'] == 4
        assert stats['total_pixels'] == 16
        assert stats['non_zero_bins'] == 1
        assert stats['sparsity'] == pytest.approx(15 / 16)
        assert stats['max_value'] == 16.0
        assert stats['dynamic_range'] == 0.0

    def test_normalize_empty_is_noop(self):
        hist = Histogram2D(values=np.zeros((8, 8)), bins=8, total_pixels=0)
        normalize_histogram(hist)
        assert hist.normalized
        assert hist.values.sum() == 0.0
        assert hist.statistics()['non_zero_bins'] == 0
