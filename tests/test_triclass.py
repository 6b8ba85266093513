"""
Tests for the foreground / background / TBD split.
"""

import math

import numpy as np
import pytest

from obliterator import TriclassBounds, TriclassSegmenter, ValidationError


class TestTriclassBounds:
    """Tests for the indecision band."""

    def test_symmetric_band(self):
        assert TriclassBounds.around(100.0, 0.5) == TriclassBounds(50.0, 150.0)

    def test_clamped_to_range(self):
        assert TriclassBounds.around(200.0, 0.5) == TriclassBounds(100.0, 255.0)

    def test_zero_gap_widened(self):
        assert TriclassBounds.around(17.0, 0.0) == TriclassBounds(17.0, 18.0)
        assert TriclassBounds.around(0.0, 0.5) == TriclassBounds(0.0, 1.0)

    def test_top_of_range(self):
        assert TriclassBounds.around(255.0, 0.0) == TriclassBounds(254.0, 255.0)


class TestTriclassSegmenter:
    """Tests for classifying active pixels."""

    def test_strict_boundaries(self):
        """Values equal to a bound stay TBD."""
        region = np.array([[0, 10, 50, 100, 150, 200]], dtype=np.uint8)
        split = TriclassSegmenter(0.5).split(region, 100.0)
        np.testing.assert_array_equal(split.foreground, [[False, False, False, False, False, True]])
        np.testing.assert_array_equal(split.background, [[False, True, False, False, False, False]])
        np.testing.assert_array_equal(split.tbd, [[False, False, True, True, True, False]])
        assert (split.foreground_count, split.background_count, split.tbd_count) == (1, 1, 3)

    def test_partition_of_active_pixels(self, random_grid):
        split = TriclassSegmenter(0.3).split(random_grid, 120.0)
        active = random_grid > 0
        total = split.foreground.astype(int) + split.background.astype(int) + split.tbd.astype(int)
        np.testing.assert_array_equal(total, active.astype(int))

    def test_statistics(self):
        region = np.array([[10, 100, 200, 220]], dtype=np.uint8)
        stats = TriclassSegmenter(0.5).split(region, 100.0).statistics()
        assert stats['total_pixels'] == 4
        assert stats['foreground_count'] == 2
        assert stats['foreground_ratio'] == 0.5
        assert stats['tbd_ratio'] == 0.25
        assert stats['class_entropy'] == pytest.approx(1.5)

    def test_statistics_empty(self):
        region = np.zeros((2, 2), dtype=np.uint8)
        stats = TriclassSegmenter().split(region, 100.0).statistics()
        assert stats['total_pixels'] == 0
        assert stats['class_entropy'] == 0.0

    def test_invalid_gap(self):
        with pytest.raises(ValidationError):
            TriclassSegmenter(1.5)
        with pytest.raises(ValidationError):
            TriclassSegmenter(-0.1)
        with pytest.raises(ValidationError):
            TriclassSegmenter(math.nan)
