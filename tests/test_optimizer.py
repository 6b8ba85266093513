"""
Tests for the 2D threshold search.
"""

import logging
import math

import numpy as np
import pytest

from obliterator import (
    ClassStatistics2D,
    Histogram2D,
    Histogram2DBuilder,
    Quality,
    Threshold2D,
    ThresholdOptimizer2D,
    ValidationError,
)
from obliterator.optimizer import score_table


class TestQuality:
    """Tests for quality parsing."""

    def test_parse(self):
        assert Quality.parse('Fast') is Quality.FAST
        assert Quality.parse('best') is Quality.BEST
        assert Quality.parse(Quality.BEST) is Quality.BEST

    def test_parse_invalid(self):
        with pytest.raises(ValidationError):
            Quality.parse('Medium')

    def test_step(self):
        assert Quality.FAST.step == 2
        assert Quality.BEST.step == 1


class TestThreshold2D:
    """Tests for the threshold value object."""

    def test_is_valid(self):
        assert Threshold2D(3, 4, 0.5).is_valid(8)
        assert not Threshold2D(8, 4, 0.5).is_valid(8)
        assert not Threshold2D(3, 4, -1.0).is_valid(8)
        assert not Threshold2D(3, 4, math.nan).is_valid(8)

    def test_to_intensity(self):
        assert Threshold2D(9, 63, 0.0).to_intensity(64) == pytest.approx((9 * 255 / 63, 255.0))


class TestScoreTable:
    """Tests for the vectorized candidate scores."""

    def test_matches_class_statistics(self, random_grid, neighborhood):
        """Every finite score equals the between-class variance of its partition."""
        hist = Histogram2DBuilder(bins=16).build(random_grid, neighborhood(random_grid))
        table = score_table(hist)
        for t1 in range(16):
            for t2 in range(16):
                if not table.valid[t1, t2]:
                    continue
                stats = ClassStatistics2D.compute(hist, t1, t2)
                assert table.scores[t1, t2] == pytest.approx(stats.between_class_variance())

    def test_degenerate_candidates(self, uniform_100):
        hist = Histogram2DBuilder(bins=4).build(uniform_100, uniform_100)
        table = score_table(hist)
        assert not np.any(table.valid)


class TestThresholdOptimizer2D:
    """Tests for the threshold search."""

    def test_uniform_grid_falls_back_to_default(self, uniform_100):
        """A single occupied bin yields the default pair (B/2, B/2)."""
        hist = Histogram2DBuilder(bins=4).build(uniform_100, uniform_100)
        for quality in (Quality.FAST, Quality.BEST):
            result = ThresholdOptimizer2D(quality).find(hist)
            assert (result.pixel_threshold, result.feature_threshold) == (2, 2)
            assert result.variance == 0.0

    def test_empty_histogram(self, caplog):
        hist = Histogram2D(values=np.zeros((16, 16)), bins=16, total_pixels=0)
        with caplog.at_level(logging.WARNING, logger='obliterator.optimizer'):
            result = ThresholdOptimizer2D().find(hist)
        assert result == Threshold2D(8, 8, 0.0)
        assert 'empty' in caplog.text

    def test_two_regions(self, two_region):
        """Intensities 40 and 200 map to bins 9 and 49; the first maximum is (9, 9)."""
        hist = Histogram2DBuilder(bins=64).build(two_region, two_region)
        fast = ThresholdOptimizer2D(Quality.FAST).find(hist)
        best = ThresholdOptimizer2D(Quality.BEST).find(hist)
        assert (fast.pixel_threshold, fast.feature_threshold) == (9, 9)
        assert (best.pixel_threshold, best.feature_threshold) == (9, 9)
        # w0 = w1 = 0.5, 40 bins apart on both axes
        assert best.variance == pytest.approx(0.25 * (40 ** 2 + 40 ** 2))

    def test_fast_never_beats_best(self, noisy_bimodal, neighborhood):
        hist = Histogram2DBuilder(bins=64, smoothing_sigma=1.0, normalize_histogram=True).build(
            noisy_bimodal, neighborhood(noisy_bimodal))
        fast = ThresholdOptimizer2D(Quality.FAST).find(hist)
        best = ThresholdOptimizer2D(Quality.BEST).find(hist)
        assert fast.variance <= best.variance
        assert fast.variance > 0.0
        assert fast.is_valid(64) and best.is_valid(64)

    def test_search_range(self, random_grid, neighborhood):
        hist = Histogram2DBuilder(bins=32).build(random_grid, neighborhood(random_grid))
        result = ThresholdOptimizer2D(Quality.BEST).find(hist)
        assert 1 <= result.pixel_threshold <= 30
        assert 1 <= result.feature_threshold <= 30

    def test_deterministic(self, noisy_bimodal, neighborhood):
        hist = Histogram2DBuilder(bins=64).build(noisy_bimodal, neighborhood(noisy_bimodal))
        optimizer = ThresholdOptimizer2D()
        assert optimizer.find(hist) == optimizer.find(hist)

    def test_evaluate_quality(self, two_region):
        hist = Histogram2DBuilder(bins=64).build(two_region, two_region)
        optimizer = ThresholdOptimizer2D()
        quality = optimizer.evaluate_quality(hist, optimizer.find(hist))
        assert quality['between_class_variance'] == pytest.approx(800.0)
        assert quality['within_class_variance'] == pytest.approx(0.0)
        assert quality['total_variance'] == pytest.approx(800.0)
        assert quality['separability'] == math.inf
        assert quality['class_balance'] == pytest.approx(1.0)


class TestFastRefinement:
    """Fast mode recovers an optimum that lies off the step-2 grid."""

    @pytest.fixture
    def even_optimum(self) -> Histogram2D:
        """Two 2x2 clusters split only by t1 = 4 or t2 = 4."""
        values = np.zeros((16, 16))
        values[3:5, 3:5] = 1.0
        values[5:7, 5:7] = 1.0
        return Histogram2D(values=values, bins=16, total_pixels=8)

    def test_best_finds_even_pair(self, even_optimum):
        best = ThresholdOptimizer2D(Quality.BEST).find(even_optimum)
        assert (best.pixel_threshold, best.feature_threshold) == (4, 4)
        # w0 = w1 = 0.5, cluster means 2 bins apart on both axes
        assert best.variance == pytest.approx(2.0)

    def test_fast_matches_best(self, even_optimum):
        fast = ThresholdOptimizer2D(Quality.FAST).find(even_optimum)
        best = ThresholdOptimizer2D(Quality.BEST).find(even_optimum)
        assert fast == best

    def test_coarse_scan_alone_misses(self, even_optimum, monkeypatch):
        """Odd candidates only reach (5, 5), which mixes one cell into the background."""
        import obliterator.optimizer as optimizer_module
        monkeypatch.setattr(optimizer_module, 'REFINE_RADIUS', 0)
        coarse = ThresholdOptimizer2D(Quality.FAST).find(even_optimum)
        assert (coarse.pixel_threshold, coarse.feature_threshold) == (5, 5)
        assert coarse.variance == pytest.approx(0.625 * 0.375 * 2 * (17 / 3 - 3.8) ** 2)
        assert coarse.variance < 2.0
