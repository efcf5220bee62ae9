"""Tests for technical indicators."""

import math

import numpy as np
import pytest

from dipscore.indicators import (
    average_true_range,
    exponential_average,
    linear_regression_slope,
    lowest,
    macd,
    moving_average,
    relative_strength_index,
    standard_deviation,
    true_range,
)


class TestMovingAverage:
    """Tests for SMA calculation."""

    def test_sma_basic(self):
        """Test basic SMA calculation."""
        result = moving_average(list(range(1, 11)), 3)

        # First 2 values should be NaN
        assert math.isnan(result[0])
        assert math.isnan(result[1])

        # (1+2+3)/3 = 2, (2+3+4)/3 = 3
        assert result[2] == pytest.approx(2.0)
        assert result[3] == pytest.approx(3.0)
        assert result[9] == pytest.approx(9.0)

    def test_sma_missing_value_counts_as_zero(self):
        """A NaN input contributes zero but still occupies a window slot."""
        result = moving_average([2.0, float("nan"), 4.0], 2)

        assert result[1] == pytest.approx(1.0)
        assert result[2] == pytest.approx(2.0)

    def test_sma_preserves_length(self):
        assert len(moving_average([1.0, 2.0], 5)) == 2
        assert len(moving_average([], 5)) == 0
        assert np.isnan(moving_average([1.0, 2.0], 5)).all()


class TestExponentialAverage:
    """Tests for EMA calculation."""

    def test_ema_constant_series(self):
        result = exponential_average([50.0] * 20, 9)
        assert np.allclose(result, 50.0)

    def test_ema_seeds_at_first_finite_and_reuses_previous(self):
        """Period 3 -> k = 0.5; a missing input repeats the previous output."""
        result = exponential_average([float("nan"), 10.0, float("nan"), 20.0], 3)

        assert math.isnan(result[0])
        assert result[1] == pytest.approx(10.0)
        assert result[2] == pytest.approx(10.0)
        assert result[3] == pytest.approx(15.0)


class TestStandardDeviation:
    """Tests for rolling population standard deviation."""

    def test_std_known_values(self):
        result = standard_deviation([2, 4, 4, 4, 5, 5, 7, 9], 8)

        assert np.isnan(result[:7]).all()
        assert result[7] == pytest.approx(2.0)

    def test_std_flat_is_zero(self):
        result = standard_deviation([3.0] * 10, 4)
        assert np.allclose(result[3:], 0.0)


class TestATR:
    """Tests for true range and ATR calculation."""

    def test_true_range_first_bar_uses_high_low(self):
        result = true_range([10.0, 20.0], [8.0, 18.0], [9.0, 19.0])

        assert result[0] == pytest.approx(2.0)
        # Gap up: |high - prev_close| = |20 - 9| = 11
        assert result[1] == pytest.approx(11.0)

    def test_atr_constant_range(self):
        """Test ATR with constant range candles."""
        # All candles have range of 2 (high - low)
        result = average_true_range([102.0] * 20, [100.0] * 20, [101.0] * 20, 5)

        assert np.allclose(result, 2.0)

    def test_atr_wilder_smoothing_after_seed(self):
        highs = [102.0] * 5 + [110.0]
        lows = [100.0] * 5 + [100.0]
        closes = [101.0] * 6
        result = average_true_range(highs, lows, closes, 5)

        assert result[4] == pytest.approx(2.0)
        assert result[5] == pytest.approx((2.0 * 4 + 10.0) / 5)

    def test_atr_missing_high_low_carries_forward(self):
        highs = [102.0] * 6 + [float("nan"), 102.0]
        lows = [100.0] * 8
        closes = [101.0] * 8
        result = average_true_range(highs, lows, closes, 5)

        assert result[6] == result[5]
        assert len(result) == 8


class TestLowest:
    """Tests for rolling minimum."""

    def test_lowest_basic(self):
        result = lowest([5, 3, 4, 1, 6], 3)

        assert np.isnan(result[:2]).all()
        assert list(result[2:]) == [3.0, 1.0, 1.0]

    def test_lowest_insufficient_data(self):
        assert np.isnan(lowest([1.0, 2.0], 3)).all()


class TestRSI:
    """Tests for Wilder's RSI."""

    def test_rsi_rising_run_is_100(self):
        """Zero average loss gives exactly 100."""
        result = relative_strength_index([100.0 + i for i in range(30)], 14)

        assert np.isnan(result[:14]).all()
        assert (result[14:] == 100.0).all()

    def test_rsi_falling_run_is_0(self):
        result = relative_strength_index([100.0 - i for i in range(30)], 14)
        assert np.allclose(result[14:], 0.0)

    def test_rsi_bounds(self):
        rng = np.random.default_rng(42)
        prices = 100 + np.cumsum(rng.normal(0, 1, 500))
        result = relative_strength_index(prices, 14)

        defined = result[np.isfinite(result)]
        assert len(defined) == 500 - 14
        assert (defined >= 0).all()
        assert (defined <= 100).all()

    def test_rsi_short_input(self):
        assert np.isnan(relative_strength_index([100.0], 14)).all()
        assert np.isnan(relative_strength_index([100.0] * 10, 14)).all()


class TestMACD:
    """Tests for MACD."""

    def test_macd_constant_series_is_zero(self):
        result = macd([100.0] * 40)

        assert np.allclose(result.macd, 0.0)
        assert np.allclose(result.signal, 0.0)

    def test_macd_undefined_until_input_starts(self):
        result = macd([float("nan"), float("nan")] + [100.0 + i for i in range(30)])

        assert np.isnan(result.macd[:2]).all()
        assert np.isfinite(result.macd[2:]).all()
        assert len(result.signal) == 32


class TestLinearRegressionSlope:
    """Tests for rolling OLS slope."""

    def test_slope_of_line(self):
        values = [3.0 * i + 1.0 for i in range(20)]
        result = linear_regression_slope(values, 10)

        assert np.isnan(result[:9]).all()
        assert np.allclose(result[9:], 3.0)

    def test_slope_ignores_missing_points(self):
        values = [3.0 * i for i in range(10)]
        values[4] = float("nan")
        result = linear_regression_slope(values, 10)

        assert result[9] == pytest.approx(3.0)

    def test_slope_needs_two_points(self):
        values = [float("nan")] * 9 + [5.0]
        assert math.isnan(linear_regression_slope(values, 10)[9])
