"""Tests for daily indicator derivation and row expansion."""

from dataclasses import fields

import numpy as np
import pytest

from dipscore.errors import ContractViolation
from dipscore.indicators.daily import (
    compute_daily_indicators,
    expand,
    expand_daily_indicators,
    mvrvz_buy_flags,
)
from dipscore.models import MS_PER_DAY, MS_PER_HOUR, Bar
from dipscore.resample import resample_to_day

T0 = 1704067200000  # 2024-01-01 00:00 UTC


def make_daily_bars(closes, lows=None) -> list[Bar]:
    """Helper to create one bar per UTC day from a close series."""
    lows = lows if lows is not None else [c - 1.0 for c in closes]
    return [
        Bar(
            timestamp=T0 + i * MS_PER_DAY,
            open=c,
            high=c + 1.0,
            low=low,
            close=c,
            volume=1.0,
        )
        for i, (c, low) in enumerate(zip(closes, lows))
    ]


class TestDailyIndicators:
    """Tests for compute_daily_indicators."""

    def test_all_series_match_daily_length(self):
        daily = compute_daily_indicators(make_daily_bars([100.0] * 40))

        for f in fields(daily):
            if f.name == "mvrvz_buy":
                continue
            assert len(getattr(daily, f.name)) == 40, f.name

    def test_pi_ratio_flat_market(self):
        """SMA111 / (2 * SMA350) of a flat series is 0.5: no absolute buy."""
        daily = compute_daily_indicators(make_daily_bars([100.0] * 360))

        assert np.isnan(daily.pi_ratio[:349]).all()
        assert daily.pi_ratio[349] == pytest.approx(0.5)
        assert not daily.pi_buy.any()

    def test_pi_buy_after_collapse(self):
        """A long high regime followed by 111 low days drives the ratio under 0.30."""
        closes = [1000.0] * 239 + [100.0] * 111
        daily = compute_daily_indicators(make_daily_bars(closes))

        assert daily.pi_ratio[349] < 0.125
        assert daily.pi_buy[349]
        assert not daily.pi_buy[:349].any()

    def test_bollinger_lower_flat(self):
        daily = compute_daily_indicators(make_daily_bars([100.0] * 30))

        assert np.isnan(daily.bb_lower[:19]).all()
        assert np.allclose(daily.bb_lower[19:], 100.0)

    def test_sma_stack_needs_five_days(self):
        """SMA7 > SMA30 > SMA90 first holds on day 89; it must persist 5 days."""
        daily = compute_daily_indicators(make_daily_bars([float(i + 1) for i in range(120)]))

        assert not daily.sma_stack[:93].any()
        assert daily.sma_stack[93:].all()

    def test_single_macd_cross_after_turn(self):
        closes = [200.0 - i for i in range(60)] + [141.0 + 2 * (j + 1) for j in range(40)]
        daily = compute_daily_indicators(make_daily_bars(closes))

        crosses = np.flatnonzero(daily.macd_cross)
        assert len(crosses) == 1
        i = crosses[0]
        assert i >= 60
        assert daily.macd[i] > daily.macd_signal[i]
        assert daily.macd[i - 1] <= daily.macd_signal[i - 1]

    def test_pullback_in_uptrend(self):
        """Only the day whose low undercuts the prior 30-day low fires."""
        closes = [100.0 + i for i in range(130)]
        lows = [c - 1.0 for c in closes]
        lows[120] = 50.0
        daily = compute_daily_indicators(make_daily_bars(closes, lows))

        assert daily.prev_low_up[120]
        assert daily.prev_low_up.sum() == 1

    def test_rsi_of_rising_days(self):
        daily = compute_daily_indicators(make_daily_bars([100.0 + i for i in range(20)]))
        assert (daily.rsi[14:] == 100.0).all()


class TestMvrvzFlags:
    def test_flags_non_positive_values(self):
        flags = mvrvz_buy_flags([1.0, 0.0, -1.0, float("nan")], 4)
        assert list(flags) == [False, True, True, False]

    def test_absent_values_give_false_rows(self):
        flags = mvrvz_buy_flags(None, 5)
        assert flags.dtype == bool
        assert not flags.any()
        assert len(flags) == 5

    def test_length_mismatch_raises(self):
        with pytest.raises(ContractViolation):
            mvrvz_buy_flags([1.0, 2.0], 3)


class TestExpand:
    """Tests for projecting daily series onto fine rows."""

    def test_expand_basic(self):
        result = expand(np.array([10.0, 20.0, 30.0]), np.array([0, 0, 1, 2, 2]))
        assert list(result) == [10.0, 10.0, 20.0, 30.0, 30.0]

    def test_expand_out_of_range_raises(self):
        with pytest.raises(ContractViolation, match="bucket 3"):
            expand(np.array([1.0, 2.0]), np.array([0, 1, 3]))

    def test_expand_empty_map(self):
        assert len(expand(np.array([1.0]), np.array([], dtype=np.int64))) == 0

    def test_expand_composes_with_resample(self):
        """Row i sees exactly the value of the day containing bar i."""
        bars = [
            Bar(
                timestamp=T0 + 5 * MS_PER_HOUR + i * MS_PER_HOUR,
                open=100.0 + i, high=101.0 + i, low=99.0 + i, close=100.0 + i,
                volume=1.0,
            )
            for i in range(24 * 30)
        ]
        daily = resample_to_day(bars)
        indicators = compute_daily_indicators(daily.bars, n_rows=len(bars))
        expanded = expand_daily_indicators(indicators, daily.index_map)

        assert len(expanded) == len(bars)
        for i in (0, 18, 19, 300, len(bars) - 1):
            day = daily.index_map[i]
            np.testing.assert_equal(expanded.sma7[i], indicators.sma7[day])
            assert expanded.rsi[i] == indicators.rsi[day] or np.isnan(indicators.rsi[day])
        assert len(expanded.mvrvz_buy) == len(bars)

    def test_expand_rejects_misaligned_mvrvz(self):
        daily_bars = make_daily_bars([100.0] * 3)
        indicators = compute_daily_indicators(daily_bars, n_rows=5)
        with pytest.raises(ContractViolation):
            expand_daily_indicators(indicators, np.array([0, 1, 2]))
