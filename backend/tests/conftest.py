"""Shared fixtures: a synthetic hourly V-shaped dip."""

import pytest

from dipscore.models import MS_PER_HOUR, Bar, BuyScanConfig, PipelineConfig, ScoreWeights

T0 = 1704067200000  # 2024-01-01 00:00 UTC

DIP_START = 90
DIP_CLOSES = [96.0, 92.0, 88.0, 84.0, 80.0]
RECOVERY_CLOSES = [85.0, 90.0, 95.0, 100.0, 105.0]


def _v_dip_bars() -> list[Bar]:
    """90 flat bars at 100, five falling bars on 10x volume, five rising bars."""
    bars = [
        Bar(timestamp=T0 + i * MS_PER_HOUR, open=100.0, high=100.5, low=99.5, close=100.0, volume=100.0)
        for i in range(DIP_START)
    ]
    prev_close = 100.0
    for close in DIP_CLOSES:
        bars.append(Bar(
            timestamp=T0 + len(bars) * MS_PER_HOUR,
            open=prev_close,
            high=prev_close + 0.5,
            low=close - 3.0,
            close=close,
            volume=1000.0,
        ))
        prev_close = close
    for close in RECOVERY_CLOSES:
        bars.append(Bar(
            timestamp=T0 + len(bars) * MS_PER_HOUR,
            open=prev_close,
            high=close + 0.5,
            low=prev_close - 0.5,
            close=close,
            volume=100.0,
        ))
        prev_close = close
    return bars


@pytest.fixture
def v_dip_bars() -> list[Bar]:
    return _v_dip_bars()


@pytest.fixture
def vsa_only_config() -> PipelineConfig:
    """Only the VSA component carries weight; threshold 50, 1h cooldown."""
    weights = ScoreWeights(
        bollinger=0, macd=0, vsa=1.0, sma_stack=0, prev_low_up=0,
        rsi10=0, rsi20=0, rsi30=0, pi_deep=0,
    )
    return PipelineConfig(
        score_weights=weights,
        buy=BuyScanConfig(threshold=50.0, peak_window_ms=48 * MS_PER_HOUR, cooldown_ms=MS_PER_HOUR),
    )
