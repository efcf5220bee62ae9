"""Daily-timeframe indicators and their projection onto the fine row grid.

Indicators are computed on UTC-daily bars (see dipscore.resample) and
then expanded back to one value per fine row with the resampler's index
map, so every row sees the value of the day it belongs to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Sequence

import numpy as np

from dipscore.errors import ContractViolation, require_same_length
from dipscore.indicators.indicators import (
    linear_regression_slope,
    lowest,
    macd,
    moving_average,
    relative_strength_index,
    standard_deviation,
)
from dipscore.models.bar import Bar

logger = logging.getLogger(__name__)

SMA_PERIODS = (7, 30, 90, 111, 350)

PI_BUY_LEVEL = 0.30  # absolute buy when SMA111 / (2 * SMA350) <= this
PI_DEEP_LEVEL = 0.125  # experimental deep level (strictly below)

BOLLINGER_PERIOD = 20
BOLLINGER_STDDEV = 2.0

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

RSI_PERIOD = 14

SMA_STACK_PERSIST_DAYS = 5
ROLLING_LOW_DAYS = 30
TREND_SLOPE_WINDOW = 10


@dataclass(slots=True, frozen=True)
class DailyIndicators:
    """Daily-resolution indicator series (one entry per daily bar).

    ``mvrvz_buy`` is the exception: it is already aligned to the fine
    rows and is passed through unchanged by :func:`expand_daily_indicators`.
    """

    sma7: np.ndarray
    sma30: np.ndarray
    sma90: np.ndarray
    sma111: np.ndarray
    sma350: np.ndarray
    pi_ratio: np.ndarray
    pi_buy: np.ndarray
    bb_lower: np.ndarray
    macd: np.ndarray
    macd_signal: np.ndarray
    macd_cross: np.ndarray
    rsi: np.ndarray
    sma_stack: np.ndarray
    prev_low_up: np.ndarray
    mvrvz_buy: np.ndarray

    def __len__(self) -> int:
        return len(self.sma7)


def _pi_ratio(sma111: np.ndarray, sma350: np.ndarray) -> np.ndarray:
    valid = np.isfinite(sma111) & np.isfinite(sma350) & (sma350 != 0)
    safe_den = np.where(valid, 2.0 * sma350, 1.0)
    return np.where(valid, sma111 / safe_den, np.nan)


def _bullish_cross(line: np.ndarray, signal: np.ndarray) -> np.ndarray:
    """MACD at or below signal on the prior day, strictly above today."""
    cross = np.zeros(len(line), dtype=bool)
    if len(line) < 2:
        return cross
    finite = np.isfinite(line) & np.isfinite(signal)
    cross[1:] = (
        finite[1:]
        & finite[:-1]
        & (line[1:] > signal[1:])
        & (line[:-1] <= signal[:-1])
    )
    return cross


def _persistence(condition: np.ndarray, days: int) -> np.ndarray:
    """True once ``condition`` has held for ``days`` consecutive entries."""
    out = np.zeros(len(condition), dtype=bool)
    run = 0
    for i, ok in enumerate(condition):
        run = run + 1 if ok else 0
        out[i] = run >= days
    return out


def _pullback_in_uptrend(lows: np.ndarray, sma90: np.ndarray) -> np.ndarray:
    """Today's low touched yesterday's 30-day rolling low while SMA90 slopes up."""
    n = len(lows)
    roll_low = lowest(lows, ROLLING_LOW_DAYS)
    slope90 = linear_regression_slope(sma90, TREND_SLOPE_WINDOW)
    up90 = np.isfinite(slope90) & (slope90 > 0)

    touched = np.zeros(n, dtype=bool)
    if n > 1:
        prior = roll_low[:-1]
        today = lows[1:]
        touched[1:] = np.isfinite(prior) & np.isfinite(today) & (today <= prior)
    return touched & up90


def mvrvz_buy_flags(mvrvz: Sequence[float] | None, n_rows: int) -> np.ndarray:
    """Row-level absolute buy flag ``mvrvz <= 0``; False where no value is given."""
    if mvrvz is None:
        return np.zeros(n_rows, dtype=bool)
    values = np.asarray(mvrvz, dtype=np.float64)
    require_same_length("mvrvz", n_rows, len(values))
    return np.isfinite(values) & (values <= 0)


def compute_daily_indicators(
    daily_bars: Sequence[Bar],
    mvrvz: Sequence[float] | None = None,
    n_rows: int | None = None,
) -> DailyIndicators:
    """
    Compute the daily indicator set.

    Args:
        daily_bars: UTC-daily bars (from resample_to_day)
        mvrvz: Optional row-level MVRV-Z values, aligned to the fine rows
        n_rows: Number of fine rows (required when mvrvz is None and the
            row-level flag should still be sized; defaults to len(mvrvz) or 0)

    Returns:
        DailyIndicators
    """
    closes = np.array([b.close for b in daily_bars], dtype=np.float64)
    lows = np.array([b.low for b in daily_bars], dtype=np.float64)

    sma7, sma30, sma90, sma111, sma350 = (moving_average(closes, p) for p in SMA_PERIODS)

    pi_ratio = _pi_ratio(sma111, sma350)
    pi_buy = np.isfinite(pi_ratio) & (pi_ratio <= PI_BUY_LEVEL)

    bb_mid = moving_average(closes, BOLLINGER_PERIOD)
    bb_sd = standard_deviation(closes, BOLLINGER_PERIOD)
    bb_lower = bb_mid - BOLLINGER_STDDEV * bb_sd

    macd_result = macd(closes, MACD_FAST, MACD_SLOW, MACD_SIGNAL)
    macd_cross = _bullish_cross(macd_result.macd, macd_result.signal)

    rsi = relative_strength_index(closes, RSI_PERIOD)

    with np.errstate(invalid="ignore"):
        stacked = (sma30 > sma90) & (sma7 > sma30)
    sma_stack = _persistence(stacked, SMA_STACK_PERSIST_DAYS)

    prev_low_up = _pullback_in_uptrend(lows, sma90)

    if n_rows is None:
        n_rows = len(mvrvz) if mvrvz is not None else 0
    mvrvz_buy = mvrvz_buy_flags(mvrvz, n_rows)

    logger.debug(
        "Daily indicators over %d days: %d pi-buy days, %d macd crosses, %d stacked days",
        len(daily_bars),
        int(pi_buy.sum()),
        int(macd_cross.sum()),
        int(sma_stack.sum()),
    )

    return DailyIndicators(
        sma7=sma7,
        sma30=sma30,
        sma90=sma90,
        sma111=sma111,
        sma350=sma350,
        pi_ratio=pi_ratio,
        pi_buy=pi_buy,
        bb_lower=bb_lower,
        macd=macd_result.macd,
        macd_signal=macd_result.signal,
        macd_cross=macd_cross,
        rsi=rsi,
        sma_stack=sma_stack,
        prev_low_up=prev_low_up,
        mvrvz_buy=mvrvz_buy,
    )


# =============================================================================
# Row expansion
# =============================================================================

def expand(daily_series: np.ndarray, index_map: np.ndarray) -> np.ndarray:
    """
    Project a daily series onto the fine rows: ``out[i] = daily[index_map[i]]``.

    Raises:
        ContractViolation: If any index is outside the daily series
    """
    daily_series = np.asarray(daily_series)
    index_map = np.asarray(index_map, dtype=np.int64)
    if len(index_map) == 0:
        return daily_series[:0].copy()
    lo, hi = int(index_map.min()), int(index_map.max())
    if lo < 0 or hi >= len(daily_series):
        raise ContractViolation(
            f"index map references bucket {hi if hi >= len(daily_series) else lo} "
            f"but the daily series has {len(daily_series)} entries"
        )
    return daily_series[index_map]


def expand_daily_indicators(daily: DailyIndicators, index_map: np.ndarray) -> DailyIndicators:
    """Expand every daily series to row resolution (mvrvz_buy passes through)."""
    expanded = {}
    for f in fields(daily):
        series = getattr(daily, f.name)
        if f.name == "mvrvz_buy":
            require_same_length("mvrvz_buy", len(index_map), len(series))
            expanded[f.name] = series.copy()
        else:
            expanded[f.name] = expand(series, index_map)
    return DailyIndicators(**expanded)
