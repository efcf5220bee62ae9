"""Technical indicators (pure math, no I/O).

Every function takes sequences of floats and returns a newly allocated
``numpy.ndarray`` with exactly one entry per input value. Positions
without enough history (or without a valid computation) hold NaN;
nothing is ever dropped, so outputs can always be zipped by index.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _nan_series(n: int) -> np.ndarray:
    return np.full(n, np.nan, dtype=np.float64)


# =============================================================================
# Averages and dispersion
# =============================================================================

def moving_average(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate Simple Moving Average with a running sum.

    Non-finite inputs count as zero in the sum, so the window length
    stays ``period`` regardless of gaps.

    Args:
        values: Sequence of values
        period: SMA period

    Returns:
        Array of SMA values (NaN until ``period`` values have been seen)
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n == 0 or period <= 0:
        return result

    clean = np.where(np.isfinite(arr), arr, 0.0)
    running = 0.0
    for i in range(n):
        running += clean[i]
        if i >= period:
            running -= clean[i - period]
        if i >= period - 1:
            result[i] = running / period

    return result


def exponential_average(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate Exponential Moving Average.

    Seeds at the first finite input; a missing input reuses the previous
    output, so every position from the seed onward is defined.

    Args:
        values: Sequence of values
        period: EMA period (k = 2 / (period + 1))

    Returns:
        Array of EMA values
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n == 0 or period <= 0:
        return result

    k = 2.0 / (period + 1)
    prev = math.nan
    for i in range(n):
        v = arr[i] if math.isfinite(arr[i]) else prev
        prev = v * k + prev * (1 - k) if math.isfinite(prev) else v
        result[i] = prev

    return result


def standard_deviation(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate the population standard deviation of the trailing window.

    Deviations are taken against :func:`moving_average` of the same
    window; non-finite inputs are skipped.

    Args:
        values: Sequence of values
        period: Window length

    Returns:
        Array of standard deviations (NaN while the window is not full)
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n == 0 or period <= 0:
        return result

    ma = moving_average(arr, period)
    for i in range(period - 1, n):
        if not math.isfinite(ma[i]):
            continue
        window = arr[i - period + 1 : i + 1]
        window = window[np.isfinite(window)]
        if len(window):
            result[i] = math.sqrt(float(np.mean((window - ma[i]) ** 2)))

    return result


# =============================================================================
# Range based
# =============================================================================

def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> np.ndarray:
    """
    Calculate True Range.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))

    The first bar (no previous close) uses high - low.
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    n = len(h)
    if n == 0:
        return _nan_series(0)

    result = h - l
    if n > 1:
        prev_close = c[:-1]
        result[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
    return result


def average_true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> np.ndarray:
    """
    Calculate Average True Range (ATR).

    The first ``period`` true ranges are averaged cumulatively as the seed;
    Wilder's smoothing ``(prev * (period - 1) + tr) / period`` follows.
    A bar with missing high/low carries the previous ATR forward; a
    missing close is replaced by the last seen close.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        closes: Sequence of close prices
        period: ATR period

    Returns:
        Array of ATR values
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    n = len(c)
    result = _nan_series(n)
    if n == 0 or period <= 0:
        return result

    prev_close = c[0] if math.isfinite(c[0]) else math.nan
    running = 0.0
    seeded = False
    prev_atr = math.nan

    for i in range(n):
        cl = c[i] if math.isfinite(c[i]) else prev_close

        if not (math.isfinite(h[i]) and math.isfinite(l[i])):
            result[i] = prev_atr if seeded else (result[i - 1] if i > 0 else math.nan)
            prev_close = cl if math.isfinite(cl) else prev_close
            continue

        tr_base = h[i] - l[i]
        if math.isfinite(prev_close):
            tr = max(tr_base, abs(h[i] - prev_close), abs(l[i] - prev_close))
        else:
            tr = tr_base

        if not seeded:
            running += tr
            result[i] = running / (i + 1)
            if i + 1 >= period:
                seeded = True
                prev_atr = result[i]
        else:
            prev_atr = (prev_atr * (period - 1) + tr) / period if math.isfinite(prev_atr) else tr
            result[i] = prev_atr

        prev_close = cl

    return result


def lowest(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate the lowest finite value over the lookback period.

    Args:
        values: Sequence of values (typically lows)
        period: Lookback period

    Returns:
        Array of rolling minima (NaN until the window is full)
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n < period or period <= 0:
        return result

    for i in range(period - 1, n):
        window = arr[i - period + 1 : i + 1]
        window = window[np.isfinite(window)]
        if len(window):
            result[i] = np.min(window)

    return result


# =============================================================================
# Oscillators
# =============================================================================

def relative_strength_index(values: Sequence[float], period: int = 14) -> np.ndarray:
    """
    Calculate Wilder's RSI.

    Gains and losses of the first ``period`` deltas are averaged, then
    smoothed with ``(prev * (period - 1) + x) / period``. A zero average
    loss yields exactly 100.

    Args:
        values: Sequence of prices
        period: RSI period

    Returns:
        Array of RSI values in [0, 100] (NaN before index ``period``)
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n < 2 or period <= 0:
        return result

    deltas = np.diff(arr)
    seed = deltas[: min(period, n - 1)]
    avg_gain = float(np.sum(np.clip(seed, 0, None))) / period
    avg_loss = float(np.sum(np.clip(-seed, 0, None))) / period

    for i in range(period, n):
        if i > period:
            ch = deltas[i - 1]
            avg_gain = (avg_gain * (period - 1) + max(ch, 0.0)) / period
            avg_loss = (avg_loss * (period - 1) + max(-ch, 0.0)) / period
        if avg_loss == 0:
            result[i] = 100.0
        else:
            rs = avg_gain / avg_loss
            result[i] = 100.0 - 100.0 / (1.0 + rs)

    return result


@dataclass(slots=True, frozen=True)
class MacdResult:
    """MACD line and its signal line."""

    macd: np.ndarray
    signal: np.ndarray


def macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MacdResult:
    """
    Calculate MACD = EMA(fast) - EMA(slow) and its EMA signal line.

    The MACD line is NaN wherever either average is undefined.
    """
    fast = exponential_average(values, fast_period)
    slow = exponential_average(values, slow_period)
    line = np.where(np.isfinite(fast) & np.isfinite(slow), fast - slow, np.nan)
    return MacdResult(macd=line, signal=exponential_average(line, signal_period))


def linear_regression_slope(values: Sequence[float], window: int = 10) -> np.ndarray:
    """
    Calculate the least-squares slope of (offset, value) over a trailing window.

    Non-finite values are ignored; at least 2 valid points are required.

    Args:
        values: Sequence of values
        window: Window length

    Returns:
        Array of slopes (value units per bar)
    """
    arr = _as_array(values)
    n = len(arr)
    result = _nan_series(n)
    if n == 0 or window <= 1:
        return result

    xs = np.arange(window, dtype=np.float64)
    for i in range(window - 1, n):
        ys = arr[i - window + 1 : i + 1]
        mask = np.isfinite(ys)
        cnt = int(mask.sum())
        if cnt < 2:
            continue
        x = xs[mask]
        y = ys[mask]
        denom = cnt * np.dot(x, x) - x.sum() ** 2
        if denom != 0:
            result[i] = (cnt * np.dot(x, y) - x.sum() * y.sum()) / denom

    return result
