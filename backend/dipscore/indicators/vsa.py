"""Volume Spread Analysis (bullish-side pattern detector).

Volume is normalised against its own trailing window (default 24 bars,
i.e. 24h on 1h data) and each bar is checked for eight independent
patterns. Patterns are not mutually exclusive: every active pattern adds
its weight to the bar's score, and the composite fires when the score
reaches the configured activation level.

Pattern gates (rng = high - low, close_pos = (close - low) / rng):

- stopping:      down bar, ultra-high volume, close in upper 65%, 3-bar downtrend
- no_supply:     down bar, ultra-low volume, narrow body, close in lower half
- test_bar:      narrow body, low volume, close in upper 35%, prior bar down
- shakeout:      up bar, high volume, lower wick > 55% of range, new low
- climactic:     down bar, ultra-high volume, very wide true range, close off the low
- spring:        new low, close in upper 35%, volume not high
- demand:        up bar, high volume, wide body closing near the high, range expansion
- effort_result: ultra-high volume, very narrow body, small net change (absorption)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from dipscore.indicators.indicators import (
    average_true_range,
    moving_average,
    standard_deviation,
    true_range,
)
from dipscore.models.bar import Bar, OhlcvColumns
from dipscore.models.config import DEFAULT_VSA_WINDOW, VsaWeights

logger = logging.getLogger(__name__)

PATTERNS = (
    "stopping",
    "no_supply",
    "test_bar",
    "shakeout",
    "climactic",
    "spring",
    "demand",
    "effort_result",
)

# Volume intensity gates
HIGH_VOLUME_Z = 0.5
ULTRA_HIGH_VOLUME_Z = 1.5
LOW_VOLUME_RATIO = 0.75
ULTRA_LOW_VOLUME_RATIO = 0.55

# Body narrowness (body / range)
NARROW_BODY = 0.35
VERY_NARROW_BODY = 0.20
WIDE_BODY = 0.5

# Close position within the bar's range
UPPER_65 = 0.35  # close_pos >= 0.35 -> closing in the upper 65%
UPPER_35 = 0.65  # close_pos >= 0.65 -> closing in the upper 35%
NEAR_HIGH = 0.75
LOWER_HALF = 0.5
LONG_LOWER_WICK = 0.55

# True range vs ATR
VERY_WIDE_ATR = 1.5
SMALL_RESULT_ATR = 0.25


def vsa_atr_period(window: int) -> int:
    """ATR period used for range context: max(5, round(window / 2))."""
    return max(5, int(math.floor(window / 2 + 0.5)))


@dataclass(slots=True, frozen=True)
class VsaResult:
    """Per-bar VSA output.

    Attributes:
        patterns: pattern name -> bool array
        score: summed weight of active patterns per bar
        active: score >= activation
    """

    patterns: dict[str, np.ndarray]
    score: np.ndarray
    active: np.ndarray

    def __len__(self) -> int:
        return len(self.score)

    def active_patterns(self, i: int) -> list[str]:
        """Names of the patterns that fired on bar i."""
        return [name for name in PATTERNS if self.patterns[name][i]]


def volume_zscore(volume: np.ndarray, ma: np.ndarray, sd: np.ndarray) -> np.ndarray:
    """(volume - ma) / sd, or volume / ma - 1 where sd is zero. NaN without a mean."""
    z = np.full(len(volume), np.nan, dtype=np.float64)
    has_ma = np.isfinite(ma) & (ma > 0) & np.isfinite(volume)
    with_sd = has_ma & np.isfinite(sd) & (sd > 0)
    flat = has_ma & ~with_sd
    z[with_sd] = (volume[with_sd] - ma[with_sd]) / sd[with_sd]
    z[flat] = volume[flat] / ma[flat] - 1.0
    return z


def detect_vsa(
    bars: Sequence[Bar] | OhlcvColumns,
    weights: VsaWeights | None = None,
    window: int = DEFAULT_VSA_WINDOW,
) -> VsaResult:
    """
    Run the eight-pattern VSA detector over a bar series.

    Bar 0 is never evaluated (no prior bar), and bars whose range is not a
    positive finite number are skipped; both score zero.

    Args:
        bars: Fine-grained bars (or their column view)
        weights: Pattern weights and activation level
        window: Volume normalisation window

    Returns:
        VsaResult aligned to the input bars
    """
    if window < 2:
        raise ValueError(f"window must be >= 2, got {window}")
    weights = weights or VsaWeights()
    cols = bars if isinstance(bars, OhlcvColumns) else OhlcvColumns.from_bars(bars)

    n = len(cols)
    o, h, l, c, v = cols.open, cols.high, cols.low, cols.close, cols.volume
    patterns = {name: np.zeros(n, dtype=bool) for name in PATTERNS}
    score = np.zeros(n, dtype=np.float64)

    if n == 0:
        return VsaResult(patterns=patterns, score=score, active=np.zeros(0, dtype=bool))

    vol_ma = moving_average(v, window)
    vol_sd = standard_deviation(v, window)
    z = volume_zscore(v, vol_ma, vol_sd)
    tr = true_range(h, l, c)
    atr = average_true_range(h, l, c, vsa_atr_period(window))
    pattern_weights = weights.pattern_weights()

    for i in range(1, n):
        rng = h[i] - l[i]
        if not math.isfinite(rng) or rng <= 0:
            continue

        ref_open = o[i] if math.isfinite(o[i]) else c[i - 1]
        body_ratio = abs(c[i] - ref_open) / rng
        close_pos = (c[i] - l[i]) / rng
        lower_wick = min(c[i], ref_open) - l[i]
        is_down = c[i] < ref_open
        is_up = c[i] > ref_open

        has_ma = math.isfinite(vol_ma[i]) and vol_ma[i] > 0
        hv = math.isfinite(z[i]) and z[i] >= HIGH_VOLUME_Z
        uhv = math.isfinite(z[i]) and z[i] >= ULTRA_HIGH_VOLUME_Z
        lv = has_ma and v[i] <= LOW_VOLUME_RATIO * vol_ma[i]
        ulv = has_ma and v[i] <= ULTRA_LOW_VOLUME_RATIO * vol_ma[i]

        downtrend = i >= 2 and c[i - 2] >= c[i - 1] >= c[i]
        prior_low = min(l[i - 1], l[i - 2]) if i >= 2 else l[i - 1]
        new_low = l[i] < prior_low
        prev_open = o[i - 1] if math.isfinite(o[i - 1]) else (c[i - 2] if i >= 2 else c[i - 1])
        prior_down = c[i - 1] < prev_open
        prior_range = h[i - 1] - l[i - 1]
        expands = math.isfinite(prior_range) and tr[i] > prior_range
        has_atr = math.isfinite(atr[i]) and atr[i] > 0
        very_wide = has_atr and tr[i] >= VERY_WIDE_ATR * atr[i]
        small_result = has_atr and abs(c[i] - c[i - 1]) <= SMALL_RESULT_ATR * atr[i]

        fired = {
            "stopping": is_down and uhv and close_pos >= UPPER_65 and downtrend,
            "no_supply": is_down and ulv and body_ratio < NARROW_BODY and close_pos <= LOWER_HALF,
            "test_bar": body_ratio < NARROW_BODY and lv and close_pos >= UPPER_35 and prior_down,
            "shakeout": is_up and hv and lower_wick > LONG_LOWER_WICK * rng and new_low,
            "climactic": is_down and uhv and very_wide and close_pos >= UPPER_65,
            "spring": new_low and close_pos >= UPPER_35 and not hv,
            "demand": (
                is_up and hv and body_ratio >= WIDE_BODY and close_pos >= NEAR_HIGH and expands
            ),
            "effort_result": uhv and body_ratio < VERY_NARROW_BODY and small_result,
        }

        for name, ok in fired.items():
            if ok:
                patterns[name][i] = True
                score[i] += pattern_weights[name]

    active = score >= weights.activation
    logger.debug(
        "VSA over %d bars (window=%d): %d bars scored, %d active",
        n,
        window,
        int((score > 0).sum()),
        int(active.sum()),
    )
    return VsaResult(patterns=patterns, score=score, active=active)

