"""Row-level signal assembly.

Merges the expanded daily indicators and the fine-grained VSA output into
one bundle keyed by row index. No windowing or weighting happens here.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Sequence

import numpy as np

from dipscore.errors import require_same_length
from dipscore.indicators.daily import PI_DEEP_LEVEL, DailyIndicators
from dipscore.indicators.vsa import VsaResult
from dipscore.models.bar import Bar


@dataclass(slots=True, frozen=True)
class SignalSeries:
    """Continuous/boolean series forwarded for scoring and display."""

    rsi: np.ndarray
    macd: np.ndarray
    macd_signal: np.ndarray
    macd_cross: np.ndarray
    sma7: np.ndarray
    sma30: np.ndarray
    sma90: np.ndarray
    sma_stack: np.ndarray
    prev_low_up: np.ndarray


@dataclass(slots=True, frozen=True)
class SignalFeatures:
    """Features derived at row level."""

    touch_lower: np.ndarray  # close <= daily Bollinger lower band
    bb_lower: np.ndarray
    vsa: np.ndarray  # VSA composite (bool)
    vsa_score: np.ndarray
    pi_ratio: np.ndarray
    pi_deep: np.ndarray  # experimental deep PI flag


@dataclass(slots=True, frozen=True)
class SignalAbsolutes:
    """Absolute-override flags; either one forces maximum confidence."""

    pi_buy: np.ndarray
    mvrvz_buy: np.ndarray

    @property
    def any(self) -> np.ndarray:
        return self.pi_buy | self.mvrvz_buy


def pi_deep_flags(pi_ratio: np.ndarray) -> np.ndarray:
    """Deep PI flag per row: pi_ratio defined and below PI_DEEP_LEVEL."""
    return np.isfinite(pi_ratio) & (pi_ratio < PI_DEEP_LEVEL)


@dataclass(slots=True, frozen=True)
class SignalBundle:
    """Everything the scorer reads, aligned 1:1 with the fine rows."""

    series: SignalSeries
    features: SignalFeatures
    absolutes: SignalAbsolutes

    def __len__(self) -> int:
        return len(self.features.touch_lower)

    def slice(self, start: int, stop: int) -> SignalBundle:
        """Return a bundle restricted to rows [start, stop)."""

        def cut(group):
            return type(group)(**{
                f.name: getattr(group, f.name)[start:stop] for f in fields(group)
            })

        return SignalBundle(
            series=cut(self.series),
            features=cut(self.features),
            absolutes=cut(self.absolutes),
        )


def assemble_signals(
    bars: Sequence[Bar],
    expanded: DailyIndicators,
    vsa: VsaResult,
) -> SignalBundle:
    """
    Build the per-row signal bundle.

    Args:
        bars: Fine-grained bars
        expanded: Daily indicators already expanded to the fine rows
        vsa: VSA detector output for the same bars

    Returns:
        SignalBundle

    Raises:
        ContractViolation: If the inputs are not aligned to the bars
    """
    n = len(bars)
    require_same_length("expanded daily indicators", n, len(expanded))
    require_same_length("vsa result", n, len(vsa))
    require_same_length("mvrvz_buy", n, len(expanded.mvrvz_buy))

    closes = np.array([b.close for b in bars], dtype=np.float64)
    bb_lower = expanded.bb_lower
    touch_lower = np.isfinite(bb_lower) & (closes <= bb_lower)

    return SignalBundle(
        series=SignalSeries(
            rsi=expanded.rsi,
            macd=expanded.macd,
            macd_signal=expanded.macd_signal,
            macd_cross=expanded.macd_cross.astype(bool),
            sma7=expanded.sma7,
            sma30=expanded.sma30,
            sma90=expanded.sma90,
            sma_stack=expanded.sma_stack.astype(bool),
            prev_low_up=expanded.prev_low_up.astype(bool),
        ),
        features=SignalFeatures(
            touch_lower=touch_lower,
            bb_lower=bb_lower,
            vsa=vsa.active,
            vsa_score=vsa.score,
            pi_ratio=expanded.pi_ratio,
            pi_deep=pi_deep_flags(expanded.pi_ratio),
        ),
        absolutes=SignalAbsolutes(
            pi_buy=expanded.pi_buy.astype(bool),
            mvrvz_buy=expanded.mvrvz_buy.astype(bool),
        ),
    )
