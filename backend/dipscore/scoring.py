"""Confidence scoring.

Each bar's confidence is a weighted blend of boolean components scaled
to BLENDED_CAP, unless an absolute override fires, in which case it is
exactly ABSOLUTE_CAP with no breakdown.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from dipscore.models.config import ABSOLUTE_CAP, BLENDED_CAP, ScoreWeights
from dipscore.models.signal import ScoreResult
from dipscore.signals import SignalBundle

logger = logging.getLogger(__name__)

COMPONENTS = ("bollinger", "macd", "rsi", "vsa", "sma_stack", "prev_low_up", "pi_deep")

# RSI tiers, checked in order; the first bound the value satisfies wins
RSI_TIERS = ((10.0, "rsi10"), (20.0, "rsi20"), (30.0, "rsi30"))


def _rsi_tier_weight(rsi: float, weights: ScoreWeights) -> float | None:
    """Weight of the first RSI tier ``rsi`` falls in, or None."""
    if not math.isfinite(rsi):
        return None
    for bound, field_name in RSI_TIERS:
        if rsi <= bound:
            return getattr(weights, field_name)
    return None


def score_bar(i: int, bundle: SignalBundle, weights: ScoreWeights) -> ScoreResult:
    """
    Score bar ``i`` of a signal bundle.

    Every component adds its weight to the maximum possible score and,
    when its condition holds, to the raw score. The RSI component only
    counts when a tier matches (its matching tier weight is added to
    both). Confidence is ``raw / max * BLENDED_CAP`` (0 when max is 0).

    Args:
        i: Row index
        bundle: Assembled signals
        weights: Component weights

    Returns:
        ScoreResult (contributions None for absolute overrides)
    """
    if bundle.absolutes.pi_buy[i] or bundle.absolutes.mvrvz_buy[i]:
        return ScoreResult(confidence=ABSOLUTE_CAP, contributions=None)

    contributions: dict[str, float] = {}
    raw = 0.0
    max_possible = 0.0

    def add(name: str, active: bool, weight: float) -> None:
        nonlocal raw, max_possible
        value = weight if active else 0.0
        raw += value
        max_possible += weight
        contributions[name] = value

    add("bollinger", bool(bundle.features.touch_lower[i]), weights.bollinger)
    add("macd", bool(bundle.series.macd_cross[i]), weights.macd)

    tier_weight = _rsi_tier_weight(float(bundle.series.rsi[i]), weights)
    if tier_weight is None:
        contributions["rsi"] = 0.0
    else:
        add("rsi", True, tier_weight)

    add("vsa", bool(bundle.features.vsa[i]), weights.vsa)
    add("sma_stack", bool(bundle.series.sma_stack[i]), weights.sma_stack)
    add("prev_low_up", bool(bundle.series.prev_low_up[i]), weights.prev_low_up)
    add("pi_deep", bool(bundle.features.pi_deep[i]), weights.pi_deep)

    if max_possible == 0:
        confidence = 0.0
    else:
        confidence = min(BLENDED_CAP, raw / max_possible * BLENDED_CAP)
    return ScoreResult(confidence=confidence, contributions=contributions)


@dataclass(slots=True, frozen=True)
class ConfidenceSeries:
    """Confidence per row plus the per-row contribution maps."""

    confidence: np.ndarray
    contributions: list[dict[str, float] | None]

    def __len__(self) -> int:
        return len(self.confidence)


def score_series(bundle: SignalBundle, weights: ScoreWeights) -> ConfidenceSeries:
    """Score every row of ``bundle``. Weights are read once, never mutated."""
    weights = weights.model_copy()
    n = len(bundle)
    confidence = np.zeros(n, dtype=np.float64)
    contributions: list[dict[str, float] | None] = [None] * n

    for i in range(n):
        result = score_bar(i, bundle, weights)
        confidence[i] = result.confidence
        contributions[i] = result.contributions

    if n:
        logger.debug(
            "Scored %d rows: %d absolute, max blended %.2f",
            n,
            int(np.sum(confidence == ABSOLUTE_CAP)),
            float(np.max(np.where(confidence < ABSOLUTE_CAP, confidence, 0.0))),
        )
    return ConfidenceSeries(confidence=confidence, contributions=contributions)
