"""End-to-end pipeline: bars in, confidence series and buy events out.

Indicators always run over the full bar sequence. Scoring and buy
extraction run over an optional row window, so a caller can look at a
slice without losing the history the daily indicators need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from dipscore.buy_events import extract_buy_events
from dipscore.errors import ContractViolation
from dipscore.indicators.daily import (
    DailyIndicators,
    compute_daily_indicators,
    expand_daily_indicators,
)
from dipscore.indicators.vsa import VsaResult, detect_vsa
from dipscore.models.bar import Bar, OhlcvColumns, mvrvz_column
from dipscore.models.config import PipelineConfig
from dipscore.models.signal import BuyEvent
from dipscore.resample import ResampleResult, resample_to_day
from dipscore.scoring import score_series
from dipscore.signals import SignalBundle, assemble_signals

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PipelineResult:
    """Every intermediate series of one run, keyed by row index.

    ``daily``, ``daily_indicators``, ``expanded``, ``vsa`` and ``bundle``
    cover all input rows. ``confidence``, ``contributions`` and
    ``buy_events`` cover rows ``[start, start + len(confidence))`` and
    their indices are relative to ``start``.
    """

    daily: ResampleResult
    daily_indicators: DailyIndicators
    expanded: DailyIndicators
    vsa: VsaResult
    bundle: SignalBundle
    start: int
    timestamps: np.ndarray
    confidence: np.ndarray
    contributions: list[dict[str, float] | None]
    buy_events: list[BuyEvent]

    @property
    def stop(self) -> int:
        return self.start + len(self.confidence)


def _resolve_window(window: slice | tuple[int, int] | None, n: int) -> tuple[int, int]:
    if window is None:
        return 0, n
    if isinstance(window, slice):
        start, stop, step = window.indices(n)
        if step != 1:
            raise ValueError("row window must be contiguous (step 1)")
    else:
        start, stop = window
        if not 0 <= start <= n or not 0 <= stop <= n:
            raise ContractViolation(f"row window {window} is outside [0, {n}]")
    return start, max(start, stop)


def run_pipeline(
    bars: Sequence[Bar],
    config: PipelineConfig | None = None,
    window: slice | tuple[int, int] | None = None,
) -> PipelineResult:
    """
    Run every stage over ``bars``.

    Args:
        bars: Validated bars, strictly increasing in time
        config: Pipeline configuration (defaults when None)
        window: Optional row range to score, as a slice or (start, stop)

    Returns:
        PipelineResult

    Raises:
        ContractViolation: If bars are unordered or the window is out of range
    """
    config = config or PipelineConfig()
    bars = list(bars)
    n = len(bars)

    daily = resample_to_day(bars)

    mvrvz = mvrvz_column(bars)
    has_mvrvz = bool(np.isfinite(mvrvz).any())
    daily_indicators = compute_daily_indicators(
        daily.bars,
        mvrvz=mvrvz if has_mvrvz else None,
        n_rows=n,
    )
    expanded = expand_daily_indicators(daily_indicators, daily.index_map)

    columns = OhlcvColumns.from_bars(bars)
    vsa = detect_vsa(columns, config.vsa_weights, config.vsa_window)
    bundle = assemble_signals(bars, expanded, vsa)

    start, stop = _resolve_window(window, n)
    scored = score_series(bundle.slice(start, stop), config.score_weights)
    timestamps = columns.timestamps[start:stop]
    buy_events = extract_buy_events(
        timestamps,
        scored.confidence,
        scored.contributions,
        config.buy,
    )

    logger.info(
        "Pipeline: %d bars, %d days, rows [%d, %d) scored, %d buy events",
        n,
        len(daily),
        start,
        stop,
        len(buy_events),
    )

    return PipelineResult(
        daily=daily,
        daily_indicators=daily_indicators,
        expanded=expanded,
        vsa=vsa,
        bundle=bundle,
        start=start,
        timestamps=timestamps,
        confidence=scored.confidence,
        contributions=scored.contributions,
        buy_events=buy_events,
    )
