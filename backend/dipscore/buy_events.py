"""Buy-event extraction from a confidence series.

A single left-to-right scan. A rising edge through the threshold arms an
episode; within the episode the first bar with no strictly higher
confidence ahead of it (inside the forward-peak window) is the episode's
candidate, and it is accepted only if the cooldown since the last
accepted event has elapsed. A rejected candidate ends its episode.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from dipscore.errors import require_same_length
from dipscore.models.config import BuyScanConfig
from dipscore.models.signal import BuyEvent

logger = logging.getLogger(__name__)


def _has_higher_ahead(
    i: int,
    timestamps: np.ndarray,
    confidence: np.ndarray,
    window_ms: int,
) -> bool:
    """True if a bar in (ts[i], ts[i] + window_ms] has strictly higher confidence."""
    stop = int(np.searchsorted(timestamps, timestamps[i] + window_ms, side="right"))
    ahead = confidence[i + 1:stop]
    return bool(np.any(ahead > confidence[i]))


def extract_buy_events(
    timestamps: Sequence[int],
    confidence: Sequence[float],
    contributions: Sequence[dict[str, float] | None] | None = None,
    config: BuyScanConfig | None = None,
) -> list[BuyEvent]:
    """
    Extract buy events from a confidence series.

    Args:
        timestamps: Row timestamps in ms, strictly increasing
        confidence: Confidence per row
        contributions: Optional per-row contribution maps, copied onto events
        config: Threshold, forward-peak window and cooldown

    Returns:
        Accepted events in time order

    Raises:
        ContractViolation: If the series lengths differ
    """
    config = config or BuyScanConfig()
    ts = np.asarray(timestamps, dtype=np.int64)
    conf = np.asarray(confidence, dtype=np.float64)
    require_same_length("confidence", len(ts), len(conf))
    if contributions is not None:
        require_same_length("contributions", len(ts), len(contributions))

    # NaN compares False, so an undefined confidence counts as below threshold
    above = conf >= config.threshold

    events: list[BuyEvent] = []
    last_accepted_ts: int | None = None
    armed = False

    for i in range(1, len(conf)):
        if not above[i]:
            armed = False
            continue
        if not above[i - 1]:
            armed = True
        if not armed:
            continue

        if _has_higher_ahead(i, ts, conf, config.peak_window_ms):
            continue

        # Peak found: this episode yields at most this one candidate
        armed = False
        if last_accepted_ts is not None and ts[i] - last_accepted_ts < config.cooldown_ms:
            logger.debug(
                "Buy candidate at row %d (%.2f) rejected: %d ms since last event < cooldown %d ms",
                i,
                conf[i],
                ts[i] - last_accepted_ts,
                config.cooldown_ms,
            )
            continue

        row_contrib = contributions[i] if contributions is not None else None
        events.append(
            BuyEvent(
                timestamp=int(ts[i]),
                index=i,
                confidence=float(conf[i]),
                contributions=dict(row_contrib) if row_contrib is not None else None,
            )
        )
        last_accepted_ts = int(ts[i])

    logger.debug(
        "Extracted %d buy events from %d rows (threshold=%.1f)",
        len(events),
        len(conf),
        config.threshold,
    )
    return events
