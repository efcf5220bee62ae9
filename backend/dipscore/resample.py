"""Bar resampler for folding fine bars into coarser buckets.

Aggregation rules (same for every bucket width):
- open: first bar's open
- high/low: bucket extrema
- close: last bar's close
- volume: sum (non-finite volumes count as 0)

Daily buckets are UTC calendar days; fixed-width buckets are aligned by
integer floor-division of the timestamp. A bucket is closed when a bar
with a different key arrives, and the last open bucket is always
flushed, so no input bar is ever lost.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, Sequence

import numpy as np

from dipscore.errors import ContractViolation
from dipscore.models.bar import Bar

logger = logging.getLogger(__name__)


def utc_day_start(timestamp_ms: int) -> int:
    """Return the UTC midnight (ms) of the day containing ``timestamp_ms``."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    midnight = datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)
    return int(midnight.timestamp()) * 1000


def bucket_start(timestamp_ms: int, bucket_ms: int) -> int:
    """Get the bucket start timestamp for a given bar timestamp."""
    return (timestamp_ms // bucket_ms) * bucket_ms


def _finite_volume(volume: float) -> float:
    return volume if math.isfinite(volume) else 0.0


@dataclass
class BucketBar:
    """One aggregated bucket.

    ``extras`` holds caller-supplied per-row values, taken from the
    bucket's last contributing row (last known value, not aggregated).
    """

    timestamp: int  # bucket start, ms
    open: float
    high: float
    low: float
    close: float
    volume: float
    extras: dict[str, float] = field(default_factory=dict)

    def add(self, bar: Bar) -> None:
        """Fold another bar of the same bucket into this one."""
        if bar.high > self.high:
            self.high = bar.high
        if bar.low < self.low:
            self.low = bar.low
        self.close = bar.close
        self.volume += _finite_volume(bar.volume)

    def to_bar(self) -> Bar:
        return Bar(
            timestamp=self.timestamp,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )

    @classmethod
    def start(cls, key: int, bar: Bar) -> BucketBar:
        return cls(
            timestamp=key,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=_finite_volume(bar.volume),
        )


@dataclass(slots=True, frozen=True)
class ResampleResult:
    """Coarse bars plus the fine-row -> bucket index map."""

    bars: list[Bar]
    index_map: np.ndarray  # int64, one entry per fine bar

    def __len__(self) -> int:
        return len(self.bars)


def _check_ordering(bars: Sequence[Bar]) -> None:
    for i in range(1, len(bars)):
        if bars[i].timestamp <= bars[i - 1].timestamp:
            raise ContractViolation(
                f"bars must have strictly increasing timestamps: "
                f"bar {i} ({bars[i].timestamp}) <= bar {i - 1} ({bars[i - 1].timestamp})"
            )


def _fold(
    bars: Sequence[Bar],
    key_of: Callable[[int], int],
    extras: Mapping[str, Sequence[float]] | None = None,
) -> tuple[list[BucketBar], np.ndarray]:
    _check_ordering(bars)
    index_map = np.zeros(len(bars), dtype=np.int64)
    if not bars:
        return [], index_map

    extras = extras or {}
    buckets: list[BucketBar] = []
    current_key = key_of(bars[0].timestamp)
    current = BucketBar.start(current_key, bars[0])

    for i, bar in enumerate(bars):
        key = key_of(bar.timestamp)
        if key != current_key:
            buckets.append(current)
            current_key = key
            current = BucketBar.start(key, bar)
        elif i > 0:
            current.add(bar)

        index_map[i] = len(buckets)

        for name, series in extras.items():
            if i < len(series):
                current.extras[name] = float(series[i])

    buckets.append(current)
    return buckets, index_map


def resample_to_day(bars: Sequence[Bar]) -> ResampleResult:
    """
    Fold bars into UTC calendar days.

    Args:
        bars: Bars sorted by strictly increasing timestamp

    Returns:
        ResampleResult with daily bars (timestamp = UTC midnight) and the
        index map from each input bar to its day

    Raises:
        ContractViolation: If timestamps are not strictly increasing
    """
    buckets, index_map = _fold(bars, utc_day_start)
    daily = [b.to_bar() for b in buckets]
    logger.debug("Resampled %d bars into %d UTC days", len(bars), len(daily))
    return ResampleResult(bars=daily, index_map=index_map)


def resample_to_bucket(
    bars: Sequence[Bar],
    bucket_ms: int,
    extras: Mapping[str, Sequence[float]] | None = None,
) -> list[BucketBar]:
    """
    Fold bars into fixed-width buckets (e.g. 4 hours for display).

    Args:
        bars: Bars sorted by strictly increasing timestamp
        bucket_ms: Bucket width in milliseconds
        extras: Optional per-row series merged into each bucket by taking
            the value of the bucket's last contributing row

    Returns:
        List of BucketBar

    Raises:
        ValueError: If bucket_ms is not positive
        ContractViolation: If timestamps are not strictly increasing
    """
    if bucket_ms <= 0:
        raise ValueError(f"bucket_ms must be positive, got {bucket_ms}")

    buckets, _ = _fold(bars, lambda ts: bucket_start(ts, bucket_ms), extras)
    return buckets

