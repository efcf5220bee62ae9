"""ScanRunner: orchestrates one scan of a bar file.

Uses:
- dipscan.loader for CSV ingestion
- dipscore for the pure indicator/scoring pipeline

Indicators are computed over the whole file; scoring, buy extraction
and the 4-hour display cover the visible window only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from dipscore.models.bar import Bar
from dipscore.models.config import FOUR_HOURS_MS, MS_PER_DAY, PipelineConfig
from dipscore.models.signal import BuyEvent
from dipscore.pipeline import PipelineResult, run_pipeline
from dipscore.resample import BucketBar, bucket_start, resample_to_bucket

from dipscan.loader import load_bars

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class WindowSelection:
    """Visible row range [start, stop) and the clamped window parameters."""

    start: int
    stop: int
    window_days: int
    offset_days: int
    first_ts: int
    last_ts: int

    def __len__(self) -> int:
        return self.stop - self.start


def select_window(
    timestamps: Sequence[int],
    window_days: int,
    offset_days: int = 0,
) -> WindowSelection:
    """
    Select the last ``window_days`` of data, shifted back by ``offset_days``.

    The window is clamped to the data span (at least one day), and the
    offset is clamped so the window never runs past the first bar.

    Args:
        timestamps: Row timestamps in ms, ascending
        window_days: Requested window length in days
        offset_days: Requested shift back from the last bar, in days

    Returns:
        WindowSelection

    Raises:
        ValueError: If window_days is less than 1
    """
    if window_days < 1:
        raise ValueError(f"window_days must be >= 1, got {window_days}")
    ts = np.asarray(timestamps, dtype=np.int64)
    if len(ts) == 0:
        return WindowSelection(0, 0, 0, 0, 0, 0)

    first_ts, last_ts = int(ts[0]), int(ts[-1])
    max_span_days = max(1, (last_ts - first_ts) // MS_PER_DAY)
    wnd_days = min(window_days, max_span_days)
    offset = min(max(0, offset_days), max(0, max_span_days - wnd_days))

    start_ts = max(first_ts, last_ts - (offset + wnd_days) * MS_PER_DAY)
    end_ts = min(last_ts, start_ts + wnd_days * MS_PER_DAY)
    start = int(np.searchsorted(ts, start_ts, side="left"))
    stop = int(np.searchsorted(ts, end_ts, side="right"))

    return WindowSelection(
        start=start,
        stop=stop,
        window_days=wnd_days,
        offset_days=offset,
        first_ts=first_ts,
        last_ts=last_ts,
    )


@dataclass
class DisplayData:
    """4-hour bars for charting plus the buy markers snapped to them."""

    bars: list[BucketBar] = field(default_factory=list)
    buy_lines: list[int] = field(default_factory=list)


def build_display(
    bars: Sequence[Bar],
    result: PipelineResult,
    bucket_ms: int = FOUR_HOURS_MS,
) -> DisplayData:
    """
    Fold the scored rows into display buckets.

    Each bucket carries the last known RSI, MACD pair, SMA7/30/90 and PI
    ratio of its rows. Buy events become bucket-start markers, sorted and
    de-duplicated.
    """
    start, stop = result.start, result.stop
    series = result.bundle.series
    extras = {
        "rsi": series.rsi[start:stop],
        "macd": series.macd[start:stop],
        "macd_signal": series.macd_signal[start:stop],
        "sma7": series.sma7[start:stop],
        "sma30": series.sma30[start:stop],
        "sma90": series.sma90[start:stop],
        "pi": result.bundle.features.pi_ratio[start:stop],
    }
    buckets = resample_to_bucket(list(bars[start:stop]), bucket_ms, extras)
    buy_lines = sorted({bucket_start(e.timestamp, bucket_ms) for e in result.buy_events})
    return DisplayData(bars=buckets, buy_lines=buy_lines)


@dataclass
class ScanResult:
    """Everything one scan produced."""

    source: str
    bars: list[Bar]
    window: WindowSelection
    config: PipelineConfig
    pipeline: PipelineResult
    display: DisplayData
    elapsed: float = 0.0

    @property
    def total_bars(self) -> int:
        return len(self.bars)

    @property
    def buy_events(self) -> list[BuyEvent]:
        return self.pipeline.buy_events

    @property
    def confidence(self) -> np.ndarray:
        return self.pipeline.confidence


class ScanRunner:
    """Run the confidence pipeline over a bar file or bar list."""

    def __init__(
        self,
        config: PipelineConfig,
        window_days: int = 365,
        offset_days: int = 0,
    ):
        if window_days < 1:
            raise ValueError(f"window_days must be >= 1, got {window_days}")
        if offset_days < 0:
            raise ValueError(f"offset_days must be >= 0, got {offset_days}")
        self.config = config
        self.window_days = window_days
        self.offset_days = offset_days

    def run_file(self, path: Path | str) -> ScanResult:
        """Load ``path`` and scan it.

        Raises:
            DataLoadError: If the file yields no bars
        """
        bars = load_bars(path)
        return self.run(bars, source=str(path))

    def run(self, bars: Sequence[Bar], source: str = "<memory>") -> ScanResult:
        """Execute the full scan over ``bars``."""
        start_time = time.time()
        bars = list(bars)

        window = select_window(
            [b.timestamp for b in bars],
            self.window_days,
            self.offset_days,
        )
        logger.info(
            "Scanning %s: %d bars, window %d days (offset %d) -> rows [%d, %d)",
            source,
            len(bars),
            window.window_days,
            window.offset_days,
            window.start,
            window.stop,
        )

        result = run_pipeline(bars, self.config, window=(window.start, window.stop))
        display = build_display(bars, result)

        elapsed = time.time() - start_time
        logger.info(
            "Scan complete: %d buy events, %d display bars (%.2fs)",
            len(result.buy_events),
            len(display.bars),
            elapsed,
        )
        return ScanResult(
            source=source,
            bars=bars,
            window=window,
            config=self.config,
            pipeline=result,
            display=display,
            elapsed=elapsed,
        )
