"""Report formatting for scan results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone

import numpy as np

from dipscore.models.config import ABSOLUTE_CAP, MS_PER_HOUR
from dipscore.scoring import COMPONENTS

from dipscan.runner import ScanResult


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def format_ts(timestamp_ms: int) -> str:
    """Format epoch ms as ``YYYY-MM-DD HH:MM`` (UTC)."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def _finite_or_none(value: float) -> float | None:
    return round(float(value), 4) if math.isfinite(value) else None


class ReportFormatter:
    """Format scan results for display and export."""

    @staticmethod
    def print_console(result: ScanResult) -> None:
        """Print formatted report to console."""
        window = result.window
        buy = result.config.buy
        confidence = result.confidence

        print("\n" + "=" * 70)
        print("  DIP SCAN RESULTS")
        print("=" * 70)
        print(f"  Source: {result.source}")
        print(f"  Bars: {result.total_bars:,} (window {len(window):,} rows)")
        if len(window):
            print(
                f"  Window: {window.window_days} days, offset {window.offset_days} days "
                f"({format_ts(result.pipeline.timestamps[0])} → "
                f"{format_ts(result.pipeline.timestamps[-1])})"
            )
        print(
            f"  Threshold: {buy.threshold:.1f}  "
            f"Peak window: {buy.peak_window_ms / MS_PER_HOUR:.0f}h  "
            f"Cooldown: {buy.cooldown_ms / MS_PER_HOUR:.0f}h"
        )

        print("\n" + "-" * 70)
        print("  CONFIDENCE")
        print("-" * 70)
        if len(confidence):
            print(f"  Max:            {float(np.max(confidence)):.2f}")
            print(f"  Mean:           {float(np.mean(confidence)):.2f}")
            print(f"  Absolute rows:  {int(np.sum(confidence == ABSOLUTE_CAP))}")
            print(f"  Rows >= thr:    {int(np.sum(confidence >= buy.threshold))}")
        else:
            print("  No rows in window")

        print("\n" + "-" * 70)
        print(f"  BUY EVENTS ({len(result.buy_events)})")
        print("-" * 70)
        if result.buy_events:
            print(f"  {'Time (UTC)':<18} {'Close':>12} {'Conf':>7}  Components")
            for event in result.buy_events:
                row = result.pipeline.start + event.index
                if event.is_absolute:
                    parts = "ABSOLUTE"
                else:
                    parts = ", ".join(
                        f"{name}={event.contributions[name]:.1f}"
                        for name in COMPONENTS
                        if event.contributions.get(name, 0) > 0
                    )
                print(
                    f"  {format_ts(event.timestamp):<18} {result.bars[row].close:>12.2f} "
                    f"{event.confidence:>7.2f}  {parts}"
                )
        else:
            print("  None")

        print("\n" + "=" * 70)

    @staticmethod
    def to_dict(result: ScanResult) -> dict:
        """Convert results to JSON-serializable dict."""
        window = result.window
        return {
            "metadata": {
                "source": result.source,
                "total_bars": result.total_bars,
                "window_start": window.start,
                "window_stop": window.stop,
                "window_days": window.window_days,
                "offset_days": window.offset_days,
                "elapsed": round(result.elapsed, 3),
            },
            "config": result.config.model_dump(),
            "buy_events": [
                {
                    "time": _iso(e.timestamp),
                    "timestamp": e.timestamp,
                    "row": result.pipeline.start + e.index,
                    "close": result.bars[result.pipeline.start + e.index].close,
                    "confidence": round(e.confidence, 2),
                    "absolute": e.is_absolute,
                    "contributions": e.contributions,
                }
                for e in result.buy_events
            ],
            "buy_lines_4h": [_iso(ts) for ts in result.display.buy_lines],
            "display_4h": [
                {
                    "time": _iso(b.timestamp),
                    "open": b.open,
                    "high": b.high,
                    "low": b.low,
                    "close": b.close,
                    "volume": b.volume,
                    **{k: _finite_or_none(v) for k, v in b.extras.items()},
                }
                for b in result.display.bars
            ],
        }

    @staticmethod
    def save_json(result: ScanResult, filepath: str) -> None:
        """Save results to JSON file."""
        data = ReportFormatter.to_dict(result)
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, cls=NumpyEncoder)
        print(f"\nResults saved to {filepath}")
