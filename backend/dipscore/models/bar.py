"""OHLCV bar model and its column view.

Bars use plain floats and integer millisecond timestamps, the same
trade-off the hot path models make: cheap to create, cheap to compare.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(slots=True, frozen=True)
class Bar:
    """One OHLCV sample.

    ``mvrvz`` is an optional per-row on-chain ratio supplied alongside the
    price data. It only feeds one absolute-override flag.
    """

    timestamp: int  # Unix epoch in milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    mvrvz: float | None = None


@dataclass(slots=True, frozen=True)
class OhlcvColumns:
    """Column-oriented view of a bar sequence (one numpy array per field)."""

    timestamps: np.ndarray
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    @classmethod
    def from_bars(cls, bars: Sequence[Bar]) -> OhlcvColumns:
        return cls(
            timestamps=np.array([b.timestamp for b in bars], dtype=np.int64),
            open=np.array([b.open for b in bars], dtype=np.float64),
            high=np.array([b.high for b in bars], dtype=np.float64),
            low=np.array([b.low for b in bars], dtype=np.float64),
            close=np.array([b.close for b in bars], dtype=np.float64),
            volume=np.array([b.volume for b in bars], dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.timestamps)


def mvrvz_column(bars: Sequence[Bar]) -> np.ndarray:
    """Return the auxiliary MVRV-Z values as floats, NaN where absent."""
    return np.array(
        [np.nan if b.mvrvz is None else b.mvrvz for b in bars],
        dtype=np.float64,
    )
