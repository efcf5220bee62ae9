"""Load OHLCV bars from CSV files into the core Bar model.

Two layouts are accepted:

- Headered CSV with case-insensitive column names: a time column
  (date, time, timestamp, open time, opentime or ts), open/o, high/h,
  low/l, close/c, volume (vol, v, volume(usdt), volume (usdt)) and an
  optional mvrvz column.
- Header-less Binance kline rows ``[open_time, open, high, low, close,
  volume, ...]``, detected when the first row has at least six fields
  and a numeric first field.

Timestamps in seconds, milliseconds, microseconds, nanoseconds, Excel
serial days or date strings are all normalised to epoch milliseconds.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np
import pandas as pd

from dipscore.models.bar import Bar

logger = logging.getLogger(__name__)

TIME_COLUMNS = ("date", "time", "timestamp", "open time", "opentime", "ts")
PRICE_COLUMNS = {
    "open": ("open", "o"),
    "high": ("high", "h"),
    "low": ("low", "l"),
    "close": ("close", "c"),
}
VOLUME_COLUMNS = ("volume", "vol", "v", "volume(usdt)", "volume (usdt)")
MVRVZ_COLUMN = "mvrvz"

BINANCE_MIN_FIELDS = 6

EXCEL_EPOCH_OFFSET_DAYS = 25569  # 1899-12-30 -> 1970-01-01
MS_PER_DAY = 86_400_000


class DataLoadError(Exception):
    """Input file could not be read or held no usable bars."""


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def normalize_epoch_to_ms(value) -> float:
    """
    Normalise an epoch-like value to Unix milliseconds.

    Numbers are classified by magnitude: Excel serial days (60 < v < 60000,
    when that maps after 1970), seconds (< 1e11), milliseconds (< 1e13),
    microseconds (< 1e16), otherwise nanoseconds. Anything non-numeric is
    parsed as a date string (naive dates are taken as UTC).

    Returns:
        Milliseconds as float, or NaN if the value cannot be interpreted
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return math.nan

    v = _to_float(value)
    if not math.isfinite(v):
        parsed = pd.to_datetime(str(value).strip(), utc=True, errors="coerce")
        if pd.isna(parsed):
            return math.nan
        return float(parsed.value // 1_000_000)

    if 60 < v < 60000:
        ms = (v - EXCEL_EPOCH_OFFSET_DAYS) * MS_PER_DAY
        if ms > 0:
            return ms

    if v < 1e11:
        return v * 1000
    if v < 1e13:
        return v
    if v < 1e16:
        return float(math.floor(v / 1000))
    return float(math.floor(v / 1e6))


def _is_binance_layout(first_row: list[str]) -> bool:
    fields = [f for f in first_row if f != ""]
    return len(fields) >= BINANCE_MIN_FIELDS and math.isfinite(_to_float(first_row[0]))


def _first_present(columns: list[str], candidates: tuple[str, ...]) -> str | None:
    for name in candidates:
        if name in columns:
            return name
    return None


def _frame_from_binance(raw: pd.DataFrame) -> pd.DataFrame:
    return pd.DataFrame({
        "ts": raw[0],
        "open": raw[1],
        "high": raw[2],
        "low": raw[3],
        "close": raw[4],
        "volume": raw[5],
    })


def _frame_from_headered(raw: pd.DataFrame) -> pd.DataFrame:
    header = [str(h).strip().lower() for h in raw.iloc[0]]
    body = raw.iloc[1:].reset_index(drop=True)
    body.columns = header

    time_col = _first_present(header, TIME_COLUMNS)
    if time_col is None:
        raise DataLoadError(
            f"no time column found (expected one of {', '.join(TIME_COLUMNS)})"
        )

    frame = pd.DataFrame({"ts": body[time_col]})
    for field, candidates in PRICE_COLUMNS.items():
        col = _first_present(header, candidates)
        if col is None:
            raise DataLoadError(f"no {field} column found")
        frame[field] = body[col]

    volume_col = _first_present(header, VOLUME_COLUMNS)
    frame["volume"] = body[volume_col] if volume_col else np.nan
    if MVRVZ_COLUMN in header:
        frame["mvrvz"] = body[MVRVZ_COLUMN]
    return frame


def _clean(frame: pd.DataFrame) -> pd.DataFrame:
    """Coerce types, drop unusable rows, sort and de-duplicate."""
    frame = frame.copy()
    frame["ts"] = frame["ts"].map(normalize_epoch_to_ms).astype(np.float64)
    for col in ("open", "high", "low", "close", "volume"):
        frame[col] = pd.to_numeric(frame[col], errors="coerce").astype(np.float64)
    if "mvrvz" in frame.columns:
        frame["mvrvz"] = pd.to_numeric(frame["mvrvz"], errors="coerce").astype(np.float64)

    required = frame[["ts", "open", "high", "low", "close"]].to_numpy()
    usable = np.isfinite(required).all(axis=1)
    dropped = int((~usable).sum())
    if dropped:
        logger.debug("Dropped %d rows with missing or non-finite time/OHLC", dropped)
    frame = frame[usable].copy()

    frame["volume"] = frame["volume"].where(np.isfinite(frame["volume"]), 0.0)
    frame["ts"] = np.floor(frame["ts"]).astype(np.int64)

    frame = frame.sort_values("ts", kind="mergesort")
    before = len(frame)
    frame = frame.drop_duplicates(subset="ts", keep="last")
    if len(frame) < before:
        logger.debug("Dropped %d duplicate timestamps", before - len(frame))
    return frame.reset_index(drop=True)


def load_bars(path: Path | str) -> list[Bar]:
    """
    Read a CSV file into bars sorted by strictly increasing timestamp.

    Args:
        path: CSV file path

    Returns:
        List of Bar

    Raises:
        DataLoadError: If the file is unreadable, has no recognisable
            layout, or yields no valid rows
    """
    path = Path(path)
    try:
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except FileNotFoundError as e:
        raise DataLoadError(f"file not found: {path}") from e
    except pd.errors.EmptyDataError as e:
        raise DataLoadError(f"file is empty: {path}") from e
    except (pd.errors.ParserError, OSError, UnicodeDecodeError) as e:
        raise DataLoadError(f"could not parse {path}: {e}") from e

    if raw.empty:
        raise DataLoadError(f"file is empty: {path}")

    first_row = [str(v).strip() for v in raw.iloc[0]]
    if _is_binance_layout(first_row):
        layout = "binance"
        frame = _frame_from_binance(raw)
    else:
        layout = "headered"
        frame = _frame_from_headered(raw)

    frame = _clean(frame)
    if frame.empty:
        raise DataLoadError(f"no valid OHLC rows in {path}")

    has_mvrvz = "mvrvz" in frame.columns
    bars = [
        Bar(
            timestamp=int(row.ts),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
            mvrvz=(
                float(row.mvrvz)
                if has_mvrvz and math.isfinite(row.mvrvz)
                else None
            ),
        )
        for row in frame.itertuples(index=False)
    ]

    logger.info(
        "Loaded %d bars from %s (%s layout%s)",
        len(bars),
        path.name,
        layout,
        ", with mvrvz" if has_mvrvz else "",
    )
    return bars
