"""
Bar source: CSV / DataFrame rows to Bar objects.

Expected columns: timestamp (or time), open, high, low, close, volume, delta.
Optional: cvd_close, cvd_color, adx, vwap, ema_<N>, sma_<N>.
"""

from __future__ import annotations
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import pandas as pd

from cvd_backtester.core.types import Bar, MalformedBarError
from cvd_backtester.utils.timestamps import parse_timestamp

logger = logging.getLogger("cvd_backtester.data")

REQUIRED = ("open", "high", "low", "close", "volume")
OPTIONAL_FLOATS = ("delta", "cvd_close", "adx", "vwap")
_MA_COLUMN = re.compile(r"^(ema|sma)_(\d+)$")


def _number(row: Any, col: str, where: str) -> Optional[float]:
    """Cell as float; empty or NaN is None, anything else unparseable raises."""
    raw = row[col]
    if raw is None or (isinstance(raw, str) and not raw.strip()) or pd.isna(raw):
        return None
    value = pd.to_numeric(raw, errors="coerce")
    if pd.isna(value):
        raise MalformedBarError(f"{where}: {col} is not a number: {raw!r}")
    return float(value)


def _timestamp(value: Any, row: Any) -> datetime:
    if isinstance(value, pd.Timestamp):
        return value.tz_localize(None).to_pydatetime() if value.tzinfo else value.to_pydatetime()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if value is None or pd.isna(value):
        raise MalformedBarError(f"row {row}: missing timestamp")
    try:
        return parse_timestamp(str(value))
    except ValueError as e:
        raise MalformedBarError(f"row {row}: {e}") from None


def _normalize(df: pd.DataFrame) -> pd.DataFrame:
    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})
    if "timestamp" not in df.columns and "time" in df.columns:
        df = df.rename(columns={"time": "timestamp"})
    missing = [c for c in ("timestamp",) + REQUIRED if c not in df.columns]
    if missing:
        raise MalformedBarError(f"missing columns: {missing}")
    return df


def bars_from_frame(
    df: pd.DataFrame,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Iterator[Bar]:
    """Yield bars in row order, keeping those within [start, end]."""
    df = _normalize(df)
    ma_columns: List[tuple] = []
    for col in df.columns:
        m = _MA_COLUMN.match(col)
        if m:
            ma_columns.append((col, m.group(1), int(m.group(2))))

    for idx, row in df.iterrows():
        ts = _timestamp(row["timestamp"], idx)
        if start is not None and ts < start:
            continue
        if end is not None and ts > end:
            continue

        where = f"row {idx} ({ts})"
        values: Dict[str, float] = {}
        for col in REQUIRED:
            value = _number(row, col, where)
            if value is None:
                raise MalformedBarError(f"{where}: {col} is missing")
            values[col] = value
        if values["high"] < values["low"]:
            raise MalformedBarError(f"{where}: high {values['high']} below low {values['low']}")

        extras = {
            col: _number(row, col, where) if col in df.columns else None
            for col in OPTIONAL_FLOATS
        }
        ema: Dict[int, float] = {}
        sma: Dict[int, float] = {}
        for col, kind, period in ma_columns:
            value = _number(row, col, where)
            if value is not None:
                (ema if kind == "ema" else sma)[period] = value
        color = row["cvd_color"] if "cvd_color" in df.columns else None
        color = None if color is None or pd.isna(color) else str(color).strip().lower()

        yield Bar(
            time=ts,
            open=values["open"],
            high=values["high"],
            low=values["low"],
            close=values["close"],
            volume=values["volume"],
            delta=extras["delta"] if extras["delta"] is not None else 0.0,
            cvd_close=extras["cvd_close"],
            cvd_color=color,
            adx=extras["adx"],
            ema=ema,
            sma=sma,
            vwap=extras["vwap"],
        )


def load_bars_csv(
    path: Union[str, Path],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Iterator[Bar]:
    """Read a bar CSV with pandas and yield bars within the window."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bar file not found: {path}")
    df = pd.read_csv(path)
    logger.info("Loaded %d rows from %s", len(df), path)
    return bars_from_frame(df, start, end)
