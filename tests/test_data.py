"""Unit tests for backtesting.data."""

from datetime import datetime

import pandas as pd
import pytest
from cvd_backtester.backtesting.data import bars_from_frame, load_bars_csv
from cvd_backtester.core.types import MalformedBarError


def _frame(**extra) -> pd.DataFrame:
    data = {
        "Timestamp": ["2025-01-15 09:30:00", "2025-01-15 09:31:00", "2025-01-15 09:32:00"],
        "Open": [5000.0, 5001.0, 5002.0],
        "High": [5001.0, 5002.0, 5003.0],
        "Low": [4999.0, 5000.0, 5001.0],
        "Close": [5001.0, 5002.0, 5002.5],
        "Volume": [120, 90, 150],
        "Delta": [10.0, -5.0, 7.0],
    }
    data.update(extra)
    return pd.DataFrame(data)


def test_basic_columns():
    bars = list(bars_from_frame(_frame()))
    assert len(bars) == 3
    b = bars[0]
    assert b.time == datetime(2025, 1, 15, 9, 30)
    assert b.close == 5001.0
    assert b.volume == 120.0
    assert b.delta == 10.0
    assert b.cvd_close is None
    assert b.cvd_color is None
    assert b.ema == {}


def test_optional_columns():
    df = _frame(
        ema_20=[5000.5, None, 5001.5],
        SMA_50=[4990.0, 4991.0, 4992.0],
        cvd_color=["Green", "red", None],
        ADX=[22.0, 23.0, 24.0],
    )
    bars = list(bars_from_frame(df))
    assert bars[0].ema == {20: 5000.5}
    assert bars[1].ema == {}
    assert bars[2].sma == {50: 4992.0}
    assert [b.cvd_color for b in bars] == ["green", "red", None]
    assert bars[1].adx == 23.0


def test_time_column_alias():
    df = _frame().rename(columns={"Timestamp": "time"})
    assert next(bars_from_frame(df)).time == datetime(2025, 1, 15, 9, 30)


def test_window():
    bars = list(bars_from_frame(_frame(), start=datetime(2025, 1, 15, 9, 31), end=datetime(2025, 1, 15, 9, 31)))
    assert [b.time.minute for b in bars] == [31]


def test_missing_column():
    with pytest.raises(MalformedBarError):
        list(bars_from_frame(_frame().drop(columns=["Volume"])))


def test_non_numeric_price():
    df = _frame()
    df["Close"] = df["Close"].astype(object)
    df.loc[1, "Close"] = "n/a"
    with pytest.raises(MalformedBarError):
        list(bars_from_frame(df))


def test_non_numeric_optional_field():
    with pytest.raises(MalformedBarError, match="cvd_close"):
        list(bars_from_frame(_frame(cvd_close=[1500.0, "garbage", 1502.0])))
    with pytest.raises(MalformedBarError, match="delta"):
        list(bars_from_frame(_frame(Delta=[1.0, "oops", 2.0])))
    with pytest.raises(MalformedBarError, match="ema_20"):
        list(bars_from_frame(_frame(ema_20=[5000.0, 5001.0, "n/a"])))


def test_blank_optional_field_is_missing():
    bars = list(bars_from_frame(_frame(cvd_close=[1500.0, "", None], Delta=[1.0, " ", 2.0])))
    assert [b.cvd_close for b in bars] == [1500.0, None, None]
    assert [b.delta for b in bars] == [1.0, 0.0, 2.0]


def test_bad_timestamp():
    df = _frame()
    df.loc[2, "Timestamp"] = "yesterday"
    with pytest.raises(MalformedBarError):
        list(bars_from_frame(df))


def test_load_csv(tmp_path):
    path = tmp_path / "bars.csv"
    path.write_text(
        "timestamp,open,high,low,close,volume,delta,cvd_close\n"
        "2025-01-15 09:30:00 AM,5000,5001,4999,5000.5,100,3,1500\n"
        "2025-01-15 01:31:00 PM,5000.5,5002,5000,5001.75,80,-2,1498\n"
    )
    bars = list(load_bars_csv(path))
    assert bars[0].time == datetime(2025, 1, 15, 9, 30)
    assert bars[1].time == datetime(2025, 1, 15, 13, 31)
    assert bars[1].cvd_close == 1498.0


def test_load_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_bars_csv(tmp_path / "nope.csv")
