"""Backtesting engine: bar-by-bar replay with tick-accurate fills."""

from cvd_backtester.backtesting.data import bars_from_frame, load_bars_csv
from cvd_backtester.backtesting.engine import BacktestEngine, BacktestResult, run

__all__ = ["BacktestEngine", "BacktestResult", "run", "bars_from_frame", "load_bars_csv"]
