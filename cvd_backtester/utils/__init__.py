"""Utils: tick-grid arithmetic, timestamps."""

from cvd_backtester.utils.ticks import InstrumentSpec, round_to_tick, trade_pnl
from cvd_backtester.utils.timestamps import day_key, parse_timestamp

__all__ = ["InstrumentSpec", "round_to_tick", "trade_pnl", "day_key", "parse_timestamp"]
