"""CVD trend-line breakout backtester for index futures."""

from cvd_backtester.backtesting.engine import BacktestEngine, BacktestResult, run
from cvd_backtester.core.config import Config, load_config
from cvd_backtester.core.types import Bar, MalformedBarError, Side, TradeRecord

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "run",
    "Config",
    "load_config",
    "Bar",
    "MalformedBarError",
    "Side",
    "TradeRecord",
]
