"""Core: config, types, logging."""

from cvd_backtester.core.config import load_config, Config
from cvd_backtester.core.types import (
    Bar,
    Breakout,
    MalformedBarError,
    PendingSignal,
    Position,
    Side,
    TradeDirection,
    TradeRecord,
)
from cvd_backtester.core.logger import setup_logging, EventLog, LogEvent

__all__ = [
    "load_config",
    "Config",
    "Bar",
    "Breakout",
    "MalformedBarError",
    "PendingSignal",
    "Position",
    "Side",
    "TradeDirection",
    "TradeRecord",
    "setup_logging",
    "EventLog",
    "LogEvent",
]
