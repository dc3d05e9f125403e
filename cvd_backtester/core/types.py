"""
Core data types for bars, signals, positions, trades, and account state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class MalformedBarError(ValueError):
    """Bar data that cannot be parsed or violates OHLC consistency."""


class Side(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        return 1 if self is Side.LONG else -1


class Breakout(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NONE = "none"

    @property
    def side(self) -> Optional[Side]:
        if self is Breakout.BULLISH:
            return Side.LONG
        if self is Breakout.BEARISH:
            return Side.SHORT
        return None


class TradeDirection(str, Enum):
    BOTH = "both"
    LONG = "long"
    SHORT = "short"

    def allows(self, side: Side) -> bool:
        if self is TradeDirection.BOTH:
            return True
        return (self is TradeDirection.LONG) == (side is Side.LONG)


@dataclass(frozen=True)
class Bar:
    """One OHLCV interval plus order-flow and indicator fields."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    delta: float = 0.0
    cvd_close: Optional[float] = None
    cvd_color: Optional[str] = None
    adx: Optional[float] = None
    ema: Dict[int, float] = field(default_factory=dict)
    sma: Dict[int, float] = field(default_factory=dict)
    vwap: Optional[float] = None


@dataclass(frozen=True)
class PendingSignal:
    """Validated breakout waiting for the next bar's open."""
    side: Side
    signal_bar: Bar


@dataclass
class Position:
    """Open position state. Mutated in place by the stop logic while open."""
    side: Side
    entry_price: float
    stop_price: float
    target_price: float
    entry_time: datetime
    initial_stop_price: float
    best_excursion: float = 0.0
    stop_at_breakeven: bool = False
    trailing_active: bool = False

    def open_points(self, price: float) -> float:
        """Signed points in favor of the position at `price`."""
        return (price - self.entry_price) * self.side.sign


@dataclass(frozen=True)
class TradeRecord:
    """Closed trade for analytics."""
    entry_time: datetime
    entry_price: float
    exit_time: datetime
    exit_price: float
    side: Side
    contracts: int
    stop_loss: float
    take_profit: float
    exit_reason: str  # "stop-loss" | "take-profit" | "trailing-stop" | "end-of-day" | ...
    gross_pnl: float
    commission: float
    net_pnl: float

    @property
    def points(self) -> float:
        return (self.exit_price - self.entry_price) * self.side.sign


@dataclass
class DailyStats:
    """Per-day P&L against the daily limits. trading_enabled only latches off."""
    date: str
    actual_pnl: float = 0.0
    capped_pnl: float = 0.0
    trades: int = 0
    hit_stop: bool = False
    hit_target: bool = False
    trading_enabled: bool = True


@dataclass
class IntradayStats:
    """Intraday high/low of the running actual day P&L."""
    date: str
    max_high: float = 0.0
    max_low: float = 0.0
    final_pnl: float = 0.0
    trades: int = 0


@dataclass(frozen=True)
class AccountSnapshot:
    time: datetime
    balance: float
    equity: float
    drawdown: float
    drawdown_pct: float
    high_water_mark: float
    open_pnl: float
    realized_pnl: float
    trade_count: int


@dataclass
class DrawdownEvent:
    """Balance excursion below the high-water mark. start_balance is that mark."""
    start: datetime
    end: datetime
    start_balance: float
    lowest_balance: float
    drawdown_amount: float
    drawdown_pct: float
    duration_days: int = 0
    recovered: bool = False
