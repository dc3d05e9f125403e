"""
Daily risk limits: per-day actual and capped P&L against max daily loss and
max daily profit. Crossing a bound latches trading off for the rest of that day.
A limit of 0 disables it.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from cvd_backtester.core.types import DailyStats
from cvd_backtester.utils.timestamps import day_key

logger = logging.getLogger("cvd_backtester.risk")


@dataclass
class LimitResult:
    """Outcome of recording a trade: allowed=False when it tripped a daily limit."""
    allowed: bool
    reason: str = ""
    capped_pnl: float = 0.0


@dataclass(frozen=True)
class LimitSummary:
    total_days: int
    profitable_days: int
    losing_days: int
    days_hit_stop: int
    days_hit_target: int
    best_day: float
    worst_day: float
    total_actual_pnl: float
    total_capped_pnl: float


class RiskManager:
    """
    Enforces max daily loss / max daily profit on realized P&L.
    Days are keyed by the storage-time calendar date of the trade's exit.
    """

    def __init__(self, max_daily_loss: float = 0.0, max_daily_profit: float = 0.0):
        if max_daily_loss < 0 or max_daily_profit < 0:
            raise ValueError("daily limits must be non-negative")
        self.max_daily_loss = max_daily_loss
        self.max_daily_profit = max_daily_profit
        self._days: Dict[str, DailyStats] = {}

    @property
    def lower_bound(self) -> Optional[float]:
        return -self.max_daily_loss if self.max_daily_loss else None

    @property
    def upper_bound(self) -> Optional[float]:
        return self.max_daily_profit if self.max_daily_profit else None

    def _day(self, ts: datetime) -> DailyStats:
        key = day_key(ts)
        stats = self._days.get(key)
        if stats is None:
            stats = DailyStats(date=key)
            self._days[key] = stats
        return stats

    def can_trade(self, ts: datetime) -> bool:
        """False once the day's latch tripped or actual P&L sits at/beyond a bound."""
        stats = self._days.get(day_key(ts))
        if stats is None:
            return True
        if not stats.trading_enabled or stats.hit_stop or stats.hit_target:
            return False
        lo, hi = self.lower_bound, self.upper_bound
        if lo is not None and stats.actual_pnl <= lo:
            return False
        if hi is not None and stats.actual_pnl >= hi:
            return False
        return True

    def record_trade(self, ts: datetime, pnl: float) -> LimitResult:
        stats = self._day(ts)
        stats.actual_pnl += pnl
        stats.trades += 1
        previous_capped = stats.capped_pnl

        lo, hi = self.lower_bound, self.upper_bound
        reason = ""
        if not stats.trading_enabled:
            # Capped P&L stays at the bound that latched the day
            reason = "daily limit already reached"
        elif lo is not None and stats.actual_pnl <= lo:
            stats.capped_pnl = lo
            stats.hit_stop = True
            stats.trading_enabled = False
            reason = f"daily stop loss hit: {self.max_daily_loss:.2f}"
        elif hi is not None and stats.actual_pnl >= hi:
            stats.capped_pnl = hi
            stats.hit_target = True
            stats.trading_enabled = False
            reason = f"daily profit target hit: {self.max_daily_profit:.2f}"
        else:
            stats.capped_pnl = stats.actual_pnl

        if reason:
            logger.info("%s: %s (actual %.2f)", stats.date, reason, stats.actual_pnl)
        return LimitResult(allowed=not reason, reason=reason, capped_pnl=stats.capped_pnl - previous_capped)

    def day_pnl(self, ts: datetime, capped: bool = False) -> float:
        stats = self._days.get(day_key(ts))
        if stats is None:
            return 0.0
        return stats.capped_pnl if capped else stats.actual_pnl

    def daily_stats(self) -> List[DailyStats]:
        return [self._days[k] for k in sorted(self._days)]

    def daily_actual_pnl(self) -> Dict[str, float]:
        return {s.date: s.actual_pnl for s in self.daily_stats()}

    def daily_capped_pnl(self) -> Dict[str, float]:
        return {s.date: s.capped_pnl for s in self.daily_stats()}

    def summary(self) -> LimitSummary:
        days = self.daily_stats()
        actual = [d.actual_pnl for d in days]
        return LimitSummary(
            total_days=len(days),
            profitable_days=sum(1 for p in actual if p > 0),
            losing_days=sum(1 for p in actual if p < 0),
            days_hit_stop=sum(1 for d in days if d.hit_stop),
            days_hit_target=sum(1 for d in days if d.hit_target),
            best_day=max(actual + [0.0]),
            worst_day=min(actual + [0.0]),
            total_actual_pnl=sum(actual),
            total_capped_pnl=sum(d.capped_pnl for d in days),
        )
