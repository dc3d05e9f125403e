"""
Account ledger: balance, equity, high-water mark and drawdown episodes.
A snapshot is appended on every closing trade, forming the equity curve.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from cvd_backtester.core.types import AccountSnapshot, DrawdownEvent
from cvd_backtester.utils.timestamps import day_key, days_between

logger = logging.getLogger("cvd_backtester.account")


@dataclass(frozen=True)
class AccountSummary:
    starting_balance: float
    final_balance: float
    total_return: float
    total_return_pct: float
    max_drawdown: float
    max_drawdown_pct: float
    max_drawdown_duration: int
    average_drawdown: float
    average_drawdown_pct: float
    number_of_drawdowns: int
    current_drawdown: float
    current_drawdown_pct: float
    return_to_drawdown: Optional[float]
    high_water_mark: float
    lowest_balance: float


class AccountLedger:
    """
    Tracks one account through a run. The initial snapshot is stamped with
    `start_time`; when that is not known up front, call `begin` with the first
    bar's time.
    """

    def __init__(self, initial_balance: float, start_time: Optional[datetime] = None):
        self.initial_balance = initial_balance
        self.balance = initial_balance
        self.high_water_mark = initial_balance
        self.open_pnl = 0.0
        self.trade_count = 0
        self._snapshots: List[AccountSnapshot] = []
        self._events: List[DrawdownEvent] = []
        self._active: Optional[DrawdownEvent] = None
        if start_time is not None:
            self.begin(start_time)

    def begin(self, ts: datetime) -> None:
        """Record the initial snapshot if none exists yet."""
        if not self._snapshots:
            self._snapshot(ts)

    @property
    def equity(self) -> float:
        return self.balance + self.open_pnl

    def update_open_position(self, open_pnl: float) -> None:
        self.open_pnl = open_pnl

    def record_trade(self, ts: datetime, net_pnl: float) -> AccountSnapshot:
        self.begin(ts)
        self.balance += net_pnl
        self.trade_count += 1

        if self.balance > self.high_water_mark:
            self.high_water_mark = self.balance
            if self._active is not None:
                self._active.end = ts
                self._active.recovered = True
                self._active.duration_days = days_between(self._active.start, ts)
                logger.debug("Drawdown recovered after %d days", self._active.duration_days)
                self._active = None

        below = self.high_water_mark - self.balance
        if below > 0:
            if self._active is None:
                self._active = DrawdownEvent(
                    start=ts,
                    end=ts,
                    start_balance=self.high_water_mark,
                    lowest_balance=self.balance,
                    drawdown_amount=below,
                    drawdown_pct=below / self.high_water_mark * 100 if self.high_water_mark else 0.0,
                )
                self._events.append(self._active)
            elif self.balance < self._active.lowest_balance:
                ev = self._active
                ev.lowest_balance = self.balance
                ev.drawdown_amount = ev.start_balance - self.balance
                ev.drawdown_pct = ev.drawdown_amount / ev.start_balance * 100 if ev.start_balance else 0.0
            self._active.end = ts
            self._active.duration_days = days_between(self._active.start, ts)

        return self._snapshot(ts)

    def _snapshot(self, ts: datetime) -> AccountSnapshot:
        equity = self.equity
        drawdown = max(0.0, self.high_water_mark - equity)
        pct = drawdown / self.high_water_mark * 100 if self.high_water_mark > 0 else 0.0
        snap = AccountSnapshot(
            time=ts,
            balance=self.balance,
            equity=equity,
            drawdown=drawdown,
            drawdown_pct=pct,
            high_water_mark=self.high_water_mark,
            open_pnl=self.open_pnl,
            realized_pnl=self.balance - self.initial_balance,
            trade_count=self.trade_count,
        )
        self._snapshots.append(snap)
        return snap

    @property
    def equity_curve(self) -> List[AccountSnapshot]:
        return list(self._snapshots)

    @property
    def drawdown_events(self) -> List[DrawdownEvent]:
        return list(self._events)

    def daily_balances(self) -> Dict[str, AccountSnapshot]:
        """Last snapshot of each day."""
        out: Dict[str, AccountSnapshot] = {}
        for snap in self._snapshots:
            out[day_key(snap.time)] = snap
        return out

    def summary(self) -> AccountSummary:
        total_return = self.balance - self.initial_balance
        total_return_pct = total_return / self.initial_balance * 100 if self.initial_balance else 0.0
        worst = max(self._events, key=lambda e: e.drawdown_amount, default=None)
        n = len(self._events)
        current = max(0.0, self.high_water_mark - self.balance)
        max_dd_pct = worst.drawdown_pct if worst else 0.0
        balances = [s.balance for s in self._snapshots] or [self.balance]
        return AccountSummary(
            starting_balance=self.initial_balance,
            final_balance=self.balance,
            total_return=total_return,
            total_return_pct=total_return_pct,
            max_drawdown=worst.drawdown_amount if worst else 0.0,
            max_drawdown_pct=max_dd_pct,
            max_drawdown_duration=worst.duration_days if worst else 0,
            average_drawdown=sum(e.drawdown_amount for e in self._events) / n if n else 0.0,
            average_drawdown_pct=sum(e.drawdown_pct for e in self._events) / n if n else 0.0,
            number_of_drawdowns=n,
            current_drawdown=current,
            current_drawdown_pct=current / self.high_water_mark * 100 if self.high_water_mark > 0 else 0.0,
            return_to_drawdown=total_return_pct / max_dd_pct if max_dd_pct > 0 else None,
            high_water_mark=self.high_water_mark,
            lowest_balance=min(balances),
        )
