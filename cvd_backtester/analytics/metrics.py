"""
Trade statistics: Sharpe, Sortino, max drawdown, win rate, profit factor,
expectancy, streaks, long/short breakdown.
Returns are per trade, measured against running equity.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from cvd_backtester.core.types import Side, TradeRecord
from cvd_backtester.utils.timestamps import day_key

if TYPE_CHECKING:
    from cvd_backtester.risk.manager import LimitSummary

TRADING_DAYS_PER_YEAR = 252.0


@dataclass
class SideBreakdown:
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    avg_profit: float = 0.0
    total_profit: float = 0.0


@dataclass
class TradeStatistics:
    """Aggregate statistics for one run."""
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    average_profit: float = 0.0
    total_profit: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown_pct: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_win_points: float = 0.0
    avg_loss_points: float = 0.0
    long: SideBreakdown = field(default_factory=SideBreakdown)
    short: SideBreakdown = field(default_factory=SideBreakdown)
    daily_pnl: Dict[str, float] = field(default_factory=dict)
    days_hit_stop: int = 0
    days_hit_target: int = 0


def sharpe_ratio(returns: Sequence[float], periods_per_year: float = TRADING_DAYS_PER_YEAR) -> float:
    """Annualized Sharpe with sample standard deviation. 0 for fewer than 2 returns."""
    if len(returns) < 2:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    std = arr.std(ddof=1)
    if std <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * arr.mean() / std)


def sortino_ratio(returns: Sequence[float], periods_per_year: float = TRADING_DAYS_PER_YEAR) -> float:
    """Annualized Sortino (downside deviation)."""
    if len(returns) < 2:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    downside = arr[arr < 0]
    if len(downside) < 2 or downside.std(ddof=1) <= 1e-12:
        return sharpe_ratio(returns, periods_per_year)
    return float(np.sqrt(periods_per_year) * arr.mean() / downside.std(ddof=1))


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline of an equity series, in percent (positive)."""
    if len(equity) == 0:
        return 0.0
    arr = np.asarray(equity, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (peak - arr) / np.where(peak != 0, peak, 1)
    return float(np.max(dd)) * 100.0


def win_rate(pnls: Sequence[float]) -> float:
    """Percent of trades with positive PnL."""
    if not len(pnls):
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls) * 100.0


def profit_factor(pnls: Sequence[float]) -> float:
    """Gross profit / gross loss. inf with no losses, 0 with neither."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: Sequence[float]) -> float:
    """Average PnL per trade."""
    if not len(pnls):
        return 0.0
    return sum(pnls) / len(pnls)


def streaks(pnls: Sequence[float]) -> Tuple[int, int]:
    """(longest win streak, longest losing streak). Flat trades count as losses."""
    best_win = best_loss = cur_win = cur_loss = 0
    for p in pnls:
        if p > 0:
            cur_win += 1
            cur_loss = 0
            best_win = max(best_win, cur_win)
        else:
            cur_loss += 1
            cur_win = 0
            best_loss = max(best_loss, cur_loss)
    return best_win, best_loss


def trade_returns(pnls: Sequence[float], initial_balance: float) -> List[float]:
    """Each trade's PnL as a fraction of equity before the trade."""
    equity = initial_balance
    out = []
    for p in pnls:
        out.append(p / equity if equity else 0.0)
        equity += p
    return out


def trades_per_year(trades: Sequence[TradeRecord]) -> float:
    """Trade frequency over the traded span, scaled to 252 trading days."""
    span = (trades[-1].exit_time - trades[0].entry_time).total_seconds() / 86400.0
    if span <= 0:
        span = 1.0
    return len(trades) / span * TRADING_DAYS_PER_YEAR


def _breakdown(trades: List[TradeRecord]) -> SideBreakdown:
    if not trades:
        return SideBreakdown()
    wins = sum(1 for t in trades if t.net_pnl > 0)
    total = sum(t.net_pnl for t in trades)
    return SideBreakdown(
        trades=len(trades),
        wins=wins,
        losses=len(trades) - wins,
        win_rate=wins / len(trades) * 100.0,
        avg_profit=total / len(trades),
        total_profit=total,
    )


def compute_statistics(
    trades: Sequence[TradeRecord],
    initial_balance: float,
    limits: Optional["LimitSummary"] = None,
) -> TradeStatistics:
    """Compute the full statistics block from closed trades in exit order."""
    stats = TradeStatistics()
    if limits is not None:
        stats.days_hit_stop = limits.days_hit_stop
        stats.days_hit_target = limits.days_hit_target
    if not trades:
        return stats

    pnls = [t.net_pnl for t in trades]
    wins = [t for t in trades if t.net_pnl > 0]
    losses = [t for t in trades if t.net_pnl < 0]
    returns = trade_returns(pnls, initial_balance)
    periods = trades_per_year(trades)
    equity = np.concatenate(([initial_balance], initial_balance + np.cumsum(pnls)))

    daily: Dict[str, float] = {}
    for t in trades:
        key = day_key(t.exit_time)
        daily[key] = daily.get(key, 0.0) + t.net_pnl

    stats.total_trades = len(trades)
    stats.winning_trades = len(wins)
    stats.losing_trades = len(losses)
    stats.win_rate = win_rate(pnls)
    stats.average_profit = expectancy(pnls)
    stats.total_profit = float(sum(pnls))
    stats.sharpe_ratio = sharpe_ratio(returns, periods)
    stats.sortino_ratio = sortino_ratio(returns, periods)
    stats.max_drawdown_pct = max_drawdown(equity)
    stats.max_consecutive_wins, stats.max_consecutive_losses = streaks(pnls)
    stats.profit_factor = profit_factor(pnls)
    stats.expectancy = expectancy(pnls)
    stats.avg_win = expectancy([t.net_pnl for t in wins])
    stats.avg_loss = expectancy([t.net_pnl for t in losses])
    stats.avg_win_points = expectancy([abs(t.points) for t in wins])
    stats.avg_loss_points = expectancy([abs(t.points) for t in losses])
    stats.long = _breakdown([t for t in trades if t.side is Side.LONG])
    stats.short = _breakdown([t for t in trades if t.side is Side.SHORT])
    stats.daily_pnl = daily
    return stats
