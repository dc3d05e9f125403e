"""Unit tests for analytics.metrics."""

from datetime import datetime

import numpy as np
import pytest
from cvd_backtester.analytics.metrics import (
    compute_statistics,
    expectancy,
    max_drawdown,
    profit_factor,
    sharpe_ratio,
    streaks,
    trade_returns,
    win_rate,
)
from cvd_backtester.core.types import Side, TradeRecord
from cvd_backtester.risk.manager import RiskManager


def _trade(net: float, side: Side = Side.LONG, day: int = 2, points: float = 4.0) -> TradeRecord:
    entry = 5000.0
    exit_price = entry + side.sign * points * (1 if net > 0 else -1)
    return TradeRecord(
        entry_time=datetime(2025, 1, day, 10, 0),
        entry_price=entry,
        exit_time=datetime(2025, 1, day, 10, 30),
        exit_price=exit_price,
        side=side,
        contracts=1,
        stop_loss=10.0,
        take_profit=20.0,
        exit_reason="take-profit" if net > 0 else "stop-loss",
        gross_pnl=net + 2.5,
        commission=2.5,
        net_pnl=net,
    )


def test_sharpe_ratio_empty():
    assert sharpe_ratio([]) == 0.0
    assert sharpe_ratio([0.01]) == 0.0


def test_sharpe_ratio_constant():
    assert sharpe_ratio([0.01] * 10) == 0.0  # zero std


def test_sharpe_ratio_sample_std():
    returns = [0.01, 0.03]
    expected = np.sqrt(252) * 0.02 / np.std(returns, ddof=1)
    assert sharpe_ratio(returns, 252) == pytest.approx(expected)


def test_win_rate():
    assert win_rate([1, -1, 1, 1]) == 75.0
    assert win_rate([]) == 0.0


def test_profit_factor():
    assert profit_factor([10, -5, 10, -5]) == 2.0
    assert profit_factor([10, 10]) == float("inf")
    assert profit_factor([-5, -5]) == 0.0


def test_expectancy():
    assert expectancy([10, -5, 5]) == pytest.approx(10 / 3)
    assert expectancy([]) == 0.0


def test_max_drawdown():
    # equity 1 -> 1.2 -> 1.0 -> 1.1  =>  peak 1.2, dd (1.2-1.0)/1.2 = 16.67%
    assert max_drawdown([1.0, 1.2, 1.0, 1.1]) == pytest.approx(16.666, rel=0.01)
    assert max_drawdown([]) == 0.0


def test_streaks_flat_counts_as_loss():
    assert streaks([1, 1, -1, 0, -2, 3]) == (2, 3)
    assert streaks([]) == (0, 0)


def test_trade_returns_use_running_equity():
    assert trade_returns([100.0, -50.0], 1000.0) == pytest.approx([0.1, -50.0 / 1100.0])


def test_compute_statistics_empty():
    s = compute_statistics([], 50000.0)
    assert s.total_trades == 0
    assert s.sharpe_ratio == 0.0
    assert s.daily_pnl == {}


def test_compute_statistics():
    trades = [
        _trade(997.5, Side.LONG, day=2),
        _trade(-502.5, Side.SHORT, day=2),
        _trade(997.5, Side.SHORT, day=3),
        _trade(-502.5, Side.LONG, day=3),
    ]
    s = compute_statistics(trades, 50000.0)
    assert s.total_trades == 4
    assert s.winning_trades == 2
    assert s.losing_trades == 2
    assert s.win_rate == 50.0
    assert s.total_profit == pytest.approx(990.0)
    assert s.average_profit == pytest.approx(247.5)
    assert s.profit_factor == pytest.approx(1995.0 / 1005.0)
    assert s.avg_win == pytest.approx(997.5)
    assert s.avg_loss == pytest.approx(-502.5)
    assert s.avg_win_points == pytest.approx(4.0)
    assert s.daily_pnl == {"2025-01-02": pytest.approx(495.0), "2025-01-03": pytest.approx(495.0)}
    assert s.long.trades == 2 and s.long.wins == 1
    assert s.short.win_rate == 50.0
    assert s.max_consecutive_wins == 1
    assert s.max_drawdown_pct == pytest.approx(502.5 / 50997.5 * 100)
    assert s.sharpe_ratio > 0


def test_compute_statistics_carries_limit_counts():
    rm = RiskManager(max_daily_loss=500.0)
    rm.record_trade(datetime(2025, 1, 2, 10), -600.0)
    s = compute_statistics([_trade(-600.0)], 50000.0, rm.summary())
    assert s.days_hit_stop == 1
    assert s.days_hit_target == 0
