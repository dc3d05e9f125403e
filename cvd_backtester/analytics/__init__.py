"""Analytics: account ledger, trade statistics, trade validation."""

from cvd_backtester.analytics.account import AccountLedger, AccountSummary
from cvd_backtester.analytics.metrics import (
    TradeStatistics,
    compute_statistics,
    sharpe_ratio,
    sortino_ratio,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
    streaks,
)
from cvd_backtester.analytics.validation import ValidationReport, summarize, validate_trades

__all__ = [
    "AccountLedger",
    "AccountSummary",
    "TradeStatistics",
    "compute_statistics",
    "sharpe_ratio",
    "sortino_ratio",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
    "streaks",
    "ValidationReport",
    "summarize",
    "validate_trades",
]
