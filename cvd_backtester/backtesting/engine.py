"""
Backtest engine: single pass over closed bars, no lookahead.
Signals found on bar N are filled at the open of bar N+1; exits use the
stop/target levels with capped gap slippage.
"""

from __future__ import annotations
import dataclasses
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from cvd_backtester.analytics.account import AccountLedger, AccountSummary
from cvd_backtester.analytics.metrics import TradeStatistics, compute_statistics
from cvd_backtester.analytics.validation import ValidationReport, summarize, validate_trades
from cvd_backtester.core.config import Config
from cvd_backtester.core.logger import EventLog, LogEvent
from cvd_backtester.core.types import (
    AccountSnapshot,
    Bar,
    DailyStats,
    DrawdownEvent,
    IntradayStats,
    MalformedBarError,
    PendingSignal,
    Side,
    TradeRecord,
)
from cvd_backtester.execution.gaps import classify_gap, gap_within_tolerance
from cvd_backtester.execution.position import ExitResult, PositionManager
from cvd_backtester.risk.manager import LimitSummary, RiskManager
from cvd_backtester.strategies.base import BaseStrategy
from cvd_backtester.strategies.cvd_breakout import CvdBreakoutStrategy
from cvd_backtester.utils.timestamps import day_key

logger = logging.getLogger("cvd_backtester.backtest")

# Rejections that happen on most bars; not worth an event each.
_QUIET_STAGES = ("trendline", "warmup")


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class BacktestResult:
    """Backtest output: trades, statistics, account history and diagnostics."""
    count: int = 0
    logs: List[LogEvent] = field(default_factory=list)
    statistics: TradeStatistics = field(default_factory=TradeStatistics)
    trades: List[TradeRecord] = field(default_factory=list)
    intraday_stats: Dict[str, IntradayStats] = field(default_factory=dict)
    equity_curve: List[AccountSnapshot] = field(default_factory=list)
    drawdown_events: List[DrawdownEvent] = field(default_factory=list)
    daily_stats: List[DailyStats] = field(default_factory=list)
    account: Optional[AccountSummary] = None
    limits: Optional[LimitSummary] = None
    validation: Optional[ValidationReport] = None
    config_fingerprint: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict (ISO timestamps, enum values) for export."""
        return _plain(dataclasses.asdict(self))


class BacktestEngine:
    """
    Per bar: gap check, then daily-limit exit, end-of-day exit, stop/target
    exit, pending entry, and finally signal generation when flat.
    All state is rebuilt at the start of `run`.
    """

    def __init__(self, config: Config, strategy: Optional[BaseStrategy] = None):
        config.validate()
        self.config = config
        self.instrument = config.instrument
        self._strategy_override = strategy
        self._reset()

    def _reset(self) -> None:
        cfg = self.config
        self.log = EventLog()
        self.strategy = self._strategy_override or CvdBreakoutStrategy(cfg)
        self.positions = PositionManager(cfg, self.instrument, self.log)
        self.risk = RiskManager(cfg.max_daily_loss, cfg.max_daily_profit)
        self.ledger = AccountLedger(cfg.initial_balance, cfg.initial_timestamp)
        self.trades: List[TradeRecord] = []
        self.intraday: Dict[str, IntradayStats] = {}
        self.pending: Optional[PendingSignal] = None
        self.last_side: Optional[Side] = None
        self._day: Optional[IntradayStats] = None

    def _log_configuration(self) -> None:
        cfg = self.config
        window = f"{cfg.start or 'start of data'} -> {cfg.end or 'end of data'}"
        self.log.add("config", f"backtest {window}, fingerprint {cfg.fingerprint()}")
        if cfg.use_trailing_stop:
            self.log.add(
                "config",
                f"trailing stop: breakeven at {cfg.breakeven_trigger} points, trail {cfg.trail_distance} points",
            )
        else:
            self.log.add("config", f"static stops: {cfg.stop_loss} points, target {cfg.take_profit} points")
        if cfg.max_daily_loss:
            self.log.add("config", f"daily loss limit {cfg.max_daily_loss:.2f}")
        if cfg.max_daily_profit:
            self.log.add("config", f"daily profit target {cfg.max_daily_profit:.2f}")

    @staticmethod
    def _check_bar(bar: Bar, prev: Optional[Bar]) -> None:
        if not isinstance(bar.time, datetime):
            raise MalformedBarError(f"bar time is not a datetime: {bar.time!r}")
        for name in ("open", "high", "low", "close", "volume"):
            value = getattr(bar, name)
            if value is None or math.isnan(value):
                raise MalformedBarError(f"{bar.time}: {name} is missing")
        if bar.high < bar.low:
            raise MalformedBarError(f"{bar.time}: high {bar.high} below low {bar.low}")
        if prev is not None and bar.time < prev.time:
            raise MalformedBarError(f"{bar.time}: bars out of order (previous {prev.time})")

    def _in_window(self, bar: Bar) -> bool:
        cfg = self.config
        if cfg.start is not None and bar.time < cfg.start:
            return False
        if cfg.end is not None and bar.time > cfg.end:
            return False
        return True

    def run(self, bars: Iterable[Bar]) -> BacktestResult:
        self._reset()
        self._log_configuration()
        cfg = self.config
        count = 0
        prev: Optional[Bar] = None

        for bar in bars:
            self._check_bar(bar, prev)
            if not self._in_window(bar):
                continue
            count += 1
            self._roll_day(bar)
            if prev is None:
                self.ledger.begin(bar.time)
                prev = bar
                continue
            self.strategy.update(prev)
            self._process_bar(bar, prev)
            self._mark_to_market(bar)
            prev = bar

        if prev is not None and self.positions.is_open and cfg.close_at_end:
            self._handle_exit(prev, self.positions.force_exit(prev, "end-of-data"))
        if self.pending is not None:
            self.log.add("entry-skipped", "pending signal dropped at end of data", prev.time if prev else None)
            self.pending = None

        return self._results(count)

    def _roll_day(self, bar: Bar) -> None:
        key = day_key(bar.time)
        if self._day is not None and self._day.date == key:
            return
        opening = self.risk.day_pnl(bar.time)
        self._day = IntradayStats(date=key, max_high=opening, max_low=opening, final_pnl=opening)
        self.intraday[key] = self._day

    def _process_bar(self, bar: Bar, prev: Bar) -> None:
        cfg = self.config
        gap = classify_gap(prev, bar, cfg.significant_gap_pct, cfg.extreme_gap_pct)
        if gap.significant:
            self.log.add(
                "gap",
                f"{gap.pct:.2f}% gap ({gap.points:.2f} points) {prev.close:.2f} -> {bar.open:.2f}",
                bar.time,
                points=gap.points,
                pct=gap.pct,
                position_open=self.positions.is_open,
            )
            if gap.extreme and self.pending is not None:
                self.log.add("entry-skipped", f"pending signal cancelled by {gap.pct:.2f}% gap", bar.time)
                self.pending = None

        if not self.risk.can_trade(bar.time):
            if self.positions.is_open:
                self._handle_exit(bar, self.positions.force_exit(bar, "daily-limit-reached"))
            if self.pending is not None:
                self.log.add("entry-skipped", "daily limit reached", bar.time)
                self.pending = None
            return

        if self.positions.is_open and bar.time.time() >= cfg.eod_cutoff:
            self._handle_exit(bar, self.positions.force_exit(bar, "end-of-day"))

        if self.positions.is_open:
            result = self.positions.check_exit(bar)
            if result is not None:
                self._handle_exit(bar, result)

        if self.pending is not None and not self.positions.is_open:
            self._execute_pending(bar)

        if not self.positions.is_open and self.pending is None and self.risk.can_trade(bar.time):
            self._generate_signal(bar)

    def _execute_pending(self, bar: Bar) -> None:
        signal, self.pending = self.pending, None
        if not self.risk.can_trade(bar.time):
            self.log.add("entry-skipped", "daily limit reached", bar.time)
            return
        signal_close = signal.signal_bar.close
        if not gap_within_tolerance(signal_close, bar.open, self.config.entry_gap_tolerance_pct):
            pct = abs(bar.open - signal_close) / signal_close * 100 if signal_close else float("inf")
            self.log.add("entry-skipped", f"gap too large ({pct:.2f}%)", bar.time, pct=pct)
            return
        self.positions.enter(signal.side, bar.open, bar)
        self.last_side = signal.side

    def _generate_signal(self, bar: Bar) -> None:
        outcome = self.strategy.get_signal(bar, self.last_side)
        for note in outcome.notes:
            self.log.add("filtered", note, bar.time, stage="indicators", skipped=True)
        if outcome.accepted:
            self.pending = PendingSignal(side=outcome.side, signal_bar=bar)
            self.log.add(
                "signal",
                f"{outcome.side.value} signal, entering on next bar open",
                bar.time,
                side=outcome.side.value,
                close=bar.close,
            )
        elif outcome.stage not in _QUIET_STAGES:
            self.log.add("filtered", f"{outcome.stage}: {outcome.reason}", bar.time, stage=outcome.stage)

    def _handle_exit(self, bar: Bar, result: ExitResult) -> None:
        trade = result.trade
        self.trades.append(trade)
        limit = self.risk.record_trade(bar.time, trade.net_pnl)
        self.ledger.update_open_position(0.0)
        self.ledger.record_trade(bar.time, trade.net_pnl)

        day = self._day
        day_pnl = self.risk.day_pnl(bar.time)
        day.final_pnl = day_pnl
        day.max_high = max(day.max_high, day_pnl)
        day.max_low = min(day.max_low, day_pnl)
        day.trades += 1

        if not limit.allowed:
            self.log.add(
                "daily-limit",
                limit.reason,
                bar.time,
                actual_pnl=day_pnl,
                capped_pnl=self.risk.day_pnl(bar.time, capped=True),
            )
            self.pending = None

    def _mark_to_market(self, bar: Bar) -> None:
        self.ledger.update_open_position(self.positions.open_pnl(bar.close))

    def _results(self, count: int) -> BacktestResult:
        cfg = self.config
        report = validate_trades(self.trades, cfg, self.instrument)
        for line in summarize(report, cfg):
            self.log.add("validation", line)

        limits = self.risk.summary()
        stats = compute_statistics(self.trades, cfg.initial_balance, limits)
        self.log.add(
            "summary",
            f"{count} bars, {stats.total_trades} trades, win rate {stats.win_rate:.2f}%, "
            f"average profit {stats.average_profit:.2f}, total {stats.total_profit:.2f}",
        )
        logger.info("Backtest done: %d bars, %d trades, total %.2f", count, stats.total_trades, stats.total_profit)

        return BacktestResult(
            count=count,
            logs=self.log.events,
            statistics=stats,
            trades=list(self.trades),
            intraday_stats=dict(self.intraday),
            equity_curve=self.ledger.equity_curve,
            drawdown_events=self.ledger.drawdown_events,
            daily_stats=self.risk.daily_stats(),
            account=self.ledger.summary(),
            limits=limits,
            validation=report,
            config_fingerprint=cfg.fingerprint(),
        )


def run(bars: Iterable[Bar], config: Config) -> BacktestResult:
    """Run one backtest with fresh state."""
    return BacktestEngine(config).run(bars)
