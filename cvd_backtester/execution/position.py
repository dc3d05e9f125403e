"""
Single-position execution: tick-aligned entries, stop/target exits with
capped gap slippage, forced exits and whole-tick P&L.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from cvd_backtester.core.logger import EventLog
from cvd_backtester.core.types import Bar, Position, Side, TradeRecord
from cvd_backtester.execution.stops import TrailingRule, stop_reason, update_trailing_stop
from cvd_backtester.utils.ticks import InstrumentSpec, expected_pnl, round_to_tick, trade_pnl

if TYPE_CHECKING:
    from cvd_backtester.core.config import Config

logger = logging.getLogger("cvd_backtester.execution")

FORCED_EXIT_REASONS = ("end-of-day", "daily-limit-reached", "end-of-data")


@dataclass(frozen=True)
class ExitResult:
    """Closed trade plus the fill that produced it."""
    trade: TradeRecord
    price: float
    reason: str

    @property
    def net_pnl(self) -> float:
        return self.trade.net_pnl


class PositionManager:
    """
    Holds at most one open position. Exits are checked stop first, then
    target; the stop is updated for trailing before either check.
    """

    def __init__(self, config: "Config", instrument: Optional[InstrumentSpec] = None, log: Optional[EventLog] = None):
        self.instrument = instrument or config.instrument
        self.stop_loss = config.stop_loss
        self.take_profit = config.take_profit
        self.contracts = config.contracts
        self.rule = TrailingRule(
            enabled=config.use_trailing_stop,
            breakeven_trigger=config.breakeven_trigger,
            trail_distance=config.trail_distance,
            tick_size=self.instrument.tick_size,
        )
        self.log = log if log is not None else EventLog()
        self.position: Optional[Position] = None

    @property
    def is_open(self) -> bool:
        return self.position is not None

    def _tick(self, price: float) -> float:
        return round_to_tick(price, self.instrument.tick_size)

    def enter(self, side: Side, price: float, bar: Bar) -> Position:
        if self.position is not None:
            raise RuntimeError("position already open")
        entry = self._tick(price)
        stop = self._tick(entry - side.sign * self.stop_loss)
        target = self._tick(entry + side.sign * self.take_profit)
        self.position = Position(
            side=side,
            entry_price=entry,
            stop_price=stop,
            target_price=target,
            entry_time=bar.time,
            initial_stop_price=stop,
        )
        self.log.add(
            "entry",
            f"{side.value} {self.contracts} @ {entry:.2f} stop {stop:.2f} target {target:.2f}",
            bar.time,
            side=side.value,
            price=entry,
            stop=stop,
            target=target,
        )
        return self.position

    def open_pnl(self, price: float) -> float:
        """Unrealized gross P&L at `price`, in dollars."""
        if self.position is None:
            return 0.0
        return trade_pnl(self.position.open_points(price), self.contracts, self.instrument).gross

    def _gap_fill(self, bar: Bar, level: float, beyond: int) -> Tuple[float, str]:
        """
        Fill for a level the bar traded through. `beyond` is the price
        direction past the level (+1 above, -1 below).
        """
        gap = (bar.open - level) * beyond
        if gap <= 0:
            return level, ""
        cap = self.instrument.max_slippage
        if gap > cap:
            return level + beyond * cap, "-max-slippage"
        return bar.open, "-gapped"

    def check_exit(self, bar: Bar) -> Optional[ExitResult]:
        pos = self.position
        if pos is None:
            return None

        moved = update_trailing_stop(pos, bar, self.rule)
        if moved:
            self.log.add("trailing", moved, bar.time, stop=pos.stop_price, excursion=pos.best_excursion)

        if pos.side is Side.LONG:
            stop_hit = bar.low <= pos.stop_price
            target_hit = bar.high >= pos.target_price
        else:
            stop_hit = bar.high >= pos.stop_price
            target_hit = bar.low <= pos.target_price

        if stop_hit:
            price, suffix = self._gap_fill(bar, pos.stop_price, -pos.side.sign)
            reason = stop_reason(pos) + suffix
        elif target_hit:
            price, suffix = self._gap_fill(bar, pos.target_price, pos.side.sign)
            reason = "take-profit" + suffix
        else:
            return None
        if suffix:
            logger.debug("Gapped exit at open %.2f, fill %.2f (%s)", bar.open, price, reason)
        return self._close(bar, self._tick(price), reason)

    def force_exit(self, bar: Bar, reason: str) -> ExitResult:
        if reason not in FORCED_EXIT_REASONS:
            raise ValueError(f"unknown forced exit reason: {reason!r}")
        if self.position is None:
            raise RuntimeError("no open position to exit")
        return self._close(bar, self._tick(bar.close), reason)

    def _close(self, bar: Bar, price: float, reason: str) -> ExitResult:
        pos = self.position
        pnl = trade_pnl(pos.open_points(price), self.contracts, self.instrument)
        trade = TradeRecord(
            entry_time=pos.entry_time,
            entry_price=pos.entry_price,
            exit_time=bar.time,
            exit_price=price,
            side=pos.side,
            contracts=self.contracts,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            exit_reason=reason,
            gross_pnl=pnl.gross,
            commission=pnl.commission,
            net_pnl=pnl.net,
        )
        self.position = None
        self.log.add(
            "exit",
            f"{trade.side.value} exit @ {price:.2f} ({reason}) net {trade.net_pnl:.2f}",
            bar.time,
            reason=reason,
            price=price,
            net_pnl=trade.net_pnl,
        )
        self._check_pnl(trade)
        return ExitResult(trade=trade, price=price, reason=reason)

    def _check_pnl(self, trade: TradeRecord) -> None:
        """Compare stop/target exits with their clean dollar value. Advisory only."""
        if trade.exit_reason.startswith("stop-loss"):
            expected = expected_pnl(self.stop_loss, trade.contracts, self.instrument, is_win=False)
        elif trade.exit_reason.startswith("take-profit"):
            expected = expected_pnl(self.take_profit, trade.contracts, self.instrument, is_win=True)
        else:
            return
        tolerance = self.instrument.tick_value * trade.contracts
        deviation = abs(trade.net_pnl - expected)
        if deviation > tolerance + 1e-9:
            self.log.add(
                "pnl-anomaly",
                f"net {trade.net_pnl:.2f} vs expected {expected:.2f} (deviation {deviation:.2f})",
                trade.exit_time,
                net_pnl=trade.net_pnl,
                expected=expected,
                deviation=deviation,
            )
