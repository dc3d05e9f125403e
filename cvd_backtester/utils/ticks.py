"""Tick-grid rounding and futures P&L arithmetic."""

from __future__ import annotations
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class InstrumentSpec:
    """Contract constants. Defaults are the ES mini."""
    tick_size: float = 0.25
    tick_value: float = 12.5
    commission_per_contract: float = 2.5  # round trip
    max_slippage_ticks: int = 1

    @property
    def max_slippage(self) -> float:
        """Largest gap fill allowed beyond a stop/target level, in points."""
        return self.max_slippage_ticks * self.tick_size


@dataclass(frozen=True)
class TradePnl:
    ticks: int
    gross: float
    commission: float
    net: float


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves toward +inf (independent of banker's rounding)."""
    return int(math.floor(value + 0.5))


def round_to_tick(price: float, tick_size: float) -> float:
    """Snap price to the tick grid."""
    return round(round_half_up(price / tick_size) * tick_size, 8)


def is_on_tick(price: float, tick_size: float) -> bool:
    return abs(price - round_to_tick(price, tick_size)) < 1e-9


def points_to_ticks(points: float, tick_size: float) -> int:
    return round_half_up(round(points / tick_size, 8))


def trade_pnl(points: float, contracts: int, spec: InstrumentSpec) -> TradePnl:
    """
    Whole-tick P&L for a closed trade.
    net = round(points / tick_size) * tick_value * contracts - commission * contracts
    """
    ticks = points_to_ticks(points, spec.tick_size)
    gross = round(ticks * spec.tick_value * contracts, 8)
    commission = round(spec.commission_per_contract * contracts, 8)
    return TradePnl(ticks=ticks, gross=gross, commission=commission, net=round(gross - commission, 8))


def expected_pnl(points: float, contracts: int, spec: InstrumentSpec, is_win: bool) -> float:
    """Net P&L of a clean exit exactly `points` away from entry."""
    gross = points / spec.tick_size * spec.tick_value * contracts
    commission = spec.commission_per_contract * contracts
    return gross - commission if is_win else -(gross + commission)
