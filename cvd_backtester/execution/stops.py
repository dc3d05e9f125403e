"""
Breakeven and trailing stop updates.

Excursion is measured from the entry to the bar extreme in the position's
favor (high for longs, low for shorts). At `breakeven_trigger` points the
stop moves to entry; once the excursion reaches trigger + trail distance the
stop trails at entry +/- (excursion - trail), snapped to the tick grid. The
stop only ever tightens.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from cvd_backtester.core.types import Bar, Position, Side
from cvd_backtester.utils.ticks import round_to_tick


@dataclass(frozen=True)
class TrailingRule:
    enabled: bool = False
    breakeven_trigger: float = 3.0
    trail_distance: float = 2.0
    tick_size: float = 0.25


def _tighter(side: Side, candidate: float, current: float) -> bool:
    return candidate > current if side is Side.LONG else candidate < current


def update_trailing_stop(position: Position, bar: Bar, rule: TrailingRule) -> Optional[str]:
    """
    Move the stop for `bar`. Returns a description when the stop moved,
    None otherwise. Mutates `position`.
    """
    if not rule.enabled:
        return None

    side = position.side
    extreme = bar.high if side is Side.LONG else bar.low
    excursion = position.open_points(extreme)
    if excursion > position.best_excursion:
        position.best_excursion = excursion

    moved = None
    if not position.stop_at_breakeven and position.best_excursion >= rule.breakeven_trigger:
        position.stop_at_breakeven = True
        if _tighter(side, position.entry_price, position.stop_price):
            position.stop_price = position.entry_price
        moved = f"stop moved to breakeven at {position.stop_price:.2f}"

    if position.stop_at_breakeven and position.best_excursion >= rule.breakeven_trigger + rule.trail_distance:
        locked = position.best_excursion - rule.trail_distance
        candidate = round_to_tick(position.entry_price + side.sign * locked, rule.tick_size)
        if _tighter(side, candidate, position.stop_price):
            position.stop_price = candidate
            position.trailing_active = True
            moved = f"trailing stop updated to {candidate:.2f}"

    return moved


def stop_reason(position: Position) -> str:
    if position.trailing_active:
        return "trailing-stop"
    if position.stop_at_breakeven:
        return "breakeven-stop"
    return "stop-loss"
