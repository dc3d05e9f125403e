"""Execution: position state machine, trailing stops, gap checks."""

from cvd_backtester.execution.gaps import GapResult, classify_gap, gap_within_tolerance
from cvd_backtester.execution.position import FORCED_EXIT_REASONS, ExitResult, PositionManager
from cvd_backtester.execution.stops import TrailingRule, stop_reason, update_trailing_stop

__all__ = [
    "GapResult",
    "classify_gap",
    "gap_within_tolerance",
    "FORCED_EXIT_REASONS",
    "ExitResult",
    "PositionManager",
    "TrailingRule",
    "stop_reason",
    "update_trailing_stop",
]
