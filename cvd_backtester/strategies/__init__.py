"""Strategies: base interface, CVD breakout, validation pipeline."""

from cvd_backtester.strategies.base import BaseStrategy
from cvd_backtester.strategies.cvd_breakout import CvdBreakoutStrategy
from cvd_backtester.strategies.validator import SignalContext, SignalValidator, ValidationOutcome

__all__ = ["BaseStrategy", "CvdBreakoutStrategy", "SignalContext", "SignalValidator", "ValidationOutcome"]
