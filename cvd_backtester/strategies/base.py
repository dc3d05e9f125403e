"""Abstract strategy: rolling history + signal generation."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from cvd_backtester.core.types import Bar, Side
from cvd_backtester.strategies.validator import ValidationOutcome


class BaseStrategy(ABC):
    """Strategy keeps its own bar history and may return a side for the current bar."""

    @abstractmethod
    def update(self, bar: Bar) -> None:
        """Append a completed bar to the history. Called with prior bars only."""
        pass

    @abstractmethod
    def get_signal(self, bar: Bar, last_side: Optional[Side] = None) -> ValidationOutcome:
        """
        Evaluate `bar` against the history. The outcome carries the side when
        accepted, or the rejecting stage and reason.
        """
        pass
