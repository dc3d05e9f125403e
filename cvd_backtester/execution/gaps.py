"""Bar-to-bar gap detection and the entry gap tolerance check."""

from __future__ import annotations
from dataclasses import dataclass

from cvd_backtester.core.types import Bar

SIGNIFICANT_GAP_PCT = 0.5
EXTREME_GAP_PCT = 1.0


@dataclass(frozen=True)
class GapResult:
    """Open of the current bar vs. close of the previous one."""
    points: float
    pct: float
    significant: bool
    extreme: bool

    @property
    def has_gap(self) -> bool:
        return self.points > 0


def classify_gap(
    prev: Bar,
    bar: Bar,
    significant_pct: float = SIGNIFICANT_GAP_PCT,
    extreme_pct: float = EXTREME_GAP_PCT,
) -> GapResult:
    points = abs(bar.open - prev.close)
    pct = points / prev.close * 100 if prev.close else 0.0
    return GapResult(
        points=points,
        pct=pct,
        significant=pct > significant_pct,
        extreme=pct > extreme_pct,
    )


def gap_within_tolerance(signal_close: float, entry_open: float, max_pct: float = 1.0) -> bool:
    """True when the entry bar opens less than `max_pct` percent away from the signal close."""
    if not signal_close:
        return False
    pct = abs(entry_open - signal_close) / signal_close * 100
    return pct < max_pct
