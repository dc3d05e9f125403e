"""
Post-run trade validation: compares each trade's net P&L with the clean
take-profit / stop-loss value. Advisory only; trades are never altered.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from cvd_backtester.core.types import TradeRecord
from cvd_backtester.utils.ticks import InstrumentSpec, expected_pnl

if TYPE_CHECKING:
    from cvd_backtester.core.config import Config

TOLERANCE_USD = 50.0
EXTREME_MULTIPLIER = 2.0


@dataclass(frozen=True)
class TradeAnomaly:
    index: int
    trade: TradeRecord
    expected_pnl: float
    deviation: float
    extreme: bool


@dataclass
class ValidationReport:
    expected_win: float
    expected_loss: float
    anomalies: List[TradeAnomaly] = field(default_factory=list)

    @property
    def total_anomalies(self) -> int:
        return len(self.anomalies)

    @property
    def extreme_anomalies(self) -> int:
        return sum(1 for a in self.anomalies if a.extreme)


def validate_trades(
    trades: Sequence[TradeRecord],
    config: "Config",
    instrument: Optional[InstrumentSpec] = None,
) -> ValidationReport:
    instrument = instrument or config.instrument
    win = expected_pnl(config.take_profit, config.contracts, instrument, is_win=True)
    loss = expected_pnl(config.stop_loss, config.contracts, instrument, is_win=False)
    report = ValidationReport(expected_win=win, expected_loss=loss)
    for i, trade in enumerate(trades):
        expected = win if trade.net_pnl > 0 else loss
        deviation = abs(trade.net_pnl - expected)
        if deviation > TOLERANCE_USD:
            report.anomalies.append(
                TradeAnomaly(
                    index=i,
                    trade=trade,
                    expected_pnl=expected,
                    deviation=deviation,
                    extreme=abs(trade.net_pnl) > abs(expected) * EXTREME_MULTIPLIER,
                )
            )
    return report


def summarize(report: ValidationReport, config: "Config") -> List[str]:
    """Human-readable lines for the event log."""
    lines = [
        f"expected win {report.expected_win:.2f} ({config.take_profit} points)",
        f"expected loss {report.expected_loss:.2f} ({config.stop_loss} points)",
    ]
    if not report.anomalies:
        lines.append(f"all trades within expected P&L ranges (+/-{TOLERANCE_USD:.0f})")
        return lines
    lines.append(
        f"{report.total_anomalies} trades with unexpected P&L ({report.extreme_anomalies} extreme)"
    )
    for a in report.anomalies:
        if not a.extreme:
            continue
        t = a.trade
        lines.append(
            f"extreme anomaly trade #{a.index + 1}: {abs(t.points):.2f} points, "
            f"P&L {t.net_pnl:.2f} (expected {a.expected_pnl:.2f}), exit {t.exit_reason}, "
            f"entry {t.entry_time:%Y-%m-%d %H:%M:%S} @ {t.entry_price}, "
            f"exit {t.exit_time:%Y-%m-%d %H:%M:%S} @ {t.exit_price}"
        )
    return lines
