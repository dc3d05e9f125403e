"""
Breakout validation pipeline. Stages run in a fixed order; the first failing
stage rejects the signal and later stages are not evaluated.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

import numpy as np

from cvd_backtester.core.types import Bar, Breakout, Side
from cvd_backtester.features.trendlines import TrendlineFit

if TYPE_CHECKING:
    from cvd_backtester.core.config import Config

STAGES = (
    "direction",
    "reversal",
    "slope",
    "breakout",
    "volume",
    "indicators",
    "adx",
    "cvd_color",
    "momentum",
)

CVD_COLORS = {Side.LONG: "green", Side.SHORT: "red"}


@dataclass(frozen=True)
class SignalContext:
    """Inputs for one bar. Windows hold prior bars only, oldest first."""
    bar: Bar
    closes: Sequence[float]
    volumes: Sequence[float]
    momentum: Sequence[float]
    last_side: Optional[Side] = None
    adx: Optional[float] = None


@dataclass(frozen=True)
class ValidationOutcome:
    side: Optional[Side]
    stage: str = ""
    reason: str = ""
    notes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def accepted(self) -> bool:
        return self.side is not None


class SignalValidator:
    """
    Direction, reversal, trend slope, price breakout, volume, EMA/SMA/VWAP
    agreement, ADX threshold, CVD color and momentum acceleration checks.
    Every stage except `direction` can be switched off in the config.
    """

    def __init__(self, config: "Config"):
        self.trade_direction = config.trade_direction
        self.ema_filter = config.ema_filter
        self.sma_filter = config.sma_filter
        self.use_vwap = config.use_vwap
        self.adx_threshold = config.adx_threshold
        self.momentum_multiplier = config.momentum_multiplier
        enabled = {
            "direction": True,
            "reversal": config.use_reversal_filter,
            "slope": config.use_slope_filter,
            "breakout": config.use_breakout_filter,
            "volume": config.use_volume_filter,
            "indicators": config.use_indicator_filter,
            "adx": config.use_adx_filter,
            "cvd_color": config.use_cvd_color_filter,
            "momentum": config.use_momentum_filter,
        }
        checks = {
            "direction": self._check_direction,
            "reversal": self._check_reversal,
            "slope": self._check_slope,
            "breakout": self._check_breakout,
            "volume": self._check_volume,
            "indicators": self._check_indicators,
            "adx": self._check_adx,
            "cvd_color": self._check_cvd_color,
            "momentum": self._check_momentum,
        }
        self._stages: List[Tuple[str, Callable[..., Optional[str]]]] = [
            (name, checks[name]) for name in STAGES if enabled[name]
        ]
        self._notes: List[str] = []

    @property
    def active_stages(self) -> List[str]:
        return [name for name, _ in self._stages]

    def validate(self, breakout: Breakout, fit: TrendlineFit, ctx: SignalContext) -> ValidationOutcome:
        side = breakout.side
        if side is None:
            return ValidationOutcome(side=None, stage="trendline", reason="no breakout")
        self._notes = []
        for name, check in self._stages:
            reason = check(side, fit, ctx)
            if reason:
                return ValidationOutcome(side=None, stage=name, reason=reason, notes=tuple(self._notes))
        return ValidationOutcome(side=side, notes=tuple(self._notes))

    def _check_direction(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if not self.trade_direction.allows(side):
            return f"{side.value} trades disabled (direction={self.trade_direction.value})"
        return None

    def _check_reversal(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if ctx.last_side is side:
            return f"waiting for reversal from {side.value}"
        return None

    def _check_slope(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if side is Side.LONG and fit.resist_slope <= 0:
            return f"resistance slope not positive ({fit.resist_slope:.4f})"
        if side is Side.SHORT and fit.support_slope >= 0:
            return f"support slope not negative ({fit.support_slope:.4f})"
        return None

    def _check_breakout(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if not ctx.closes:
            return "no price history"
        close = ctx.bar.close
        if side is Side.LONG and close <= max(ctx.closes):
            return f"close {close:.2f} did not exceed recent high {max(ctx.closes):.2f}"
        if side is Side.SHORT and close >= min(ctx.closes):
            return f"close {close:.2f} did not drop below recent low {min(ctx.closes):.2f}"
        return None

    def _check_volume(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if not ctx.volumes:
            return "no volume history"
        avg = float(np.mean(ctx.volumes))
        if ctx.bar.volume <= avg:
            return f"volume {ctx.bar.volume:.0f} not above average {avg:.0f}"
        return None

    def _indicator_values(self, bar: Bar) -> List[Tuple[str, Optional[float]]]:
        checks: List[Tuple[str, Optional[float]]] = []
        if self.ema_filter:
            checks.append((f"EMA{self.ema_filter}", bar.ema.get(self.ema_filter)))
        if self.sma_filter:
            checks.append((f"SMA{self.sma_filter}", bar.sma.get(self.sma_filter)))
        if self.use_vwap:
            checks.append(("VWAP", bar.vwap))
        return checks

    def _check_indicators(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        close = ctx.bar.close
        failed = []
        for name, value in self._indicator_values(ctx.bar):
            if value is None:
                self._notes.append(f"{name} missing on bar, skipped")
                continue
            favorable = close > value if side is Side.LONG else close < value
            if not favorable:
                failed.append(f"{name}({value:.2f})")
        if failed:
            where = "below" if side is Side.LONG else "above"
            return f"price {close:.2f} not {where} " + ", ".join(failed)
        return None

    def _check_adx(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        if not self.adx_threshold:
            return None
        if ctx.adx is None:
            return "ADX not yet defined"
        if ctx.adx < self.adx_threshold:
            return f"ADX {ctx.adx:.2f} < {self.adx_threshold}"
        return None

    def _check_cvd_color(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        color = (ctx.bar.cvd_color or "").lower()
        if color != CVD_COLORS[side]:
            return f"CVD color {color or 'missing'} does not confirm {side.value}"
        return None

    def _check_momentum(self, side: Side, fit: TrendlineFit, ctx: SignalContext) -> Optional[str]:
        series = np.asarray(ctx.momentum, dtype=float)
        if len(series) < 3:
            return "momentum window too short"
        diffs = np.diff(series)
        current, prior = float(diffs[-1]), float(diffs[-2])
        if current * side.sign <= 0:
            return f"momentum moving against {side.value} ({current:.2f})"
        if abs(current) < abs(prior):
            return f"momentum decelerating ({abs(current):.2f} < {abs(prior):.2f})"
        threshold = self.momentum_multiplier * float(np.mean(np.abs(diffs)))
        if abs(current) <= threshold:
            return f"momentum change {abs(current):.2f} not above {threshold:.2f}"
        return None
