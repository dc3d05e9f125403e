"""
CVD trend-line breakout strategy.
Fits support/resistance over the last `lookback` CVD values and runs the
breakout through the validation pipeline.
"""

from __future__ import annotations
from collections import deque
from typing import TYPE_CHECKING, Deque, Optional

from cvd_backtester.core.types import Bar, Side
from cvd_backtester.features.adx import DirectionalStrength
from cvd_backtester.features.trendlines import TrendlineFit, fit_trendlines
from cvd_backtester.strategies.base import BaseStrategy
from cvd_backtester.strategies.validator import SignalContext, SignalValidator, ValidationOutcome

if TYPE_CHECKING:
    from cvd_backtester.core.config import Config


class CvdBreakoutStrategy(BaseStrategy):
    """
    Momentum series is the feed's cvd_close when the first bar carries one,
    otherwise the running sum of bar deltas. The source is fixed for the run;
    a cvd_close feed that skips a value continues from its last value by the
    bar's delta. ADX comes from the bar when the feed carries it, else from
    the directional strength computed over the same history.
    """

    def __init__(self, config: "Config"):
        self.lookback = config.lookback
        self.tolerance = config.trendline_tolerance
        self._momentum: Deque[float] = deque(maxlen=self.lookback)
        self._closes: Deque[float] = deque(maxlen=self.lookback)
        self._volumes: Deque[float] = deque(maxlen=self.lookback)
        self._cum_delta = 0.0
        self._from_cvd_close: Optional[bool] = None
        self.adx = DirectionalStrength(config.adx_period)
        self.validator = SignalValidator(config)
        self.last_fit: Optional[TrendlineFit] = None

    @property
    def ready(self) -> bool:
        return len(self._momentum) >= self.lookback

    def update(self, bar: Bar) -> None:
        if self._from_cvd_close is None:
            self._from_cvd_close = bar.cvd_close is not None
        if self._from_cvd_close and bar.cvd_close is not None:
            self._cum_delta = bar.cvd_close
        else:
            self._cum_delta += bar.delta
        self._momentum.append(self._cum_delta)
        self._closes.append(bar.close)
        self._volumes.append(bar.volume)
        self.adx.update(bar.high, bar.low, bar.close)

    def get_signal(self, bar: Bar, last_side: Optional[Side] = None) -> ValidationOutcome:
        if not self.ready:
            return ValidationOutcome(
                side=None, stage="warmup", reason=f"{len(self._momentum)}/{self.lookback} bars of history"
            )
        fit = fit_trendlines(list(self._momentum), self.tolerance)
        self.last_fit = fit
        ctx = SignalContext(
            bar=bar,
            closes=tuple(self._closes),
            volumes=tuple(self._volumes),
            momentum=tuple(self._momentum),
            last_side=last_side,
            adx=bar.adx if bar.adx is not None else self.adx.value,
        )
        return self.validator.validate(fit.breakout, fit, ctx)
