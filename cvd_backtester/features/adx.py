"""
Incremental ADX (Wilder). Fed one completed bar at a time, no lookahead.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional


@dataclass(frozen=True)
class DirectionalReading:
    """Latest +DI/-DI/DX/ADX. None means not enough history yet."""
    plus_di: Optional[float] = None
    minus_di: Optional[float] = None
    dx: Optional[float] = None
    adx: Optional[float] = None


def wilder(prev: float, new: float, period: int) -> float:
    return (prev * (period - 1) + new) / period


class DirectionalStrength:
    """
    Average directional index over `period` bars.

    TR, +DM and -DM are simple-averaged over the first `period` values and
    Wilder-smoothed afterwards. ADX is the mean of the first `period` DX
    values, Wilder-smoothed afterwards, so it needs 2 * period bars.
    """

    def __init__(self, period: int = 14):
        if period < 2:
            raise ValueError(f"period must be >= 2, got {period}")
        self.period = period
        self._prev_high: Optional[float] = None
        self._prev_low: Optional[float] = None
        self._prev_close: Optional[float] = None
        # Seed windows for the first simple average
        self._tr: Deque[float] = deque(maxlen=period)
        self._plus_dm: Deque[float] = deque(maxlen=period)
        self._minus_dm: Deque[float] = deque(maxlen=period)
        self._atr: Optional[float] = None
        self._plus_smooth: float = 0.0
        self._minus_smooth: float = 0.0
        self._dx_seed: List[float] = []
        self._adx: Optional[float] = None
        self._reading = DirectionalReading()
        self.bars_seen = 0

    @property
    def value(self) -> Optional[float]:
        """Current ADX or None while undefined."""
        return self._adx

    @property
    def reading(self) -> DirectionalReading:
        return self._reading

    def update(self, high: float, low: float, close: float) -> DirectionalReading:
        self.bars_seen += 1
        if self._prev_close is None:
            self._prev_high, self._prev_low, self._prev_close = high, low, close
            return self._reading

        up_move = high - self._prev_high
        down_move = self._prev_low - low
        plus_dm = up_move if up_move > down_move and up_move > 0 else 0.0
        minus_dm = down_move if down_move > up_move and down_move > 0 else 0.0
        tr = max(high - low, abs(high - self._prev_close), abs(low - self._prev_close))
        self._prev_high, self._prev_low, self._prev_close = high, low, close

        if self._atr is None:
            self._tr.append(tr)
            self._plus_dm.append(plus_dm)
            self._minus_dm.append(minus_dm)
            if len(self._tr) < self.period:
                return self._reading
            self._atr = sum(self._tr) / self.period
            self._plus_smooth = sum(self._plus_dm) / self.period
            self._minus_smooth = sum(self._minus_dm) / self.period
        else:
            self._atr = wilder(self._atr, tr, self.period)
            self._plus_smooth = wilder(self._plus_smooth, plus_dm, self.period)
            self._minus_smooth = wilder(self._minus_smooth, minus_dm, self.period)

        plus_di = self._plus_smooth / self._atr * 100 if self._atr > 0 else 0.0
        minus_di = self._minus_smooth / self._atr * 100 if self._atr > 0 else 0.0
        di_sum = plus_di + minus_di
        dx = abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0

        if self._adx is None:
            self._dx_seed.append(dx)
            if len(self._dx_seed) == self.period:
                self._adx = sum(self._dx_seed) / self.period
                self._dx_seed.clear()
        else:
            self._adx = wilder(self._adx, dx, self.period)

        self._reading = DirectionalReading(plus_di=plus_di, minus_di=minus_di, dx=dx, adx=self._adx)
        return self._reading
