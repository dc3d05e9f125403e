"""
Support/resistance trend lines over a short momentum window.

The OLS slope seeds a shrinking-step search per line: a slope is invalid if
any point lies on the wrong side of the line through the pivot, otherwise
the squared vertical distance to all points is minimized.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from cvd_backtester.core.types import Breakout

SIDE_EPS = 1e-5
MIN_STEP = 1e-4
# Slopes smaller than this are float noise on a flat line
FLAT_SLOPE = 1e-9


@dataclass(frozen=True)
class TrendlineFit:
    support_line: np.ndarray
    resist_line: np.ndarray
    support_slope: float
    resist_slope: float
    support_intercept: float
    resist_intercept: float
    breakout: Breakout


def check_trend_line(support: bool, pivot: int, slope: float, y: np.ndarray) -> float:
    """Sum of squared distances, or -1.0 if the line crosses the data."""
    intercept = -slope * pivot + y[pivot]
    diffs = slope * np.arange(len(y)) + intercept - y
    if support and diffs.max() > SIDE_EPS:
        return -1.0
    if not support and diffs.min() < -SIDE_EPS:
        return -1.0
    return float(np.sum(diffs ** 2))


def optimize_slope(support: bool, pivot: int, init_slope: float, y: np.ndarray) -> Tuple[float, float]:
    """Return (slope, intercept) of the best valid line through y[pivot]."""
    n = len(y)
    slope_unit = (y.max() - y.min()) / n
    opt_step = 1.0
    best_slope = init_slope
    best_err = check_trend_line(support, pivot, init_slope, y)
    derivative = 0.0
    get_derivative = True

    max_iters = n * 10
    max_no_improve = n * 5
    iters = 0
    no_improve = 0

    while opt_step > MIN_STEP:
        iters += 1
        if iters >= max_iters or no_improve >= max_no_improve:
            break

        if get_derivative:
            test = best_slope + slope_unit * MIN_STEP
            err_test = check_trend_line(support, pivot, test, y)
            if err_test < 0:
                test = best_slope - slope_unit * MIN_STEP
                err_test = check_trend_line(support, pivot, test, y)
            derivative = err_test - best_err
            get_derivative = False

        if derivative > 0:
            trial = best_slope - slope_unit * opt_step
        else:
            trial = best_slope + slope_unit * opt_step
        err_trial = check_trend_line(support, pivot, trial, y)

        if err_trial < 0 or err_trial >= best_err:
            opt_step *= 0.5
            no_improve += 1
        else:
            best_slope = trial
            best_err = err_trial
            get_derivative = True
            no_improve = 0

    if abs(best_slope) < FLAT_SLOPE:
        best_slope = 0.0
    return float(best_slope), float(-best_slope * pivot + y[pivot])


def fit_trendlines(series: Sequence[float], tolerance: float = 0.001) -> TrendlineFit:
    """
    Fit support and resistance lines and classify the last value.
    BULLISH when it is at/above resistance, BEARISH at/below support, each
    within `tolerance` relative to the line's value.
    """
    y = np.asarray(series, dtype=float)
    n = len(y)
    if n < 2:
        raise ValueError(f"need at least 2 points to fit trend lines, got {n}")
    x = np.arange(n, dtype=float)

    slope = float(np.polyfit(x, y, 1)[0])
    residuals = y - slope * x
    up_pivot = int(np.argmax(residuals))
    lo_pivot = int(np.argmin(residuals))

    sup_slope, sup_int = optimize_slope(True, lo_pivot, slope, y)
    res_slope, res_int = optimize_slope(False, up_pivot, slope, y)
    support_line = sup_slope * x + sup_int
    resist_line = res_slope * x + res_int

    last = y[-1]
    res_last = resist_line[-1]
    sup_last = support_line[-1]
    if last >= res_last - abs(res_last) * tolerance:
        breakout = Breakout.BULLISH
    elif last <= sup_last + abs(sup_last) * tolerance:
        breakout = Breakout.BEARISH
    else:
        breakout = Breakout.NONE

    return TrendlineFit(
        support_line=support_line,
        resist_line=resist_line,
        support_slope=sup_slope,
        resist_slope=res_slope,
        support_intercept=sup_int,
        resist_intercept=res_int,
        breakout=breakout,
    )
