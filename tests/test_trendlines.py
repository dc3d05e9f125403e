"""Unit tests for features.trendlines."""

import numpy as np
import pytest
from cvd_backtester.core.types import Breakout
from cvd_backtester.features.trendlines import check_trend_line, fit_trendlines, optimize_slope


def test_needs_two_points():
    with pytest.raises(ValueError):
        fit_trendlines([1.0])


def test_check_trend_line_rejects_crossing():
    y = np.array([0.0, 10.0, 0.0, 10.0, 5.0])
    assert check_trend_line(True, 2, 0.0, y) == pytest.approx(25.0 + 100.0 + 100.0)
    assert check_trend_line(True, 2, 3.0, y) == -1.0
    assert check_trend_line(False, 1, -1.0, y) == -1.0


def test_lines_bound_the_data():
    y = np.array([3.0, 7.0, 2.0, 9.0, 4.0, 8.0, 5.0])
    fit = fit_trendlines(y)
    assert np.all(fit.support_line <= y + 1e-5)
    assert np.all(fit.resist_line >= y - 1e-5)


def test_optimize_slope_tightens_support():
    y = np.array([0.0, 10.0, 0.0, 10.0, 5.0])
    slope, intercept = optimize_slope(True, 2, 0.5, y)
    assert slope == pytest.approx(1.0, abs=1e-2)
    assert intercept == pytest.approx(-2 * slope)


def test_bullish_breakout():
    fit = fit_trendlines([1.0, 2.0, 3.0, 4.0, 10.0])
    assert fit.breakout is Breakout.BULLISH
    assert fit.resist_line[-1] == pytest.approx(10.0)


def test_bearish_breakout():
    fit = fit_trendlines([10.0, 9.0, 8.0, 7.0, 1.0])
    assert fit.breakout is Breakout.BEARISH
    assert fit.support_line[-1] == pytest.approx(1.0)


def test_inside_channel_no_breakout():
    fit = fit_trendlines([0.0, 10.0, 0.0, 10.0, 5.0])
    assert fit.breakout is Breakout.NONE
    assert fit.support_slope == pytest.approx(1.0, abs=1e-2)
    assert fit.resist_slope == pytest.approx(0.0, abs=1e-9)


def test_linear_series_has_positive_resistance():
    fit = fit_trendlines([100.0, 101.0, 102.0, 103.0])
    assert fit.resist_slope == pytest.approx(1.0, abs=1e-3)
    assert fit.breakout is Breakout.BULLISH


def test_flat_series_has_exactly_zero_slopes():
    fit = fit_trendlines([5.0, 5.0, 5.0, 5.0])
    assert fit.resist_slope == 0.0
    assert fit.support_slope == 0.0
