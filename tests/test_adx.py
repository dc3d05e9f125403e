"""Unit tests for features.adx."""

import pytest
from cvd_backtester.features.adx import DirectionalStrength, wilder


def test_wilder():
    assert wilder(10.0, 20.0, 5) == pytest.approx(12.0)


def test_period_too_small():
    with pytest.raises(ValueError):
        DirectionalStrength(period=1)


def test_undefined_until_two_periods():
    adx = DirectionalStrength(period=3)
    for i in range(5):
        adx.update(100 + i + 1, 100 + i, 100 + i + 0.5)
        assert adx.value is None
    adx.update(106, 105, 105.5)
    assert adx.value is not None
    assert adx.bars_seen == 6


def test_di_defined_after_period_plus_one():
    adx = DirectionalStrength(period=3)
    readings = [adx.update(100 + i + 1, 100 + i, 100 + i + 0.5) for i in range(4)]
    assert readings[2].plus_di is None
    assert readings[3].plus_di is not None
    assert readings[3].adx is None


def test_steady_uptrend_is_fully_directional():
    adx = DirectionalStrength(period=5)
    for i in range(30):
        r = adx.update(101 + i, 100 + i, 100.5 + i)
    assert r.minus_di == 0.0
    assert r.dx == pytest.approx(100.0)
    assert adx.value == pytest.approx(100.0)


def test_flat_market_reads_zero():
    adx = DirectionalStrength(period=3)
    for _ in range(10):
        adx.update(100.0, 100.0, 100.0)
    assert adx.value == 0.0
    assert adx.reading.plus_di == 0.0
