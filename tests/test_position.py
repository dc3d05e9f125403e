"""Unit tests for execution.position, execution.stops and execution.gaps."""

from datetime import datetime, timedelta

import pytest
from cvd_backtester.core.config import Config
from cvd_backtester.core.logger import EventLog
from cvd_backtester.core.types import Bar, Position, Side
from cvd_backtester.execution.gaps import classify_gap, gap_within_tolerance
from cvd_backtester.execution.position import PositionManager
from cvd_backtester.execution.stops import TrailingRule, stop_reason, update_trailing_stop
from cvd_backtester.utils.ticks import is_on_tick

T0 = datetime(2025, 1, 15, 10, 0)


def _bar(i: int, o: float, h: float, l: float, c: float) -> Bar:
    return Bar(time=T0 + timedelta(minutes=i), open=o, high=h, low=l, close=c, volume=100.0)


def _manager(**overrides) -> PositionManager:
    return PositionManager(Config(**overrides), log=EventLog())


def _long(pm: PositionManager, price: float = 5000.0) -> Position:
    return pm.enter(Side.LONG, price, _bar(0, price, price, price, price))


def test_entry_levels_on_tick_grid():
    pm = _manager()
    pos = pm.enter(Side.LONG, 5000.1, _bar(0, 5000.1, 5001, 4999, 5000))
    assert pos.entry_price == 5000.0
    assert pos.stop_price == 4990.0
    assert pos.target_price == 5020.0
    assert pos.initial_stop_price == 4990.0

    pm = _manager()
    pos = pm.enter(Side.SHORT, 5000.0, _bar(0, 5000, 5001, 4999, 5000))
    assert pos.stop_price == 5010.0
    assert pos.target_price == 4980.0


def test_enter_twice_raises():
    pm = _manager()
    _long(pm)
    with pytest.raises(RuntimeError):
        _long(pm)


def test_clean_take_profit_net():
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, 5005, 5021, 5001, 5019))
    assert res.reason == "take-profit"
    assert res.price == 5020.0
    assert res.trade.net_pnl == pytest.approx(997.5)
    assert res.trade.gross_pnl == pytest.approx(1000.0)
    assert res.trade.commission == pytest.approx(2.5)
    assert pm.position is None


def test_clean_stop_loss_net():
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, 4995, 4998, 4989, 4990))
    assert res.reason == "stop-loss"
    assert res.price == 4990.0
    assert res.trade.net_pnl == pytest.approx(-502.5)


def test_no_exit_inside_range():
    pm = _manager()
    _long(pm)
    assert pm.check_exit(_bar(1, 5000, 5010, 4995, 5005)) is None
    assert pm.is_open


def test_stop_checked_before_target():
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, 5000, 5025, 4985, 5000))
    assert res.reason == "stop-loss"


def test_small_gap_fills_at_open():
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, 4989.75, 4990, 4985, 4988))
    assert res.reason == "stop-loss-gapped"
    assert res.price == 4989.75
    assert res.trade.net_pnl == pytest.approx(-515.0)


def test_large_gap_capped_at_max_slippage():
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, 4980, 4982, 4975, 4978))
    assert res.reason == "stop-loss-max-slippage"
    assert res.price == 4989.75


def test_short_target_gap_capped():
    pm = _manager()
    pm.enter(Side.SHORT, 5000.0, _bar(0, 5000, 5000, 5000, 5000))
    res = pm.check_exit(_bar(1, 4975, 4977, 4970, 4972))
    assert res.reason == "take-profit-max-slippage"
    assert res.price == 4979.75


@pytest.mark.parametrize("gap_open", [4989.75, 4989.5, 4985.0, 4950.0])
def test_gap_slippage_bound(gap_open):
    pm = _manager()
    _long(pm)
    res = pm.check_exit(_bar(1, gap_open, gap_open + 0.5, gap_open - 5, gap_open))
    assert abs(res.price - 4990.0) <= 1 * 0.25 + 1e-9
    assert is_on_tick(res.price, 0.25)


def test_force_exit_rounds_close_to_tick():
    pm = _manager()
    _long(pm)
    res = pm.force_exit(_bar(1, 5001, 5004, 5000, 5003.13), "end-of-day")
    assert res.reason == "end-of-day"
    assert res.price == 5003.25
    assert res.trade.net_pnl == pytest.approx(13 * 12.5 - 2.5)


def test_force_exit_without_position_raises():
    with pytest.raises(RuntimeError):
        _manager().force_exit(_bar(1, 5000, 5000, 5000, 5000), "end-of-data")


def test_force_exit_rejects_unknown_reason():
    pm = _manager()
    _long(pm)
    with pytest.raises(ValueError):
        pm.force_exit(_bar(1, 5000, 5000, 5000, 5000), "take-profit")
    assert pm.is_open


def test_clean_exits_not_flagged():
    log = EventLog()
    pm = PositionManager(Config(), log=log)
    _long(pm)
    pm.check_exit(_bar(1, 4980, 4982, 4975, 4978))
    assert log.by_tag("pnl-anomaly") == []
    assert len(log.by_tag("exit")) == 1


def test_open_pnl():
    pm = _manager(contracts=2)
    _long(pm)
    assert pm.open_pnl(5002.0) == pytest.approx(8 * 12.5 * 2)
    assert _manager().open_pnl(5000.0) == 0.0


def test_trailing_sequence_long():
    pm = _manager(use_trailing_stop=True, breakeven_trigger=3.0, trail_distance=2.0)
    pos = _long(pm)
    assert pm.check_exit(_bar(1, 5001, 5003, 5001, 5002)) is None
    assert pos.stop_price == 5000.0
    assert pos.stop_at_breakeven and not pos.trailing_active

    assert pm.check_exit(_bar(2, 5005, 5006, 5004.5, 5005)) is None
    assert pos.stop_price == 5004.0
    assert pos.trailing_active

    res = pm.check_exit(_bar(3, 5004.5, 5005, 5003, 5003.5))
    assert res.reason == "trailing-stop"
    assert res.price == 5004.0


def test_breakeven_stop_reason():
    pm = _manager(use_trailing_stop=True, breakeven_trigger=3.0, trail_distance=2.0)
    _long(pm)
    pm.check_exit(_bar(1, 5001, 5003.5, 5001, 5002))
    res = pm.check_exit(_bar(2, 5001, 5001.5, 4999, 5000))
    assert res.reason == "breakeven-stop"
    assert res.trade.net_pnl == pytest.approx(-2.5)


def test_trailing_stop_only_tightens():
    rule = TrailingRule(enabled=True, breakeven_trigger=3.0, trail_distance=2.0, tick_size=0.25)
    pos = Position(Side.SHORT, 5000.0, 5010.0, 4980.0, T0, 5010.0)
    stops = [pos.stop_price]
    lows = [4999, 4996, 4990.3, 4994, 4985.6, 4993, 4988]
    for i, low in enumerate(lows, start=1):
        update_trailing_stop(pos, _bar(i, low + 2, low + 3, low, low + 1), rule)
        stops.append(pos.stop_price)
    assert all(b <= a for a, b in zip(stops, stops[1:]))
    assert pos.stop_price == 4987.5
    assert stop_reason(pos) == "trailing-stop"


def test_trailing_disabled_leaves_stop():
    pos = Position(Side.LONG, 5000.0, 4990.0, 5020.0, T0, 4990.0)
    assert update_trailing_stop(pos, _bar(1, 5000, 5015, 5000, 5010), TrailingRule()) is None
    assert pos.stop_price == 4990.0
    assert stop_reason(pos) == "stop-loss"


def test_classify_gap():
    prev = _bar(0, 100, 100, 100, 100)
    small = classify_gap(prev, _bar(1, 100.6, 101, 100, 100.5))
    assert small.significant and not small.extreme
    assert small.pct == pytest.approx(0.6)
    big = classify_gap(prev, _bar(1, 98.5, 99, 98, 98.5))
    assert big.extreme
    assert big.points == pytest.approx(1.5)
    assert not classify_gap(prev, _bar(1, 100, 100, 100, 100)).has_gap


def test_gap_within_tolerance():
    assert gap_within_tolerance(100.0, 100.99)
    assert not gap_within_tolerance(100.0, 101.0)
    assert gap_within_tolerance(100.0, 102.0, max_pct=3.0)
