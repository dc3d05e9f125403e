"""Unit tests for core.config."""

from datetime import datetime, time

import pytest
from cvd_backtester.core.config import Config, load_config
from cvd_backtester.core.types import TradeDirection

YAML = """
backtest:
  start: "2025-01-15 09:30:00"
  initial_balance: 25000
strategy:
  lookback: 7
  trade_direction: long
filters:
  volume: false
risk:
  stop_loss: 8
  take_profit: 16
session:
  eod_cutoff: "15:45"
"""


def test_load_from_yaml(tmp_path, monkeypatch):
    for key in ("LOOKBACK", "STOP_LOSS", "BACKTEST_START", "TRADE_DIRECTION", "INITIAL_BALANCE"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(YAML)
    cfg = load_config(path, project_root=tmp_path)
    assert cfg.start == datetime(2025, 1, 15, 9, 30)
    assert cfg.initial_balance == 25000.0
    assert cfg.lookback == 7
    assert cfg.trade_direction is TradeDirection.LONG
    assert cfg.use_volume_filter is False
    assert cfg.use_momentum_filter is True
    assert cfg.stop_loss == 8.0
    assert cfg.eod_cutoff == time(15, 45)


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(YAML)
    monkeypatch.setenv("LOOKBACK", "9")
    monkeypatch.setenv("STOP_LOSS", "not-a-number")
    cfg = load_config(path, project_root=tmp_path)
    assert cfg.lookback == 9
    assert cfg.stop_loss == 8.0


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("LOOKBACK", raising=False)
    cfg = load_config(tmp_path / "absent.yaml", project_root=tmp_path)
    assert cfg.lookback == 5
    assert cfg.take_profit == 20.0


def test_trade_direction_case_insensitive():
    assert Config(trade_direction="SHORT").trade_direction is TradeDirection.SHORT
    with pytest.raises(ValueError):
        Config(trade_direction="sideways")


def test_replace():
    cfg = Config().replace(stop_loss=5.0)
    assert cfg.stop_loss == 5.0
    with pytest.raises(TypeError):
        Config().replace(stoploss=5.0)


def test_fingerprint():
    base = Config()
    assert base.fingerprint() == Config().fingerprint()
    assert base.replace(stop_loss=12.0).fingerprint() != base.fingerprint()
    assert base.replace(log_level="DEBUG").fingerprint() == base.fingerprint()


def test_validate():
    Config().validate()
    for bad in (dict(lookback=2), dict(contracts=0), dict(max_daily_loss=-1.0), dict(stop_loss=0.0)):
        with pytest.raises(ValueError):
            Config(**bad).validate()


def test_instrument():
    spec = Config(tick_size=0.5, max_slippage_ticks=2).instrument
    assert spec.max_slippage == 1.0
