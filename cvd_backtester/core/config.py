"""
Load backtest parameters from config.yaml and .env. Environment overrides win.
"""

from __future__ import annotations
import hashlib
import json
import os
from datetime import datetime, time
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

from cvd_backtester.core.types import TradeDirection
from cvd_backtester.utils.ticks import InstrumentSpec
from cvd_backtester.utils.timestamps import parse_clock, parse_timestamp


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_timestamp(str(value))


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    def env(key: str, default: Any = "") -> str:
        return os.getenv(key, str(default) if default is not None else "").strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    backtest = data.get("backtest", {})
    strategy = data.get("strategy", {})
    filters = data.get("filters", {})
    risk = data.get("risk", {})
    instrument = data.get("instrument", {})
    session = data.get("session", {})
    logging_cfg = data.get("logging", {})

    return Config(
        # Window and account
        start=env("BACKTEST_START", backtest.get("start")) or None,
        end=env("BACKTEST_END", backtest.get("end")) or None,
        initial_balance=env_float("INITIAL_BALANCE", backtest.get("initial_balance", 50000.0)),
        initial_timestamp=backtest.get("initial_timestamp"),
        close_at_end=env_bool("CLOSE_AT_END", backtest.get("close_at_end", True)),
        # Strategy
        lookback=env_int("LOOKBACK", strategy.get("lookback", 5)),
        ema_filter=env_int("EMA_FILTER", strategy.get("ema_filter", 0)),
        sma_filter=env_int("SMA_FILTER", strategy.get("sma_filter", 0)),
        use_vwap=env_bool("USE_VWAP", strategy.get("use_vwap", False)),
        adx_threshold=env_float("ADX_THRESHOLD", strategy.get("adx_threshold", 0.0)),
        adx_period=env_int("ADX_PERIOD", strategy.get("adx_period", 14)),
        momentum_multiplier=env_float("MOMENTUM_MULTIPLIER", strategy.get("momentum_multiplier", 1.0)),
        trendline_tolerance=float(strategy.get("trendline_tolerance", 0.001)),
        trade_direction=env("TRADE_DIRECTION", strategy.get("trade_direction", "both")),
        # Filter stage toggles
        use_reversal_filter=filters.get("reversal", True),
        use_slope_filter=filters.get("slope", True),
        use_breakout_filter=filters.get("breakout", True),
        use_volume_filter=filters.get("volume", True),
        use_indicator_filter=filters.get("indicators", True),
        use_adx_filter=filters.get("adx", True),
        use_cvd_color_filter=filters.get("cvd_color", True),
        use_momentum_filter=filters.get("momentum", True),
        # Risk
        stop_loss=env_float("STOP_LOSS", risk.get("stop_loss", 10.0)),
        take_profit=env_float("TAKE_PROFIT", risk.get("take_profit", 20.0)),
        contracts=env_int("CONTRACTS", risk.get("contracts", 1)),
        use_trailing_stop=env_bool("USE_TRAILING_STOP", risk.get("use_trailing_stop", False)),
        breakeven_trigger=env_float("BREAKEVEN_TRIGGER", risk.get("breakeven_trigger", 3.0)),
        trail_distance=env_float("TRAIL_DISTANCE", risk.get("trail_distance", 2.0)),
        max_daily_loss=env_float("MAX_DAILY_LOSS", risk.get("max_daily_loss", 0.0)),
        max_daily_profit=env_float("MAX_DAILY_PROFIT", risk.get("max_daily_profit", 0.0)),
        # Instrument (ES mini defaults)
        tick_size=float(instrument.get("tick_size", 0.25)),
        tick_value=float(instrument.get("tick_value", 12.5)),
        commission_per_contract=float(instrument.get("commission_per_contract", 2.5)),
        max_slippage_ticks=int(instrument.get("max_slippage_ticks", 1)),
        # Session
        eod_cutoff=session.get("eod_cutoff", "15:55"),
        significant_gap_pct=float(session.get("significant_gap_pct", 0.5)),
        extreme_gap_pct=float(session.get("extreme_gap_pct", 1.0)),
        entry_gap_tolerance_pct=float(session.get("entry_gap_tolerance_pct", 1.0)),
        # Logging
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "backtest.log"),
    )


class Config:
    """Backtest parameter set. Treated as immutable; use replace() to derive variants."""

    __slots__ = (
        "start", "end", "initial_balance", "initial_timestamp", "close_at_end",
        "lookback", "ema_filter", "sma_filter", "use_vwap", "adx_threshold", "adx_period",
        "momentum_multiplier", "trendline_tolerance", "trade_direction",
        "use_reversal_filter", "use_slope_filter", "use_breakout_filter", "use_volume_filter",
        "use_indicator_filter", "use_adx_filter", "use_cvd_color_filter", "use_momentum_filter",
        "stop_loss", "take_profit", "contracts",
        "use_trailing_stop", "breakeven_trigger", "trail_distance",
        "max_daily_loss", "max_daily_profit",
        "tick_size", "tick_value", "commission_per_contract", "max_slippage_ticks",
        "eod_cutoff", "significant_gap_pct", "extreme_gap_pct", "entry_gap_tolerance_pct",
        "log_level", "log_dir", "log_file",
    )

    def __init__(
        self,
        start: Union[str, datetime, None] = None,
        end: Union[str, datetime, None] = None,
        initial_balance: float = 50000.0,
        initial_timestamp: Union[str, datetime, None] = None,
        close_at_end: bool = True,
        lookback: int = 5,
        ema_filter: int = 0,
        sma_filter: int = 0,
        use_vwap: bool = False,
        adx_threshold: float = 0.0,
        adx_period: int = 14,
        momentum_multiplier: float = 1.0,
        trendline_tolerance: float = 0.001,
        trade_direction: Union[str, TradeDirection] = TradeDirection.BOTH,
        use_reversal_filter: bool = True,
        use_slope_filter: bool = True,
        use_breakout_filter: bool = True,
        use_volume_filter: bool = True,
        use_indicator_filter: bool = True,
        use_adx_filter: bool = True,
        use_cvd_color_filter: bool = True,
        use_momentum_filter: bool = True,
        stop_loss: float = 10.0,
        take_profit: float = 20.0,
        contracts: int = 1,
        use_trailing_stop: bool = False,
        breakeven_trigger: float = 3.0,
        trail_distance: float = 2.0,
        max_daily_loss: float = 0.0,
        max_daily_profit: float = 0.0,
        tick_size: float = 0.25,
        tick_value: float = 12.5,
        commission_per_contract: float = 2.5,
        max_slippage_ticks: int = 1,
        eod_cutoff: Union[str, time] = "15:55",
        significant_gap_pct: float = 0.5,
        extreme_gap_pct: float = 1.0,
        entry_gap_tolerance_pct: float = 1.0,
        log_level: str = "INFO",
        log_dir: Optional[Path] = None,
        log_file: str = "backtest.log",
    ):
        self.start = _as_datetime(start)
        self.end = _as_datetime(end)
        self.initial_balance = initial_balance
        self.initial_timestamp = _as_datetime(initial_timestamp)
        self.close_at_end = close_at_end
        self.lookback = lookback
        self.ema_filter = ema_filter
        self.sma_filter = sma_filter
        self.use_vwap = use_vwap
        self.adx_threshold = adx_threshold
        self.adx_period = adx_period
        self.momentum_multiplier = momentum_multiplier
        self.trendline_tolerance = trendline_tolerance
        self.trade_direction = (
            trade_direction if isinstance(trade_direction, TradeDirection) else TradeDirection(trade_direction.lower())
        )
        self.use_reversal_filter = use_reversal_filter
        self.use_slope_filter = use_slope_filter
        self.use_breakout_filter = use_breakout_filter
        self.use_volume_filter = use_volume_filter
        self.use_indicator_filter = use_indicator_filter
        self.use_adx_filter = use_adx_filter
        self.use_cvd_color_filter = use_cvd_color_filter
        self.use_momentum_filter = use_momentum_filter
        self.stop_loss = stop_loss
        self.take_profit = take_profit
        self.contracts = contracts
        self.use_trailing_stop = use_trailing_stop
        self.breakeven_trigger = breakeven_trigger
        self.trail_distance = trail_distance
        self.max_daily_loss = max_daily_loss
        self.max_daily_profit = max_daily_profit
        self.tick_size = tick_size
        self.tick_value = tick_value
        self.commission_per_contract = commission_per_contract
        self.max_slippage_ticks = max_slippage_ticks
        self.eod_cutoff = parse_clock(eod_cutoff) if isinstance(eod_cutoff, str) else eod_cutoff
        self.significant_gap_pct = significant_gap_pct
        self.extreme_gap_pct = extreme_gap_pct
        self.entry_gap_tolerance_pct = entry_gap_tolerance_pct
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file

    @property
    def instrument(self) -> InstrumentSpec:
        return InstrumentSpec(
            tick_size=self.tick_size,
            tick_value=self.tick_value,
            commission_per_contract=self.commission_per_contract,
            max_slippage_ticks=self.max_slippage_ticks,
        )

    def validate(self) -> None:
        """Raise ValueError for parameter sets the engine cannot run."""
        if self.lookback < 3:
            raise ValueError(f"lookback must be >= 3, got {self.lookback}")
        if self.adx_period < 2:
            raise ValueError(f"adx_period must be >= 2, got {self.adx_period}")
        if self.tick_size <= 0 or self.tick_value <= 0:
            raise ValueError("tick_size and tick_value must be positive")
        if self.contracts < 1:
            raise ValueError(f"contracts must be >= 1, got {self.contracts}")
        if self.stop_loss <= 0 or self.take_profit <= 0:
            raise ValueError("stop_loss and take_profit must be positive")
        if self.max_daily_loss < 0 or self.max_daily_profit < 0:
            raise ValueError("daily limits must be >= 0 (0 disables)")
        if self.max_slippage_ticks < 0:
            raise ValueError("max_slippage_ticks must be >= 0")
        if self.use_trailing_stop and (self.breakeven_trigger <= 0 or self.trail_distance <= 0):
            raise ValueError("breakeven_trigger and trail_distance must be positive when trailing")

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__slots__}

    def replace(self, **changes: Any) -> "Config":
        """Copy with some parameters changed (e.g. for a parameter sweep)."""
        values = self.to_dict()
        unknown = set(changes) - set(values)
        if unknown:
            raise TypeError(f"Unknown config fields: {sorted(unknown)}")
        values.update(changes)
        return Config(**values)

    def fingerprint(self) -> str:
        """Stable key over the parameters that affect results (not logging)."""
        values = {k: v for k, v in self.to_dict().items() if not k.startswith("log_")}
        blob = json.dumps(values, sort_keys=True, default=str)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]

    def __repr__(self) -> str:
        return f"Config(fingerprint={self.fingerprint()})"
