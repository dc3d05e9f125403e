"""
Logging setup (console + file) and the structured event log returned with
every backtest result.
"""

from __future__ import annotations
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger: console and optional file."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger("cvd_backtester")
    root.setLevel(log_level)
    root.handlers.clear()

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_fmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt, datefmt=date_fmt)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    return root


@dataclass(frozen=True)
class LogEvent:
    """One diagnostic entry. `time` is the bar time, None for run-level events."""
    tag: str
    message: str
    time: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        stamp = self.time.strftime("%Y-%m-%d %H:%M:%S") if self.time else "-"
        return f"[{stamp}] {self.tag}: {self.message}"


class EventLog:
    """
    Ordered diagnostic log owned by one backtest run.
    Events are mirrored to the stdlib logger at DEBUG (WARNING for anomalies).
    """

    _WARN_TAGS = frozenset({"pnl-anomaly", "daily-limit"})

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._events: List[LogEvent] = []
        self._logger = logger or logging.getLogger("cvd_backtester.events")

    def add(self, tag: str, message: str, time: Optional[datetime] = None, **data: Any) -> LogEvent:
        event = LogEvent(tag=tag, message=message, time=time, data=data)
        self._events.append(event)
        level = logging.WARNING if tag in self._WARN_TAGS else logging.DEBUG
        self._logger.log(level, "%s", event)
        return event

    def by_tag(self, tag: str) -> List[LogEvent]:
        return [e for e in self._events if e.tag == tag]

    @property
    def events(self) -> List[LogEvent]:
        return list(self._events)
