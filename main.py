#!/usr/bin/env python3
"""
CVD Backtester CLI
Usage:
  python main.py backtest --bars bars.csv [--config config.yaml] [--display-offset 3] [--json out.json]
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvd_backtester.backtesting.data import load_bars_csv
from cvd_backtester.backtesting.engine import BacktestResult, run
from cvd_backtester.core.config import load_config
from cvd_backtester.core.logger import setup_logging
from cvd_backtester.core.types import MalformedBarError
from cvd_backtester.utils.timestamps import format_display


def print_results(result: BacktestResult, display_offset: float = 0.0) -> None:
    s = result.statistics
    a = result.account
    print("\n--- Backtest Results ---")
    print(f"Bars processed: {result.count}")
    print(f"Total trades: {s.total_trades} (wins: {s.winning_trades}, losses: {s.losing_trades})")
    print(f"Win rate: {s.win_rate:.1f}%")
    print(f"Total profit: {s.total_profit:.2f} USD (avg {s.average_profit:.2f}/trade)")
    print(f"Sharpe ratio: {s.sharpe_ratio:.2f}")
    print(f"Max drawdown: {s.max_drawdown_pct:.2f}%")
    print(f"Profit factor: {s.profit_factor:.2f}")
    print(f"Streaks: {s.max_consecutive_wins} wins / {s.max_consecutive_losses} losses")
    print(f"Long: {s.long.trades} trades, {s.long.win_rate:.1f}% | Short: {s.short.trades} trades, {s.short.win_rate:.1f}%")
    print(f"Days hit daily stop: {s.days_hit_stop}, hit daily target: {s.days_hit_target}")
    if a:
        print(f"Final balance: {a.final_balance:.2f} ({a.total_return_pct:+.2f}%), "
              f"max drawdown {a.max_drawdown:.2f} over {a.max_drawdown_duration} days")
    if result.trades:
        print("\n--- Trades ---")
        for t in result.trades:
            entry_day, entry_clock = format_display(t.entry_time, display_offset)
            exit_day, exit_clock = format_display(t.exit_time, display_offset)
            print(f"{entry_day} {entry_clock} {t.side.value:<5} @ {t.entry_price:.2f} -> "
                  f"{exit_day} {exit_clock} @ {t.exit_price:.2f} {t.exit_reason:<24} {t.net_pnl:>9.2f}")


def run_backtest(config_path: Path | None, bars_path: Path, display_offset: float, json_path: Path | None) -> int:
    """Run a backtest over a bar CSV using config.yaml / .env parameters."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    logger = logging.getLogger("cvd_backtester")
    try:
        bars = load_bars_csv(bars_path)
        result = run(bars, config)
    except (FileNotFoundError, MalformedBarError, ValueError) as e:
        logger.error("Backtest failed: %s", e)
        return 1
    for event in result.logs:
        if event.tag in ("pnl-anomaly", "daily-limit", "validation", "summary"):
            logger.info("%s", event)
    print_results(result, display_offset)
    if json_path:
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        logger.info("Wrote results to %s", json_path)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="CVD Backtester CLI")
    parser.add_argument("mode", choices=["backtest"], help="Run backtest")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--bars", type=Path, required=True, help="Bar CSV file")
    parser.add_argument("--display-offset", type=float, default=0.0,
                        help="Hours added to bar timestamps when printing (storage -> display timezone)")
    parser.add_argument("--json", type=Path, default=None, help="Write full result as JSON")
    args = parser.parse_args()
    return run_backtest(args.config, args.bars, args.display_offset, args.json)


if __name__ == "__main__":
    exit(main())
