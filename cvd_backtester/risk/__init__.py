from cvd_backtester.risk.manager import LimitResult, LimitSummary, RiskManager

__all__ = ["LimitResult", "LimitSummary", "RiskManager"]
