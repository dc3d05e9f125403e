"""Features: directional strength (ADX) and momentum trend lines."""

from cvd_backtester.features.adx import DirectionalStrength, DirectionalReading
from cvd_backtester.features.trendlines import TrendlineFit, fit_trendlines

__all__ = ["DirectionalStrength", "DirectionalReading", "TrendlineFit", "fit_trendlines"]
