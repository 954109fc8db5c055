"""Technical analysis library: moving averages, RSI, ATR, Bollinger Bands and volume"""

from .atr import calculate_atr, calculate_natr, calculate_true_range
from .bollinger import calculate_bollinger_bands
from .calculator import IndicatorCalculator, compute_indicators
from .moving_averages import calculate_ema, calculate_sma
from .rsi import calculate_rsi
from .volume import VolumeAnalysis, analyze_volume, calculate_rvol

__all__ = [
    "calculate_sma",
    "calculate_ema",
    "calculate_rsi",
    "calculate_atr",
    "calculate_natr",
    "calculate_true_range",
    "calculate_bollinger_bands",
    "VolumeAnalysis",
    "analyze_volume",
    "calculate_rvol",
    "IndicatorCalculator",
    "compute_indicators",
]
