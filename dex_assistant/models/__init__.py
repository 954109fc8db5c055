"""Data models for indicators, regimes, signals and trading plans"""

from .indicators import BollingerBands, TechnicalIndicators, latest
from .plan import (
    EntrySpec,
    MarketRegime,
    PlanAction,
    PositionSizing,
    RegimeType,
    SignalDirection,
    SignalType,
    StopLoss,
    TakeProfit,
    TakeProfitTarget,
    TradingPlan,
    TradingSignal,
    TrendDirection,
    VolatilityLevel,
    clamp_score,
)

__all__ = [
    "BollingerBands",
    "TechnicalIndicators",
    "latest",
    "EntrySpec",
    "MarketRegime",
    "PlanAction",
    "PositionSizing",
    "RegimeType",
    "SignalDirection",
    "SignalType",
    "StopLoss",
    "TakeProfit",
    "TakeProfitTarget",
    "TradingPlan",
    "TradingSignal",
    "TrendDirection",
    "VolatilityLevel",
    "clamp_score",
]
