"""Market regime detection"""

from typing import Sequence

import structlog

from ..data.models import PriceBar
from ..models.indicators import TechnicalIndicators
from ..models.plan import MarketRegime, RegimeType, TrendDirection, VolatilityLevel, clamp_score

logger = structlog.get_logger(__name__)

TREND_LOOKBACK = 20
TRENDING_STRENGTH = 60.0
HIGH_VOLATILITY_PCT = 3.0
LOW_VOLATILITY_PCT = 1.0
DIRECTION_THRESHOLD_PCT = 0.1


def calculate_trend_strength(prices: Sequence[float], sma: Sequence[float]) -> float:
    """
    Count how many of the most recent closes stay on the latest SMA's side

    Counting runs back from the latest close over at most 20 closes and stops
    at the first close on the other side. Strength = count / 20 * 100.
    """
    if len(prices) < TREND_LOOKBACK or not sma:
        return 0.0

    recent = prices[-TREND_LOOKBACK:]
    current_sma = sma[-1]
    is_above = recent[-1] > current_sma

    consistent = 0
    for price in reversed(recent):
        if (price > current_sma) == is_above:
            consistent += 1
        else:
            break

    return min(100.0, consistent / TREND_LOOKBACK * 100)


def classify_volatility(atr: Sequence[float], prices: Sequence[float]) -> VolatilityLevel:
    """Bucket ATR as a percent of the current price"""
    if not atr or not prices or prices[-1] <= 0:
        return VolatilityLevel.MEDIUM

    atr_pct = atr[-1] / prices[-1] * 100
    if atr_pct > HIGH_VOLATILITY_PCT:
        return VolatilityLevel.HIGH
    if atr_pct < LOW_VOLATILITY_PCT:
        return VolatilityLevel.LOW
    return VolatilityLevel.MEDIUM


def determine_direction(prices: Sequence[float], sma: Sequence[float]) -> TrendDirection:
    """Price side of SMA confirmed by a one-bar move beyond 0.1%"""
    if not prices or not sma:
        return TrendDirection.NEUTRAL

    current = prices[-1]
    current_sma = sma[-1]
    change_pct = 0.0
    if len(prices) > 1 and prices[-2]:
        change_pct = (current - prices[-2]) / prices[-2] * 100

    if current > current_sma and change_pct > DIRECTION_THRESHOLD_PCT:
        return TrendDirection.BULLISH
    if current < current_sma and change_pct < -DIRECTION_THRESHOLD_PCT:
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


def calculate_regime_confidence(trend_strength: float, volatility: VolatilityLevel,
                                bars: Sequence[PriceBar]) -> float:
    confidence = 50.0

    if trend_strength > 70:
        confidence += 20
    elif trend_strength > 50:
        confidence += 10

    if volatility == VolatilityLevel.LOW:
        confidence += 15
    elif volatility == VolatilityLevel.HIGH:
        confidence -= 10

    # Volume confirmation: last 5 bars against the 15 before them
    if len(bars) > 5:
        recent = [bar.volume for bar in bars[-5:]]
        older = [bar.volume for bar in bars[-20:-5]]
        avg_recent = sum(recent) / len(recent)
        avg_older = sum(older) / len(older) if older else 0.0
        if older and avg_recent > avg_older * 1.2:
            confidence += 10

    return clamp_score(confidence)


def analyze_market_regime(bars: Sequence[PriceBar], indicators: TechnicalIndicators) -> MarketRegime:
    """
    Classify the current regime from bars and their indicators

    High volatility takes priority over trend strength when picking the type.
    """
    prices = [bar.close for bar in bars]

    strength = calculate_trend_strength(prices, indicators.sma)
    volatility = classify_volatility(indicators.atr, prices)
    direction = determine_direction(prices, indicators.sma)

    if volatility == VolatilityLevel.HIGH:
        regime_type = RegimeType.VOLATILE
    elif strength > TRENDING_STRENGTH:
        regime_type = RegimeType.TRENDING
    else:
        regime_type = RegimeType.RANGING

    regime = MarketRegime(
        type=regime_type,
        strength=strength,
        direction=direction,
        volatility=volatility,
        confidence=calculate_regime_confidence(strength, volatility, bars),
    )
    logger.debug("Regime analyzed", type=regime.type.value, strength=strength,
                 direction=direction.value, volatility=volatility.value,
                 confidence=regime.confidence)
    return regime
