"""
Rule-based strategy signal generators.

Each generator is a pure function of bars, indicators, regime and its own
strategy parameters, and returns at most one signal per scan.
"""

from typing import Callable, Optional, Sequence

from ..config.defaults import StrategyParams
from ..data.models import PriceBar
from ..models.indicators import TechnicalIndicators, latest
from ..models.plan import (
    MarketRegime,
    RegimeType,
    SignalDirection,
    SignalType,
    TradingSignal,
    TrendDirection,
)

VOLUME_CONFIRMATION_MULTIPLIER = 1.5
VOLUME_BONUS = 15.0
BREAKOUT_MAX_STRENGTH = 90.0

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
BAND_PROXIMITY = 0.02
BOUNCE_BASE_STRENGTH = 70.0
BOUNCE_MAX_STRENGTH = 85.0

MOMENTUM_MIN_STRENGTH = 60.0
PULLBACK_BAND = 0.02
MOMENTUM_MAX_STRENGTH = 80.0

SignalGenerator = Callable[
    [Sequence[PriceBar], TechnicalIndicators, MarketRegime, StrategyParams, int],
    Optional[TradingSignal],
]


def trend_breakout(
    bars: Sequence[PriceBar],
    indicators: TechnicalIndicators,
    regime: MarketRegime,
    config: StrategyParams,
    timestamp: int,
) -> Optional[TradingSignal]:
    """
    Moving-average breakout confirmed by volume

    Long when EMA12 > SMA20, price > SMA20, volume > 1.5x its trailing average
    and the regime is bullish. Short is symmetric. Ranging regimes never fire.
    """
    if not config.enabled or regime.type == RegimeType.RANGING or not bars:
        return None

    sma20 = indicators.current_sma
    ema12 = indicators.current_ema
    avg_volume = indicators.trailing_volume_average()
    if sma20 is None or ema12 is None or not avg_volume:
        return None

    price = bars[-1].close
    volume = bars[-1].volume
    volume_confirmed = volume > avg_volume * VOLUME_CONFIRMATION_MULTIPLIER

    bullish = ema12 > sma20 and price > sma20 and volume_confirmed
    bearish = ema12 < sma20 and price < sma20 and volume_confirmed

    if bullish and regime.direction == TrendDirection.BULLISH:
        direction = SignalDirection.LONG
        reason = "Bullish MA crossover with volume confirmation in trending market"
    elif bearish and regime.direction == TrendDirection.BEARISH:
        direction = SignalDirection.SHORT
        reason = "Bearish MA crossover with volume confirmation in trending market"
    else:
        return None

    return TradingSignal(
        type=SignalType.ENTRY,
        direction=direction,
        strength=min(BREAKOUT_MAX_STRENGTH, regime.strength + (VOLUME_BONUS if volume_confirmed else 0)),
        price=price,
        timestamp=timestamp,
        reason=reason,
        indicators={
            "sma20": sma20,
            "ema12": ema12,
            "volume": volume / avg_volume,
            "trendStrength": regime.strength,
        },
    )


def support_resistance_bounce(
    bars: Sequence[PriceBar],
    indicators: TechnicalIndicators,
    regime: MarketRegime,
    config: StrategyParams,
    timestamp: int,
) -> Optional[TradingSignal]:
    """
    Oversold bounce off the lower band or overbought rejection at the upper band

    Strength = min(85, 70 + half the RSI distance beyond 30/70).
    """
    if not config.enabled or not bars:
        return None

    rsi = indicators.current_rsi
    bb_upper = latest(indicators.bollinger.upper)
    bb_lower = latest(indicators.bollinger.lower)
    if rsi is None or bb_upper is None or bb_lower is None:
        return None

    price = bars[-1].close

    if rsi < RSI_OVERSOLD and price <= bb_lower * (1 + BAND_PROXIMITY):
        return TradingSignal(
            type=SignalType.ENTRY,
            direction=SignalDirection.LONG,
            strength=min(BOUNCE_MAX_STRENGTH, BOUNCE_BASE_STRENGTH + (RSI_OVERSOLD - rsi) * 0.5),
            price=price,
            timestamp=timestamp,
            reason="Support bounce: oversold RSI + price at lower Bollinger Band",
            indicators={
                "rsi": rsi,
                "bbLower": bb_lower,
                "distanceFromBB": (price - bb_lower) / bb_lower * 100 if bb_lower else 0.0,
            },
        )

    if rsi > RSI_OVERBOUGHT and price >= bb_upper * (1 - BAND_PROXIMITY):
        return TradingSignal(
            type=SignalType.ENTRY,
            direction=SignalDirection.SHORT,
            strength=min(BOUNCE_MAX_STRENGTH, BOUNCE_BASE_STRENGTH + (rsi - RSI_OVERBOUGHT) * 0.5),
            price=price,
            timestamp=timestamp,
            reason="Resistance rejection: overbought RSI + price at upper Bollinger Band",
            indicators={
                "rsi": rsi,
                "bbUpper": bb_upper,
                "distanceFromBB": (bb_upper - price) / bb_upper * 100 if bb_upper else 0.0,
            },
        )

    return None


def momentum_continuation(
    bars: Sequence[PriceBar],
    indicators: TechnicalIndicators,
    regime: MarketRegime,
    config: StrategyParams,
    timestamp: int,
) -> Optional[TradingSignal]:
    """
    Shallow pullback inside a strong trend

    Requires a trending regime with strength >= 60. Long on RSI 40-55 while
    price holds above SMA20 (and within 2% of it); short mirrors with RSI 45-60.
    """
    if (not config.enabled or regime.type != RegimeType.TRENDING
            or regime.strength < MOMENTUM_MIN_STRENGTH or not bars):
        return None

    sma20 = indicators.current_sma
    rsi = indicators.current_rsi
    if sma20 is None or rsi is None:
        return None

    price = bars[-1].close
    in_uptrend = price > sma20 and regime.direction == TrendDirection.BULLISH
    in_downtrend = price < sma20 and regime.direction == TrendDirection.BEARISH

    bullish_pullback = in_uptrend and 40 < rsi < 55 and price > sma20 * (1 - PULLBACK_BAND)
    bearish_pullback = in_downtrend and 45 < rsi < 60 and price < sma20 * (1 + PULLBACK_BAND)

    if bullish_pullback:
        direction = SignalDirection.LONG
        reason = "Momentum continuation: pullback in strong uptrend"
        pullback_level = (sma20 - price) / sma20 * 100
    elif bearish_pullback:
        direction = SignalDirection.SHORT
        reason = "Momentum continuation: pullback in strong downtrend"
        pullback_level = (price - sma20) / sma20 * 100
    else:
        return None

    return TradingSignal(
        type=SignalType.ENTRY,
        direction=direction,
        strength=min(MOMENTUM_MAX_STRENGTH, regime.strength * 0.9),
        price=price,
        timestamp=timestamp,
        reason=reason,
        indicators={
            "sma20": sma20,
            "rsi": rsi,
            "trendStrength": regime.strength,
            "pullbackLevel": pullback_level,
        },
    )


# Registration order doubles as the final tie-break
SIGNAL_GENERATORS: dict[str, SignalGenerator] = {
    "trend_breakout": trend_breakout,
    "support_resistance": support_resistance_bounce,
    "momentum_continuation": momentum_continuation,
}
