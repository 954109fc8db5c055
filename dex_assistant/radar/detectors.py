"""
Opportunity detectors.

Each detector looks at a symbol's snapshot and the quote that just updated it
and returns at most one alert. Detectors are independent; the radar decides
which ones run and whether their alerts are emitted.
"""

from typing import Callable, Optional

from ..data.models import PriceQuote
from ..models.plan import RegimeType, TrendDirection
from ..utils.time import HOUR_MS, MINUTE_MS
from .models import AlertDetails, AlertPriority, AlertType, MarketSnapshot, OpportunityAlert

VOLUME_LOOKBACK = 20

# Breakout
BREAKOUT_MIN_BARS = 20
BREAKOUT_PRICE_FACTOR = 1.02
BREAKOUT_VOLUME_RATIO = 1.5
BREAKOUT_MIN_STRENGTH = 70
BREAKOUT_MIN_CONFIDENCE = 75
BREAKOUT_TTL_MS = 2 * HOUR_MS

# Reversal
REVERSAL_OVERSOLD = 30
REVERSAL_OVERBOUGHT = 70
REVERSAL_MIN_CONFIDENCE = 65
REVERSAL_TTL_MS = 4 * HOUR_MS

# Momentum
MOMENTUM_MIN_STRENGTH = 60
MOMENTUM_MIN_CONFIDENCE = 70
MOMENTUM_TTL_MS = 6 * HOUR_MS

# Volume spike
SPIKE_VOLUME_RATIO = 3.0
SPIKE_MIN_CHANGE = 2.0
SPIKE_CRITICAL_RATIO = 5.0
SPIKE_MIN_CONFIDENCE = 70
SPIKE_TTL_MS = 30 * MINUTE_MS

Detector = Callable[[MarketSnapshot, PriceQuote, int], Optional[OpportunityAlert]]


def _alert_id(alert_type: AlertType, symbol: str, now: int) -> str:
    return f"{alert_type.value}_{symbol}_{now}"


def _volume_ratio(snapshot: MarketSnapshot, quote: PriceQuote) -> Optional[float]:
    average = snapshot.indicators.trailing_volume_average(VOLUME_LOOKBACK)
    if not average:
        return None
    return quote.volume / average


def detect_breakout(snapshot: MarketSnapshot, quote: PriceQuote, now: int) -> Optional[OpportunityAlert]:
    """Price 2% over SMA20 on 1.5x volume inside a strong trend."""
    indicators = snapshot.indicators
    regime = snapshot.regime
    if len(snapshot.bars) < BREAKOUT_MIN_BARS or not indicators.sma:
        return None

    sma20 = indicators.sma[-1]
    volume_ratio = _volume_ratio(snapshot, quote)
    if volume_ratio is None:
        return None

    if not (quote.price > sma20 * BREAKOUT_PRICE_FACTOR
            and volume_ratio > BREAKOUT_VOLUME_RATIO
            and regime.strength > BREAKOUT_MIN_STRENGTH):
        return None

    confidence = min(95.0, regime.strength * 0.4 + min(volume_ratio, 3.0) * 20 + regime.confidence * 0.3)
    if confidence < BREAKOUT_MIN_CONFIDENCE:
        return None

    return OpportunityAlert(
        id=_alert_id(AlertType.BREAKOUT, quote.symbol, now),
        symbol=quote.symbol,
        type=AlertType.BREAKOUT,
        priority=AlertPriority.HIGH if confidence > 85 else AlertPriority.MEDIUM,
        confidence=confidence,
        message=f"{quote.symbol} breakout detected: price above resistance with {volume_ratio:.1f}x volume",
        details=AlertDetails(
            current_price=quote.price,
            price_change=quote.change_24h,
            volume=quote.volume,
            signals=(
                f"Price above SMA20 ({sma20:.2f})",
                f"Volume spike: {volume_ratio:.1f}x average",
                f"Trend strength: {regime.strength:.1f}%",
                f"Market regime: {regime.type.value} {regime.direction.value}",
            ),
            timeframe="1h",
            target_price=quote.price * 1.03,
            stop_loss=sma20,
            risk_reward=2.0,
        ),
        timestamp=now,
        expires_at=now + BREAKOUT_TTL_MS,
    )


def detect_reversal(snapshot: MarketSnapshot, quote: PriceQuote, now: int) -> Optional[OpportunityAlert]:
    """Oversold bounce at the lower band or overbought rejection at the upper band."""
    indicators = snapshot.indicators
    regime = snapshot.regime
    bands = indicators.bollinger
    if not indicators.rsi or not bands.lower:
        return None

    rsi = indicators.rsi[-1]
    bb_lower = bands.lower[-1]
    bb_upper = bands.upper[-1]

    oversold = rsi < REVERSAL_OVERSOLD and quote.price <= bb_lower * 1.01
    overbought = rsi > REVERSAL_OVERBOUGHT and quote.price >= bb_upper * 0.99
    if not (oversold or overbought):
        return None

    extremity = (REVERSAL_OVERSOLD - rsi) if oversold else (rsi - REVERSAL_OVERBOUGHT)
    confidence = min(90.0, 60 + extremity + regime.confidence * 0.2)
    if confidence < REVERSAL_MIN_CONFIDENCE:
        return None

    setup = "oversold bounce" if oversold else "overbought rejection"
    return OpportunityAlert(
        id=_alert_id(AlertType.REVERSAL, quote.symbol, now),
        symbol=quote.symbol,
        type=AlertType.REVERSAL,
        priority=AlertPriority.HIGH if confidence > 80 else AlertPriority.MEDIUM,
        confidence=confidence,
        message=f"{quote.symbol} {setup} setup detected",
        details=AlertDetails(
            current_price=quote.price,
            price_change=quote.change_24h,
            volume=quote.volume,
            signals=(
                f"RSI: {rsi:.1f} ({'oversold' if oversold else 'overbought'})",
                f"Price at {'lower' if oversold else 'upper'} Bollinger Band",
                f"Market volatility: {regime.volatility.value}",
                f"Reversal probability: {confidence:.1f}%",
            ),
            timeframe="1h",
            target_price=quote.price * (1.02 if oversold else 0.98),
            stop_loss=bb_lower * 0.99 if oversold else bb_upper * 1.01,
            risk_reward=1.8,
        ),
        timestamp=now,
        expires_at=now + REVERSAL_TTL_MS,
    )


def detect_momentum(snapshot: MarketSnapshot, quote: PriceQuote, now: int) -> Optional[OpportunityAlert]:
    """Healthy pullback inside a strong trend."""
    indicators = snapshot.indicators
    regime = snapshot.regime
    if regime.type != RegimeType.TRENDING or regime.strength < MOMENTUM_MIN_STRENGTH:
        return None
    if not indicators.sma or not indicators.rsi:
        return None

    sma20 = indicators.sma[-1]
    rsi = indicators.rsi[-1]
    price = quote.price

    uptrend = regime.direction == TrendDirection.BULLISH and price > sma20
    downtrend = regime.direction == TrendDirection.BEARISH and price < sma20
    bullish = uptrend and 40 < rsi < 55 and price > sma20 * 0.98
    bearish = downtrend and 45 < rsi < 60 and price < sma20 * 1.02
    if not (bullish or bearish):
        return None

    confidence = min(85.0, regime.strength * 0.8 + 15)
    if confidence < MOMENTUM_MIN_CONFIDENCE:
        return None

    return OpportunityAlert(
        id=_alert_id(AlertType.MOMENTUM, quote.symbol, now),
        symbol=quote.symbol,
        type=AlertType.MOMENTUM,
        priority=AlertPriority.HIGH if confidence > 80 else AlertPriority.MEDIUM,
        confidence=confidence,
        message=(f"{quote.symbol} momentum continuation setup: "
                 f"{'bullish' if bullish else 'bearish'} pullback"),
        details=AlertDetails(
            current_price=price,
            price_change=quote.change_24h,
            volume=quote.volume,
            signals=(
                f"Strong {regime.direction.value} trend ({regime.strength:.1f}%)",
                f"Healthy pullback: RSI {rsi:.1f}",
                f"SMA20: {sma20:.2f}",
                f"Momentum continuation probability: {confidence:.1f}%",
            ),
            timeframe="4h",
            target_price=price * (1.025 if bullish else 0.975),
            stop_loss=sma20 * (0.98 if bullish else 1.02),
            risk_reward=2.2,
        ),
        timestamp=now,
        expires_at=now + MOMENTUM_TTL_MS,
    )


def detect_volume_spike(snapshot: MarketSnapshot, quote: PriceQuote, now: int) -> Optional[OpportunityAlert]:
    """Volume over 3x average together with a 24h move over 2%."""
    volume_ratio = _volume_ratio(snapshot, quote)
    if volume_ratio is None:
        return None

    change = quote.change_24h
    if not (volume_ratio > SPIKE_VOLUME_RATIO and abs(change) > SPIKE_MIN_CHANGE):
        return None

    confidence = min(90.0, 50 + volume_ratio * 8 + abs(change) * 2)
    if confidence < SPIKE_MIN_CONFIDENCE:
        return None

    return OpportunityAlert(
        id=_alert_id(AlertType.VOLUME_SPIKE, quote.symbol, now),
        symbol=quote.symbol,
        type=AlertType.VOLUME_SPIKE,
        priority=AlertPriority.CRITICAL if volume_ratio > SPIKE_CRITICAL_RATIO else AlertPriority.HIGH,
        confidence=confidence,
        message=f"{quote.symbol} volume spike: {volume_ratio:.1f}x average volume",
        details=AlertDetails(
            current_price=quote.price,
            price_change=change,
            volume=quote.volume,
            signals=(
                f"Volume spike: {volume_ratio:.1f}x average",
                f"Price change: {change:+.2f}%",
                "Possible news event or institutional activity",
            ),
            timeframe="15m",
            target_price=quote.price * (1.01 if change > 0 else 0.99),
            risk_reward=1.5,
        ),
        timestamp=now,
        expires_at=now + SPIKE_TTL_MS,
    )


# Strategy name in radar preferences -> detector, in evaluation order
DETECTORS: dict[str, Detector] = {
    "breakout": detect_breakout,
    "reversal": detect_reversal,
    "momentum": detect_momentum,
    "volume_spike": detect_volume_spike,
}
