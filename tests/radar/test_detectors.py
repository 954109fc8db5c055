"""Tests for the opportunity detectors"""

import pytest

from dex_assistant.data.models import PriceQuote
from dex_assistant.models.indicators import BollingerBands, TechnicalIndicators
from dex_assistant.models.plan import MarketRegime, RegimeType, TrendDirection, VolatilityLevel
from dex_assistant.radar import (
    DETECTORS,
    AlertPriority,
    AlertType,
    MarketSnapshot,
    detect_breakout,
    detect_momentum,
    detect_reversal,
    detect_volume_spike,
)
from dex_assistant.utils.time import HOUR_MS, MINUTE_MS
from tests.conftest import START_MS, make_bars


def snapshot(indicators, strength=80.0, regime_type=RegimeType.TRENDING,
             direction=TrendDirection.BULLISH, confidence=70.0, bars=None):
    return MarketSnapshot(
        symbol="BTC",
        bars=bars if bars is not None else make_bars([100.0] * 25),
        indicators=indicators,
        regime=MarketRegime(
            type=regime_type,
            strength=strength,
            direction=direction,
            volatility=VolatilityLevel.MEDIUM,
            confidence=confidence,
        ),
    )


def quote(price, volume=1000.0, change=0.0):
    return PriceQuote(symbol="BTC", price=price, timestamp=START_MS, volume=volume, change_24h=change)


class TestBreakoutDetector:
    """Test the volume-confirmed breakout detector"""

    def test_breakout(self):
        indicators = TechnicalIndicators(sma=[100.0], volume=[1000.0] * 20 + [2000.0])
        alert = detect_breakout(snapshot(indicators), quote(103.0, volume=2000.0), START_MS)

        assert alert.type == AlertType.BREAKOUT
        assert alert.id == f"breakout_BTC_{START_MS}"
        # 80 * 0.4 + 2 * 20 + 70 * 0.3
        assert alert.confidence == pytest.approx(93.0)
        assert alert.priority == AlertPriority.HIGH
        assert alert.details.stop_loss == 100.0
        assert alert.details.target_price == pytest.approx(103.0 * 1.03)
        assert alert.expires_at == START_MS + 2 * HOUR_MS

    def test_needs_twenty_bars(self):
        indicators = TechnicalIndicators(sma=[100.0], volume=[1000.0] * 20 + [2000.0])
        snap = snapshot(indicators, bars=make_bars([100.0] * 10))
        assert detect_breakout(snap, quote(103.0, volume=2000.0), START_MS) is None

    def test_weak_trend(self):
        indicators = TechnicalIndicators(sma=[100.0], volume=[1000.0] * 20 + [2000.0])
        assert detect_breakout(snapshot(indicators, strength=65.0),
                               quote(103.0, volume=2000.0), START_MS) is None

    def test_price_not_far_enough_above_average(self):
        indicators = TechnicalIndicators(sma=[100.0], volume=[1000.0] * 20 + [2000.0])
        assert detect_breakout(snapshot(indicators), quote(101.5, volume=2000.0), START_MS) is None


class TestReversalDetector:
    def test_oversold_bounce(self):
        indicators = TechnicalIndicators(
            rsi=[20.0],
            bollinger=BollingerBands(upper=[120.0], middle=[110.0], lower=[100.0]),
        )
        alert = detect_reversal(snapshot(indicators), quote(100.5), START_MS)
        assert alert.type == AlertType.REVERSAL
        # 60 + 10 + 70 * 0.2
        assert alert.confidence == pytest.approx(84.0)
        assert alert.priority == AlertPriority.HIGH
        assert alert.details.stop_loss == pytest.approx(99.0)
        assert "oversold bounce" in alert.message

    def test_overbought_rejection(self):
        indicators = TechnicalIndicators(
            rsi=[75.0],
            bollinger=BollingerBands(upper=[120.0], middle=[110.0], lower=[100.0]),
        )
        alert = detect_reversal(snapshot(indicators), quote(119.5), START_MS)
        assert alert.confidence == pytest.approx(79.0)
        assert alert.priority == AlertPriority.MEDIUM
        assert alert.details.target_price == pytest.approx(119.5 * 0.98)

    def test_price_inside_bands(self):
        indicators = TechnicalIndicators(
            rsi=[20.0],
            bollinger=BollingerBands(upper=[120.0], middle=[110.0], lower=[100.0]),
        )
        assert detect_reversal(snapshot(indicators), quote(110.0), START_MS) is None


class TestMomentumDetector:
    def test_bullish_pullback(self):
        indicators = TechnicalIndicators(sma=[100.0], rsi=[50.0])
        alert = detect_momentum(snapshot(indicators, strength=75.0), quote(101.0), START_MS)
        assert alert.type == AlertType.MOMENTUM
        assert alert.confidence == pytest.approx(75.0)
        assert alert.details.timeframe == "4h"
        assert alert.expires_at == START_MS + 6 * HOUR_MS

    def test_ranging_market(self):
        indicators = TechnicalIndicators(sma=[100.0], rsi=[50.0])
        snap = snapshot(indicators, regime_type=RegimeType.RANGING)
        assert detect_momentum(snap, quote(101.0), START_MS) is None

    def test_confidence_floor(self):
        """Strength 65 passes the trend gate but scores only 67"""
        indicators = TechnicalIndicators(sma=[100.0], rsi=[50.0])
        assert detect_momentum(snapshot(indicators, strength=65.0), quote(101.0), START_MS) is None


class TestVolumeSpikeDetector:
    def test_critical_spike(self):
        indicators = TechnicalIndicators(volume=[1000.0] * 20 + [6000.0])
        alert = detect_volume_spike(snapshot(indicators), quote(100.0, volume=6000.0, change=3.0), START_MS)
        assert alert.type == AlertType.VOLUME_SPIKE
        assert alert.priority == AlertPriority.CRITICAL
        assert alert.confidence == 90.0
        assert alert.expires_at == START_MS + 30 * MINUTE_MS

    def test_high_spike(self):
        indicators = TechnicalIndicators(volume=[1000.0] * 20 + [4000.0])
        alert = detect_volume_spike(snapshot(indicators), quote(100.0, volume=4000.0, change=-2.5), START_MS)
        assert alert.priority == AlertPriority.HIGH
        # 50 + 4 * 8 + 2.5 * 2
        assert alert.confidence == pytest.approx(87.0)
        assert alert.details.target_price == pytest.approx(99.0)

    def test_small_move(self):
        indicators = TechnicalIndicators(volume=[1000.0] * 20 + [6000.0])
        assert detect_volume_spike(snapshot(indicators), quote(100.0, volume=6000.0, change=1.0),
                                   START_MS) is None

    def test_no_volume_history(self):
        assert detect_volume_spike(snapshot(TechnicalIndicators()), quote(100.0, change=5.0),
                                   START_MS) is None


def test_detector_order():
    assert list(DETECTORS) == ["breakout", "reversal", "momentum", "volume_spike"]
