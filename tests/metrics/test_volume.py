"""Tests for volume analysis and the indicator calculator"""

import pytest

from dex_assistant.config.defaults import IndicatorParams
from dex_assistant.errors import InsufficientDataError
from dex_assistant.metrics import IndicatorCalculator, analyze_volume, calculate_rvol, compute_indicators
from dex_assistant.models.indicators import TechnicalIndicators
from tests.conftest import make_bars


class TestRVOL:
    """Test relative volume"""

    def test_rvol_against_average(self):
        assert calculate_rvol(200.0, [100.0] * 20) == 2.0

    def test_rvol_uses_last_period_values(self):
        history = [1000.0] * 10 + [100.0] * 20
        assert calculate_rvol(100.0, history, period=20) == 1.0

    def test_rvol_insufficient_history(self):
        assert calculate_rvol(200.0, [100.0] * 5) is None

    def test_rvol_zero_average(self):
        assert calculate_rvol(200.0, [0.0] * 20) is None


class TestVolumeAnalysis:
    """Test trailing volume analysis"""

    def test_stable_volume(self):
        analysis = analyze_volume(make_bars([100.0] * 25, volume=100.0))
        assert len(analysis.avg_volume) == 6
        assert analysis.volume_ratio == [pytest.approx(1.0)] * 6
        assert analysis.volume_trend == "stable"

    def test_increasing_volume(self):
        """Recent bars well above their trailing average"""
        bars = make_bars([100.0] * 20, volume=100.0) + make_bars([100.0] * 5, volume=200.0)
        assert analyze_volume(bars).volume_trend == "increasing"

    def test_decreasing_volume(self):
        bars = make_bars([100.0] * 20, volume=100.0) + make_bars([100.0] * 5, volume=20.0)
        assert analyze_volume(bars).volume_trend == "decreasing"


class TestIndicatorCalculator:
    """Test the full indicator snapshot"""

    def test_series_lengths(self):
        """Each series drops its own warm-up window"""
        indicators = compute_indicators(make_bars([100.0 + i for i in range(30)]))
        assert len(indicators.sma) == 11
        assert len(indicators.ema) == 30
        assert len(indicators.rsi) == 16
        assert len(indicators.atr) == 16
        assert len(indicators.volume) == 30
        assert len(indicators.bollinger.middle) == 11

    def test_current_values(self):
        indicators = compute_indicators(make_bars([100.0] * 25))
        assert indicators.current_sma == pytest.approx(100.0)
        assert indicators.current_atr == pytest.approx(1.0)

    def test_short_series_leaves_series_empty(self):
        indicators = compute_indicators(make_bars([100.0, 101.0, 102.0]))
        assert indicators.sma == []
        assert indicators.current_sma is None
        assert indicators.current_rsi is None
        assert len(indicators.ema) == 3

    def test_empty_bars_raise(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            IndicatorCalculator().compute([])
        assert exc_info.value.required_count == 1
        assert exc_info.value.available_count == 0

    def test_custom_periods(self):
        calculator = IndicatorCalculator(IndicatorParams(sma_period=5))
        indicators = calculator.compute(make_bars([100.0] * 10))
        assert len(indicators.sma) == 6

    def test_trailing_volume_average_excludes_latest(self):
        indicators = TechnicalIndicators(volume=[1.0, 2.0, 3.0, 4.0])
        assert indicators.trailing_volume_average(2) == 2.5
        assert TechnicalIndicators(volume=[5.0]).trailing_volume_average() is None
