"""Tests for the technical analysis functions"""

import math

import pytest

from dex_assistant.data.models import PriceBar
from dex_assistant.metrics import (
    calculate_atr,
    calculate_bollinger_bands,
    calculate_ema,
    calculate_natr,
    calculate_rsi,
    calculate_sma,
    calculate_true_range,
)
from tests.conftest import make_bars


class TestMovingAverages:
    """Test SMA and EMA"""

    def test_sma_trailing_windows(self):
        """SMA yields one value per full window"""
        assert calculate_sma([1, 2, 3, 4, 5], 3) == [2.0, 3.0, 4.0]

    def test_sma_short_series(self):
        """Series shorter than the period gives nothing"""
        assert calculate_sma([1, 2], 3) == []

    def test_sma_invalid_period(self):
        assert calculate_sma([1, 2, 3], 0) == []

    def test_ema_seeded_with_first_price(self):
        """EMA keeps the input length and starts at the first price"""
        ema = calculate_ema([10, 20, 20], 3)
        assert ema == [10.0, 15.0, 17.5]

    def test_ema_empty(self):
        assert calculate_ema([], 12) == []


class TestRSI:
    """Test RSI with Wilder smoothing"""

    def test_output_length(self):
        """One value per change after the seed window"""
        prices = [100 + (i % 3) for i in range(30)]
        assert len(calculate_rsi(prices, 14)) == 30 - 14

    def test_insufficient_history(self):
        assert calculate_rsi([1, 2, 3], 14) == []

    def test_only_gains_saturates(self):
        """A zero average loss is replaced by a tiny epsilon"""
        rsi = calculate_rsi([float(i) for i in range(1, 17)], 14)
        assert len(rsi) == 2
        assert all(value > 99 for value in rsi)

    def test_balanced_moves(self):
        """Equal gains and losses give 50"""
        assert calculate_rsi([10, 11, 10], 2) == [pytest.approx(50.0)]

    def test_values_bounded(self):
        prices = [100, 102, 99, 105, 101, 98, 97, 103, 104, 100, 96, 99, 101, 102, 98, 95, 97]
        for value in calculate_rsi(prices, 14):
            assert 0 <= value <= 100


class TestATR:
    """Test true range and ATR"""

    def test_true_range_first_bar(self):
        """TR of the first bar is its high-low range"""
        bar = PriceBar(timestamp=0, open=100, high=105, low=95, close=102, volume=1)
        assert calculate_true_range(bar) == 10.0

    def test_true_range_gap(self):
        """A gap from the previous close widens the range"""
        previous = PriceBar(timestamp=0, open=100, high=105, low=95, close=102, volume=1)
        current = PriceBar(timestamp=1, open=110, high=115, low=108, close=112, volume=1)
        # max(115-108, |115-102|, |108-102|) = 13
        assert calculate_true_range(current, previous) == 13.0

    def test_atr_constant_range(self):
        """Flat bars one unit wide have an ATR of one"""
        bars = make_bars([100.0] * 15)
        assert calculate_atr(bars, 14) == [pytest.approx(1.0)]

    def test_atr_series_length(self):
        bars = make_bars([100.0 + i for i in range(30)])
        assert len(calculate_atr(bars, 14)) == 29 - 14 + 1

    def test_atr_needs_two_bars(self):
        assert calculate_atr(make_bars([100.0]), 14) == []

    def test_natr(self):
        assert calculate_natr(2.0, 100.0) == 2.0
        assert calculate_natr(2.0, 0.0) == 0.0


class TestBollingerBands:
    """Test Bollinger Bands"""

    def test_flat_prices_collapse_bands(self):
        bands = calculate_bollinger_bands([50.0] * 20, 20, 2.0)
        assert bands.upper == bands.middle == bands.lower == [50.0]

    def test_population_standard_deviation(self):
        """Bands sit std_dev population deviations from the SMA"""
        bands = calculate_bollinger_bands([1.0, 2.0, 3.0], 3, 2.0)
        deviation = math.sqrt(2 / 3)
        assert bands.middle == [2.0]
        assert bands.upper[0] == pytest.approx(2.0 + 2 * deviation)
        assert bands.lower[0] == pytest.approx(2.0 - 2 * deviation)

    def test_insufficient_data(self):
        bands = calculate_bollinger_bands([1.0, 2.0], 20)
        assert bands.upper == [] and bands.middle == [] and bands.lower == []
