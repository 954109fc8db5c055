"""Tests for price history providers"""

import asyncio

import pytest

from dex_assistant.config.defaults import HistoryParams
from dex_assistant.data.history import StaticPriceHistory, SyntheticPriceHistory
from dex_assistant.utils.time import HOUR_MS
from tests.conftest import START_MS, make_bars


class TestStaticPriceHistory:
    def test_unknown_symbol(self):
        assert asyncio.run(StaticPriceHistory().get_bars("BTC", 100.0, START_MS)) == []

    def test_returns_copy(self):
        history = StaticPriceHistory({"BTC": make_bars([100.0, 101.0])})
        bars = asyncio.run(history.get_bars("BTC", 101.0, START_MS))
        bars.clear()
        assert len(asyncio.run(history.get_bars("BTC", 101.0, START_MS))) == 2


class TestSyntheticPriceHistory:
    """Test the seeded random walk"""

    def bars(self, symbol="BTC", price=50_000.0, params=None):
        return asyncio.run(SyntheticPriceHistory(params).get_bars(symbol, price, START_MS))

    def test_shape(self):
        bars = self.bars()
        assert len(bars) == 50
        assert bars[0].open == pytest.approx(47_500.0)
        assert bars[-1].timestamp == START_MS - HOUR_MS
        assert all(b.low <= min(b.open, b.close) and b.high >= max(b.open, b.close) for b in bars)
        assert all(later.open == earlier.close for earlier, later in zip(bars, bars[1:]))

    def test_steps_are_bounded(self):
        for bar in self.bars():
            assert abs(bar.close / bar.open - 1) <= 0.01

    def test_deterministic_per_symbol(self):
        assert self.bars("ETH", 3000.0) == self.bars("ETH", 3000.0)
        assert [b.close / 3000.0 for b in self.bars("ETH", 3000.0)] != \
               [b.close / 3000.0 for b in self.bars("SOL", 3000.0)]

    def test_custom_params(self):
        bars = self.bars(params=HistoryParams(bar_count=10, bar_interval_ms=60_000))
        assert len(bars) == 10
        assert bars[1].timestamp - bars[0].timestamp == 60_000
