"""
Price history providers.

The strategy engine asks a ``PriceHistoryProvider`` for the bar series behind a
symbol. ``StaticPriceHistory`` serves bars supplied by the caller (a real
history source or a test fixture). ``SyntheticPriceHistory`` synthesizes a
deterministic random walk ending near the current price; it is a fallback for
demos and tests when no real history exists and must be opted into explicitly.
"""

import random
import zlib
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import structlog

from ..config.defaults import HistoryParams
from .models import PriceBar

logger = structlog.get_logger(__name__)


class PriceHistoryProvider(ABC):
    """Source of historical bars for a symbol."""

    @abstractmethod
    async def get_bars(self, symbol: str, current_price: float, now_ms: int) -> list[PriceBar]:
        """Return bars in chronological order, oldest first."""


class StaticPriceHistory(PriceHistoryProvider):
    """Serves fixed bar series keyed by symbol."""

    def __init__(self, bars_by_symbol: Optional[dict[str, Sequence[PriceBar]]] = None):
        self._bars: dict[str, list[PriceBar]] = {
            symbol: list(bars) for symbol, bars in (bars_by_symbol or {}).items()
        }

    def set_bars(self, symbol: str, bars: Sequence[PriceBar]) -> None:
        self._bars[symbol] = list(bars)

    async def get_bars(self, symbol: str, current_price: float, now_ms: int) -> list[PriceBar]:
        return list(self._bars.get(symbol, []))


class SyntheticPriceHistory(PriceHistoryProvider):
    """
    Deterministic stand-in history.

    Starts ``start_discount`` below the current price and walks in steps of at
    most ``step_pct``. The walk is seeded per symbol, so the same symbol and
    price always produce the same series.
    """

    def __init__(self, params: Optional[HistoryParams] = None):
        self.params = params or HistoryParams()

    def _rng(self, symbol: str) -> random.Random:
        return random.Random(self.params.seed ^ zlib.crc32(symbol.encode()))

    async def get_bars(self, symbol: str, current_price: float, now_ms: int) -> list[PriceBar]:
        p = self.params
        rng = self._rng(symbol)
        price = current_price * (1 - p.start_discount)
        bars = []

        for i in range(p.bar_count):
            change = (rng.random() - 0.5) * 2 * p.step_pct
            open_ = price
            close = price * (1 + change)
            high = max(open_, close) * (1 + rng.random() * p.step_pct)
            low = min(open_, close) * (1 - rng.random() * p.step_pct)
            volume = 100000 + rng.random() * 200000

            bars.append(PriceBar(
                timestamp=now_ms - (p.bar_count - i) * p.bar_interval_ms,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
            ))
            price = close

        logger.debug("Synthesized price history", symbol=symbol, bars=len(bars),
                     seed_price=current_price)
        return bars
