"""Market and account data models and price history providers."""

from .history import PriceHistoryProvider, StaticPriceHistory, SyntheticPriceHistory
from .models import AccountInfo, AccountSnapshot, PositionSnapshot, PriceBar, PriceQuote

__all__ = [
    "PriceBar",
    "PriceQuote",
    "AccountInfo",
    "AccountSnapshot",
    "PositionSnapshot",
    "PriceHistoryProvider",
    "StaticPriceHistory",
    "SyntheticPriceHistory",
]
