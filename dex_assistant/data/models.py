"""
Canonical market and account data models.

These immutable structures are what the price feed and contract gateway hand to
the assistant. Timestamps are epoch milliseconds.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class PriceBar:
    """OHLCV bar."""
    timestamp: int      # epoch ms, bar open time
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class PriceQuote:
    """Latest quote for a symbol as returned by the price feed."""
    symbol: str
    price: float
    timestamp: int
    change_24h: float = 0.0     # percent
    volume: float = 0.0
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    open_price: Optional[float] = None

    def to_bar(self) -> PriceBar:
        """Build the bar that a quote contributes to a rolling snapshot."""
        return PriceBar(
            timestamp=self.timestamp,
            open=self.open_price if self.open_price is not None else self.price,
            high=self.high_24h if self.high_24h is not None else self.price,
            low=self.low_24h if self.low_24h is not None else self.price,
            close=self.price,
            volume=self.volume,
        )


@dataclass(frozen=True)
class AccountInfo:
    """Trading account state held by the contract."""
    balance: float
    total_margin: float = 0.0
    equity: float = 0.0

    @property
    def available_margin(self) -> float:
        return self.balance - self.total_margin


@dataclass(frozen=True)
class PositionSnapshot:
    """An open position as seen by the risk manager."""
    symbol: str
    size: float = 0.0
    leverage: float = 1.0
    notional_value: float = 0.0
    unrealized_pnl_percent: float = 0.0     # fraction, -0.2 == -20%


@dataclass(frozen=True)
class AccountSnapshot:
    """Account-level data used for plan assessment and emergency checks."""
    balance: float
    positions: dict[str, PositionSnapshot] = field(default_factory=dict)
    total_margin: float = 0.0
