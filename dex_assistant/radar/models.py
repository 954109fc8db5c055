"""Opportunity radar data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..data.models import PriceBar
from ..models.indicators import TechnicalIndicators
from ..models.plan import MarketRegime


class AlertType(str, Enum):
    BREAKOUT = "breakout"
    REVERSAL = "reversal"
    MOMENTUM = "momentum"
    NEWS_SPIKE = "news_spike"
    VOLUME_SPIKE = "volume_spike"


class AlertPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    AlertPriority.LOW: 1,
    AlertPriority.MEDIUM: 2,
    AlertPriority.HIGH: 3,
    AlertPriority.CRITICAL: 4,
}


@dataclass(frozen=True)
class AlertDetails:
    current_price: float
    price_change: float
    volume: float
    signals: tuple[str, ...] = ()
    timeframe: str = "1h"
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None
    risk_reward: Optional[float] = None


@dataclass(frozen=True)
class OpportunityAlert:
    """A detected setup, active until ``expires_at``."""
    id: str
    symbol: str
    type: AlertType
    priority: AlertPriority
    confidence: float
    message: str
    details: AlertDetails
    timestamp: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "type": self.type.value,
            "priority": self.priority.value,
            "confidence": self.confidence,
            "message": self.message,
            "details": {
                "current_price": self.details.current_price,
                "price_change": self.details.price_change,
                "volume": self.details.volume,
                "signals": list(self.details.signals),
                "timeframe": self.details.timeframe,
                "target_price": self.details.target_price,
                "stop_loss": self.details.stop_loss,
                "risk_reward": self.details.risk_reward,
            },
            "timestamp": self.timestamp,
            "expires_at": self.expires_at,
        }


@dataclass
class MarketSnapshot:
    """Rolling per-symbol state; bars are capped at the configured history length."""
    symbol: str
    bars: list[PriceBar]
    indicators: TechnicalIndicators
    regime: MarketRegime
    volume_24h: float = 0.0
    price_change_24h: float = 0.0
    last_update: int = 0
    last_quote_timestamp: int = 0
    updates: int = field(default=0)
