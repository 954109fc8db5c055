"""
Trading plan data models.

Signals, regimes and plans are immutable. A risk assessment that needs to
change a plan produces a new plan through the ``with_*`` helpers.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class RegimeType(str, Enum):
    """Market regime classification."""
    TRENDING = "trending"
    RANGING = "ranging"
    VOLATILE = "volatile"


class TrendDirection(str, Enum):
    """Direction of the prevailing move."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class VolatilityLevel(str, Enum):
    """ATR-percent volatility bucket."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SignalType(str, Enum):
    """Kind of trading signal."""
    ENTRY = "entry"
    EXIT = "exit"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"


class SignalDirection(str, Enum):
    """Side of a trade."""
    LONG = "long"
    SHORT = "short"


class PlanAction(str, Enum):
    """Execution action for a plan."""
    LONG = "long"
    BUY = "buy"
    SHORT = "short"
    SELL = "sell"
    CLOSE_LONG = "close_long"
    CLOSE_SHORT = "close_short"


def clamp_score(value: float) -> float:
    """Clamp a strength or confidence score to [0, 100]."""
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class MarketRegime:
    """Regime classification recomputed on every scan."""
    type: RegimeType
    strength: float
    direction: TrendDirection
    volatility: VolatilityLevel
    confidence: float


@dataclass(frozen=True)
class TradingSignal:
    """Directional recommendation produced by one strategy rule."""
    type: SignalType
    direction: SignalDirection
    strength: float
    price: float
    timestamp: int
    reason: str
    indicators: dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not 0 <= self.strength <= 100:
            raise ValueError(f"Signal strength out of range: {self.strength}")


@dataclass(frozen=True)
class EntrySpec:
    """How and why to enter."""
    price: float
    order_type: str = "market"
    conditions: tuple[str, ...] = ()


@dataclass(frozen=True)
class StopLoss:
    price: float
    percent: float


@dataclass(frozen=True)
class TakeProfitTarget:
    price: float
    percent: float


@dataclass(frozen=True)
class TakeProfit:
    """Base take-profit plus the scaled target ladder."""
    price: float
    percent: float
    targets: tuple[TakeProfitTarget, ...]

    def __post_init__(self):
        if not self.targets:
            raise ValueError("Take profit requires at least one target")


@dataclass(frozen=True)
class PositionSizing:
    """Sized position for a plan."""
    notional_size: float
    leverage: float
    margin: float
    risk_amount: float
    stop_loss_distance: float = 0.0


@dataclass(frozen=True)
class TradingPlan:
    """Complete, sized, risk-annotated trade proposal."""
    id: str
    symbol: str
    strategy: str
    signal: TradingSignal
    entry: EntrySpec
    stop_loss: StopLoss
    take_profit: TakeProfit
    position_sizing: PositionSizing
    market_regime: MarketRegime
    risk_reward: float
    confidence: float
    timeframe: str
    created_at: int
    expiry_time: Optional[int] = None
    notes: tuple[str, ...] = ()
    action: Optional[PlanAction] = None

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Plan confidence out of range: {self.confidence}")

    @property
    def resolved_action(self) -> PlanAction:
        """Explicit action, or the action implied by the signal direction."""
        if self.action is not None:
            return self.action
        return PlanAction.LONG if self.signal.direction == SignalDirection.LONG else PlanAction.SHORT

    @property
    def is_long(self) -> bool:
        return self.signal.direction == SignalDirection.LONG

    def with_position_sizing(self, sizing: PositionSizing, note: Optional[str] = None) -> "TradingPlan":
        """Copy of this plan with new sizing, optionally appending a note."""
        notes = self.notes + ((note,) if note else ())
        return replace(self, position_sizing=sizing, notes=notes)

    def with_action(self, action: PlanAction) -> "TradingPlan":
        return replace(self, action=action)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradingPlan":
        """Rebuild a plan from ``to_dict`` output."""
        signal = data["signal"]
        regime = data["market_regime"]
        take_profit = data["take_profit"]
        return cls(
            id=data["id"],
            symbol=data["symbol"],
            strategy=data["strategy"],
            signal=TradingSignal(
                type=SignalType(signal["type"]),
                direction=SignalDirection(signal["direction"]),
                strength=signal["strength"],
                price=signal["price"],
                timestamp=signal["timestamp"],
                reason=signal["reason"],
                indicators=dict(signal.get("indicators") or {}),
            ),
            entry=EntrySpec(
                price=data["entry"]["price"],
                order_type=data["entry"].get("order_type", "market"),
                conditions=tuple(data["entry"].get("conditions") or ()),
            ),
            stop_loss=StopLoss(**data["stop_loss"]),
            take_profit=TakeProfit(
                price=take_profit["price"],
                percent=take_profit["percent"],
                targets=tuple(TakeProfitTarget(**t) for t in take_profit["targets"]),
            ),
            position_sizing=PositionSizing(**data["position_sizing"]),
            market_regime=MarketRegime(
                type=RegimeType(regime["type"]),
                strength=regime["strength"],
                direction=TrendDirection(regime["direction"]),
                volatility=VolatilityLevel(regime["volatility"]),
                confidence=regime["confidence"],
            ),
            risk_reward=data["risk_reward"],
            confidence=data["confidence"],
            timeframe=data["timeframe"],
            created_at=data["created_at"],
            expiry_time=data.get("expiry_time"),
            notes=tuple(data.get("notes") or ()),
            action=PlanAction(data["action"]) if data.get("action") else None,
        )
