"""
Performance tracker records.

A ``TradingPlanExecution`` is the raw record of one plan's life from
recording through exit. Every aggregate in this package
(``StrategyPerformance``, ``StrategyMetrics``, the dashboard) is derived from
the closed records, so the records are the only thing that is persisted.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from ..errors import StateTransitionError


class ExecutionRecordStatus(str, Enum):
    PLANNING = "planning"
    ENTERED = "entered"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


RECORD_TRANSITIONS: dict[ExecutionRecordStatus, frozenset[ExecutionRecordStatus]] = {
    ExecutionRecordStatus.PLANNING: frozenset({
        ExecutionRecordStatus.ENTERED,
        ExecutionRecordStatus.CANCELLED,
        ExecutionRecordStatus.EXPIRED,
    }),
    ExecutionRecordStatus.ENTERED: frozenset({
        ExecutionRecordStatus.ACTIVE,
        ExecutionRecordStatus.CLOSED,
        ExecutionRecordStatus.CANCELLED,
    }),
    ExecutionRecordStatus.ACTIVE: frozenset({
        ExecutionRecordStatus.CLOSED,
        ExecutionRecordStatus.CANCELLED,
    }),
    ExecutionRecordStatus.CLOSED: frozenset(),
    ExecutionRecordStatus.CANCELLED: frozenset(),
    ExecutionRecordStatus.EXPIRED: frozenset(),
}

OPEN_STATUSES = frozenset({ExecutionRecordStatus.ENTERED, ExecutionRecordStatus.ACTIVE})


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MANUAL = "manual"
    EXPIRED = "expired"
    PARTIAL = "partial"


class AlertKind(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StreakType(str, Enum):
    WIN = "win"
    LOSS = "loss"
    NONE = "none"


@dataclass
class TradingPlanExecution:
    """Lifecycle record for one trading plan."""
    plan_id: str
    symbol: str
    strategy: str
    direction: str                           # "long" or "short"
    planned_entry_price: float
    planned_exit_price: float
    planned_stop_loss: float
    position_size: float                     # base-asset units
    leverage: float
    margin: float
    planned_risk_reward: float
    confidence: float
    signal_strength: float
    market_conditions: str
    timeframe: str
    created_at: int
    updated_at: int
    status: ExecutionRecordStatus = ExecutionRecordStatus.PLANNING

    entry_time: Optional[int] = None
    actual_entry_price: Optional[float] = None
    entry_slippage: Optional[float] = None
    entry_fees: float = 0.0
    entry_tx_hash: Optional[str] = None

    exit_time: Optional[int] = None
    actual_exit_price: Optional[float] = None
    exit_slippage: Optional[float] = None
    exit_fees: float = 0.0
    exit_tx_hash: Optional[str] = None
    exit_reason: Optional[ExitReason] = None

    pnl: Optional[float] = None
    pnl_percentage: Optional[float] = None
    actual_risk_reward: Optional[float] = None
    is_win: Optional[bool] = None
    time_in_trade: Optional[int] = None

    current_price: Optional[float] = None
    unrealized_pnl: float = 0.0
    unrealized_pnl_percentage: float = 0.0

    notes: list[str] = field(default_factory=list)

    @property
    def is_long(self) -> bool:
        return self.direction == "long"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def transition(self, to: ExecutionRecordStatus) -> ExecutionRecordStatus:
        """Move to ``to`` and return the previous status."""
        if to not in RECORD_TRANSITIONS[self.status]:
            raise StateTransitionError(
                f"Record {self.plan_id} cannot move from {self.status.value} to {to.value}",
                current_state=self.status.value,
                attempted_transition=to.value,
            )
        previous = self.status
        self.status = to
        return previous

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["exit_reason"] = self.exit_reason.value if self.exit_reason else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradingPlanExecution":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values["status"] = ExecutionRecordStatus(values.get("status", "planning"))
        if values.get("exit_reason"):
            values["exit_reason"] = ExitReason(values["exit_reason"])
        values["notes"] = list(values.get("notes") or [])
        return cls(**values)


@dataclass(frozen=True)
class StrategyMetrics:
    trades: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    average_risk_reward: float = 0.0
    max_drawdown: float = 0.0                # currency drop from the running pnl peak
    profit_factor: float = 0.0


@dataclass(frozen=True)
class StrategyPerformance:
    """Aggregate statistics for one strategy, derived from its closed trades."""
    strategy_name: str
    total_trades: int
    win_rate: float
    loss_rate: float
    average_win: float
    average_loss: float
    average_risk_reward: float
    total_pnl: float
    max_drawdown: float
    profit_factor: float
    average_time_in_trade: float
    win_streak: int
    loss_streak: int
    current_streak: int
    current_streak_type: StreakType
    performance_by_market: dict[str, StrategyMetrics]
    performance_by_timeframe: dict[str, StrategyMetrics]
    last_30_days: StrategyMetrics
    last_7_days: StrategyMetrics
    last_updated: int


@dataclass
class PerformanceAlert:
    id: str
    type: AlertKind
    severity: AlertSeverity
    title: str
    message: str
    category: str
    timestamp: int
    acknowledged: bool = False
    strategy: Optional[str] = None
    plan_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerformanceAlert":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values["type"] = AlertKind(values["type"])
        values["severity"] = AlertSeverity(values["severity"])
        values.setdefault("category", "general")
        return cls(**values)


@dataclass(frozen=True)
class RealTimePosition:
    plan_id: str
    symbol: str
    direction: str
    entry_price: float
    current_price: float
    position_size: float
    leverage: float
    unrealized_pnl: float
    unrealized_pnl_percentage: float
    time_in_trade: int
    stop_loss_price: float
    take_profit_price: float
    distance_to_stop_loss: float             # percent of current price
    distance_to_take_profit: float
    risk_amount: float
    last_updated: int


@dataclass(frozen=True)
class TradeSummary:
    plan_id: str
    symbol: str
    strategy: str
    pnl: float
    is_win: bool
    exit_time: int


@dataclass(frozen=True)
class MarketConditionPerformance:
    condition: str
    total_trades: int
    win_rate: float
    average_pnl: float
    strategies: dict[str, StrategyMetrics]


@dataclass(frozen=True)
class DashboardOverview:
    total_trades: int
    total_pnl: float
    win_rate: float
    average_risk_reward: float
    max_drawdown: float                      # percent of the running pnl peak
    current_drawdown: float
    profit_factor: float
    best_trade: Optional[TradeSummary]
    worst_trade: Optional[TradeSummary]


@dataclass(frozen=True)
class PerformanceDashboard:
    overview: DashboardOverview
    strategies: list[StrategyPerformance]
    market_conditions: list[MarketConditionPerformance]
    active_positions: list[RealTimePosition]
    recent_trades: list[TradeSummary]
    generated_at: int
