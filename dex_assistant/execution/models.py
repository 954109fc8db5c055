"""
Execution engine data models.

Step and execution statuses only move forward. ``ExecutionStep.transition``
and ``ExecutionStatus.transition`` enforce the allowed edges and raise
``StateTransitionError`` on anything else.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import StateTransitionError
from ..models.plan import TradingPlan


class StepType(str, Enum):
    APPROVE = "approve"
    DEPOSIT = "deposit"
    OPEN_POSITION = "open_position"
    CLOSE_POSITION = "close_position"
    WITHDRAW = "withdraw"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionState(str, Enum):
    PREPARING = "preparing"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    STUCK = "stuck"


class ExecutionEventType(str, Enum):
    PLAN_CREATED = "plan_created"
    PREFLIGHT_STARTED = "preflight_started"
    PREFLIGHT_COMPLETED = "preflight_completed"
    EXECUTION_STARTED = "execution_started"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"
    EXECUTION_STUCK = "execution_stuck"


STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS, StepStatus.SKIPPED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

EXECUTION_TRANSITIONS: dict[ExecutionState, frozenset[ExecutionState]] = {
    ExecutionState.PREPARING: frozenset({
        ExecutionState.CONFIRMING, ExecutionState.EXECUTING, ExecutionState.CANCELLED,
    }),
    ExecutionState.CONFIRMING: frozenset({ExecutionState.EXECUTING, ExecutionState.CANCELLED}),
    ExecutionState.EXECUTING: frozenset({
        ExecutionState.COMPLETED, ExecutionState.FAILED,
        ExecutionState.CANCELLED, ExecutionState.STUCK,
    }),
    ExecutionState.COMPLETED: frozenset(),
    ExecutionState.FAILED: frozenset(),
    ExecutionState.CANCELLED: frozenset(),
    ExecutionState.STUCK: frozenset(),
}

TERMINAL_STATES = frozenset({
    ExecutionState.COMPLETED, ExecutionState.FAILED,
    ExecutionState.CANCELLED, ExecutionState.STUCK,
})


@dataclass
class ExecutionStep:
    """One on-chain action in an execution plan."""
    id: str
    type: StepType
    description: str
    params: dict[str, Any] = field(default_factory=dict)
    estimated_gas: float = 0.0
    status: StepStatus = StepStatus.PENDING
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    def transition(self, to: StepStatus) -> StepStatus:
        """Move to ``to``; returns the previous status."""
        if to not in STEP_TRANSITIONS[self.status]:
            raise StateTransitionError(
                f"Illegal step transition {self.status.value} -> {to.value} for {self.id}",
                current_state=self.status.value,
                attempted_transition=to.value,
            )
        previous = self.status
        self.status = to
        return previous


@dataclass
class ExecutionPlan:
    """Ordered steps derived from a trading plan at execution time."""
    id: str
    trading_plan: TradingPlan
    steps: list[ExecutionStep]
    total_estimated_gas: float
    required_balance: float
    required_allowance: float
    created_at: int


@dataclass(frozen=True)
class BalanceCheck:
    passed: bool
    required: float
    available: float
    shortfall: float = 0.0


@dataclass(frozen=True)
class AllowanceCheck:
    passed: bool
    required: float
    current: float
    needs_approval: bool


@dataclass(frozen=True)
class MarketCheck:
    passed: bool
    current_price: float
    max_slippage: float
    price_deviation: Optional[float] = None


@dataclass(frozen=True)
class LeverageCheck:
    passed: bool
    requested: float
    max_allowed: float


@dataclass(frozen=True)
class MarginCheck:
    passed: bool
    required_margin: float
    available_margin: float


@dataclass(frozen=True)
class PreflightChecks:
    """Outcome of the five preflight checks; blockers prevent execution."""
    balance: BalanceCheck
    allowance: AllowanceCheck
    market: MarketCheck
    leverage: LeverageCheck
    margin: MarginCheck
    overall: bool
    warnings: list[str] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionRecord:
    hash: str
    step_type: StepType
    timestamp: int
    amount: Optional[float] = None
    symbol: Optional[str] = None


@dataclass
class ExecutionStatus:
    """Progress of one execution attempt."""
    plan_id: str
    status: ExecutionState
    total_steps: int
    start_time: int
    current_step: int = 0
    progress: float = 0.0
    completed_steps: list[ExecutionStep] = field(default_factory=list)
    transactions: list[TransactionRecord] = field(default_factory=list)
    current_step_status: Optional[ExecutionStep] = None
    end_time: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def transition(self, to: ExecutionState) -> ExecutionState:
        """Move to ``to``; returns the previous state."""
        if to not in EXECUTION_TRANSITIONS[self.status]:
            raise StateTransitionError(
                f"Illegal execution transition {self.status.value} -> {to.value} for {self.plan_id}",
                current_state=self.status.value,
                attempted_transition=to.value,
            )
        previous = self.status
        self.status = to
        return previous


@dataclass(frozen=True)
class ExecutionEvent:
    type: ExecutionEventType
    plan_id: str
    timestamp: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CostEstimate:
    gas_cost: float
    trading_fees: float
    total: float
