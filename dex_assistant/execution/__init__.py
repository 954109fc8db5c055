"""Execution plans, preflight checks and sequential step execution."""

from .engine import ExecutionEngine
from .models import (
    AllowanceCheck,
    BalanceCheck,
    CostEstimate,
    ExecutionEvent,
    ExecutionEventType,
    ExecutionPlan,
    ExecutionState,
    ExecutionStatus,
    ExecutionStep,
    LeverageCheck,
    MarginCheck,
    MarketCheck,
    PreflightChecks,
    StepStatus,
    StepType,
    TransactionRecord,
)

__all__ = [
    "ExecutionEngine",
    "AllowanceCheck",
    "BalanceCheck",
    "CostEstimate",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionPlan",
    "ExecutionState",
    "ExecutionStatus",
    "ExecutionStep",
    "LeverageCheck",
    "MarginCheck",
    "MarketCheck",
    "PreflightChecks",
    "StepStatus",
    "StepType",
    "TransactionRecord",
]
