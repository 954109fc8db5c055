"""
Precondition failures.

Raised synchronously when an operation is called in a state that cannot
support it, such as closing a position that does not exist. They are never
retried.
"""

from typing import Any, Optional


class PreconditionError(Exception):
    """Base class for rejected operations."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class ProfileNotFoundError(PreconditionError):
    """No risk profile exists for the address."""

    def __init__(self, address: str):
        super().__init__(f"User profile not found: {address}", {"address": address})
        self.address = address


class PositionNotFoundError(PreconditionError):
    """A close was requested but no position of that side is open."""

    def __init__(self, symbol: str, side: str):
        super().__init__(f"No {side} position to close for {symbol}",
                         {"symbol": symbol, "side": side})
        self.symbol = symbol
        self.side = side


class RecordNotFoundError(PreconditionError):
    """No tracked execution exists for the plan id."""

    def __init__(self, plan_id: str):
        super().__init__(f"No tracked execution for plan {plan_id}", {"plan_id": plan_id})
        self.plan_id = plan_id


class InvalidParameterError(PreconditionError):
    """Configuration or risk parameters were rejected by validation."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, {"errors": [str(e) for e in errors or []]})
        self.errors = errors or []


class PlanAlreadyExecutedError(PreconditionError):
    """An execution plan was submitted again after its steps had started."""

    def __init__(self, plan_id: str, step_statuses: list[str]):
        super().__init__(f"Execution plan {plan_id} has already run; build a new plan to retry",
                         {"plan_id": plan_id, "step_statuses": step_statuses})
        self.plan_id = plan_id
