"""
System failure error classifications.

These exceptions represent failures of the machinery around a plan: illegal
lifecycle transitions, reverted or hung transactions and storage failures.
"""

from typing import Optional, Dict, Any


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class StateTransitionError(SystemFailureError):
    """A step or execution status was moved backwards or out of a terminal state."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class StepExecutionError(SystemFailureError):
    """An on-chain step was submitted but reverted or was rejected."""

    def __init__(self, message: str, step_id: Optional[str] = None,
                 step_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_id = step_id
        self.step_type = step_type


class StepTimeoutError(StepExecutionError):
    """An on-chain step did not confirm within its deadline."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds


class PersistenceError(SystemFailureError):
    """Key-value store or import/export failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target
