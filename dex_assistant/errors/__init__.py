"""
Error classification for the trading assistant.

Data quality errors are recoverable and yield "no result". System failures mark
an execution failed or stuck. Precondition errors reject the call outright.
``Result`` and ``ErrorKind`` unify all three at the application boundary.
"""

from .data_quality import (
    DataQualityError,
    MissingDataError,
    MalformedDataError,
    InsufficientDataError,
)
from .system_failures import (
    SystemFailureError,
    StateTransitionError,
    StepExecutionError,
    StepTimeoutError,
    PersistenceError,
)
from .preconditions import (
    PreconditionError,
    ProfileNotFoundError,
    PositionNotFoundError,
    RecordNotFoundError,
    PlanAlreadyExecutedError,
    InvalidParameterError,
)
from .result import ErrorKind, Result, capture, capture_call, classify_exception

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "MissingDataError",
    "MalformedDataError",
    "InsufficientDataError",
    # System Failures
    "SystemFailureError",
    "StateTransitionError",
    "StepExecutionError",
    "StepTimeoutError",
    "PersistenceError",
    # Preconditions
    "PreconditionError",
    "ProfileNotFoundError",
    "PositionNotFoundError",
    "RecordNotFoundError",
    "PlanAlreadyExecutedError",
    "InvalidParameterError",
    # Boundary results
    "ErrorKind",
    "Result",
    "capture",
    "capture_call",
    "classify_exception",
]
