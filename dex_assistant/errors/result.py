"""
Result convention used at the application boundary.

Inner components raise on precondition failures and return structured objects
for validation outcomes. ``AssistantContext`` wraps every call into a
``Result`` so callers handle one failure shape.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from .data_quality import DataQualityError
from .preconditions import InvalidParameterError, PreconditionError
from .system_failures import StepExecutionError, StepTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""
    PRECONDITION = "precondition"
    VALIDATION = "validation"
    EXECUTION = "execution"
    TIMEOUT = "timeout"
    SYSTEM = "system"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a boundary operation."""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        error: str,
        details: Optional[dict[str, Any]] = None
    ) -> "Result[T]":
        return cls(ok=False, error=error, kind=kind, details=details or {})

    def unwrap(self) -> T:
        """Return the value or raise ``ValueError`` for a failed result."""
        if not self.ok:
            raise ValueError(f"{self.kind.value if self.kind else 'error'}: {self.error}")
        return self.value  # type: ignore[return-value]


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map an exception raised by an inner component to an ``ErrorKind``."""
    if isinstance(exc, InvalidParameterError):
        return ErrorKind.VALIDATION
    if isinstance(exc, PreconditionError):
        return ErrorKind.PRECONDITION
    if isinstance(exc, (StepTimeoutError, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, StepExecutionError):
        return ErrorKind.EXECUTION
    if isinstance(exc, DataQualityError):
        return ErrorKind.VALIDATION
    return ErrorKind.SYSTEM


def _failure_from(exc: Exception, operation: str) -> Result[Any]:
    kind = classify_exception(exc)
    details = dict(getattr(exc, "context", {}) or {})
    details["error_type"] = type(exc).__name__
    if kind is ErrorKind.SYSTEM:
        logger.error("Unexpected error at boundary",
                     operation=operation, error=str(exc), error_type=type(exc).__name__)
    else:
        logger.info("Operation rejected",
                    operation=operation, kind=kind.value, error=str(exc))
    return Result.failure(kind, str(exc), details)


def capture_call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Run a synchronous callable and wrap its outcome."""
    try:
        return Result.success(fn(*args, **kwargs))
    except Exception as e:
        return _failure_from(e, getattr(fn, "__name__", repr(fn)))


async def capture(awaitable: Awaitable[T], operation: str = "async") -> Result[T]:
    """Await ``awaitable`` and wrap its outcome."""
    try:
        return Result.success(await awaitable)
    except Exception as e:
        return _failure_from(e, operation)
