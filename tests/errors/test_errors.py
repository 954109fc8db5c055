"""
Error classification tests.

Covers the exception hierarchy and the Result wrapper used at the
application boundary.
"""

import asyncio

import pytest

from dex_assistant.config.validation import ValidationError
from dex_assistant.errors import (
    DataQualityError,
    ErrorKind,
    InsufficientDataError,
    InvalidParameterError,
    MalformedDataError,
    MissingDataError,
    PersistenceError,
    PositionNotFoundError,
    PreconditionError,
    ProfileNotFoundError,
    RecordNotFoundError,
    Result,
    StateTransitionError,
    StepExecutionError,
    StepTimeoutError,
    SystemFailureError,
    capture,
    capture_call,
    classify_exception,
)


class TestErrorHierarchy:
    """Test error classification system."""

    def test_data_quality_errors_are_recoverable(self):
        """Test that data quality errors have proper hierarchy."""
        base_error = DataQualityError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        missing = MissingDataError("no quote", symbol="BTC")
        assert isinstance(missing, DataQualityError)
        assert missing.symbol == "BTC"

        malformed = MalformedDataError("bad time", raw_data="25:00", expected_format="HH:MM")
        assert malformed.expected_format == "HH:MM"

        insufficient = InsufficientDataError("short history", required_count=20, available_count=5)
        assert insufficient.required_count == 20
        assert insufficient.available_count == 5

    def test_system_failures_are_not_recoverable(self):
        for error in (
            StateTransitionError("backwards", current_state="completed"),
            StepExecutionError("reverted", step_id="deposit-1", step_type="deposit"),
            StepTimeoutError("timed out", timeout_seconds=300.0),
            PersistenceError("disk full", operation="set", target="assistant.db"),
        ):
            assert isinstance(error, SystemFailureError)
            assert error.recoverable is False

    def test_timeout_is_a_step_failure(self):
        error = StepTimeoutError("timed out", timeout_seconds=1.0, step_id="s1")
        assert isinstance(error, StepExecutionError)
        assert error.step_id == "s1"

    def test_precondition_messages(self):
        """Test the messages callers see for rejected calls."""
        assert str(ProfileNotFoundError("0xabc")) == "User profile not found: 0xabc"

        position = PositionNotFoundError("BTC", "long")
        assert position.context == {"symbol": "BTC", "side": "long"}
        assert str(position) == "No long position to close for BTC"

        record = RecordNotFoundError("plan-9")
        assert isinstance(record, PreconditionError)
        assert record.plan_id == "plan-9"

    def test_invalid_parameter_keeps_errors(self):
        errors = [ValidationError(field="min_confidence", message="Must be a number between 0 and 100",
                                  value=150)]
        error = InvalidParameterError("Invalid preferences", errors)
        assert error.errors == errors
        assert error.context["errors"] == [
            "min_confidence: Must be a number between 0 and 100 (got 150)"
        ]


class TestClassifyException:
    @pytest.mark.parametrize("exc,kind", [
        (InvalidParameterError("bad"), ErrorKind.VALIDATION),
        (ProfileNotFoundError("0xabc"), ErrorKind.PRECONDITION),
        (StepTimeoutError("slow"), ErrorKind.TIMEOUT),
        (asyncio.TimeoutError(), ErrorKind.TIMEOUT),
        (StepExecutionError("reverted"), ErrorKind.EXECUTION),
        (MissingDataError("no quote"), ErrorKind.VALIDATION),
        (PersistenceError("disk"), ErrorKind.SYSTEM),
        (RuntimeError("boom"), ErrorKind.SYSTEM),
    ])
    def test_kinds(self, exc, kind):
        assert classify_exception(exc) == kind


class TestResult:
    """Test the boundary Result wrapper."""

    def test_success(self):
        result = Result.success(42)
        assert result.ok
        assert result.unwrap() == 42
        assert result.kind is None

    def test_failure_unwrap_raises(self):
        result = Result.failure(ErrorKind.PRECONDITION, "User profile not found: 0xabc")
        assert not result.ok
        with pytest.raises(ValueError, match="precondition: User profile not found"):
            result.unwrap()

    def test_capture_call_success(self):
        assert capture_call(sum, [1, 2, 3]).value == 6

    def test_capture_call_keeps_context(self):
        def close():
            raise PositionNotFoundError("ETH", "short")

        result = capture_call(close)
        assert result.kind == ErrorKind.PRECONDITION
        assert result.error == "No short position to close for ETH"
        assert result.details == {"symbol": "ETH", "side": "short",
                                  "error_type": "PositionNotFoundError"}

    def test_capture_unexpected_error(self):
        async def broken():
            raise RuntimeError("boom")

        result = asyncio.run(capture(broken(), "broken"))
        assert result.kind == ErrorKind.SYSTEM
        assert result.error == "boom"
        assert result.details["error_type"] == "RuntimeError"

    def test_capture_success(self):
        async def answer():
            return "ok"

        assert asyncio.run(capture(answer())).value == "ok"
