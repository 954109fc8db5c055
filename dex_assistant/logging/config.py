"""
Centralized logging configuration for the trading assistant.

Every component logs through structlog on top of the standard library
``logging`` module. Risk checks, preflight checks and radar alert gates log
through the gating logger; execution and plan lifecycle transitions log through
the state logger so both form an audit trail.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the whole assistant.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON lines; otherwise console output
        include_timestamp: Include an ISO timestamp in each event
        include_caller: Include filename and line number of the call site
        extra_processors: Additional structlog processors appended before rendering
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a structlog logger for ``name`` (typically ``__name__``)."""
    return structlog.get_logger(name)


def get_gating_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for gate decisions.

    Used by the risk manager, preflight checks and the radar alert gates.
    """
    return get_logger(name).bind(
        subsystem="gating",
        audit_trail=True
    )


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for lifecycle transitions.

    Used for execution status, execution step and tracked plan transitions.
    """
    return get_logger(name).bind(
        subsystem="state_machine",
        audit_trail=True
    )


def log_gate_decision(
    logger: FilteringBoundLogger,
    gate_name: str,
    passed: bool,
    plan_id: str,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a single gate decision in the standard format.

    Args:
        logger: Structlog logger instance
        gate_name: Name of the check being evaluated
        passed: Whether the check passed
        plan_id: Plan id, alert id or symbol the check ran against
        reason: Human readable reason for the outcome
        context: Additional numeric context
    """
    bound_logger = logger.bind(
        gate_name=gate_name,
        gate_result="PASS" if passed else "FAIL",
        plan_id=plan_id,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if passed:
        bound_logger.info("gate_decision")
    else:
        bound_logger.warning("gate_decision")


def log_state_transition(
    logger: FilteringBoundLogger,
    plan_id: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a lifecycle transition in the standard format.

    Args:
        logger: Structlog logger instance
        plan_id: Id of the plan (or plan step) transitioning
        from_state: Previous state
        to_state: New state
        trigger: What caused the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        plan_id=plan_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("state_transition")
