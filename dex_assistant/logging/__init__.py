"""
Logging configuration and utilities for the trading assistant.
"""
from .config import (
    configure_logging,
    get_gating_logger,
    get_logger,
    get_state_logger,
    log_gate_decision,
    log_state_transition,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "get_gating_logger",
    "get_state_logger",
    "log_gate_decision",
    "log_state_transition",
]
