"""Continuous per-symbol opportunity scanning."""

from .detectors import (
    DETECTORS,
    detect_breakout,
    detect_momentum,
    detect_reversal,
    detect_volume_spike,
)
from .models import AlertDetails, AlertPriority, AlertType, MarketSnapshot, OpportunityAlert
from .scanner import OpportunityRadar

__all__ = [
    "DETECTORS",
    "detect_breakout",
    "detect_momentum",
    "detect_reversal",
    "detect_volume_spike",
    "AlertDetails",
    "AlertPriority",
    "AlertType",
    "MarketSnapshot",
    "OpportunityAlert",
    "OpportunityRadar",
]
