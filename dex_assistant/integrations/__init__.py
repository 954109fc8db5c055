"""Collaborator interfaces and built-in notification sinks."""

from .base import (
    ContractGateway,
    Notification,
    NotificationPriority,
    NotificationSink,
    PriceFeed,
    TxHandle,
)
from .notifications import LoggingNotificationSink, RecordingNotificationSink, StdoutNotificationSink

__all__ = [
    "ContractGateway",
    "Notification",
    "NotificationPriority",
    "NotificationSink",
    "PriceFeed",
    "TxHandle",
    "LoggingNotificationSink",
    "RecordingNotificationSink",
    "StdoutNotificationSink",
]
