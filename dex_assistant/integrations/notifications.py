"""Built-in notification sinks."""

import json
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional, TextIO

import structlog

from .base import Notification, NotificationPriority, NotificationSink

logger = structlog.get_logger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the structured log."""

    def __init__(self, name: str = "log"):
        super().__init__(name)

    def deliver(self, notification: Notification) -> None:
        log = logger.bind(
            sink=self.name,
            source=notification.source,
            priority=notification.priority.value,
            title=notification.title,
        )
        if notification.priority in (NotificationPriority.HIGH, NotificationPriority.CRITICAL):
            log.warning(notification.message)
        else:
            log.info(notification.message)


class StdoutNotificationSink(NotificationSink):
    """Prints notifications, either as a one-line summary or as JSON."""

    def __init__(self, name: str = "stdout", format: str = "pretty", stream: Optional[TextIO] = None):
        super().__init__(name)
        self.format = format
        self.stream = stream or sys.stdout

    def deliver(self, notification: Notification) -> None:
        print(self._format(notification), file=self.stream, flush=True)

    def _format(self, notification: Notification) -> str:
        now = datetime.now(timezone.utc).isoformat()
        if self.format == "pretty":
            return f"[{now}] {notification.priority.value.upper()} {notification.title}: {notification.message}"
        payload = asdict(notification)
        payload["delivered_at"] = now
        return json.dumps(payload, default=str)


class RecordingNotificationSink(NotificationSink):
    """Keeps every delivered notification in memory."""

    def __init__(self, name: str = "memory"):
        super().__init__(name)
        self.notifications: list[Notification] = []

    def deliver(self, notification: Notification) -> None:
        self.notifications.append(notification)
