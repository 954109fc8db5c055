"""Tests for notification sinks"""

import io
import json

from dex_assistant.integrations.base import Notification, NotificationPriority, NotificationSink
from dex_assistant.integrations.notifications import (
    LoggingNotificationSink,
    RecordingNotificationSink,
    StdoutNotificationSink,
)

ALERT = Notification(
    title="BTC breakout",
    message="BTC breaking above 20-period average",
    priority=NotificationPriority.HIGH,
    source="opportunity_radar",
)


class FailingSink(NotificationSink):
    def deliver(self, notification):
        raise RuntimeError("toast service down")


class TestNotificationSinks:
    def test_recording(self):
        sink = RecordingNotificationSink()
        sink.notify(ALERT)
        assert sink.notifications == [ALERT]
        assert sink.get_stats()["delivery_count"] == 1

    def test_pretty_stdout(self):
        stream = io.StringIO()
        StdoutNotificationSink(stream=stream).notify(ALERT)
        line = stream.getvalue().strip()
        assert line.endswith("HIGH BTC breakout: BTC breaking above 20-period average")

    def test_json_stdout(self):
        stream = io.StringIO()
        StdoutNotificationSink(format="json", stream=stream).notify(ALERT)
        payload = json.loads(stream.getvalue())
        assert payload["source"] == "opportunity_radar"
        assert payload["priority"] == "high"
        assert "delivered_at" in payload

    def test_logging_sink_counts_delivery(self):
        sink = LoggingNotificationSink()
        sink.notify(ALERT)
        assert sink.get_stats()["success_rate"] == 1.0

    def test_failures_never_propagate(self):
        """Delivery errors are counted, not raised"""
        sink = FailingSink("broken")
        sink.notify(ALERT)
        stats = sink.get_stats()
        assert stats["error_count"] == 1
        assert stats["success_rate"] == 0.0

        sink.reset_stats()
        assert sink.get_stats()["error_count"] == 0
