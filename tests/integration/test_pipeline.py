"""Integration tests for the plan -> risk -> execution -> performance pipeline."""

import asyncio

import pytest

from dex_assistant.app import build_context
from dex_assistant.data.history import StaticPriceHistory
from dex_assistant.execution import ExecutionState
from dex_assistant.integrations.notifications import RecordingNotificationSink
from dex_assistant.performance.models import ExecutionRecordStatus, ExitReason
from dex_assistant.persistence import SQLiteKeyValueStore
from dex_assistant.radar import AlertType
from dex_assistant.utils.time import HOUR_MS
from tests.conftest import FakeClock, FakeGateway, FakePriceFeed, make_bars

ADDRESS = "0xabc"


def selloff_closes():
    return [100.0] * 40 + [98.0 - 2 * i for i in range(10)]


@pytest.mark.integration
class TestFullPipeline:
    """Integration tests for the complete trade lifecycle."""

    def setup_method(self):
        self.clock = FakeClock()
        self.feed = FakePriceFeed(self.clock)
        self.gateway = FakeGateway()
        self.history = StaticPriceHistory({"ETH": make_bars(selloff_closes())})
        self.sink = RecordingNotificationSink()

    def build(self, store=None):
        return build_context(self.feed, self.gateway, self.history, store=store,
                             sink=self.sink, clock=self.clock)

    def test_trade_round_trip(self) -> None:
        """Propose, execute, reprice and close a support bounce on ETH."""
        context = self.build()
        self.feed.set_quote("ETH", 80.0)
        assert context.create_risk_profile(ADDRESS).ok

        proposed = asyncio.run(context.propose_trade(ADDRESS, "ETH")).unwrap()
        plan = proposed.final_plan
        assert proposed.assessment.is_acceptable

        status = asyncio.run(context.execute_trade(plan, ADDRESS)).unwrap()
        assert status.status == ExecutionState.COMPLETED
        assert self.gateway.call_names == ["open_position"]

        tracker = context.performance_tracker
        self.clock.advance(2 * HOUR_MS)
        self.feed.set_quote("ETH", 82.0)
        assert asyncio.run(tracker.reprice_active_positions()) == 1
        record = tracker.executions[plan.id]
        assert record.status == ExecutionRecordStatus.ACTIVE
        assert record.unrealized_pnl > 0

        assert context.record_exit(plan.id, plan.take_profit.price,
                                   exit_reason=ExitReason.TAKE_PROFIT).unwrap()
        assert record.status == ExecutionRecordStatus.CLOSED
        assert record.is_win
        assert record.time_in_trade == 2 * HOUR_MS

        performance = tracker.get_strategy_performance("support_resistance")
        assert performance.total_trades == 1
        assert performance.total_pnl == pytest.approx(record.pnl)

        dashboard = tracker.generate_dashboard()
        assert dashboard.overview.total_trades == 1
        assert dashboard.recent_trades[0].plan_id == plan.id

        profile = context.risk_manager.record_pnl(ADDRESS, record.pnl)
        assert profile.daily_pnl == pytest.approx(record.pnl)

    def test_tracker_survives_restart(self, tmp_path) -> None:
        """Records written through one context are loaded by the next."""
        db_path = str(tmp_path / "assistant.db")
        self.feed.set_quote("ETH", 80.0)

        first = self.build(SQLiteKeyValueStore(db_path))
        first.create_risk_profile(ADDRESS)
        plan = asyncio.run(first.propose_trade(ADDRESS, "ETH")).unwrap().final_plan
        asyncio.run(first.execute_trade(plan, ADDRESS)).unwrap()

        second = self.build(SQLiteKeyValueStore(db_path))
        record = second.performance_tracker.executions[plan.id]
        assert record.status == ExecutionRecordStatus.ENTERED
        assert record.actual_entry_price == 80.0

    def test_radar_alert_reaches_sink(self) -> None:
        """A breakout seen by the radar is delivered as a notification."""
        context = self.build()
        self.history.set_bars("BTC", make_bars([100.0] * 35 + [110.0] * 15))
        context.radar.update_preferences(enabled_symbols=["BTC"], filters={"min_volume": 0.0})
        self.feed.set_quote("BTC", 115.0, volume=3000.0, change_24h=4.5, high_24h=116.0, low_24h=114.0)

        alerts = asyncio.run(context.radar.full_scan())

        assert [a.type for a in alerts] == [AlertType.BREAKOUT]
        assert [n.source for n in self.sink.notifications] == ["opportunity_radar"]
