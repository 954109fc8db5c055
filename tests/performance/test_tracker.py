"""Tests for the performance tracker"""

import asyncio
import json

import pytest

from dex_assistant.config.defaults import PerformanceParams
from dex_assistant.errors import MalformedDataError, PersistenceError, StateTransitionError
from dex_assistant.integrations.base import NotificationPriority
from dex_assistant.integrations.notifications import RecordingNotificationSink
from dex_assistant.models.plan import RegimeType
from dex_assistant.performance import (
    AlertKind,
    AlertSeverity,
    ExecutionRecordStatus,
    ExitReason,
    PerformanceTracker,
    StreakType,
)
from dex_assistant.persistence import InMemoryKeyValueStore, SQLiteKeyValueStore
from dex_assistant.utils.time import DAY_MS, HOUR_MS
from tests.conftest import FakeClock, FakePriceFeed, make_plan


class TrackerTestBase:
    def setup_method(self):
        self.clock = FakeClock()
        self.feed = FakePriceFeed(self.clock)
        self.store = InMemoryKeyValueStore()
        self.sink = RecordingNotificationSink()
        self.tracker = PerformanceTracker(self.store, price_feed=self.feed, sink=self.sink, clock=self.clock)
        self._sequence = 0

    def close_trade(self, pnl, strategy="trend_breakout", regime=RegimeType.TRENDING):
        """Record, fill at 100 and exit a 10-unit long with the given pnl."""
        self._sequence += 1
        plan = make_plan(plan_id=f"plan-{self._sequence}", strategy=strategy, regime=regime)
        self.tracker.record_plan(plan)
        self.tracker.record_entry(plan.id, 100.0)
        self.clock.advance(HOUR_MS)
        self.tracker.record_exit(plan.id, 100.0 + pnl / 10)
        return self.tracker.executions[plan.id]


class TestLifecycle(TrackerTestBase):
    """Test the record lifecycle and realized metrics"""

    def test_record_plan(self):
        plan = make_plan(price=50.0, notional=1000.0)
        assert self.tracker.record_plan(plan) == "plan-1"
        record = self.tracker.executions["plan-1"]
        assert record.status == ExecutionRecordStatus.PLANNING
        assert record.position_size == pytest.approx(20.0)
        assert record.margin == pytest.approx(100.0)
        assert record.market_conditions == "trending"
        assert record.direction == "long"

    def test_long_round_trip_with_fees(self):
        """One unit from 45050 to 46800 less 30 in fees"""
        plan = make_plan(price=45_050.0, notional=45_050.0, leverage=10.0)
        self.tracker.record_plan(plan)
        assert self.tracker.record_entry(plan.id, 45_050.0, fees=15.0, tx_hash="0xentry")
        self.clock.advance(2 * HOUR_MS)
        assert self.tracker.record_exit(plan.id, 46_800.0, ExitReason.TAKE_PROFIT, fees=15.0)

        record = self.tracker.executions[plan.id]
        assert record.status == ExecutionRecordStatus.CLOSED
        assert record.pnl == pytest.approx(1720.0)
        assert record.pnl_percentage == pytest.approx(1750.0 / 45_050.0 * 100)
        assert record.is_win
        assert record.time_in_trade == 2 * HOUR_MS
        assert record.actual_risk_reward == pytest.approx(1720.0 / 4505.0)
        assert record.exit_reason == ExitReason.TAKE_PROFIT

        performance = self.tracker.get_strategy_performance("trend_breakout")
        assert performance.total_trades == 1
        assert performance.win_rate == 100.0
        assert performance.total_pnl == pytest.approx(1720.0)

    def test_short_pnl(self):
        plan = make_plan(direction="short", price=100.0, notional=1000.0)
        self.tracker.record_plan(plan)
        self.tracker.record_entry(plan.id, 100.0)
        self.tracker.record_exit(plan.id, 95.0)
        record = self.tracker.executions[plan.id]
        assert record.pnl == pytest.approx(50.0)
        assert record.pnl_percentage == pytest.approx(5.0)

    def test_losing_trade_risk_reward(self):
        record = self.close_trade(-100.0)
        assert not record.is_win
        assert record.actual_risk_reward == 0.0

    def test_exit_without_entry(self):
        self.tracker.record_plan(make_plan())
        assert not self.tracker.record_exit("plan-1", 110.0)
        assert self.tracker.executions["plan-1"].status == ExecutionRecordStatus.PLANNING

    def test_unknown_plan(self):
        assert not self.tracker.record_entry("missing", 100.0)
        assert not self.tracker.record_exit("missing", 100.0)
        assert not self.tracker.cancel_plan("missing")

    def test_cancel_and_expire(self):
        self.tracker.record_plan(make_plan(plan_id="a"))
        self.tracker.record_plan(make_plan(plan_id="b"))
        assert self.tracker.cancel_plan("a")
        assert self.tracker.expire_plan("b")
        assert self.tracker.executions["a"].status == ExecutionRecordStatus.CANCELLED
        assert self.tracker.executions["b"].status == ExecutionRecordStatus.EXPIRED

    def test_closed_records_are_final(self):
        self.close_trade(100.0)
        with pytest.raises(StateTransitionError):
            self.tracker.record_entry("plan-1", 100.0)

    def test_rerecording_replaces(self):
        self.tracker.record_plan(make_plan())
        self.tracker.record_entry("plan-1", 100.0)
        self.tracker.record_plan(make_plan())
        assert self.tracker.executions["plan-1"].status == ExecutionRecordStatus.PLANNING


class TestStrategyStatistics(TrackerTestBase):
    """Test aggregates recomputed from closed trades"""

    def test_win_loss_figures(self):
        self.close_trade(200.0)
        self.close_trade(-100.0)
        performance = self.tracker.get_strategy_performance("trend_breakout")

        assert performance.total_trades == 2
        assert performance.win_rate == 50.0
        assert performance.loss_rate == 50.0
        assert performance.average_win == pytest.approx(200.0)
        assert performance.average_loss == pytest.approx(100.0)
        assert performance.total_pnl == pytest.approx(100.0)
        assert performance.profit_factor == pytest.approx(2.0)
        assert performance.max_drawdown == pytest.approx(100.0)
        assert performance.average_risk_reward == pytest.approx(1.0)
        assert performance.average_time_in_trade == HOUR_MS

    def test_profit_factor_without_losses(self):
        self.close_trade(200.0)
        self.close_trade(100.0)
        assert self.tracker.get_strategy_performance("trend_breakout").profit_factor == pytest.approx(300.0)

    def test_streaks(self):
        for pnl in (100.0, 100.0, -50.0, -50.0, -50.0, 100.0):
            self.close_trade(pnl)
        performance = self.tracker.get_strategy_performance("trend_breakout")
        assert performance.win_streak == 2
        assert performance.loss_streak == 3
        assert performance.current_streak == 1
        assert performance.current_streak_type == StreakType.WIN

    def test_breakdowns(self):
        self.close_trade(100.0, regime=RegimeType.TRENDING)
        self.close_trade(-50.0, regime=RegimeType.RANGING)
        performance = self.tracker.get_strategy_performance("trend_breakout")
        assert performance.performance_by_market["trending"].total_pnl == pytest.approx(100.0)
        assert performance.performance_by_market["ranging"].win_rate == 0.0
        assert performance.performance_by_timeframe["4h"].trades == 2

    def test_recent_windows_use_exit_time(self):
        self.close_trade(100.0)
        self.clock.advance(10 * DAY_MS)
        self.close_trade(50.0)
        performance = self.tracker.get_strategy_performance("trend_breakout")
        assert performance.last_30_days.trades == 2
        assert performance.last_7_days.trades == 1
        assert performance.last_7_days.total_pnl == pytest.approx(50.0)

    def test_strategies_sorted_by_pnl(self):
        self.close_trade(50.0, strategy="momentum_continuation")
        self.close_trade(300.0, strategy="support_resistance")
        names = [p.strategy_name for p in self.tracker.get_all_strategy_performance()]
        assert names == ["support_resistance", "momentum_continuation"]


class TestRepricing(TrackerTestBase):
    """Test live repricing of open positions"""

    def test_reprice_marks_active(self):
        self.tracker.record_plan(make_plan())
        self.tracker.record_entry("plan-1", 100.0, fees=5.0)
        self.feed.set_quote("BTC", 105.0)

        assert asyncio.run(self.tracker.reprice_active_positions()) == 1
        record = self.tracker.executions["plan-1"]
        assert record.status == ExecutionRecordStatus.ACTIVE
        assert record.unrealized_pnl == pytest.approx(45.0)
        assert record.unrealized_pnl_percentage == pytest.approx(45.0)

        [position] = self.tracker.get_active_positions()
        assert position.current_price == 105.0
        assert position.distance_to_stop_loss == pytest.approx(7.0 / 105.0 * 100)
        assert position.risk_amount == pytest.approx(20.0)

    def test_active_record_can_exit(self):
        self.tracker.record_plan(make_plan())
        self.tracker.record_entry("plan-1", 100.0)
        self.feed.set_quote("BTC", 105.0)
        asyncio.run(self.tracker.reprice_active_positions())
        assert self.tracker.record_exit("plan-1", 110.0)
        assert self.tracker.get_active_positions() == []

    def test_feed_failure_skips_symbol(self):
        self.tracker.record_plan(make_plan())
        self.tracker.record_entry("plan-1", 100.0)
        self.feed.failing.add("BTC")
        assert asyncio.run(self.tracker.reprice_active_positions()) == 0
        assert self.tracker.executions["plan-1"].status == ExecutionRecordStatus.ENTERED

    def test_planning_records_not_repriced(self):
        self.tracker.record_plan(make_plan())
        self.feed.set_quote("BTC", 105.0)
        assert asyncio.run(self.tracker.reprice_active_positions()) == 0


class TestPerformanceAlerts(TrackerTestBase):
    """Test consecutive-loss and drawdown alerts"""

    def test_five_losses(self):
        for _ in range(5):
            self.close_trade(-10.0)
        [alert] = self.tracker.check_alerts()
        assert alert.category == "consecutive_losses"
        assert alert.severity == AlertSeverity.MEDIUM
        assert alert.type == AlertKind.WARNING
        assert alert.message.startswith("5 consecutive losing trades")

    def test_alert_not_repeated_while_unacknowledged(self):
        for _ in range(5):
            self.close_trade(-10.0)
        self.tracker.check_alerts()
        assert self.tracker.check_alerts() == []
        assert len(self.tracker.get_alerts()) == 1

    def test_escalation_to_high(self):
        for _ in range(5):
            self.close_trade(-10.0)
        self.tracker.check_alerts()
        self.close_trade(-10.0)
        self.close_trade(-10.0)
        [alert] = self.tracker.check_alerts()
        assert alert.severity == AlertSeverity.HIGH
        assert len(self.tracker.get_alerts()) == 2

    def test_win_breaks_the_run(self):
        for _ in range(4):
            self.close_trade(-10.0)
        self.close_trade(500.0)
        self.close_trade(-10.0)
        assert self.tracker.check_alerts() == []

    def test_drawdown_levels(self):
        self.close_trade(1000.0)
        self.close_trade(-150.0)
        [alert] = self.tracker.check_alerts()
        assert alert.category == "drawdown"
        assert alert.severity == AlertSeverity.HIGH
        assert alert.type == AlertKind.ERROR

        self.close_trade(-100.0)
        [alert] = self.tracker.check_alerts()
        assert alert.severity == AlertSeverity.CRITICAL
        assert self.sink.notifications[-1].priority == NotificationPriority.CRITICAL

    def test_acknowledge(self):
        for _ in range(5):
            self.close_trade(-10.0)
        [alert] = self.tracker.check_alerts()
        assert self.tracker.acknowledge_alert(alert.id)
        assert not self.tracker.acknowledge_alert("alert_missing")
        assert self.tracker.get_alerts() == []
        assert len(self.tracker.get_alerts(include_acknowledged=True)) == 1
        # Acknowledged alerts no longer suppress a new one
        assert len(self.tracker.check_alerts()) == 1

    def test_alert_log_is_capped(self):
        self.tracker = PerformanceTracker(InMemoryKeyValueStore(), params=PerformanceParams(max_alerts=1),
                                          clock=self.clock)
        for _ in range(5):
            self.close_trade(-10.0)
        [first] = self.tracker.check_alerts()
        self.tracker.acknowledge_alert(first.id)
        [second] = self.tracker.check_alerts()
        assert self.tracker.get_alerts(include_acknowledged=True) == [second]


class TestDashboard(TrackerTestBase):
    def test_overview(self):
        self.close_trade(300.0)
        self.close_trade(-100.0)
        self.tracker.record_plan(make_plan(plan_id="open"))
        self.tracker.record_entry("open", 100.0)

        dashboard = self.tracker.generate_dashboard()
        overview = dashboard.overview
        assert overview.total_trades == 2
        assert overview.total_pnl == pytest.approx(200.0)
        assert overview.win_rate == 50.0
        assert overview.max_drawdown == pytest.approx(100.0 / 300.0 * 100)
        assert overview.current_drawdown == pytest.approx(100.0 / 300.0 * 100)
        assert overview.best_trade.plan_id == "plan-1"
        assert overview.worst_trade.plan_id == "plan-2"
        assert [t.plan_id for t in dashboard.recent_trades] == ["plan-2", "plan-1"]
        assert [p.plan_id for p in dashboard.active_positions] == ["open"]
        assert dashboard.market_conditions[0].condition == "trending"
        assert dashboard.market_conditions[0].strategies["trend_breakout"].trades == 2

    def test_empty(self):
        overview = self.tracker.generate_dashboard().overview
        assert overview.total_trades == 0
        assert overview.best_trade is None
        assert overview.profit_factor == 0.0


class TestExportImport(TrackerTestBase):
    """Test export, import and persistence"""

    def test_round_trip(self):
        self.close_trade(200.0)
        self.close_trade(-100.0, strategy="momentum_continuation")
        for _ in range(4):
            self.close_trade(-10.0)
        self.tracker.check_alerts()
        exported = self.tracker.export_data()

        other = PerformanceTracker(InMemoryKeyValueStore(), clock=self.clock)
        other.import_data(exported)

        assert set(other.executions) == set(self.tracker.executions)
        assert other.executions["plan-1"].pnl == pytest.approx(200.0)
        assert other.get_strategy_performance("trend_breakout") == \
            self.tracker.get_strategy_performance("trend_breakout")
        assert [a.id for a in other.get_alerts()] == [a.id for a in self.tracker.get_alerts()]

    def test_export_document(self):
        self.close_trade(100.0)
        document = json.loads(self.tracker.export_data())
        assert document["version"] == 1
        assert document["exported_at"] == self.clock.now
        assert document["executions"][0]["status"] == "closed"

    def test_missing_version_accepted(self):
        document = json.loads(self.tracker.export_data())
        del document["version"]
        self.tracker.import_data(json.dumps(document))

    def test_unsupported_version(self):
        self.close_trade(100.0)
        with pytest.raises(PersistenceError):
            self.tracker.import_data(json.dumps({"version": 2, "executions": []}))
        assert len(self.tracker.executions) == 1

    @pytest.mark.parametrize("payload", ["not json", "[]", '{"executions": [{"plan_id": "x"}]}'])
    def test_malformed_payload(self, payload):
        with pytest.raises(MalformedDataError):
            self.tracker.import_data(payload)

    def test_clear(self):
        self.close_trade(100.0)
        self.tracker.clear_data()
        assert self.tracker.executions == {}
        assert self.tracker.get_all_strategy_performance() == []
        assert self.store.keys() == []

    def test_state_survives_restart(self, tmp_path):
        store = SQLiteKeyValueStore(str(tmp_path / "performance.db"))
        self.tracker = PerformanceTracker(store, clock=self.clock)
        self.close_trade(200.0)
        self.tracker.record_plan(make_plan(plan_id="pending"))

        reloaded = PerformanceTracker(SQLiteKeyValueStore(str(tmp_path / "performance.db")),
                                      clock=self.clock)
        assert reloaded.executions["pending"].status == ExecutionRecordStatus.PLANNING
        assert reloaded.get_strategy_performance("trend_breakout").total_pnl == pytest.approx(200.0)

    def test_corrupt_store(self):
        store = InMemoryKeyValueStore()
        store.set("performance_tracker_data", "{broken")
        with pytest.raises(PersistenceError):
            PerformanceTracker(store, clock=self.clock)


class TestTimers(TrackerTestBase):
    def test_start_stop(self):
        async def scenario():
            await self.tracker.start()
            running = self.tracker.is_running
            await self.tracker.start()
            tasks = len(self.tracker._tasks)
            await self.tracker.stop()
            return running, tasks

        running, tasks = asyncio.run(scenario())
        assert running
        assert tasks == 2
        assert not self.tracker.is_running
