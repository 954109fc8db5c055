"""Tests for the application context and its Result boundary"""

import asyncio

import pytest

from dex_assistant.app import ProposedTrade, build_context
from dex_assistant.config.defaults import ExecutionParams
from dex_assistant.data.history import StaticPriceHistory
from dex_assistant.errors import ErrorKind
from dex_assistant.execution import ExecutionEngine, ExecutionState
from dex_assistant.integrations.notifications import RecordingNotificationSink
from dex_assistant.models.plan import PlanAction
from dex_assistant.performance.models import ExecutionRecordStatus
from dex_assistant.risk import ViolationType
from tests.conftest import FakeClock, FakeGateway, FakePriceFeed, make_bars, make_plan

ADDRESS = "0xabc"


class ContextTestBase:
    def setup_method(self):
        self.clock = FakeClock()
        self.feed = FakePriceFeed(self.clock)
        self.feed.set_quote("BTC", 100.0)
        self.gateway = FakeGateway()
        self.history = StaticPriceHistory()
        self.sink = RecordingNotificationSink()
        self.context = build_context(self.feed, self.gateway, self.history,
                                     sink=self.sink, clock=self.clock)

    def rebuild_with(self, gateway):
        self.gateway = gateway
        self.context = build_context(self.feed, gateway, self.history,
                                     sink=self.sink, clock=self.clock)


class TestProfiles(ContextTestBase):
    def test_create_profile(self):
        result = self.context.create_risk_profile(ADDRESS)
        assert result.ok
        assert result.value.address == ADDRESS

    def test_invalid_tolerance_is_validation_failure(self):
        result = self.context.create_risk_profile(ADDRESS, "yolo")
        assert result.kind == ErrorKind.VALIDATION
        assert "risk_tolerance" in result.details["errors"][0]

    def test_update_unknown_profile(self):
        result = self.context.update_risk_preferences("0xnobody", {"daily_loss_limit": 100})
        assert result.kind == ErrorKind.PRECONDITION
        assert result.error == "User profile not found: 0xnobody"


class TestProposeTrade(ContextTestBase):
    """Test plan generation plus risk assessment"""

    def test_requires_profile(self):
        result = asyncio.run(self.context.propose_trade(ADDRESS, "ETH"))
        assert result.kind == ErrorKind.PRECONDITION

    def test_no_qualifying_strategy(self):
        self.context.create_risk_profile(ADDRESS)
        result = asyncio.run(self.context.propose_trade(ADDRESS, "ETH"))
        assert result.ok
        assert result.value is None

    def test_plan_is_assessed(self):
        self.history.set_bars("ETH", make_bars([100.0] * 40 + [98.0 - 2 * i for i in range(10)]))
        self.feed.set_quote("ETH", 80.0)
        self.context.create_risk_profile(ADDRESS)

        result = asyncio.run(self.context.propose_trade(ADDRESS, "ETH"))

        assert result.ok
        proposed = result.value
        assert isinstance(proposed, ProposedTrade)
        assert proposed.plan.strategy == "support_resistance"
        assert proposed.assessment.plan_id == proposed.plan.id
        assert 0 <= proposed.assessment.risk_score <= 100
        assert proposed.final_plan.symbol == "ETH"

    def test_correlated_positions_feed_assessment(self):
        """An open BTC position counts against a new ETH plan"""
        self.history.set_bars("ETH", make_bars([100.0] * 40 + [98.0 - 2 * i for i in range(10)]))
        self.feed.set_quote("ETH", 80.0)
        self.gateway.positions["BTC"] = -4_000.0
        self.context.create_risk_profile(ADDRESS)

        account = asyncio.run(self.context.account_snapshot(ADDRESS, "ETH"))
        assert list(account.positions) == ["BTC"]
        assert account.positions["BTC"].notional_value == 4_000.0

        proposed = asyncio.run(self.context.propose_trade(ADDRESS, "ETH")).value
        correlation = [v for v in proposed.assessment.violations if v.type == ViolationType.CORRELATION]
        assert correlation[0].current_value == pytest.approx(0.8)

    def test_snapshot_without_symbol_has_no_positions(self):
        self.gateway.positions["BTC"] = 4_000.0
        assert asyncio.run(self.context.account_snapshot(ADDRESS)).positions == {}

    def test_assess_plan_without_profile(self):
        result = self.context.assess_plan(make_plan(), ADDRESS)
        assert result.kind == ErrorKind.PRECONDITION


class TestExecuteTrade(ContextTestBase):
    """Test execution results and tracker bookkeeping"""

    def test_completed_open_is_tracked(self):
        result = asyncio.run(self.context.execute_trade(make_plan(), ADDRESS))

        assert result.ok
        assert result.value.status == ExecutionState.COMPLETED
        record = self.context.performance_tracker.executions["plan-1"]
        assert record.status == ExecutionRecordStatus.ENTERED
        assert record.actual_entry_price == 100.0
        assert record.entry_tx_hash == "0xopen_position0001"

    def test_failed_step_cancels_record(self):
        gateway = FakeGateway(balance=0.0, wallet_balance=1_000.0, allowance=0.0)
        gateway.reverting.add("deposit")
        self.rebuild_with(gateway)

        result = asyncio.run(self.context.execute_trade(make_plan(), ADDRESS))

        assert result.kind == ErrorKind.EXECUTION
        assert result.error == "Step 2 failed: deposit reverted"
        assert result.details["status"].status == ExecutionState.FAILED
        record = self.context.performance_tracker.executions["plan-1"]
        assert record.status == ExecutionRecordStatus.CANCELLED

    def test_blocked_preflight(self):
        self.rebuild_with(FakeGateway(balance=0.0, wallet_balance=50.0))

        result = asyncio.run(self.context.execute_trade(make_plan(), ADDRESS))

        assert result.kind == ErrorKind.VALIDATION
        assert result.details["blockers"] == ["Insufficient USDC balance. Need 110.00, have 50.00"]
        assert self.context.last_preflight["plan-1"].overall is False
        assert self.context.performance_tracker.executions == {}
        assert self.gateway.calls == []

    def test_stuck_is_timeout(self):
        self.gateway.hanging.add("open_position")
        self.context.execution_engine = ExecutionEngine(
            self.gateway, self.feed, params=ExecutionParams(step_timeout_seconds=0.05), clock=self.clock
        )

        result = asyncio.run(self.context.execute_trade(make_plan(), ADDRESS))

        assert result.kind == ErrorKind.TIMEOUT
        assert result.details["status"].status == ExecutionState.STUCK

    def test_close_is_not_tracked(self):
        self.gateway.positions["BTC"] = 2.0
        result = asyncio.run(self.context.execute_trade(make_plan(action=PlanAction.CLOSE_LONG), ADDRESS))
        assert result.ok
        assert self.gateway.call_names == ["close_position"]
        assert self.context.performance_tracker.executions == {}

    def test_close_without_position(self):
        result = asyncio.run(self.context.execute_trade(make_plan(action=PlanAction.CLOSE_SHORT), ADDRESS))
        assert result.kind == ErrorKind.PRECONDITION
        assert result.details["side"] == "short"

    def test_cancel_unknown_execution(self):
        result = self.context.cancel_execution("plan-404")
        assert result.ok
        assert result.value is False

    def test_exit_without_entry(self):
        assert self.context.record_exit("plan-404", 100.0).value is False

    def test_trade_record_lookup(self):
        asyncio.run(self.context.execute_trade(make_plan(), ADDRESS))
        assert self.context.get_trade_record("plan-1").value.symbol == "BTC"

        missing = self.context.get_trade_record("plan-404")
        assert missing.kind == ErrorKind.PRECONDITION
        assert missing.details["plan_id"] == "plan-404"


class TestBackgroundServices(ContextTestBase):
    def test_start_and_stop(self):
        async def scenario():
            await self.context.start()
            running = (self.context.radar.is_scanning, self.context.performance_tracker.is_running)
            await self.context.stop()
            return running

        assert asyncio.run(scenario()) == (True, True)
        assert not self.context.radar.is_scanning
        assert not self.context.performance_tracker.is_running
