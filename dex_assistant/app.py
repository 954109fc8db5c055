"""
Application context.

Owns one instance of every service and is the only place where inner
exceptions are turned into ``Result`` values. Everything below this module
raises on precondition failures and returns structured objects otherwise.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog

from .config.defaults import AssistantConfig
from .config.loader import ConfigLoader
from .data.history import PriceHistoryProvider
from .data.models import AccountSnapshot, PositionSnapshot
from .errors import ErrorKind, Result, capture, capture_call
from .execution import ExecutionEngine, ExecutionState, ExecutionStatus, PreflightChecks
from .execution.engine import StepUpdateCallback
from .integrations.base import ContractGateway, NotificationSink, PriceFeed
from .integrations.notifications import LoggingNotificationSink
from .models.plan import PlanAction, TradingPlan
from .performance import PerformanceTracker
from .performance.models import TradingPlanExecution
from .persistence.store import InMemoryKeyValueStore, KeyValueStore
from .radar import OpportunityRadar
from .risk import ASSET_CORRELATIONS, PlanRiskAssessment, RiskManager, UserRiskProfile
from .strategy import StrategyEngine
from .utils.time import Clock, system_clock

logger = structlog.get_logger(__name__)

OPENING_ACTIONS = frozenset({PlanAction.LONG, PlanAction.BUY, PlanAction.SHORT, PlanAction.SELL})


@dataclass(frozen=True)
class ProposedTrade:
    """A generated plan together with its risk assessment."""
    plan: TradingPlan
    assessment: PlanRiskAssessment

    @property
    def final_plan(self) -> TradingPlan:
        return self.assessment.adjusted_plan or self.plan


@dataclass
class AssistantContext:
    """Service graph for one user session or one test."""
    config: AssistantConfig
    config_loader: ConfigLoader
    price_feed: PriceFeed
    gateway: ContractGateway
    history: PriceHistoryProvider
    strategy_engine: StrategyEngine
    risk_manager: RiskManager
    radar: OpportunityRadar
    execution_engine: ExecutionEngine
    performance_tracker: PerformanceTracker
    sink: NotificationSink
    clock: Clock = system_clock
    last_preflight: dict[str, PreflightChecks] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Risk profiles
    # ------------------------------------------------------------------

    def create_risk_profile(
        self,
        address: str,
        risk_tolerance: str = "medium",
        overrides: Optional[dict[str, Any]] = None,
    ) -> Result[UserRiskProfile]:
        return capture_call(self.risk_manager.create_user_profile, address, risk_tolerance, overrides)

    def update_risk_preferences(self, address: str, updates: dict[str, Any]) -> Result[UserRiskProfile]:
        return capture_call(self.risk_manager.update_risk_preferences, address, updates)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def account_snapshot(self, address: str, symbol: Optional[str] = None) -> AccountSnapshot:
        """
        Account balance plus the open positions that matter for ``symbol``.

        Only assets with a known correlation to ``symbol`` are fetched. Position
        sizes are signed USDT notionals.
        """
        info = await self.gateway.get_account_info(address)
        positions = {}
        for peer in ASSET_CORRELATIONS.get(symbol, {}) if symbol else ():
            size = await self.gateway.get_position(address, peer)
            if size:
                positions[peer] = PositionSnapshot(symbol=peer, size=size, notional_value=abs(size))
        return AccountSnapshot(balance=info.balance, positions=positions, total_margin=info.total_margin)

    async def propose_trade(
        self,
        address: str,
        symbol: str,
        timeframe: str = "4h",
    ) -> Result[Optional[ProposedTrade]]:
        """
        Generate a plan for ``symbol`` sized to the user's balance and assess it.

        A successful result with value None means no strategy qualified.
        """
        return await capture(self._propose_trade(address, symbol, timeframe), "propose_trade")

    async def _propose_trade(self, address: str, symbol: str, timeframe: str) -> Optional[ProposedTrade]:
        self.risk_manager.require_profile(address)
        account = await self.account_snapshot(address, symbol)

        plan = await self.strategy_engine.generate_trading_plan(symbol, account.balance, timeframe)
        if plan is None:
            return None

        assessment = self.risk_manager.assess_plan_risk(plan, address, account)
        return ProposedTrade(plan=plan, assessment=assessment)

    def assess_plan(
        self,
        plan: TradingPlan,
        address: str,
        account: Optional[AccountSnapshot] = None,
    ) -> Result[PlanRiskAssessment]:
        return capture_call(self.risk_manager.assess_plan_risk, plan, address, account)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_trade(
        self,
        plan: TradingPlan,
        address: str,
        on_step_update: Optional[StepUpdateCallback] = None,
    ) -> Result[ExecutionStatus]:
        """
        Convert, preflight and run ``plan``; record the fill with the tracker.

        Failed preflight checks come back as a validation failure carrying the
        blockers and warnings. Failed and stuck executions come back as
        execution and timeout failures with the final status in ``details``.
        """
        outcome = await capture(self._execute_trade(plan, address, on_step_update), "execute_trade")
        if not outcome.ok:
            return outcome
        value = outcome.value
        if isinstance(value, ExecutionStatus) and value.status in (
            ExecutionState.COMPLETED, ExecutionState.CANCELLED
        ):
            return outcome
        return self._execution_failure(value)

    async def _execute_trade(
        self,
        plan: TradingPlan,
        address: str,
        on_step_update: Optional[StepUpdateCallback],
    ) -> ExecutionStatus | PreflightChecks:
        engine = self.execution_engine
        execution_plan = await engine.create_execution_plan(plan, address)
        checks = await engine.perform_preflight_checks(execution_plan, address)
        self.last_preflight[plan.id] = checks
        if not checks.overall:
            return checks

        opening = plan.resolved_action in OPENING_ACTIONS
        if opening:
            self.performance_tracker.record_plan(plan)

        status = await engine.execute_plan(execution_plan, address, on_step_update)

        if opening:
            if status.status == ExecutionState.COMPLETED:
                entry_price = checks.market.current_price or plan.entry.price
                self.performance_tracker.record_entry(
                    plan.id,
                    actual_entry_price=entry_price,
                    leverage=plan.position_sizing.leverage,
                    margin=plan.position_sizing.margin,
                    tx_hash=status.transactions[-1].hash if status.transactions else None,
                )
            else:
                self.performance_tracker.cancel_plan(plan.id)
        return status

    @staticmethod
    def _execution_failure(value: Any) -> Result[ExecutionStatus]:
        if isinstance(value, PreflightChecks):
            return Result.failure(
                ErrorKind.VALIDATION,
                "; ".join(value.blockers) or "Preflight checks failed",
                {"blockers": list(value.blockers), "warnings": list(value.warnings)},
            )
        kind = ErrorKind.TIMEOUT if value.status == ExecutionState.STUCK else ErrorKind.EXECUTION
        return Result.failure(
            kind,
            value.error or f"Execution {value.status.value}",
            {"plan_id": value.plan_id, "status": value},
        )

    def cancel_execution(self, plan_id: str) -> Result[bool]:
        return capture_call(self.execution_engine.cancel_execution, plan_id)

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    def record_exit(self, plan_id: str, exit_price: float, **details: Any) -> Result[bool]:
        return capture_call(self.performance_tracker.record_exit, plan_id, exit_price, **details)

    def get_trade_record(self, plan_id: str) -> Result[TradingPlanExecution]:
        return capture_call(self.performance_tracker.get_execution, plan_id)

    # ------------------------------------------------------------------
    # Background services
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.radar.start()
        await self.performance_tracker.start()
        logger.info("Assistant context started")

    async def stop(self) -> None:
        await self.radar.stop()
        await self.performance_tracker.stop()
        logger.info("Assistant context stopped")


def build_context(
    price_feed: PriceFeed,
    gateway: ContractGateway,
    history: PriceHistoryProvider,
    store: Optional[KeyValueStore] = None,
    sink: Optional[NotificationSink] = None,
    config_dir: Optional[Path] = None,
    clock: Clock = system_clock,
) -> AssistantContext:
    """Assemble the service graph from collaborators supplied by the host application."""
    config_loader = ConfigLoader.create(config_dir)
    config = config_loader.defaults
    sink = sink or LoggingNotificationSink()

    context = AssistantContext(
        config=config,
        config_loader=config_loader,
        price_feed=price_feed,
        gateway=gateway,
        history=history,
        strategy_engine=StrategyEngine(price_feed, history, config, config_loader, clock),
        risk_manager=RiskManager(clock=clock),
        radar=OpportunityRadar(
            price_feed,
            history,
            params=config.radar,
            preferences=config.radar_preferences,
            indicator_params=config.indicators,
            sink=sink,
            clock=clock,
        ),
        execution_engine=ExecutionEngine(gateway, price_feed, params=config.execution, clock=clock),
        performance_tracker=PerformanceTracker(
            store if store is not None else InMemoryKeyValueStore(),
            price_feed,
            params=config.performance,
            sink=sink,
            clock=clock,
        ),
        sink=sink,
        clock=clock,
    )
    logger.info("Assistant context built", config_dir=str(config_loader.config_dir))
    return context
