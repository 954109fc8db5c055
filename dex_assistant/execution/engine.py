"""
Trading execution engine.

Turns an approved ``TradingPlan`` into an ordered list of on-chain steps,
validates it with preflight checks and runs the steps strictly in order. A
failed step fails the whole execution and leaves every later step pending;
completed steps are not rolled back. Each step runs under a deadline and a
step that misses it leaves the execution ``stuck``.
"""

import asyncio
import uuid
from typing import Any, Callable, Optional

import structlog

from ..config.defaults import ExecutionParams
from ..errors import PlanAlreadyExecutedError, PositionNotFoundError, StepExecutionError, StepTimeoutError
from ..integrations.base import ContractGateway, PriceFeed
from ..logging.config import get_gating_logger, get_state_logger, log_gate_decision, log_state_transition
from ..models.plan import PlanAction, TradingPlan
from ..persistence.repository import InMemoryRepository, Repository
from ..utils.time import Clock, system_clock
from .models import (
    AllowanceCheck,
    BalanceCheck,
    CostEstimate,
    ExecutionEvent,
    ExecutionEventType,
    ExecutionPlan,
    ExecutionState,
    ExecutionStatus,
    ExecutionStep,
    LeverageCheck,
    MarginCheck,
    MarketCheck,
    PreflightChecks,
    StepStatus,
    StepType,
    TERMINAL_STATES,
    TransactionRecord,
)

logger = structlog.get_logger(__name__)
gate_logger = get_gating_logger(__name__)
state_logger = get_state_logger(__name__)

EventListener = Callable[[ExecutionEvent], None]
StepUpdateCallback = Callable[[ExecutionStatus], None]

LONG_ACTIONS = frozenset({PlanAction.LONG, PlanAction.BUY})
SHORT_ACTIONS = frozenset({PlanAction.SHORT, PlanAction.SELL})
CLOSE_ACTIONS = frozenset({PlanAction.CLOSE_LONG, PlanAction.CLOSE_SHORT})

# Seconds per step type
STEP_TIME_ESTIMATES = {
    StepType.APPROVE: 30,
    StepType.DEPOSIT: 45,
    StepType.WITHDRAW: 45,
    StepType.OPEN_POSITION: 60,
    StepType.CLOSE_POSITION: 60,
}


class ExecutionEngine:
    """Runs execution plans against the contract gateway."""

    def __init__(
        self,
        gateway: ContractGateway,
        price_feed: PriceFeed,
        params: Optional[ExecutionParams] = None,
        statuses: Optional[Repository[str, ExecutionStatus]] = None,
        clock: Clock = system_clock,
    ):
        self.gateway = gateway
        self.price_feed = price_feed
        self.params = params or ExecutionParams()
        self.statuses = statuses if statuses is not None else InMemoryRepository()
        self.clock = clock
        self._listeners: list[EventListener] = []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> bool:
        try:
            self._listeners.remove(listener)
            return True
        except ValueError:
            return False

    def _emit(self, event_type: ExecutionEventType, plan_id: str, **data: Any) -> None:
        event = ExecutionEvent(type=event_type, plan_id=plan_id, timestamp=self.clock(), data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error("Execution event listener failed", event_type=event_type.value,
                             plan_id=plan_id, error=str(e), error_type=type(e).__name__)

    def _notify_step_update(self, callback: Optional[StepUpdateCallback], status: ExecutionStatus) -> None:
        if callback is None:
            return
        try:
            callback(status)
        except Exception as e:
            logger.error("Step update callback failed", plan_id=status.plan_id,
                         error=str(e), error_type=type(e).__name__)

    def _transition(self, status: ExecutionStatus, to: ExecutionState, trigger: str) -> None:
        previous = status.transition(to)
        log_state_transition(state_logger, status.plan_id, previous.value, to.value, trigger,
                             {"progress": round(status.progress, 1)})

    def _step_transition(self, plan_id: str, step: ExecutionStep, to: StepStatus, trigger: str) -> None:
        previous = step.transition(to)
        log_state_transition(state_logger, f"{plan_id}:{step.id}", previous.value, to.value, trigger,
                             {"step_type": step.type.value})

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def max_leverage_for(self, symbol: str) -> float:
        return self.params.stock_max_leverage if symbol.startswith("x") else self.params.crypto_max_leverage

    def _leverage(self, plan: TradingPlan) -> float:
        return plan.position_sizing.leverage or self.params.default_leverage

    def _step(self, step_type: StepType, index: int, description: str,
              params: dict[str, Any], gas: float) -> ExecutionStep:
        return ExecutionStep(
            id=f"{step_type.value}-{self.clock()}-{index}",
            type=step_type,
            description=description,
            params=params,
            estimated_gas=gas,
        )

    async def create_execution_plan(self, plan: TradingPlan, address: str) -> ExecutionPlan:
        """
        Build the minimal step sequence for ``plan``.

        Opening actions get an approve step when the allowance is short of the
        deposit, a deposit step when the balance is short of the margin (plus a
        buffer), and the open step. Closing actions get a single close step.

        Raises:
            PositionNotFoundError: If closing without an open position on that side
        """
        action = plan.resolved_action
        symbol = plan.symbol
        size = plan.position_sizing.notional_size
        leverage = self._leverage(plan)
        p = self.params

        steps: list[ExecutionStep] = []
        required_balance = 0.0
        required_allowance = 0.0

        if action in CLOSE_ACTIONS:
            side = "long" if action == PlanAction.CLOSE_LONG else "short"
            position = await self.gateway.get_position(address, symbol)
            if (side == "long" and position <= 0) or (side == "short" and position >= 0):
                raise PositionNotFoundError(symbol, side)

            position_size = abs(position)
            close_size = min(size, position_size) if size > 0 else position_size
            steps.append(self._step(
                StepType.CLOSE_POSITION, len(steps),
                f"Close {side} position: {close_size:,.2f} USDT on {symbol}",
                {"symbol": symbol, "size": -close_size if side == "long" else close_size},
                p.position_gas,
            ))
        else:
            is_long = action in LONG_ACTIONS
            account = await self.gateway.get_account_info(address)
            required_margin = size / leverage

            if account.balance < required_margin:
                deposit = required_margin - account.balance + required_margin * p.deposit_buffer
                required_balance += deposit
                required_allowance += deposit

                allowance = await self.gateway.check_allowance(address)
                if allowance < deposit:
                    steps.append(self._step(
                        StepType.APPROVE, len(steps),
                        f"Approve {deposit:,.2f} USDC for trading",
                        {"amount": deposit},
                        p.approve_gas,
                    ))

                steps.append(self._step(
                    StepType.DEPOSIT, len(steps),
                    f"Deposit {deposit:,.2f} USDC to trading account",
                    {"amount": deposit},
                    p.deposit_gas,
                ))

            steps.append(self._step(
                StepType.OPEN_POSITION, len(steps),
                f"Open {action.value} position: {size:,.2f} USDT on {symbol} with {leverage:g}x leverage",
                {"symbol": symbol, "size": size if is_long else -size,
                 "leverage": leverage, "is_long": is_long},
                p.position_gas,
            ))

        now = self.clock()
        execution_plan = ExecutionPlan(
            id=plan.id,
            trading_plan=plan,
            steps=steps,
            total_estimated_gas=round(sum(s.estimated_gas for s in steps), 4),
            required_balance=required_balance,
            required_allowance=required_allowance,
            created_at=now,
        )

        self.statuses.put(plan.id, ExecutionStatus(
            plan_id=plan.id,
            status=ExecutionState.PREPARING,
            total_steps=len(steps),
            start_time=now,
        ))
        log_state_transition(state_logger, plan.id, "none", ExecutionState.PREPARING.value,
                             "plan_created", {"steps": [s.type.value for s in steps]})
        self._emit(ExecutionEventType.PLAN_CREATED, plan.id, steps=[s.type.value for s in steps])
        return execution_plan

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------

    async def perform_preflight_checks(self, execution_plan: ExecutionPlan, address: str) -> PreflightChecks:
        """
        Run the balance, allowance, market, leverage and margin checks.

        Allowance and price deviation only warn. Gateway failures become a
        blocker instead of propagating.
        """
        plan_id = execution_plan.id
        plan = execution_plan.trading_plan
        self._emit(ExecutionEventType.PREFLIGHT_STARTED, plan_id)

        status = self.statuses.get(plan_id)
        if status is not None and status.status == ExecutionState.PREPARING:
            self._transition(status, ExecutionState.CONFIRMING, "preflight_started")

        opening = plan.resolved_action not in CLOSE_ACTIONS
        leverage = self._leverage(plan) if opening else 0.0
        max_leverage = self.max_leverage_for(plan.symbol)
        required_margin = plan.position_sizing.notional_size / leverage if opening else 0.0

        warnings: list[str] = []
        blockers: list[str] = []
        balance = BalanceCheck(False, execution_plan.required_balance, 0.0)
        allowance = AllowanceCheck(False, execution_plan.required_allowance, 0.0, False)
        market = MarketCheck(False, 0.0, self.params.slippage_tolerance)
        leverage_check = LeverageCheck(False, leverage, max_leverage)
        margin = MarginCheck(False, required_margin, 0.0)

        try:
            # 1. Balance
            wallet = await self.gateway.get_wallet_balance(address)
            required = execution_plan.required_balance
            balance = BalanceCheck(
                passed=wallet >= required,
                required=required,
                available=wallet,
                shortfall=max(0.0, required - wallet),
            )
            if not balance.passed:
                blockers.append(f"Insufficient USDC balance. Need {required:,.2f}, have {wallet:,.2f}")

            # 2. Allowance
            current_allowance = await self.gateway.check_allowance(address)
            needs_approval = current_allowance < execution_plan.required_allowance
            allowance = AllowanceCheck(
                passed=not needs_approval,
                required=execution_plan.required_allowance,
                current=current_allowance,
                needs_approval=needs_approval,
            )
            if needs_approval:
                warnings.append(f"USDC approval needed for {execution_plan.required_allowance:,.2f} USDC")

            # 3. Market
            quote = await self.price_feed.get_price(plan.symbol)
            if quote is None:
                blockers.append(f"Unable to fetch current price for {plan.symbol}")
            else:
                deviation = None
                entry = plan.entry.price
                if entry > 0:
                    deviation = abs(quote.price - entry) / entry
                    if deviation > self.params.slippage_tolerance:
                        warnings.append(
                            f"Price deviation {deviation:.2%} exceeds max slippage "
                            f"{self.params.slippage_tolerance:.2%}"
                        )
                market = MarketCheck(True, quote.price, self.params.slippage_tolerance, deviation)

            # 4. Leverage
            leverage_check = LeverageCheck(leverage <= max_leverage, leverage, max_leverage)
            if not leverage_check.passed:
                kind = "stocks" if plan.symbol.startswith("x") else "crypto"
                blockers.append(f"Leverage {leverage:g}x exceeds maximum {max_leverage:g}x for {kind}")

            # 5. Margin, counting the deposit this plan will make
            account = await self.gateway.get_account_info(address)
            available = account.available_margin + execution_plan.required_balance
            margin = MarginCheck(available >= required_margin, required_margin, available)
            if not margin.passed:
                blockers.append(
                    f"Insufficient available margin. Need {required_margin:,.2f}, have {available:,.2f}"
                )

        except Exception as e:
            logger.error("Preflight checks failed", plan_id=plan_id,
                         error=str(e), error_type=type(e).__name__)
            blockers.append(f"System error during validation: {e}")

        overall = (balance.passed and leverage_check.passed and margin.passed
                   and market.passed and not blockers)
        checks = PreflightChecks(
            balance=balance,
            allowance=allowance,
            market=market,
            leverage=leverage_check,
            margin=margin,
            overall=overall,
            warnings=warnings,
            blockers=blockers,
        )

        for name, passed in (("balance", balance.passed), ("allowance", allowance.passed),
                             ("market", market.passed), ("leverage", leverage_check.passed),
                             ("margin", margin.passed)):
            log_gate_decision(gate_logger, f"preflight_{name}", passed, plan_id,
                              "ok" if passed else "check failed")
        log_gate_decision(gate_logger, "preflight_overall", overall, plan_id,
                          "; ".join(blockers) or "all blocking checks passed",
                          {"warnings": len(warnings)})

        self._emit(ExecutionEventType.PREFLIGHT_COMPLETED, plan_id, checks=checks)
        return checks

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_plan(
        self,
        execution_plan: ExecutionPlan,
        address: str,
        on_step_update: Optional[StepUpdateCallback] = None,
    ) -> ExecutionStatus:
        """
        Run the steps in order.

        Cancellation is checked before each step. A failing step marks the
        execution failed; a step that misses its deadline marks it stuck.
        A plan whose steps have already run is rejected before any state is
        stored.
        """
        plan_id = execution_plan.id
        steps = execution_plan.steps

        previous = self.statuses.get(plan_id)
        if previous is not None and previous.status == ExecutionState.CANCELLED:
            logger.info("Execution cancelled before start", plan_id=plan_id)
            return previous

        # Steps are single-use; a rerun needs a fresh plan from create_execution_plan
        if any(step.status != StepStatus.PENDING for step in steps):
            logger.warning("Execution plan already run", plan_id=plan_id,
                           previous_status=previous.status.value if previous else None)
            raise PlanAlreadyExecutedError(plan_id, [step.status.value for step in steps])

        status = ExecutionStatus(
            plan_id=plan_id,
            status=ExecutionState.PREPARING,
            total_steps=len(steps),
            start_time=self.clock(),
        )
        self.statuses.put(plan_id, status)
        self._transition(status, ExecutionState.EXECUTING, "execution_started")
        self._emit(ExecutionEventType.EXECUTION_STARTED, plan_id, steps=len(steps))

        for index, step in enumerate(steps):
            if status.status == ExecutionState.CANCELLED:
                for remaining in steps[index:]:
                    self._step_transition(plan_id, remaining, StepStatus.SKIPPED, "execution_cancelled")
                self._notify_step_update(on_step_update, status)
                return status

            status.current_step = index
            status.progress = index / len(steps) * 100
            self._step_transition(plan_id, step, StepStatus.IN_PROGRESS, "step_started")
            status.current_step_status = step
            self._emit(ExecutionEventType.STEP_STARTED, plan_id, step_id=step.id, step_index=index)
            self._notify_step_update(on_step_update, status)

            try:
                tx_hash = await asyncio.wait_for(
                    self._execute_step(step), timeout=self.params.step_timeout_seconds
                )
            except asyncio.TimeoutError:
                error = StepTimeoutError(
                    f"Step {index + 1} timed out after {self.params.step_timeout_seconds:g}s",
                    timeout_seconds=self.params.step_timeout_seconds,
                    step_id=step.id,
                    step_type=step.type.value,
                )
                self._fail(status, step, index, str(error), ExecutionState.STUCK)
                self._emit(ExecutionEventType.EXECUTION_STUCK, plan_id, error=status.error)
                self._notify_step_update(on_step_update, status)
                return status
            except Exception as e:
                self._fail(status, step, index, str(e) or type(e).__name__, ExecutionState.FAILED)
                self._emit(ExecutionEventType.EXECUTION_FAILED, plan_id, error=status.error)
                self._notify_step_update(on_step_update, status)
                return status

            self._step_transition(plan_id, step, StepStatus.COMPLETED, "step_completed")
            step.tx_hash = tx_hash
            status.completed_steps.append(step)
            status.transactions.append(TransactionRecord(
                hash=tx_hash,
                step_type=step.type,
                timestamp=self.clock(),
                amount=step.params.get("amount"),
                symbol=step.params.get("symbol"),
            ))
            self._emit(ExecutionEventType.STEP_COMPLETED, plan_id, step_id=step.id, tx_hash=tx_hash)

        if status.status == ExecutionState.CANCELLED:
            self._notify_step_update(on_step_update, status)
            return status

        status.progress = 100.0
        status.end_time = self.clock()
        self._transition(status, ExecutionState.COMPLETED, "all_steps_completed")
        self._emit(ExecutionEventType.EXECUTION_COMPLETED, plan_id,
                   transactions=[t.hash for t in status.transactions])
        self._notify_step_update(on_step_update, status)
        return status

    def _fail(self, status: ExecutionStatus, step: ExecutionStep, index: int,
              message: str, terminal: ExecutionState) -> None:
        self._step_transition(status.plan_id, step, StepStatus.FAILED, "step_failed")
        step.error = message
        status.error = f"Step {index + 1} failed: {message}"
        status.end_time = self.clock()
        if status.status == ExecutionState.EXECUTING:
            self._transition(status, terminal, "step_failed")
        logger.warning("Execution step failed", plan_id=status.plan_id, step_id=step.id,
                       step_type=step.type.value, error=message, status=status.status.value)
        self._emit(ExecutionEventType.STEP_FAILED, status.plan_id, step_id=step.id, error=message)

    async def _execute_step(self, step: ExecutionStep) -> str:
        params = step.params
        if step.type == StepType.APPROVE:
            tx = await self.gateway.approve(params["amount"])
        elif step.type == StepType.DEPOSIT:
            tx = await self.gateway.deposit(params["amount"])
        elif step.type == StepType.WITHDRAW:
            tx = await self.gateway.withdraw(params["amount"])
        elif step.type == StepType.OPEN_POSITION:
            tx = await self.gateway.open_position(params["symbol"], params["size"], params["leverage"])
        elif step.type == StepType.CLOSE_POSITION:
            tx = await self.gateway.close_position(params["symbol"], params["size"])
        else:
            raise StepExecutionError(f"Unknown step type: {step.type}", step_id=step.id,
                                     step_type=str(step.type))

        await tx.wait()
        return tx.hash

    def cancel_execution(self, plan_id: str) -> bool:
        """
        Request cancellation; the step in flight still runs to completion.

        Returns False when there is nothing to cancel.
        """
        status = self.statuses.get(plan_id)
        if status is None or status.status in TERMINAL_STATES:
            return False

        status.end_time = self.clock()
        self._transition(status, ExecutionState.CANCELLED, "cancel_requested")
        self._emit(ExecutionEventType.EXECUTION_CANCELLED, plan_id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_execution_status(self, plan_id: str) -> Optional[ExecutionStatus]:
        return self.statuses.get(plan_id)

    def get_all_execution_statuses(self) -> list[ExecutionStatus]:
        return self.statuses.values()

    def clear_completed_executions(self) -> int:
        """Drop completed and failed executions; returns how many were removed."""
        removed = 0
        for plan_id, status in self.statuses.items():
            if status.status in (ExecutionState.COMPLETED, ExecutionState.FAILED):
                self.statuses.delete(plan_id)
                removed += 1
        return removed

    @staticmethod
    def generate_plan_id(now_ms: Optional[int] = None) -> str:
        now_ms = system_clock() if now_ms is None else now_ms
        return f"plan_{now_ms}_{uuid.uuid4().hex[:9]}"

    @staticmethod
    def estimate_execution_time(execution_plan: ExecutionPlan) -> int:
        """Rough wall-clock estimate in seconds."""
        return sum(STEP_TIME_ESTIMATES.get(step.type, 30) for step in execution_plan.steps)

    def calculate_total_cost(self, execution_plan: ExecutionPlan) -> CostEstimate:
        gas_cost = execution_plan.total_estimated_gas
        fees = execution_plan.trading_plan.position_sizing.notional_size * self.params.trading_fee_rate
        return CostEstimate(gas_cost=gas_cost, trading_fees=fees, total=gas_cost + fees)
