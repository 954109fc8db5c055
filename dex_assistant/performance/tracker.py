"""
Trade performance tracking.

The tracker owns the lifecycle records of every recorded plan and persists
them as one JSON blob in a ``KeyValueStore``. Strategy statistics are
recomputed from the closed records after each exit and after an import,
never kept as running averages.
"""

import asyncio
import json
from collections import defaultdict
from typing import Any, Iterable, Optional

import structlog

from ..config.defaults import PerformanceParams
from ..errors import MalformedDataError, PersistenceError, RecordNotFoundError
from ..integrations.base import Notification, NotificationPriority, NotificationSink, PriceFeed
from ..logging.config import get_state_logger, log_state_transition
from ..models.plan import TradingPlan
from ..persistence.store import KeyValueStore
from ..utils.time import DAY_MS, Clock, system_clock
from .models import (
    AlertKind,
    AlertSeverity,
    DashboardOverview,
    ExecutionRecordStatus,
    ExitReason,
    MarketConditionPerformance,
    PerformanceAlert,
    PerformanceDashboard,
    RealTimePosition,
    StrategyMetrics,
    StrategyPerformance,
    StreakType,
    TradeSummary,
    TradingPlanExecution,
)

logger = structlog.get_logger(__name__)
state_logger = get_state_logger(__name__)

EXPORT_VERSION = 1
RECENT_TRADES_LIMIT = 10


# ----------------------------------------------------------------------
# Aggregation over closed trades
# ----------------------------------------------------------------------

def _pnl(trade: TradingPlanExecution) -> float:
    return trade.pnl or 0.0


def profit_factor(trades: Iterable[TradingPlanExecution]) -> float:
    """Gross wins over gross losses; gross wins alone when nothing was lost."""
    total_wins = 0.0
    total_losses = 0.0
    for trade in trades:
        if _pnl(trade) > 0:
            total_wins += _pnl(trade)
        else:
            total_losses += abs(_pnl(trade))
    return total_wins / total_losses if total_losses > 0 else total_wins


def max_drawdown_amount(trades: list[TradingPlanExecution]) -> float:
    """Largest currency drop of cumulative pnl from its running peak."""
    peak = 0.0
    balance = 0.0
    worst = 0.0
    for trade in trades:
        balance += _pnl(trade)
        peak = max(peak, balance)
        worst = max(worst, peak - balance)
    return worst


def drawdown_percentages(trades: list[TradingPlanExecution]) -> tuple[float, float]:
    """(max, current) drawdown of cumulative pnl as a percent of its peak."""
    peak = 0.0
    balance = 0.0
    worst = 0.0
    for trade in trades:
        balance += _pnl(trade)
        peak = max(peak, balance)
        if peak > 0:
            worst = max(worst, (peak - balance) / peak * 100)
    current = (peak - balance) / peak * 100 if peak > 0 else 0.0
    return worst, current


def compute_metrics(trades: list[TradingPlanExecution]) -> StrategyMetrics:
    if not trades:
        return StrategyMetrics()
    wins = sum(1 for trade in trades if trade.is_win)
    return StrategyMetrics(
        trades=len(trades),
        win_rate=wins / len(trades) * 100,
        total_pnl=sum(_pnl(trade) for trade in trades),
        average_risk_reward=sum(trade.actual_risk_reward or 0.0 for trade in trades) / len(trades),
        max_drawdown=max_drawdown_amount(trades),
        profit_factor=profit_factor(trades),
    )


def _streaks(trades: list[TradingPlanExecution]) -> tuple[int, int, int, StreakType]:
    win_streak = loss_streak = current = 0
    current_type = StreakType.NONE
    for trade in trades:
        outcome = StreakType.WIN if trade.is_win else StreakType.LOSS
        if outcome == current_type:
            current += 1
        else:
            current = 1
            current_type = outcome
        if outcome == StreakType.WIN:
            win_streak = max(win_streak, current)
        else:
            loss_streak = max(loss_streak, current)
    return win_streak, loss_streak, current, current_type


def compute_strategy_performance(
    strategy_name: str,
    trades: list[TradingPlanExecution],
    now: int,
) -> StrategyPerformance:
    """
    Aggregate one strategy's closed trades.

    ``trades`` must be in exit order; streaks and drawdown depend on it.
    Recent windows are selected by exit time.
    """
    total = len(trades)
    winners = [trade for trade in trades if trade.is_win]
    losers = [trade for trade in trades if not trade.is_win]
    win_rate = len(winners) / total * 100 if total else 0.0
    timed = [trade.time_in_trade for trade in trades if trade.time_in_trade is not None]
    win_streak, loss_streak, current, current_type = _streaks(trades)

    by_market: dict[str, list[TradingPlanExecution]] = defaultdict(list)
    by_timeframe: dict[str, list[TradingPlanExecution]] = defaultdict(list)
    for trade in trades:
        by_market[trade.market_conditions].append(trade)
        by_timeframe[trade.timeframe].append(trade)

    return StrategyPerformance(
        strategy_name=strategy_name,
        total_trades=total,
        win_rate=win_rate,
        loss_rate=100 - win_rate if total else 0.0,
        average_win=sum(_pnl(t) for t in winners) / len(winners) if winners else 0.0,
        average_loss=sum(abs(_pnl(t)) for t in losers) / len(losers) if losers else 0.0,
        average_risk_reward=(
            sum(t.actual_risk_reward or 0.0 for t in trades) / total if total else 0.0
        ),
        total_pnl=sum(_pnl(t) for t in trades),
        max_drawdown=max_drawdown_amount(trades),
        profit_factor=profit_factor(trades),
        average_time_in_trade=sum(timed) / len(timed) if timed else 0.0,
        win_streak=win_streak,
        loss_streak=loss_streak,
        current_streak=current,
        current_streak_type=current_type,
        performance_by_market={k: compute_metrics(v) for k, v in by_market.items()},
        performance_by_timeframe={k: compute_metrics(v) for k, v in by_timeframe.items()},
        last_30_days=compute_metrics([t for t in trades if (t.exit_time or 0) >= now - 30 * DAY_MS]),
        last_7_days=compute_metrics([t for t in trades if (t.exit_time or 0) >= now - 7 * DAY_MS]),
        last_updated=now,
    )


def _summary(trade: TradingPlanExecution) -> TradeSummary:
    return TradeSummary(
        plan_id=trade.plan_id,
        symbol=trade.symbol,
        strategy=trade.strategy,
        pnl=_pnl(trade),
        is_win=bool(trade.is_win),
        exit_time=trade.exit_time or 0,
    )


class PerformanceTracker:
    """
    Records plan lifecycles and derives performance analytics.

    Lifecycle: ``record_plan`` (planning) -> ``record_entry`` (entered) ->
    repricing (active) -> ``record_exit`` (closed). Plans that never fill end
    in ``cancelled`` or ``expired``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        price_feed: Optional[PriceFeed] = None,
        params: Optional[PerformanceParams] = None,
        sink: Optional[NotificationSink] = None,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.price_feed = price_feed
        self.params = params or PerformanceParams()
        self.sink = sink
        self.clock = clock

        self.executions: dict[str, TradingPlanExecution] = {}
        self.strategy_performance: dict[str, StrategyPerformance] = {}
        self.alerts: list[PerformanceAlert] = []
        self._alert_sequence = 0
        self._tasks: list[asyncio.Task] = []

        self._load()

    # ------------------------------------------------------------------
    # Lifecycle recording
    # ------------------------------------------------------------------

    def record_plan(self, plan: TradingPlan) -> str:
        """Create the planning record for ``plan`` and return its id."""
        now = self.clock()
        sizing = plan.position_sizing
        entry_price = plan.entry.price

        if plan.id in self.executions:
            logger.warning("Plan already recorded, replacing record", plan_id=plan.id)

        self.executions[plan.id] = TradingPlanExecution(
            plan_id=plan.id,
            symbol=plan.symbol,
            strategy=plan.strategy,
            direction="long" if plan.is_long else "short",
            planned_entry_price=entry_price,
            planned_exit_price=plan.take_profit.price,
            planned_stop_loss=plan.stop_loss.price,
            position_size=sizing.notional_size / entry_price if entry_price > 0 else 0.0,
            leverage=sizing.leverage,
            margin=sizing.margin,
            planned_risk_reward=plan.risk_reward,
            confidence=plan.confidence,
            signal_strength=plan.signal.strength,
            market_conditions=plan.market_regime.type.value,
            timeframe=plan.timeframe,
            created_at=now,
            updated_at=now,
            notes=list(plan.notes),
        )
        log_state_transition(state_logger, plan.id, "none", ExecutionRecordStatus.PLANNING.value,
                             "record_plan", {"strategy": plan.strategy, "symbol": plan.symbol})
        self._save()
        return plan.id

    def record_entry(
        self,
        plan_id: str,
        actual_entry_price: float,
        position_size: Optional[float] = None,
        leverage: Optional[float] = None,
        margin: Optional[float] = None,
        slippage: Optional[float] = None,
        fees: float = 0.0,
        tx_hash: Optional[str] = None,
    ) -> bool:
        """Mark the position as filled. Returns False when the plan was never recorded."""
        execution = self.executions.get(plan_id)
        if execution is None:
            logger.warning("Entry for unknown plan ignored", plan_id=plan_id)
            return False

        previous = execution.transition(ExecutionRecordStatus.ENTERED)
        now = self.clock()
        execution.actual_entry_price = actual_entry_price
        if position_size is not None:
            execution.position_size = position_size
        if leverage is not None:
            execution.leverage = leverage
        if margin is not None:
            execution.margin = margin
        execution.entry_slippage = slippage
        execution.entry_fees = fees
        execution.entry_tx_hash = tx_hash
        execution.entry_time = now
        execution.updated_at = now

        log_state_transition(state_logger, plan_id, previous.value, execution.status.value,
                             "record_entry", {"entry_price": actual_entry_price})
        self._save()
        return True

    def record_exit(
        self,
        plan_id: str,
        actual_exit_price: float,
        exit_reason: ExitReason = ExitReason.MANUAL,
        slippage: Optional[float] = None,
        fees: float = 0.0,
        tx_hash: Optional[str] = None,
    ) -> bool:
        """
        Close the position and compute its realized metrics.

        Returns False when the plan is unknown or has no recorded entry.
        """
        execution = self.executions.get(plan_id)
        if execution is None or execution.actual_entry_price is None:
            logger.warning("Exit without recorded entry ignored", plan_id=plan_id)
            return False

        previous = execution.transition(ExecutionRecordStatus.CLOSED)
        now = self.clock()
        execution.actual_exit_price = actual_exit_price
        execution.exit_reason = ExitReason(exit_reason)
        execution.exit_slippage = slippage
        execution.exit_fees = fees
        execution.exit_tx_hash = tx_hash
        execution.exit_time = now
        execution.updated_at = now
        self._apply_exit_metrics(execution)

        log_state_transition(state_logger, plan_id, previous.value, execution.status.value,
                             "record_exit", {"pnl": execution.pnl, "exit_reason": execution.exit_reason.value})

        self._recompute_strategy(execution.strategy)
        self._save()
        return True

    def cancel_plan(self, plan_id: str) -> bool:
        return self._finish_unfilled(plan_id, ExecutionRecordStatus.CANCELLED, "cancel_plan")

    def expire_plan(self, plan_id: str) -> bool:
        return self._finish_unfilled(plan_id, ExecutionRecordStatus.EXPIRED, "expire_plan")

    def get_execution(self, plan_id: str) -> TradingPlanExecution:
        """
        Return the lifecycle record for ``plan_id``.

        Raises:
            RecordNotFoundError: If the plan was never recorded
        """
        execution = self.executions.get(plan_id)
        if execution is None:
            raise RecordNotFoundError(plan_id)
        return execution

    def _finish_unfilled(self, plan_id: str, status: ExecutionRecordStatus, trigger: str) -> bool:
        execution = self.executions.get(plan_id)
        if execution is None:
            return False
        previous = execution.transition(status)
        execution.updated_at = self.clock()
        log_state_transition(state_logger, plan_id, previous.value, status.value, trigger)
        self._save()
        return True

    @staticmethod
    def _apply_exit_metrics(execution: TradingPlanExecution) -> None:
        entry = execution.actual_entry_price
        exit_price = execution.actual_exit_price
        move = exit_price - entry if execution.is_long else entry - exit_price

        pnl = move * execution.position_size - (execution.entry_fees + execution.exit_fees)
        execution.pnl = pnl
        execution.pnl_percentage = move / entry * 100 if entry else 0.0

        risk_amount = abs(pnl) if pnl < 0 else abs(execution.margin)
        reward_amount = pnl if pnl > 0 else 0.0
        execution.actual_risk_reward = reward_amount / risk_amount if risk_amount > 0 else 0.0
        execution.is_win = pnl > 0

        if execution.entry_time is not None and execution.exit_time is not None:
            execution.time_in_trade = execution.exit_time - execution.entry_time

        execution.unrealized_pnl = 0.0
        execution.unrealized_pnl_percentage = 0.0

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def closed_trades(self, strategy: Optional[str] = None) -> list[TradingPlanExecution]:
        """Closed records in exit order."""
        trades = [
            execution for execution in self.executions.values()
            if execution.status == ExecutionRecordStatus.CLOSED and execution.pnl is not None
            and (strategy is None or execution.strategy == strategy)
        ]
        return sorted(trades, key=lambda trade: trade.exit_time or 0)

    def _recompute_strategy(self, strategy: str) -> None:
        self.strategy_performance[strategy] = compute_strategy_performance(
            strategy, self.closed_trades(strategy), self.clock()
        )

    def _recompute_all(self) -> None:
        self.strategy_performance.clear()
        for strategy in {trade.strategy for trade in self.closed_trades()}:
            self._recompute_strategy(strategy)

    def get_strategy_performance(self, strategy: str) -> Optional[StrategyPerformance]:
        return self.strategy_performance.get(strategy)

    def get_all_strategy_performance(self) -> list[StrategyPerformance]:
        return sorted(self.strategy_performance.values(), key=lambda perf: perf.total_pnl, reverse=True)

    # ------------------------------------------------------------------
    # Live positions
    # ------------------------------------------------------------------

    async def reprice_active_positions(self) -> int:
        """Refresh unrealized pnl of every open record. Returns how many were repriced."""
        if self.price_feed is None:
            return 0

        open_records = [execution for execution in self.executions.values() if execution.is_open]
        symbols = sorted({execution.symbol for execution in open_records})
        repriced = 0

        for symbol in symbols:
            try:
                quote = await self.price_feed.get_price(symbol)
            except Exception as e:
                logger.error("Repricing failed", symbol=symbol, error=str(e), error_type=type(e).__name__)
                continue
            if quote is None:
                continue

            for execution in open_records:
                if execution.symbol == symbol:
                    self._reprice(execution, quote.price)
                    repriced += 1

        if repriced:
            self._save()
        return repriced

    def _reprice(self, execution: TradingPlanExecution, current_price: float) -> None:
        entry = execution.actual_entry_price
        if entry is None:
            return
        move = current_price - entry if execution.is_long else entry - current_price
        unrealized = move * execution.position_size - execution.entry_fees

        now = self.clock()
        execution.current_price = current_price
        execution.unrealized_pnl = unrealized
        execution.unrealized_pnl_percentage = (
            unrealized / execution.margin * 100 if execution.margin else 0.0
        )
        execution.time_in_trade = now - (execution.entry_time or now)
        execution.updated_at = now

        if execution.status == ExecutionRecordStatus.ENTERED:
            previous = execution.transition(ExecutionRecordStatus.ACTIVE)
            log_state_transition(state_logger, execution.plan_id, previous.value,
                                 execution.status.value, "reprice", {"price": current_price})

    def get_active_positions(self) -> list[RealTimePosition]:
        now = self.clock()
        positions = []
        for execution in self.executions.values():
            if not execution.is_open:
                continue
            entry = execution.actual_entry_price or execution.planned_entry_price
            current = execution.current_price or entry
            positions.append(RealTimePosition(
                plan_id=execution.plan_id,
                symbol=execution.symbol,
                direction=execution.direction,
                entry_price=entry,
                current_price=current,
                position_size=execution.position_size,
                leverage=execution.leverage,
                unrealized_pnl=execution.unrealized_pnl,
                unrealized_pnl_percentage=execution.unrealized_pnl_percentage,
                time_in_trade=now - (execution.entry_time or now),
                stop_loss_price=execution.planned_stop_loss,
                take_profit_price=execution.planned_exit_price,
                distance_to_stop_loss=(
                    abs(current - execution.planned_stop_loss) / current * 100 if current else 0.0
                ),
                distance_to_take_profit=(
                    abs(execution.planned_exit_price - current) / current * 100 if current else 0.0
                ),
                risk_amount=abs(entry - execution.planned_stop_loss) * execution.position_size,
                last_updated=execution.updated_at,
            ))
        return positions

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def check_alerts(self) -> list[PerformanceAlert]:
        """Evaluate alert conditions and return the alerts raised by this pass."""
        raised: list[PerformanceAlert] = []
        trades = self.closed_trades()

        recent = list(reversed(trades))[: self.params.recent_trade_window]
        consecutive_losses = 0
        for trade in recent:
            if trade.is_win:
                break
            consecutive_losses += 1

        if consecutive_losses >= self.params.consecutive_loss_threshold:
            severity = (
                AlertSeverity.HIGH if consecutive_losses >= self.params.consecutive_loss_high
                else AlertSeverity.MEDIUM
            )
            alert = self._raise_alert(
                category="consecutive_losses",
                kind=AlertKind.WARNING,
                severity=severity,
                title="Consecutive Losses Detected",
                message=f"{consecutive_losses} consecutive losing trades. Consider reviewing your strategy.",
            )
            if alert is not None:
                raised.append(alert)

        _, current_drawdown = drawdown_percentages(trades)
        if current_drawdown > self.params.drawdown_threshold:
            severity = (
                AlertSeverity.CRITICAL if current_drawdown > self.params.drawdown_critical
                else AlertSeverity.HIGH
            )
            alert = self._raise_alert(
                category="drawdown",
                kind=AlertKind.ERROR,
                severity=severity,
                title="High Drawdown Alert",
                message=f"Current drawdown is {current_drawdown:.1f}%. Consider reducing position sizes.",
            )
            if alert is not None:
                raised.append(alert)

        if raised:
            self._save_alerts()
        return raised

    def _raise_alert(
        self,
        category: str,
        kind: AlertKind,
        severity: AlertSeverity,
        title: str,
        message: str,
    ) -> Optional[PerformanceAlert]:
        # One unacknowledged alert per category and severity.
        for existing in self.alerts:
            if not existing.acknowledged and existing.category == category and existing.severity == severity:
                return None

        now = self.clock()
        self._alert_sequence += 1
        alert = PerformanceAlert(
            id=f"alert_{now}_{self._alert_sequence}",
            type=kind,
            severity=severity,
            title=title,
            message=message,
            category=category,
            timestamp=now,
        )
        self.alerts.insert(0, alert)
        del self.alerts[self.params.max_alerts:]

        logger.warning("Performance alert raised", alert_id=alert.id, category=category,
                       severity=severity.value)
        if self.sink is not None:
            self.sink.notify(Notification(
                title=title,
                message=message,
                priority=NotificationPriority(severity.value),
                source="performance_tracker",
                details=alert.to_dict(),
            ))
        return alert

    def get_alerts(self, include_acknowledged: bool = False) -> list[PerformanceAlert]:
        if include_acknowledged:
            return list(self.alerts)
        return [alert for alert in self.alerts if not alert.acknowledged]

    def acknowledge_alert(self, alert_id: str) -> bool:
        for alert in self.alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                self._save_alerts()
                return True
        return False

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the repricing and alert-check timers."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._every(self.params.reprice_interval_seconds,
                                             self.reprice_active_positions, "reprice")),
            asyncio.create_task(self._every(self.params.alert_check_interval_seconds,
                                             self._check_alerts_async, "alert_check")),
        ]
        logger.info("Performance tracker started",
                    reprice_interval=self.params.reprice_interval_seconds,
                    alert_interval=self.params.alert_check_interval_seconds)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Performance tracker stopped")

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def _check_alerts_async(self) -> list[PerformanceAlert]:
        return self.check_alerts()

    async def _every(self, interval: float, job, name: str) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception as e:
                logger.error("Performance timer job failed", job=name, error=str(e),
                             error_type=type(e).__name__)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def generate_dashboard(self) -> PerformanceDashboard:
        trades = self.closed_trades()
        total = len(trades)
        max_dd, current_dd = drawdown_percentages(trades)
        best = max(trades, key=_pnl) if trades else None
        worst = min(trades, key=_pnl) if trades else None

        overview = DashboardOverview(
            total_trades=total,
            total_pnl=sum(_pnl(t) for t in trades),
            win_rate=sum(1 for t in trades if t.is_win) / total * 100 if total else 0.0,
            average_risk_reward=(
                sum(t.actual_risk_reward or 0.0 for t in trades) / total if total else 0.0
            ),
            max_drawdown=max_dd,
            current_drawdown=current_dd,
            profit_factor=profit_factor(trades),
            best_trade=_summary(best) if best else None,
            worst_trade=_summary(worst) if worst else None,
        )

        return PerformanceDashboard(
            overview=overview,
            strategies=self.get_all_strategy_performance(),
            market_conditions=self._market_condition_breakdown(trades),
            active_positions=self.get_active_positions(),
            recent_trades=[_summary(t) for t in reversed(trades[-RECENT_TRADES_LIMIT:])],
            generated_at=self.clock(),
        )

    @staticmethod
    def _market_condition_breakdown(trades: list[TradingPlanExecution]) -> list[MarketConditionPerformance]:
        groups: dict[str, list[TradingPlanExecution]] = defaultdict(list)
        for trade in trades:
            groups[trade.market_conditions or "unknown"].append(trade)

        results = []
        for condition, group in groups.items():
            by_strategy: dict[str, list[TradingPlanExecution]] = defaultdict(list)
            for trade in group:
                by_strategy[trade.strategy].append(trade)
            results.append(MarketConditionPerformance(
                condition=condition,
                total_trades=len(group),
                win_rate=sum(1 for t in group if t.is_win) / len(group) * 100,
                average_pnl=sum(_pnl(t) for t in group) / len(group),
                strategies={name: compute_metrics(ts) for name, ts in by_strategy.items()},
            ))
        return sorted(results, key=lambda r: r.total_trades, reverse=True)

    # ------------------------------------------------------------------
    # Persistence, export and import
    # ------------------------------------------------------------------

    def export_data(self) -> str:
        return json.dumps({
            "version": EXPORT_VERSION,
            "executions": [execution.to_dict() for execution in self.executions.values()],
            "alerts": [alert.to_dict() for alert in self.alerts],
            "exported_at": self.clock(),
        }, indent=2)

    def import_data(self, raw: str) -> None:
        """
        Replace all state with an export.

        Raises:
            MalformedDataError: The payload is not a valid export document
            PersistenceError: The export was written by an unsupported version
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedDataError(f"Import payload is not JSON: {e}", raw_data=raw[:200],
                                     expected_format="performance export") from e
        if not isinstance(data, dict):
            raise MalformedDataError("Import payload must be an object", raw_data=raw[:200],
                                     expected_format="performance export")

        version = data.get("version", EXPORT_VERSION)
        if version != EXPORT_VERSION:
            raise PersistenceError(f"Unsupported export version: {version}",
                                   operation="import", target="performance_export")

        executions, alerts = self._parse_state(data)
        self.executions = executions
        self.alerts = alerts
        self._recompute_all()
        self._save()
        self._save_alerts()
        logger.info("Performance data imported", executions=len(executions), alerts=len(alerts))

    def clear_data(self) -> None:
        self.executions.clear()
        self.strategy_performance.clear()
        self.alerts = []
        self.store.delete(self.params.storage_key)
        self.store.delete(self.params.alerts_storage_key)
        logger.info("Performance data cleared")

    @staticmethod
    def _parse_state(data: dict[str, Any]) -> tuple[dict[str, TradingPlanExecution], list[PerformanceAlert]]:
        try:
            records = [TradingPlanExecution.from_dict(item) for item in data.get("executions") or []]
            alerts = [PerformanceAlert.from_dict(item) for item in data.get("alerts") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDataError(f"Invalid performance record: {e}",
                                     expected_format="performance export") from e
        return {record.plan_id: record for record in records}, alerts

    def _save(self) -> None:
        self.store.set(self.params.storage_key, json.dumps({
            "version": EXPORT_VERSION,
            "executions": [execution.to_dict() for execution in self.executions.values()],
            "last_saved": self.clock(),
        }))

    def _save_alerts(self) -> None:
        self.store.set(self.params.alerts_storage_key,
                       json.dumps([alert.to_dict() for alert in self.alerts]))

    def _load(self) -> None:
        raw = self.store.get(self.params.storage_key)
        raw_alerts = self.store.get(self.params.alerts_storage_key)
        try:
            data = json.loads(raw) if raw else {}
            alert_items = json.loads(raw_alerts) if raw_alerts else []
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored performance data is corrupt: {e}",
                                   operation="load", target=self.params.storage_key) from e

        self.executions, self.alerts = self._parse_state({
            "executions": data.get("executions"),
            "alerts": alert_items,
        })
        self._recompute_all()
        if self.executions:
            logger.info("Performance data loaded", executions=len(self.executions),
                        alerts=len(self.alerts))
