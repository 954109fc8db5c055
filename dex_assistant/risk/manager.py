"""
Risk manager.

Keeps one ``UserRiskProfile`` per wallet address and scores trading plans
against it. The plan assessment is an additive pipeline of six independent
checks; each triggered check contributes a fixed number of points and one
``RiskViolation``. Emergency evaluation is separate and only decides and
reports actions, it never executes them.
"""

from typing import Any, Optional, Sequence

import structlog

from ..config.validation import ConfigValidator
from ..data.models import AccountSnapshot, PositionSnapshot
from ..errors import InvalidParameterError, ProfileNotFoundError
from ..logging.config import get_gating_logger, log_gate_decision
from ..models.plan import PositionSizing, TradingPlan
from ..persistence.repository import InMemoryRepository, Repository
from ..utils.time import HOUR_MS, Clock, format_timestamp, system_clock
from .models import (
    EmergencyAction,
    EmergencyActionType,
    EmergencyStatus,
    MarketVolatilityData,
    PlanRiskAssessment,
    PlanValidationResult,
    PositionRisk,
    RiskParameters,
    RiskTolerance,
    RiskViolation,
    Severity,
    UserRiskProfile,
    ViolationType,
)
from .presets import (
    DEFAULT_VOLATILITY_SYMBOLS,
    RISK_TOLERANCE_PRESETS,
    SAFE_POSITION_FRACTION,
    SUPPORTED_SYMBOLS,
    correlation,
    parameters_for,
)

logger = structlog.get_logger(__name__)
gate_logger = get_gating_logger(__name__)

# Points contributed by each triggered check
POSITION_SIZE_POINTS = 25
LEVERAGE_POINTS = 20
RISK_REWARD_POINTS = 15
VOLATILITY_POINTS = 10
DAILY_LOSS_POINTS = 40
CORRELATION_POINTS = 15

MAX_ACCEPTABLE_SCORE = 70
EMERGENCY_SCORE = 80

VALUE_AT_RISK_FRACTION = 0.10
DEFAULT_VOLATILITY_24H = 0.03


def calculate_profile_risk_score(params: RiskParameters) -> float:
    """
    Appetite score for a parameter set, 0-100.

    50 is the medium baseline; higher average leverage, larger positions and a
    looser daily loss limit all push it up.
    """
    leverages = list(params.max_leverage_per_asset.values())
    avg_leverage = sum(leverages) / len(leverages)

    score = 50.0
    score += (avg_leverage - 10) * 2
    score += (params.max_position_size - 2000) / 100
    score += (params.daily_loss_limit - 1000) / 50
    return max(0.0, min(100.0, score))


class RiskManager:
    """Per-user risk bookkeeping and plan assessment."""

    def __init__(
        self,
        profiles: Optional[Repository[str, UserRiskProfile]] = None,
        clock: Clock = system_clock,
    ):
        self.profiles = profiles if profiles is not None else InMemoryRepository()
        self.clock = clock
        self._volatility: dict[str, MarketVolatilityData] = {}
        self._emergency_actions: list[EmergencyAction] = []
        self._emergency_mode = False
        self._seed_volatility()

    def _seed_volatility(self) -> None:
        now = self.clock()
        for symbol in DEFAULT_VOLATILITY_SYMBOLS:
            self._volatility[symbol] = MarketVolatilityData(
                symbol=symbol,
                volatility_24h=DEFAULT_VOLATILITY_24H,
                volatility_7d=DEFAULT_VOLATILITY_24H,
                average_volatility=DEFAULT_VOLATILITY_24H,
                volatility_rank=5,
                last_update=now,
            )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def create_user_profile(
        self,
        address: str,
        risk_tolerance: RiskTolerance | str = RiskTolerance.MEDIUM,
        overrides: Optional[dict[str, Any]] = None,
    ) -> UserRiskProfile:
        """
        Create (or replace) the profile for ``address``.

        Raises:
            InvalidParameterError: If the tolerance or overrides are invalid
        """
        errors = ConfigValidator.validate_risk_parameters(
            {"risk_tolerance": risk_tolerance, **(overrides or {})}
        )
        if errors:
            raise InvalidParameterError(f"Invalid risk parameters for {address}", errors)

        params = parameters_for(risk_tolerance, overrides)
        profile = UserRiskProfile(
            address=address,
            parameters=params,
            last_risk_check=self.clock(),
        )
        self.profiles.put(address, profile)

        logger.info("Risk profile created", address=address,
                    risk_tolerance=params.risk_tolerance.value)
        return profile

    def get_user_profile(self, address: str) -> Optional[UserRiskProfile]:
        return self.profiles.get(address)

    def require_profile(self, address: str) -> UserRiskProfile:
        profile = self.profiles.get(address)
        if profile is None:
            raise ProfileNotFoundError(address)
        return profile

    def update_risk_preferences(self, address: str, updates: dict[str, Any]) -> UserRiskProfile:
        """
        Merge ``updates`` into the user's parameters and recompute the risk score.

        Raises:
            ProfileNotFoundError: If no profile exists
            InvalidParameterError: If the updates fail validation
        """
        profile = self.require_profile(address)

        errors = ConfigValidator.validate_risk_parameters(updates)
        if errors:
            raise InvalidParameterError(f"Invalid risk parameters for {address}", errors)

        profile.parameters = profile.parameters.with_updates(updates)
        profile.risk_score = calculate_profile_risk_score(profile.parameters)
        self.profiles.put(address, profile)

        logger.info("Risk preferences updated", address=address,
                    fields=sorted(updates), risk_score=round(profile.risk_score, 1))
        return profile

    def apply_risk_tolerance(self, address: str, level: RiskTolerance | str) -> UserRiskProfile:
        """Apply one of the named presets on top of the current parameters."""
        tolerance = RiskTolerance(level)
        return self.update_risk_preferences(
            address, {**RISK_TOLERANCE_PRESETS[tolerance], "risk_tolerance": tolerance.value}
        )

    # ------------------------------------------------------------------
    # Plan assessment
    # ------------------------------------------------------------------

    def assess_plan_risk(
        self,
        plan: TradingPlan,
        address: str,
        account: Optional[AccountSnapshot] = None,
    ) -> PlanRiskAssessment:
        """
        Score ``plan`` against the user's limits.

        The plan is acceptable when the score stays under 70 and no violation is
        critical. A breached daily loss limit is critical on its own.

        Raises:
            ProfileNotFoundError: If no profile exists for ``address``
        """
        profile = self.require_profile(address)
        params = profile.parameters
        sizing = plan.position_sizing
        violations: list[RiskViolation] = []

        # 1. Position size
        if sizing.notional_size > params.max_position_size:
            violations.append(RiskViolation(
                type=ViolationType.POSITION,
                severity=Severity.HIGH,
                message=(f"Position size ${sizing.notional_size:.2f} exceeds maximum "
                         f"${params.max_position_size:.2f}"),
                current_value=sizing.notional_size,
                limit_value=params.max_position_size,
                suggested_action=f"Reduce position size to ${params.max_position_size:.2f}",
                points=POSITION_SIZE_POINTS,
            ))

        # 2. Leverage
        max_leverage = params.max_leverage_for(plan.symbol)
        if sizing.leverage > max_leverage:
            violations.append(RiskViolation(
                type=ViolationType.LEVERAGE,
                severity=Severity.HIGH,
                message=f"Leverage {sizing.leverage:.1f}x exceeds maximum {max_leverage:g}x for {plan.symbol}",
                current_value=sizing.leverage,
                limit_value=max_leverage,
                suggested_action=f"Reduce leverage to {max_leverage:g}x",
                points=LEVERAGE_POINTS,
            ))

        # 3. Risk-reward
        if plan.risk_reward < params.min_risk_reward_ratio:
            violations.append(RiskViolation(
                type=ViolationType.POSITION,
                severity=Severity.MEDIUM,
                message=(f"Risk-reward ratio {plan.risk_reward:.2f} below minimum "
                         f"{params.min_risk_reward_ratio:g}"),
                current_value=plan.risk_reward,
                limit_value=params.min_risk_reward_ratio,
                suggested_action=f"Improve risk/reward ratio to at least {params.min_risk_reward_ratio:g}",
                points=RISK_REWARD_POINTS,
            ))

        # 4. Volatility
        volatility = self._volatility.get(plan.symbol)
        if volatility and volatility.volatility_24h > params.high_volatility_threshold:
            adjusted = self.calculate_dynamic_position_size(sizing.notional_size, plan.symbol, params)
            violations.append(RiskViolation(
                type=ViolationType.VOLATILITY,
                severity=Severity.MEDIUM,
                message=f"High volatility detected for {plan.symbol}: {volatility.volatility_24h:.1%}",
                current_value=volatility.volatility_24h,
                limit_value=params.high_volatility_threshold,
                suggested_action=f"Reduce position size to ${adjusted:.2f} due to high volatility",
                points=VOLATILITY_POINTS,
            ))

        # 5. Daily loss, independent of account data
        if -profile.daily_pnl > params.daily_loss_limit:
            violations.append(RiskViolation(
                type=ViolationType.ACCOUNT,
                severity=Severity.CRITICAL,
                message=(f"Daily loss limit exceeded: ${-profile.daily_pnl:.2f} of "
                         f"${params.daily_loss_limit:.2f}"),
                current_value=-profile.daily_pnl,
                limit_value=params.daily_loss_limit,
                suggested_action="Stop trading for today - daily loss limit exceeded",
                points=DAILY_LOSS_POINTS,
            ))

        # 6. Correlation against existing positions
        if account is not None:
            exposure = self.correlated_exposure(plan.symbol, account.positions.values(),
                                                params.correlation_threshold)
            correlation_risk = exposure / params.max_correlated_exposure
            if correlation_risk > params.correlation_threshold:
                violations.append(RiskViolation(
                    type=ViolationType.CORRELATION,
                    severity=Severity.MEDIUM,
                    message=f"High correlation exposure for {plan.symbol}: ${exposure:.2f}",
                    current_value=correlation_risk,
                    limit_value=params.correlation_threshold,
                    suggested_action="Consider diversifying into uncorrelated assets",
                    points=CORRELATION_POINTS,
                ))

        risk_score = min(100.0, float(sum(v.points for v in violations)))
        has_critical = any(v.severity == Severity.CRITICAL for v in violations)
        is_acceptable = risk_score < MAX_ACCEPTABLE_SCORE and not has_critical

        emergency_actions = []
        if risk_score >= EMERGENCY_SCORE:
            emergency_actions = [
                "Consider reducing overall exposure",
                "Review open positions before adding risk",
                "Wait for better market conditions",
            ]

        adjusted_plan = self._adjust_plan(plan, params, violations)

        # Profile side effects
        profile.last_risk_check = self.clock()
        profile.violation_count += sum(
            1 for v in violations if v.severity in (Severity.HIGH, Severity.CRITICAL)
        )
        profile.is_blocked = -profile.daily_pnl > params.daily_loss_limit
        self.profiles.put(address, profile)

        log_gate_decision(
            gate_logger,
            gate_name="risk_assessment",
            passed=is_acceptable,
            plan_id=plan.id,
            reason="; ".join(v.message for v in violations) or "within limits",
            context={"risk_score": risk_score, "violations": len(violations)},
        )

        return PlanRiskAssessment(
            plan_id=plan.id,
            risk_score=risk_score,
            is_acceptable=is_acceptable,
            violations=violations,
            adjusted_plan=adjusted_plan,
            emergency_actions=emergency_actions,
        )

    def _adjust_plan(
        self,
        plan: TradingPlan,
        params: RiskParameters,
        violations: Sequence[RiskViolation],
    ) -> Optional[TradingPlan]:
        """Cap size and leverage when either was violated."""
        kinds = {v.type for v in violations if v.severity == Severity.HIGH}
        if not kinds & {ViolationType.POSITION, ViolationType.LEVERAGE}:
            return None

        sizing = plan.position_sizing
        notional = min(sizing.notional_size, params.max_position_size)
        leverage = min(sizing.leverage, params.max_leverage_for(plan.symbol))
        adjusted = PositionSizing(
            notional_size=notional,
            leverage=leverage,
            margin=notional / leverage if leverage > 0 else notional,
            risk_amount=sizing.risk_amount,
            stop_loss_distance=sizing.stop_loss_distance,
        )
        return plan.with_position_sizing(
            adjusted, note=f"Adjusted by risk manager: ${notional:.2f} at {leverage:g}x"
        )

    @staticmethod
    def correlated_exposure(
        symbol: str,
        positions: Sequence[PositionSnapshot] | Any,
        threshold: float,
    ) -> float:
        """Sum of |notional| of other positions correlated with ``symbol`` above ``threshold``."""
        total = 0.0
        for position in positions:
            if position.symbol == symbol:
                continue
            if abs(correlation(symbol, position.symbol)) > threshold:
                total += abs(position.notional_value)
        return total

    def validate_trading_plan(
        self,
        plan: TradingPlan,
        address: str,
        account: Optional[AccountSnapshot] = None,
    ) -> PlanValidationResult:
        """
        Display-oriented wrapper around ``assess_plan_risk``.

        A missing profile is reported in the result instead of raised.
        """
        if self.get_user_profile(address) is None:
            return PlanValidationResult(
                is_valid=False,
                errors=[f"User profile not found: {address}"],
                score=100.0,
            )

        assessment = self.assess_plan_risk(plan, address, account)
        errors = [v.message for v in assessment.violations
                  if v.severity in (Severity.HIGH, Severity.CRITICAL)]
        warnings = [v.message for v in assessment.violations
                    if v.severity in (Severity.LOW, Severity.MEDIUM)]
        suggestions = [v.suggested_action for v in assessment.violations]
        suggestions.extend(assessment.emergency_actions)

        return PlanValidationResult(
            is_valid=assessment.is_acceptable,
            errors=errors,
            warnings=warnings,
            score=assessment.risk_score,
            suggestions=suggestions,
        )

    # ------------------------------------------------------------------
    # Positions and emergencies
    # ------------------------------------------------------------------

    def analyze_position_risk(self, address: str, positions: Sequence[PositionSnapshot]) -> list[PositionRisk]:
        """Risk view for each open position of the user."""
        params = self.require_profile(address).parameters
        results = []

        for position in positions:
            notional = abs(position.size) * position.leverage
            factors = []

            exposure = self.correlated_exposure(position.symbol, positions, params.correlation_threshold)
            correlation_risk = exposure / params.max_correlated_exposure
            if correlation_risk > params.correlation_threshold:
                factors.append("High correlation with other positions")

            volatility_adjustment = 1.0
            volatility = self._volatility.get(position.symbol)
            if volatility and volatility.volatility_24h > params.high_volatility_threshold:
                volatility_adjustment = params.volatility_adjustment_factor
                factors.append("High market volatility")

            max_leverage = params.max_leverage_for(position.symbol)
            if position.leverage > max_leverage:
                factors.append(f"Leverage {position.leverage:g}x above {max_leverage:g}x limit")

            if notional > params.max_position_size:
                factors.append("Position size above limit")

            if position.unrealized_pnl_percent < -params.emergency_stop_loss:
                factors.append("Unrealized loss beyond emergency stop")

            results.append(PositionRisk(
                symbol=position.symbol,
                size=position.size,
                leverage=position.leverage,
                notional_value=notional,
                risk_value=notional * VALUE_AT_RISK_FRACTION,
                correlation_risk=correlation_risk,
                volatility_adjustment=volatility_adjustment,
                is_risky=bool(factors),
                risk_factors=factors,
            ))

        return results

    def check_emergency_stop(self, address: str, account: AccountSnapshot) -> list[EmergencyAction]:
        """
        Evaluate the hard emergency triggers for the user.

        Actions are appended to the emergency log; any action of priority 9 or
        above switches emergency mode on. Nothing is executed here.
        """
        profile = self.require_profile(address)
        params = profile.parameters
        if not params.emergency_controls:
            return []

        now = self.clock()
        actions = []

        if -profile.daily_pnl > params.daily_loss_limit:
            actions.append(EmergencyAction(
                type=EmergencyActionType.STOP_TRADING,
                reason=f"Daily loss limit exceeded: ${-profile.daily_pnl:.2f}",
                priority=9,
                timestamp=now,
            ))

        drawdown = profile.max_drawdown
        if account.balance > 0 and profile.daily_pnl < 0:
            drawdown = max(drawdown, -profile.daily_pnl / account.balance)
        if drawdown > params.max_drawdown_threshold:
            actions.append(EmergencyAction(
                type=EmergencyActionType.LIQUIDATE_ALL,
                reason=f"Maximum drawdown exceeded: {drawdown:.1%}",
                priority=10,
                timestamp=now,
            ))

        for position in account.positions.values():
            if position.unrealized_pnl_percent < -params.emergency_stop_loss:
                actions.append(EmergencyAction(
                    type=EmergencyActionType.CLOSE_POSITION,
                    reason=(f"Emergency stop loss triggered for {position.symbol}: "
                            f"{position.unrealized_pnl_percent:.1%}"),
                    priority=8,
                    timestamp=now,
                    symbol=position.symbol,
                ))

        if actions:
            self._emergency_actions.extend(actions)
            if any(a.priority >= 9 for a in actions):
                self._emergency_mode = True
            logger.warning("Emergency actions raised", address=address,
                           actions=[a.type.value for a in actions],
                           emergency_mode=self._emergency_mode)

        return actions

    def get_emergency_status(self, window_ms: int = HOUR_MS) -> EmergencyStatus:
        """Emergency flag plus the actions raised within ``window_ms``."""
        cutoff = self.clock() - window_ms
        return EmergencyStatus(
            is_emergency_mode=self._emergency_mode,
            pending_actions=[a for a in self._emergency_actions if a.timestamp >= cutoff],
        )

    def clear_emergency_mode(self) -> None:
        self._emergency_mode = False
        self._emergency_actions.clear()
        logger.info("Emergency mode cleared")

    # ------------------------------------------------------------------
    # Volatility
    # ------------------------------------------------------------------

    def update_volatility_data(self, data: MarketVolatilityData) -> None:
        self._volatility[data.symbol] = data

    def get_volatility_data(self, symbol: str) -> Optional[MarketVolatilityData]:
        return self._volatility.get(symbol)

    def calculate_dynamic_position_size(
        self,
        base_size: float,
        symbol: str,
        params: Optional[RiskParameters] = None,
    ) -> float:
        """Scale ``base_size`` down by the adjustment factor when the symbol is volatile."""
        params = params or parameters_for(RiskTolerance.MEDIUM)
        volatility = self._volatility.get(symbol)
        if volatility is None or volatility.volatility_24h <= params.high_volatility_threshold:
            return base_size
        return base_size * params.volatility_adjustment_factor

    # ------------------------------------------------------------------
    # P&L bookkeeping
    # ------------------------------------------------------------------

    def record_pnl(self, address: str, pnl: float, equity: Optional[float] = None) -> UserRiskProfile:
        """
        Book a realized P&L for the day.

        When ``equity`` is given the peak equity and maximum drawdown fraction
        are tracked from it.
        """
        profile = self.require_profile(address)
        profile.daily_pnl += pnl
        profile.cumulative_pnl += pnl

        if equity is not None and equity > 0:
            profile.peak_pnl = max(profile.peak_pnl, equity)
            drawdown = (profile.peak_pnl - equity) / profile.peak_pnl
            profile.max_drawdown = max(profile.max_drawdown, drawdown)

        was_blocked = profile.is_blocked
        profile.is_blocked = -profile.daily_pnl > profile.parameters.daily_loss_limit
        self.profiles.put(address, profile)

        if profile.is_blocked and not was_blocked:
            logger.warning("Daily loss limit exceeded", address=address,
                           daily_pnl=round(profile.daily_pnl, 2),
                           limit=profile.parameters.daily_loss_limit)
        return profile

    def update_exposure(self, address: str, exposure: float) -> None:
        profile = self.require_profile(address)
        profile.current_exposure = max(0.0, exposure)
        self.profiles.put(address, profile)

    def reset_daily(self, address: str) -> None:
        """Start a new trading day: clears daily P&L and the block."""
        profile = self.require_profile(address)
        profile.daily_pnl = 0.0
        profile.is_blocked = False
        self.profiles.put(address, profile)
        logger.info("Daily risk counters reset", address=address)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def generate_risk_report(self, address: str) -> str:
        profile = self.require_profile(address)
        params = profile.parameters
        status = self.get_emergency_status()

        lines = [
            f"Risk Report for {address}",
            f"Generated: {format_timestamp(self.clock())}",
            "",
            "Profile",
            f"  Risk tolerance: {params.risk_tolerance.value}",
            f"  Risk score: {profile.risk_score:.1f}/100",
            f"  Blocked: {'yes' if profile.is_blocked else 'no'}",
            f"  Violations recorded: {profile.violation_count}",
            "",
            "Exposure",
            f"  Current exposure: ${profile.current_exposure:.2f} / ${params.total_exposure_limit:.2f}",
            f"  Daily P&L: ${profile.daily_pnl:.2f} (limit -${params.daily_loss_limit:.2f})",
            f"  Max drawdown: {profile.max_drawdown:.1%} (limit {params.max_drawdown_threshold:.0%})",
            "",
            "Limits",
            f"  Max position size: ${params.max_position_size:.2f}",
            f"  Max positions: {params.max_positions_count}",
            f"  Default max leverage: {params.max_leverage_for('default'):g}x",
            f"  Min risk/reward: {params.min_risk_reward_ratio:g}",
            f"  Emergency stop loss: {params.emergency_stop_loss:.0%}",
            "",
            f"Emergency mode: {'ACTIVE' if status.is_emergency_mode else 'inactive'}",
        ]
        for action in status.pending_actions:
            lines.append(f"  [{action.priority}] {action.type.value}: {action.reason}")

        return "\n".join(lines)

    @staticmethod
    def get_safe_position_size(balance: float, tolerance: RiskTolerance | str = RiskTolerance.MEDIUM) -> float:
        return balance * SAFE_POSITION_FRACTION[RiskTolerance(tolerance)]

    @staticmethod
    def is_supported_symbol(symbol: str) -> bool:
        return symbol in SUPPORTED_SYMBOLS
