"""
Risk management data models.

``RiskParameters`` are immutable and replaced wholesale on preference updates.
``UserRiskProfile`` is the per-address mutable record the manager keeps for
the session.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from ..models.plan import TradingPlan


class RiskTolerance(str, Enum):
    """Named risk presets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class ViolationType(str, Enum):
    ACCOUNT = "account"
    POSITION = "position"
    CORRELATION = "correlation"
    VOLATILITY = "volatility"
    LEVERAGE = "leverage"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EmergencyActionType(str, Enum):
    CLOSE_POSITION = "close_position"
    REDUCE_LEVERAGE = "reduce_leverage"
    STOP_TRADING = "stop_trading"
    LIQUIDATE_ALL = "liquidate_all"


DEFAULT_LEVERAGE_KEY = "default"


@dataclass(frozen=True)
class RiskParameters:
    """Limit configuration for one user."""
    # Account-level limits
    daily_loss_limit: float = 1000.0
    total_exposure_limit: float = 10000.0
    max_positions_count: int = 10

    # Position-level limits
    max_position_size: float = 2000.0
    max_leverage_per_asset: dict[str, float] = field(default_factory=lambda: {DEFAULT_LEVERAGE_KEY: 10.0})
    min_risk_reward_ratio: float = 1.5

    # Correlation limits
    max_correlated_exposure: float = 5000.0
    correlation_threshold: float = 0.7

    # Volatility adjustments
    volatility_adjustment_factor: float = 0.5
    high_volatility_threshold: float = 0.05

    # Emergency controls, fractions
    emergency_stop_loss: float = 0.15
    max_drawdown_threshold: float = 0.20

    # User preferences
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    auto_stop_loss: bool = True
    emergency_controls: bool = True

    def __post_init__(self):
        if DEFAULT_LEVERAGE_KEY not in self.max_leverage_per_asset:
            raise ValueError("max_leverage_per_asset requires a 'default' entry")

    def max_leverage_for(self, symbol: str) -> float:
        table = self.max_leverage_per_asset
        return table.get(symbol, table[DEFAULT_LEVERAGE_KEY])

    def with_updates(self, updates: dict[str, Any]) -> "RiskParameters":
        """
        Copy with ``updates`` applied.

        A replacement leverage table without a ``default`` entry keeps the
        current default. Unknown keys are ignored.
        """
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in updates.items() if k in known}

        if "max_leverage_per_asset" in changes:
            table = dict(changes["max_leverage_per_asset"])
            table.setdefault(DEFAULT_LEVERAGE_KEY, self.max_leverage_per_asset[DEFAULT_LEVERAGE_KEY])
            changes["max_leverage_per_asset"] = table
        if "risk_tolerance" in changes:
            changes["risk_tolerance"] = RiskTolerance(changes["risk_tolerance"])

        return replace(self, **changes)


@dataclass
class UserRiskProfile:
    """Per-address risk state for the session."""
    address: str
    parameters: RiskParameters
    current_exposure: float = 0.0
    daily_pnl: float = 0.0
    max_drawdown: float = 0.0
    last_risk_check: int = 0
    violation_count: int = 0
    is_blocked: bool = False
    risk_score: float = 50.0
    cumulative_pnl: float = 0.0
    peak_pnl: float = 0.0


@dataclass(frozen=True)
class RiskViolation:
    """One failed risk check."""
    type: ViolationType
    severity: Severity
    message: str
    current_value: float
    limit_value: float
    suggested_action: str
    points: int = 0


@dataclass(frozen=True)
class PlanRiskAssessment:
    """Scored assessment of a plan against a profile."""
    plan_id: str
    risk_score: float
    is_acceptable: bool
    violations: list[RiskViolation] = field(default_factory=list)
    adjusted_plan: Optional[TradingPlan] = None
    emergency_actions: list[str] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return any(v.severity == Severity.CRITICAL for v in self.violations)


@dataclass(frozen=True)
class PlanValidationResult:
    """Assessment flattened for display: high/critical are errors, the rest warnings."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    score: float = 0.0
    suggestions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PositionRisk:
    """Risk view of one open position."""
    symbol: str
    size: float
    leverage: float
    notional_value: float
    risk_value: float
    correlation_risk: float
    volatility_adjustment: float
    is_risky: bool
    risk_factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MarketVolatilityData:
    """Volatility figures for a symbol, as fractions."""
    symbol: str
    volatility_24h: float
    volatility_7d: float = 0.0
    average_volatility: float = 0.0
    volatility_rank: int = 5          # 1-10, 10 = extremely volatile
    last_update: int = 0


@dataclass(frozen=True)
class EmergencyAction:
    """A decided, not executed, emergency action."""
    type: EmergencyActionType
    reason: str
    priority: int                     # 1-10, 10 = immediate
    timestamp: int
    symbol: Optional[str] = None


@dataclass(frozen=True)
class EmergencyStatus:
    is_emergency_mode: bool
    pending_actions: list[EmergencyAction] = field(default_factory=list)
