"""Per-user risk profiles, plan assessment and emergency evaluation."""

from .manager import RiskManager, calculate_profile_risk_score
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
    ASSET_CORRELATIONS,
    DEFAULT_RISK_PARAMETERS,
    RISK_TOLERANCE_PRESETS,
    SUPPORTED_SYMBOLS,
    parameters_for,
)

__all__ = [
    "RiskManager",
    "calculate_profile_risk_score",
    "EmergencyAction",
    "EmergencyActionType",
    "EmergencyStatus",
    "MarketVolatilityData",
    "PlanRiskAssessment",
    "PlanValidationResult",
    "PositionRisk",
    "RiskParameters",
    "RiskTolerance",
    "RiskViolation",
    "Severity",
    "UserRiskProfile",
    "ViolationType",
    "ASSET_CORRELATIONS",
    "DEFAULT_RISK_PARAMETERS",
    "RISK_TOLERANCE_PRESETS",
    "SUPPORTED_SYMBOLS",
    "parameters_for",
]
