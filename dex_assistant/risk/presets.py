"""Risk parameter presets, the correlation table and symbol metadata."""

from typing import Any, Optional

from .models import RiskParameters, RiskTolerance

DEFAULT_RISK_PARAMETERS = RiskParameters(
    daily_loss_limit=1000.0,
    total_exposure_limit=10000.0,
    max_positions_count=10,
    max_position_size=2000.0,
    max_leverage_per_asset={
        "BTC": 50.0,
        "ETH": 30.0,
        "SOL": 20.0,
        "xAAPL": 3.0,
        "xTSLA": 3.0,
        "xMSFT": 3.0,
        "xGOOGL": 3.0,
        "default": 10.0,
    },
    min_risk_reward_ratio=1.5,
    max_correlated_exposure=5000.0,
    correlation_threshold=0.7,
    volatility_adjustment_factor=0.5,
    high_volatility_threshold=0.05,
    emergency_stop_loss=0.15,
    max_drawdown_threshold=0.20,
    risk_tolerance=RiskTolerance.MEDIUM,
    auto_stop_loss=True,
    emergency_controls=True,
)

# Partial overrides applied over the current parameters; "medium" restores the defaults
RISK_TOLERANCE_PRESETS: dict[RiskTolerance, dict[str, Any]] = {
    RiskTolerance.LOW: {
        "daily_loss_limit": 500.0,
        "max_position_size": 1000.0,
        "max_leverage_per_asset": {"BTC": 10.0, "ETH": 10.0, "default": 5.0},
        "min_risk_reward_ratio": 2.0,
        "emergency_stop_loss": 0.10,
        "max_drawdown_threshold": 0.15,
    },
    RiskTolerance.MEDIUM: {
        "daily_loss_limit": DEFAULT_RISK_PARAMETERS.daily_loss_limit,
        "max_position_size": DEFAULT_RISK_PARAMETERS.max_position_size,
        "max_leverage_per_asset": dict(DEFAULT_RISK_PARAMETERS.max_leverage_per_asset),
        "min_risk_reward_ratio": DEFAULT_RISK_PARAMETERS.min_risk_reward_ratio,
        "emergency_stop_loss": DEFAULT_RISK_PARAMETERS.emergency_stop_loss,
        "max_drawdown_threshold": DEFAULT_RISK_PARAMETERS.max_drawdown_threshold,
    },
    RiskTolerance.HIGH: {
        "daily_loss_limit": 2000.0,
        "max_position_size": 5000.0,
        "max_leverage_per_asset": {"BTC": 100.0, "ETH": 50.0, "default": 20.0},
        "min_risk_reward_ratio": 1.2,
        "emergency_stop_loss": 0.20,
        "max_drawdown_threshold": 0.25,
    },
    RiskTolerance.EXTREME: {
        "daily_loss_limit": 5000.0,
        "max_position_size": 10000.0,
        "max_leverage_per_asset": {"BTC": 100.0, "ETH": 100.0, "default": 50.0},
        "min_risk_reward_ratio": 1.0,
        "emergency_stop_loss": 0.25,
        "max_drawdown_threshold": 0.30,
    },
}

# Simplified pairwise correlations; missing pairs count as uncorrelated
ASSET_CORRELATIONS: dict[str, dict[str, float]] = {
    "BTC": {"ETH": 0.8, "SOL": 0.7, "xAAPL": 0.2, "xTSLA": 0.3},
    "ETH": {"BTC": 0.8, "SOL": 0.85, "xAAPL": 0.15, "xTSLA": 0.25},
    "SOL": {"BTC": 0.7, "ETH": 0.85, "xAAPL": 0.1, "xTSLA": 0.2},
    "xAAPL": {"BTC": 0.2, "ETH": 0.15, "xTSLA": 0.6, "xMSFT": 0.7},
    "xTSLA": {"BTC": 0.3, "ETH": 0.25, "xAAPL": 0.6, "xMSFT": 0.4},
}

SUPPORTED_SYMBOLS = ("BTC", "ETH", "SOL", "xAAPL", "xTSLA", "xMSFT", "xGOOGL")

# Share of balance considered a safe position at each tolerance
SAFE_POSITION_FRACTION: dict[RiskTolerance, float] = {
    RiskTolerance.LOW: 0.02,
    RiskTolerance.MEDIUM: 0.05,
    RiskTolerance.HIGH: 0.10,
    RiskTolerance.EXTREME: 0.15,
}

# Seed 24h volatility for symbols the manager knows about before any update
DEFAULT_VOLATILITY_SYMBOLS = ("BTC", "ETH", "SOL", "xAAPL", "xTSLA")


def correlation(symbol: str, other: str) -> float:
    return ASSET_CORRELATIONS.get(symbol, {}).get(other, 0.0)


def parameters_for(tolerance: RiskTolerance | str,
                   overrides: Optional[dict[str, Any]] = None) -> RiskParameters:
    """Defaults with the named preset applied, then ``overrides``."""
    level = RiskTolerance(tolerance)
    params = DEFAULT_RISK_PARAMETERS.with_updates(
        {**RISK_TOLERANCE_PRESETS[level], "risk_tolerance": level}
    )
    if overrides:
        params = params.with_updates(overrides)
    return params
