"""Regime detection, signal generators, position sizing and the strategy engine"""

from .engine import (
    PlanCheckResult,
    StrategyCandidate,
    StrategyEngine,
    generate_plan_id,
    select_best_signal,
)
from .regime import analyze_market_regime
from .signals import (
    SIGNAL_GENERATORS,
    momentum_continuation,
    support_resistance_bounce,
    trend_breakout,
)
from .sizing import (
    calculate_position_size,
    calculate_risk_reward,
    calculate_stop_loss_and_take_profit,
)

__all__ = [
    "PlanCheckResult",
    "StrategyCandidate",
    "StrategyEngine",
    "generate_plan_id",
    "select_best_signal",
    "analyze_market_regime",
    "SIGNAL_GENERATORS",
    "momentum_continuation",
    "support_resistance_bounce",
    "trend_breakout",
    "calculate_position_size",
    "calculate_risk_reward",
    "calculate_stop_loss_and_take_profit",
]
