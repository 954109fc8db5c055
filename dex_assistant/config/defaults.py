"""Default configuration parameters for the trading assistant."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class IndicatorParams:
    """Lookback periods for the technical indicators."""
    sma_period: int = 20
    ema_period: int = 12
    rsi_period: int = 14
    atr_period: int = 14
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    volume_period: int = 20


@dataclass(frozen=True)
class StrategyRiskParams:
    """Per-strategy sizing inputs, all percentages."""
    stop_loss_percent: float = 2.0
    take_profit_percent: float = 4.0
    max_leverage: float = 100.0
    max_position_size: float = 10.0          # % of account balance
    account_risk_percent: float = 1.0        # % of account balance risked per trade


@dataclass(frozen=True)
class StrategyParams:
    """A rule-based strategy and its gate."""
    name: str
    description: str = ""
    enabled: bool = True
    timeframes: tuple[str, ...] = ("1h", "4h")
    min_confidence: float = 70.0
    risk: StrategyRiskParams = field(default_factory=StrategyRiskParams)


def default_strategies() -> dict[str, StrategyParams]:
    """Built-in strategies in registration order."""
    return {
        "trend_breakout": StrategyParams(
            name="Trend Breakout",
            description="Identifies strong trending moves with volume confirmation",
            timeframes=("4h", "1d"),
            min_confidence=70.0,
            risk=StrategyRiskParams(stop_loss_percent=2.0),
        ),
        "support_resistance": StrategyParams(
            name="Support/Resistance Bounce",
            description="Trades bounces off key support and resistance levels",
            timeframes=("1h", "4h"),
            min_confidence=65.0,
            risk=StrategyRiskParams(stop_loss_percent=1.5),
        ),
        "momentum_continuation": StrategyParams(
            name="Momentum Continuation",
            description="Follows strong momentum after pullbacks",
            timeframes=("1h", "4h"),
            min_confidence=75.0,
            risk=StrategyRiskParams(stop_loss_percent=2.0),
        ),
    }


@dataclass(frozen=True)
class PlanParams:
    """Trading plan assembly parameters."""
    expiry_hours: float = 4.0
    atr_fallback_pct: float = 0.02           # ATR stand-in when history is too short
    target_multipliers: tuple[float, ...] = (0.5, 1.0, 1.5)
    crypto_max_leverage: float = 100.0
    stock_max_leverage: float = 3.0          # tokenised stocks, symbols starting with "x"
    min_risk_reward: float = 1.5
    min_confidence: float = 70.0


@dataclass(frozen=True)
class RadarParams:
    """Opportunity radar scheduling parameters."""
    symbols: tuple[str, ...] = ("BTC", "ETH", "SOL", "xAAPL", "xTSLA")
    scan_interval_seconds: float = 300.0
    max_history_length: int = 100
    alert_cooldown_seconds: float = 900.0
    incremental_extra_symbols: int = 3
    history_retention_hours: float = 24.0


@dataclass(frozen=True)
class RadarFilters:
    """Quote filters applied before any detector runs."""
    min_volume: float = 100000.0
    min_price_change: float = 0.5            # |24h change| %, lower bound
    max_price_change: float = 15.0           # |24h change| %, upper bound


@dataclass(frozen=True)
class TradingHours:
    """Optional HH:MM scanning window."""
    enabled: bool = False
    start: str = "09:30"
    end: str = "16:00"


@dataclass(frozen=True)
class RadarPreferences:
    """User-facing radar preferences."""
    enabled_symbols: tuple[str, ...] = ("BTC", "ETH", "SOL", "xAAPL", "xTSLA")
    enabled_strategies: tuple[str, ...] = ("breakout", "reversal", "momentum", "volume_spike")
    min_confidence: float = 70.0
    max_alerts_per_hour: int = 10
    notification_methods: tuple[str, ...] = ("in_app",)
    timeframes: tuple[str, ...] = ("1h", "4h")
    trading_hours: TradingHours = field(default_factory=TradingHours)
    filters: RadarFilters = field(default_factory=RadarFilters)


@dataclass(frozen=True)
class ExecutionParams:
    """Execution engine parameters."""
    default_leverage: float = 10.0
    slippage_tolerance: float = 0.01
    deposit_buffer: float = 0.1              # fraction of required margin
    step_timeout_seconds: float = 300.0
    trading_fee_rate: float = 0.001
    approve_gas: float = 0.001
    deposit_gas: float = 0.002
    withdraw_gas: float = 0.002
    position_gas: float = 0.003
    crypto_max_leverage: float = 100.0
    stock_max_leverage: float = 3.0


@dataclass(frozen=True)
class PerformanceParams:
    """Performance tracker timers and alert thresholds."""
    reprice_interval_seconds: float = 30.0
    alert_check_interval_seconds: float = 60.0
    max_alerts: int = 100
    consecutive_loss_threshold: int = 5
    consecutive_loss_high: int = 7
    recent_trade_window: int = 10
    drawdown_threshold: float = 10.0
    drawdown_critical: float = 20.0
    storage_key: str = "performance_tracker_data"
    alerts_storage_key: str = "performance_alerts"


@dataclass(frozen=True)
class HistoryParams:
    """Synthetic price history parameters."""
    bar_count: int = 50
    bar_interval_ms: int = 3_600_000
    start_discount: float = 0.05             # first bar starts this far below the seed price
    step_pct: float = 0.01                   # max per-bar move
    seed: int = 42


@dataclass(frozen=True)
class AssistantConfig:
    """Complete default configuration."""
    indicators: IndicatorParams
    strategies: dict[str, StrategyParams]
    plan: PlanParams
    radar: RadarParams
    radar_preferences: RadarPreferences
    execution: ExecutionParams
    performance: PerformanceParams
    history: HistoryParams


def get_default_config() -> AssistantConfig:
    """Get the default configuration instance."""
    return AssistantConfig(
        indicators=IndicatorParams(),
        strategies=default_strategies(),
        plan=PlanParams(),
        radar=RadarParams(),
        radar_preferences=RadarPreferences(),
        execution=ExecutionParams(),
        performance=PerformanceParams(),
        history=HistoryParams(),
    )
