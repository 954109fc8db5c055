"""Configuration management: dataclass defaults, YAML symbol overrides, validation."""

from .defaults import (
    AssistantConfig,
    ExecutionParams,
    HistoryParams,
    IndicatorParams,
    PerformanceParams,
    PlanParams,
    RadarFilters,
    RadarParams,
    RadarPreferences,
    StrategyParams,
    StrategyRiskParams,
    TradingHours,
    default_strategies,
    get_default_config,
)
from .loader import (
    ConfigLoader,
    config_from_dict,
    dataclass_to_dict,
    deep_merge,
    radar_preferences_from_dict,
    strategy_from_dict,
)
from .validation import ConfigValidator, ValidationError

__all__ = [
    "AssistantConfig",
    "ExecutionParams",
    "HistoryParams",
    "IndicatorParams",
    "PerformanceParams",
    "PlanParams",
    "RadarFilters",
    "RadarParams",
    "RadarPreferences",
    "StrategyParams",
    "StrategyRiskParams",
    "TradingHours",
    "default_strategies",
    "get_default_config",
    "ConfigLoader",
    "config_from_dict",
    "dataclass_to_dict",
    "deep_merge",
    "radar_preferences_from_dict",
    "strategy_from_dict",
    "ConfigValidator",
    "ValidationError",
]
