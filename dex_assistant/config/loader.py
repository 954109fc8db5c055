"""Configuration loader with 3-tier parameter precedence."""

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

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
    get_default_config,
)


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: AssistantConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_symbol_config(self, symbol: str) -> dict[str, Any]:
        """Load symbol-specific configuration overrides."""
        symbols_file = self.config_dir / "symbols.yaml"

        if not symbols_file.exists():
            return {}

        with open(symbols_file) as f:
            symbols_config = yaml.safe_load(f) or {}

        return (symbols_config.get("symbols") or {}).get(symbol, {}) or {}  # type: ignore[no-any-return]

    def merge_config(
        self,
        symbol: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Per-call overrides (highest priority)
        2. Symbol-specific overrides from symbols.yaml
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        symbol_config = self.load_symbol_config(symbol)
        config = self._deep_merge(config, symbol_config)

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load_config(
        self,
        symbol: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> AssistantConfig:
        """Merge configuration for ``symbol`` and rebuild the typed dataclasses."""
        return config_from_dict(self.merge_config(symbol, overrides))

    def _dataclass_to_dict(self, obj: Any) -> Any:
        return dataclass_to_dict(obj)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        return deep_merge(base, override)


def dataclass_to_dict(obj: Any) -> Any:
    """Convert nested dataclasses (and dicts of them) to plain dictionaries."""
    if dataclasses.is_dataclass(obj):
        return {f.name: dataclass_to_dict(getattr(obj, f.name))
                for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {key: dataclass_to_dict(value) for key, value in obj.items()}
    if isinstance(obj, tuple):
        return list(obj)
    return obj


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _build(cls: type, data: Optional[dict[str, Any]]) -> Any:
    """Build a flat dataclass from a dict, ignoring unknown keys and tupling lists."""
    data = data or {}
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.name in data:
            value = data[f.name]
            kwargs[f.name] = tuple(value) if isinstance(value, list) else value
    return cls(**kwargs)


def strategy_from_dict(data: dict[str, Any]) -> StrategyParams:
    """Build ``StrategyParams`` from its dict form."""
    flat = {k: v for k, v in data.items() if k != "risk"}
    params = _build(StrategyParams, flat)
    return dataclasses.replace(params, risk=_build(StrategyRiskParams, data.get("risk")))


def radar_preferences_from_dict(data: Optional[dict[str, Any]]) -> RadarPreferences:
    """Build ``RadarPreferences`` from its dict form."""
    data = data or {}
    flat = {k: v for k, v in data.items() if k not in ("trading_hours", "filters")}
    prefs = _build(RadarPreferences, flat)
    return dataclasses.replace(
        prefs,
        trading_hours=_build(TradingHours, data.get("trading_hours")),
        filters=_build(RadarFilters, data.get("filters")),
    )


def config_from_dict(data: dict[str, Any]) -> AssistantConfig:
    """Rebuild an ``AssistantConfig`` from a merged configuration dict."""
    strategies = {
        key: strategy_from_dict({"name": key, **value})
        for key, value in (data.get("strategies") or {}).items()
    }
    return AssistantConfig(
        indicators=_build(IndicatorParams, data.get("indicators")),
        strategies=strategies,
        plan=_build(PlanParams, data.get("plan")),
        radar=_build(RadarParams, data.get("radar")),
        radar_preferences=radar_preferences_from_dict(data.get("radar_preferences")),
        execution=_build(ExecutionParams, data.get("execution")),
        performance=_build(PerformanceParams, data.get("performance")),
        history=_build(HistoryParams, data.get("history")),
    )
