"""Configuration validation utilities."""

import re
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any

    def __str__(self) -> str:
        return f"{self.field}: {self.message} (got {self.value!r})"


_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_RISK_TOLERANCES = ("low", "medium", "high", "extreme")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_indicator_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate indicator lookback periods."""
        errors = []

        for name in ("sma_period", "ema_period", "rsi_period", "atr_period",
                     "bollinger_period", "volume_period"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        if "bollinger_std_dev" in params:
            value = params["bollinger_std_dev"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="bollinger_std_dev",
                    message="Must be a positive number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_strategy_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate a single strategy's parameters."""
        errors = []

        # Validate min_confidence
        if "min_confidence" in params:
            value = params["min_confidence"]
            if not _is_number(value) or value < 0 or value > 100:
                errors.append(ValidationError(
                    field="min_confidence",
                    message="Must be a number between 0 and 100",
                    value=value
                ))

        # Validate enabled
        if "enabled" in params:
            value = params["enabled"]
            if not isinstance(value, bool):
                errors.append(ValidationError(
                    field="enabled",
                    message="Must be a boolean",
                    value=value
                ))

        risk = params.get("risk") or {}

        # Percent fields must be positive and sane
        for name in ("stop_loss_percent", "take_profit_percent", "max_position_size",
                     "account_risk_percent"):
            if name in risk:
                value = risk[name]
                if not _is_number(value) or value <= 0 or value > 100:
                    errors.append(ValidationError(
                        field=f"risk.{name}",
                        message="Must be a positive percentage up to 100",
                        value=value
                    ))

        # Validate max_leverage
        if "max_leverage" in risk:
            value = risk["max_leverage"]
            if not _is_number(value) or value < 1:
                errors.append(ValidationError(
                    field="risk.max_leverage",
                    message="Must be a number of at least 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_risk_parameters(params: dict[str, Any]) -> list[ValidationError]:
        """Validate risk parameter overrides."""
        errors = []

        for name in ("daily_loss_limit", "total_exposure_limit", "max_position_size",
                     "max_correlated_exposure"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        if "max_positions_count" in params:
            value = params["max_positions_count"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="max_positions_count",
                    message="Must be a positive integer",
                    value=value
                ))

        # Fractions in (0, 1]
        for name in ("correlation_threshold", "volatility_adjustment_factor",
                     "high_volatility_threshold", "emergency_stop_loss",
                     "max_drawdown_threshold"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0 or value > 1:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a number between 0 and 1",
                        value=value
                    ))

        if "min_risk_reward_ratio" in params:
            value = params["min_risk_reward_ratio"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="min_risk_reward_ratio",
                    message="Must be a positive number",
                    value=value
                ))

        if "max_leverage_per_asset" in params:
            value = params["max_leverage_per_asset"]
            if not isinstance(value, dict):
                errors.append(ValidationError(
                    field="max_leverage_per_asset",
                    message="Must be a mapping of symbol to leverage",
                    value=value
                ))
            else:
                for symbol, leverage in value.items():
                    if not _is_number(leverage) or leverage < 1:
                        errors.append(ValidationError(
                            field=f"max_leverage_per_asset.{symbol}",
                            message="Must be a number of at least 1",
                            value=leverage
                        ))

        if "risk_tolerance" in params and params["risk_tolerance"] not in _RISK_TOLERANCES:
            errors.append(ValidationError(
                field="risk_tolerance",
                message=f"Must be one of {', '.join(_RISK_TOLERANCES)}",
                value=params["risk_tolerance"]
            ))

        for name in ("auto_stop_loss", "emergency_controls"):
            if name in params and not isinstance(params[name], bool):
                errors.append(ValidationError(
                    field=name,
                    message="Must be a boolean",
                    value=params[name]
                ))

        return errors

    @staticmethod
    def validate_plan_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate trading plan assembly parameters."""
        errors = []

        if "target_multipliers" in params:
            value = params["target_multipliers"]
            if not isinstance(value, (list, tuple)) or not value:
                errors.append(ValidationError(
                    field="target_multipliers",
                    message="Must be a non-empty list of positive numbers",
                    value=value
                ))
            else:
                for index, multiplier in enumerate(value):
                    if not _is_number(multiplier) or multiplier <= 0:
                        errors.append(ValidationError(
                            field=f"target_multipliers[{index}]",
                            message="Must be a positive number",
                            value=multiplier
                        ))

        for name in ("expiry_hours", "crypto_max_leverage", "stock_max_leverage", "min_risk_reward"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_radar_preferences(params: dict[str, Any]) -> list[ValidationError]:
        """Validate radar preference overrides."""
        errors = []

        if "min_confidence" in params:
            value = params["min_confidence"]
            if not _is_number(value) or value < 0 or value > 100:
                errors.append(ValidationError(
                    field="min_confidence",
                    message="Must be a number between 0 and 100",
                    value=value
                ))

        if "max_alerts_per_hour" in params:
            value = params["max_alerts_per_hour"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="max_alerts_per_hour",
                    message="Must be a non-negative integer",
                    value=value
                ))

        hours = params.get("trading_hours") or {}
        for name in ("start", "end"):
            if name in hours:
                value = hours[name]
                if not isinstance(value, str) or not _HHMM.match(value):
                    errors.append(ValidationError(
                        field=f"trading_hours.{name}",
                        message="Must be a HH:MM string",
                        value=value
                    ))

        filters = params.get("filters") or {}
        for name in ("min_volume", "min_price_change", "max_price_change"):
            if name in filters:
                value = filters[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=f"filters.{name}",
                        message="Must be a non-negative number",
                        value=value
                    ))
        if (_is_number(filters.get("min_price_change")) and _is_number(filters.get("max_price_change"))
                and filters["min_price_change"] > filters["max_price_change"]):
            errors.append(ValidationError(
                field="filters.min_price_change",
                message="Must not exceed max_price_change",
                value=filters["min_price_change"]
            ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "indicators" in config:
            errors.extend(ConfigValidator.validate_indicator_params(config["indicators"]))

        for key, strategy in (config.get("strategies") or {}).items():
            for error in ConfigValidator.validate_strategy_params(strategy):
                errors.append(ValidationError(
                    field=f"strategies.{key}.{error.field}",
                    message=error.message,
                    value=error.value
                ))

        if "plan" in config:
            for error in ConfigValidator.validate_plan_params(config["plan"]):
                errors.append(ValidationError(
                    field=f"plan.{error.field}",
                    message=error.message,
                    value=error.value
                ))

        if "radar_preferences" in config:
            errors.extend(ConfigValidator.validate_radar_preferences(config["radar_preferences"]))

        return errors
