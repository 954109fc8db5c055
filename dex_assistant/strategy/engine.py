"""
Strategy engine.

Runs every enabled signal generator over the latest bars for a symbol, keeps
the strongest signal that clears its own strategy's confidence gate, and turns
it into a sized ``TradingPlan``.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog

from ..config.defaults import AssistantConfig, StrategyParams, get_default_config
from ..config.loader import ConfigLoader, dataclass_to_dict, deep_merge, strategy_from_dict
from ..config.validation import ConfigValidator
from ..data.history import PriceHistoryProvider
from ..data.models import PriceBar
from ..errors import DataQualityError, InvalidParameterError, MissingDataError
from ..integrations.base import PriceFeed
from ..logging.config import get_gating_logger, log_gate_decision
from ..metrics.calculator import IndicatorCalculator
from ..models.indicators import TechnicalIndicators
from ..models.plan import (
    EntrySpec,
    MarketRegime,
    TradingPlan,
    TradingSignal,
    VolatilityLevel,
)
from ..utils.time import HOUR_MS, Clock, format_timestamp, system_clock
from .regime import analyze_market_regime
from .signals import SIGNAL_GENERATORS
from .sizing import calculate_position_size, calculate_risk_reward, calculate_stop_loss_and_take_profit

logger = structlog.get_logger(__name__)
gate_logger = get_gating_logger(__name__)


def generate_plan_id(now_ms: int) -> str:
    """Unique plan id of the form ``plan_<ms>_<suffix>``."""
    return f"plan_{now_ms}_{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class StrategyCandidate:
    """A signal that cleared its strategy's confidence gate."""
    name: str
    params: StrategyParams
    signal: TradingSignal


@dataclass(frozen=True)
class PlanCheckResult:
    """Outcome of the lightweight local plan check."""
    valid: bool
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def select_best_signal(candidates: Sequence[StrategyCandidate]) -> Optional[StrategyCandidate]:
    """
    Pick the strongest candidate.

    Equal strength goes to the strategy with the higher ``min_confidence``;
    if that is also equal the earlier-registered strategy wins.
    """
    best: Optional[StrategyCandidate] = None
    for candidate in candidates:
        if best is None:
            best = candidate
            continue
        if candidate.signal.strength > best.signal.strength:
            best = candidate
        elif (candidate.signal.strength == best.signal.strength
              and candidate.params.min_confidence > best.params.min_confidence):
            best = candidate
    return best


class StrategyEngine:
    """Orchestrates indicators, regime, signal generators and sizing."""

    def __init__(
        self,
        price_feed: PriceFeed,
        history: PriceHistoryProvider,
        config: Optional[AssistantConfig] = None,
        config_loader: Optional[ConfigLoader] = None,
        clock: Clock = system_clock,
    ):
        self.price_feed = price_feed
        self.history = history
        self.config = config or (config_loader.defaults if config_loader else get_default_config())
        self.config_loader = config_loader
        self.clock = clock
        self.calculator = IndicatorCalculator(self.config.indicators)
        self._overrides: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Strategy configuration
    # ------------------------------------------------------------------

    def _resolve_strategies(self, symbol: Optional[str] = None) -> dict[str, StrategyParams]:
        """Defaults, then symbol overrides (when a loader is set), then runtime updates."""
        if self.config_loader is not None and symbol:
            loaded = self.config_loader.load_config(symbol, {"strategies": self._overrides})
            return loaded.strategies

        return {
            name: strategy_from_dict(deep_merge(dataclass_to_dict(params), self._overrides.get(name, {})))
            for name, params in self.config.strategies.items()
        }

    def get_available_strategies(self) -> list[str]:
        return list(self.config.strategies)

    def get_strategy_config(self, name: str, symbol: Optional[str] = None) -> Optional[StrategyParams]:
        return self._resolve_strategies(symbol).get(name)

    def update_strategy_config(self, name: str, **changes: Any) -> bool:
        """
        Apply runtime overrides to a strategy.

        ``risk`` may be passed as a dict of risk fields. Returns False for an
        unknown strategy.

        Raises:
            InvalidParameterError: If the changes fail validation
        """
        if name not in self.config.strategies:
            logger.warning("Unknown strategy", strategy=name)
            return False

        errors = ConfigValidator.validate_strategy_params(changes)
        if errors:
            raise InvalidParameterError(f"Invalid configuration for strategy {name}", errors)

        self._overrides[name] = deep_merge(self._overrides.get(name, {}), changes)
        logger.info("Strategy configuration updated", strategy=name, changes=changes)
        return True

    # ------------------------------------------------------------------
    # Plan generation
    # ------------------------------------------------------------------

    def collect_candidates(
        self,
        bars: Sequence[PriceBar],
        indicators: TechnicalIndicators,
        regime: MarketRegime,
        strategies: dict[str, StrategyParams],
        symbol: str = "",
    ) -> list[StrategyCandidate]:
        """Run every enabled generator and keep signals that clear their gate."""
        now = self.clock()
        candidates = []

        for name, generator in SIGNAL_GENERATORS.items():
            params = strategies.get(name)
            if params is None or not params.enabled:
                continue

            signal = generator(bars, indicators, regime, params, now)
            if signal is None:
                continue

            passed = signal.strength >= params.min_confidence
            log_gate_decision(
                gate_logger,
                gate_name=f"{name}_min_confidence",
                passed=passed,
                plan_id=symbol,
                reason=f"strength {signal.strength:.1f} vs minimum {params.min_confidence:.1f}",
                context={"direction": signal.direction.value},
            )
            if passed:
                candidates.append(StrategyCandidate(name=name, params=params, signal=signal))

        return candidates

    async def generate_trading_plan(
        self,
        symbol: str,
        account_balance: float,
        timeframe: str = "4h",
    ) -> Optional[TradingPlan]:
        """
        Build a trading plan for ``symbol`` or return None.

        None is the normal outcome when no strategy qualifies. Feed failures and
        unexpected errors are logged and also yield None.
        """
        try:
            quote = await self.price_feed.get_price(symbol)
            if quote is None:
                raise MissingDataError(f"Unable to fetch price data for {symbol}", symbol=symbol)

            now = self.clock()
            bars = await self.history.get_bars(symbol, quote.price, now)
            indicators = self.calculator.compute(bars)
            regime = analyze_market_regime(bars, indicators)

            strategies = self._resolve_strategies(symbol)
            best = select_best_signal(
                self.collect_candidates(bars, indicators, regime, strategies, symbol)
            )
            if best is None:
                logger.info("No qualifying signal", symbol=symbol, regime=regime.type.value)
                return None

            plan = self._build_plan(symbol, quote.price, timeframe, account_balance,
                                    best, indicators, regime, now)
            logger.info(
                "Trading plan generated",
                plan_id=plan.id,
                symbol=symbol,
                strategy=best.name,
                direction=best.signal.direction.value,
                confidence=plan.confidence,
                risk_reward=round(plan.risk_reward, 2),
            )
            return plan

        except DataQualityError as e:
            logger.warning("Plan generation skipped", symbol=symbol,
                           error=str(e), error_type=type(e).__name__)
            return None
        except Exception as e:
            logger.error("Error generating trading plan", symbol=symbol,
                         error=str(e), error_type=type(e).__name__)
            return None

    def _build_plan(
        self,
        symbol: str,
        price: float,
        timeframe: str,
        account_balance: float,
        best: StrategyCandidate,
        indicators: TechnicalIndicators,
        regime: MarketRegime,
        now: int,
    ) -> TradingPlan:
        plan_params = self.config.plan
        risk = best.params.risk
        signal = best.signal

        atr = indicators.current_atr or price * plan_params.atr_fallback_pct
        sizing = calculate_position_size(signal, account_balance, risk, price, atr)
        stop_loss, take_profit = calculate_stop_loss_and_take_profit(
            signal, price, risk, plan_params.target_multipliers
        )
        risk_reward = calculate_risk_reward(price, stop_loss.price, take_profit.price)

        return TradingPlan(
            id=generate_plan_id(now),
            symbol=symbol,
            strategy=best.name,
            signal=signal,
            entry=EntrySpec(
                price=price,
                order_type="market",
                conditions=(
                    signal.reason,
                    f"Market regime: {regime.type.value} ({regime.direction.value})",
                    f"Signal strength: {signal.strength:.1f}%",
                ),
            ),
            stop_loss=stop_loss,
            take_profit=take_profit,
            position_sizing=sizing,
            market_regime=regime,
            risk_reward=risk_reward,
            confidence=signal.strength,
            timeframe=timeframe,
            created_at=now,
            expiry_time=now + int(plan_params.expiry_hours * HOUR_MS),
            notes=(
                f"Generated at {format_timestamp(now)}",
                f"Market volatility: {regime.volatility.value}",
                f"Trend strength: {regime.strength:.1f}%",
                f"Risk per trade: {risk.account_risk_percent}% of account",
                f"Expected max loss: ${sizing.risk_amount:.2f}",
            ),
        )

    # ------------------------------------------------------------------
    # Local plan check
    # ------------------------------------------------------------------

    def max_leverage_for(self, symbol: str) -> float:
        """Symbol-class leverage ceiling: tokenised stocks are prefixed with ``x``."""
        plan_params = self.config.plan
        return plan_params.stock_max_leverage if symbol.startswith("x") else plan_params.crypto_max_leverage

    def validate_trading_plan(self, plan: TradingPlan, account_balance: float) -> PlanCheckResult:
        """
        Fast local gate ahead of the risk manager.

        Margin affordability and the symbol-class leverage ceiling are errors;
        a weak risk-reward, low confidence and high volatility are warnings.
        """
        plan_params = self.config.plan
        warnings = []
        errors = []
        sizing = plan.position_sizing

        if sizing.margin > account_balance:
            errors.append("Insufficient account balance for required margin")

        max_leverage = self.max_leverage_for(plan.symbol)
        if sizing.leverage > max_leverage:
            errors.append(
                f"Leverage {sizing.leverage:.1f}x exceeds maximum {max_leverage:g}x for {plan.symbol}"
            )

        if plan.risk_reward < plan_params.min_risk_reward:
            warnings.append(
                f"Low risk-reward ratio: {plan.risk_reward:.2f}. Consider waiting for better setup."
            )

        if plan.confidence < plan_params.min_confidence:
            warnings.append(f"Low confidence signal: {plan.confidence:.1f}%. Consider reducing position size.")

        if plan.market_regime.volatility == VolatilityLevel.HIGH:
            warnings.append("High market volatility detected. Consider tighter stops or smaller position.")

        result = PlanCheckResult(valid=not errors, warnings=warnings, errors=errors)
        log_gate_decision(
            gate_logger,
            gate_name="local_plan_check",
            passed=result.valid,
            plan_id=plan.id,
            reason="; ".join(errors) or "ok",
            context={"warnings": len(warnings)},
        )
        return result
