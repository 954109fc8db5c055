"""Position sizing and risk-reward calculations"""

from typing import Sequence

from ..config.defaults import StrategyRiskParams
from ..errors import MalformedDataError
from ..models.plan import (
    PositionSizing,
    SignalDirection,
    StopLoss,
    TakeProfit,
    TakeProfitTarget,
    TradingSignal,
)

ATR_STOP_MULTIPLIER = 2.0
MIN_MARGIN_FRACTION = 0.01
DEFAULT_TARGET_MULTIPLIERS = (0.5, 1.0, 1.5)


def calculate_position_size(
    signal: TradingSignal,
    account_balance: float,
    risk: StrategyRiskParams,
    current_price: float,
    atr: float,
) -> PositionSizing:
    """
    Size a position from account risk and stop distance

    riskAmount = balance * accountRisk%
    stopDistance = max(2 * ATR, price * stopLoss%)
    notional = min(riskAmount / stopDistance, balance * maxPositionSize%)
    leverage = min(notional / (notional * 1%), maxLeverage)
    margin = notional / leverage

    Raises:
        MalformedDataError: If price and ATR are both non-positive
    """
    risk_amount = account_balance * risk.account_risk_percent / 100
    stop_distance = max(atr * ATR_STOP_MULTIPLIER, current_price * risk.stop_loss_percent / 100)
    if stop_distance <= 0:
        raise MalformedDataError(
            f"Cannot size a position with stop distance {stop_distance}",
            raw_data=f"price={current_price} atr={atr}",
        )

    base_notional = risk_amount / stop_distance
    max_notional = account_balance * risk.max_position_size / 100
    notional = max(0.0, min(base_notional, max_notional))

    if notional > 0:
        required_margin = notional * MIN_MARGIN_FRACTION
        leverage = min(notional / required_margin, risk.max_leverage)
    else:
        leverage = min(1 / MIN_MARGIN_FRACTION, risk.max_leverage)
    margin = notional / leverage

    return PositionSizing(
        notional_size=notional,
        leverage=leverage,
        margin=margin,
        risk_amount=risk_amount,
        stop_loss_distance=stop_distance,
    )


def _offset(price: float, percent: float, direction: SignalDirection, favourable: bool) -> float:
    sign = 1 if (direction == SignalDirection.LONG) == favourable else -1
    return price * (1 + sign * percent / 100)


def calculate_stop_loss_and_take_profit(
    signal: TradingSignal,
    current_price: float,
    risk: StrategyRiskParams,
    target_multipliers: Sequence[float] = DEFAULT_TARGET_MULTIPLIERS,
) -> tuple[StopLoss, TakeProfit]:
    """
    Percent-offset stop and target prices, mirrored for shorts

    The target ladder scales the base take-profit percent by each multiplier.
    """
    direction = signal.direction
    stop_loss = StopLoss(
        price=_offset(current_price, risk.stop_loss_percent, direction, favourable=False),
        percent=risk.stop_loss_percent,
    )

    targets = tuple(
        TakeProfitTarget(
            price=_offset(current_price, risk.take_profit_percent * m, direction, favourable=True),
            percent=risk.take_profit_percent * m,
        )
        for m in target_multipliers
    )
    take_profit = TakeProfit(
        price=_offset(current_price, risk.take_profit_percent, direction, favourable=True),
        percent=risk.take_profit_percent,
        targets=targets,
    )
    return stop_loss, take_profit


def calculate_risk_reward(entry: float, stop_loss: float, take_profit: float) -> float:
    """|takeProfit - entry| / |entry - stopLoss|, 0.0 when the stop sits at entry"""
    risk = abs(entry - stop_loss)
    if risk == 0:
        return 0.0
    return abs(take_profit - entry) / risk
