"""RSI (Relative Strength Index) calculation"""

from typing import Sequence

# Substituted for a zero average loss
ZERO_LOSS_EPSILON = 0.0001


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    rs = avg_gain / (avg_loss or ZERO_LOSS_EPSILON)
    return 100 - 100 / (1 + rs)


def calculate_rsi(prices: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate RSI with Wilder smoothing

    The first ``period`` price changes seed the average gain and loss and give
    the first value; every later change is folded in with Wilder smoothing and
    gives one more.

    Args:
        prices: Price series in chronological order
        period: RSI period (default 14)

    Returns:
        len(prices) - period values in [0, 100], or an empty list if len(prices) < period + 1
    """
    if period <= 0 or len(prices) < period + 1:
        return []

    gains = []
    losses = []
    for i in range(1, len(prices)):
        change = prices[i] - prices[i - 1]
        gains.append(change if change > 0 else 0.0)
        losses.append(-change if change < 0 else 0.0)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    rsi = [_rsi_value(avg_gain, avg_loss)]
    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rsi.append(_rsi_value(avg_gain, avg_loss))

    return rsi
