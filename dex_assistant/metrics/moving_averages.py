"""Simple and exponential moving averages"""

from typing import Sequence


def calculate_sma(prices: Sequence[float], period: int) -> list[float]:
    """
    Calculate Simple Moving Average over each trailing window

    Args:
        prices: Price series in chronological order
        period: Window length

    Returns:
        len(prices) - period + 1 averages, or an empty list if the series is shorter than period
    """
    if period <= 0 or len(prices) < period:
        return []

    sma = []
    window_sum = sum(prices[:period])
    sma.append(window_sum / period)
    for i in range(period, len(prices)):
        window_sum += prices[i] - prices[i - period]
        sma.append(window_sum / period)
    return sma


def calculate_ema(prices: Sequence[float], period: int) -> list[float]:
    """
    Calculate Exponential Moving Average

    EMA is seeded with the first price and has the same length as the input,
    unlike SMA which drops its warm-up window.

    Args:
        prices: Price series in chronological order
        period: Smoothing period, multiplier = 2 / (period + 1)

    Returns:
        EMA series of len(prices)
    """
    if not prices:
        return []

    multiplier = 2 / (period + 1)
    ema = [float(prices[0])]
    for price in prices[1:]:
        ema.append(price * multiplier + ema[-1] * (1 - multiplier))
    return ema
