"""Bollinger Bands"""

import math
from typing import Sequence

from ..models.indicators import BollingerBands
from .moving_averages import calculate_sma


def calculate_bollinger_bands(prices: Sequence[float], period: int = 20,
                              std_dev: float = 2.0) -> BollingerBands:
    """
    Calculate Bollinger Bands

    Middle band is the SMA; upper and lower are offset by ``std_dev`` population
    standard deviations of the same trailing window.
    """
    middle = calculate_sma(prices, period)
    upper = []
    lower = []

    for i, mean in enumerate(middle):
        window = prices[i:i + period]
        variance = sum((p - mean) ** 2 for p in window) / period
        deviation = math.sqrt(variance)
        upper.append(mean + deviation * std_dev)
        lower.append(mean - deviation * std_dev)

    return BollingerBands(upper=upper, middle=middle, lower=lower)
