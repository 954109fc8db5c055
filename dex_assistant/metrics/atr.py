"""ATR (Average True Range) and NATR (Normalized ATR) calculations"""

from typing import Optional, Sequence

from ..data.models import PriceBar
from .moving_averages import calculate_sma


def calculate_true_range(current: PriceBar, previous: Optional[PriceBar] = None) -> float:
    """
    Calculate True Range for a single bar

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))

    Args:
        current: Current bar
        previous: Previous bar (None for the first bar)

    Returns:
        True Range value
    """
    if previous is None:
        return current.high - current.low

    range_hl = current.high - current.low
    range_hc = abs(current.high - previous.close)
    range_lc = abs(current.low - previous.close)

    return max(range_hl, range_hc, range_lc)


def calculate_atr(bars: Sequence[PriceBar], period: int = 14) -> list[float]:
    """
    Calculate the ATR series as an SMA of true ranges

    True ranges start at the second bar since each needs a previous close.

    Args:
        bars: Bars in chronological order
        period: ATR period (default 14)

    Returns:
        ATR series, empty if fewer than two bars or fewer than period true ranges
    """
    if len(bars) < 2:
        return []

    true_ranges = [calculate_true_range(bars[i], bars[i - 1]) for i in range(1, len(bars))]
    return calculate_sma(true_ranges, period)


def calculate_natr(atr: float, current_price: float) -> float:
    """
    Calculate Normalized Average True Range

    NATR = 100 * ATR / current_price

    Returns:
        NATR percentage value, 0.0 for a non-positive price
    """
    if current_price <= 0:
        return 0.0

    return 100.0 * atr / current_price
