"""Volume analysis and RVOL (Relative Volume) calculations"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..data.models import PriceBar
from .moving_averages import calculate_sma

INCREASING_RATIO = 1.2
DECREASING_RATIO = 0.8
TREND_LOOKBACK = 5


def calculate_rvol(current_volume: float, volume_history: Sequence[float], period: int = 20) -> Optional[float]:
    """
    Calculate Relative Volume (RVOL)

    RVOL = current_volume / SMA(volume_history)

    Args:
        current_volume: Current bar volume
        volume_history: Historical volume values (excluding current)
        period: Lookback period for average (default 20)

    Returns:
        RVOL value or None if insufficient data
    """
    if len(volume_history) < period:
        return None

    recent_volumes = list(volume_history)[-period:]
    volume_average = sum(recent_volumes) / len(recent_volumes)

    if volume_average <= 0:
        return None

    return current_volume / volume_average


@dataclass(frozen=True)
class VolumeAnalysis:
    """Trailing average volume, per-bar ratios to it, and a coarse trend."""
    avg_volume: list[float] = field(default_factory=list)
    volume_ratio: list[float] = field(default_factory=list)
    volume_trend: str = "stable"  # 'increasing', 'decreasing' or 'stable'


def analyze_volume(bars: Sequence[PriceBar], period: int = 20) -> VolumeAnalysis:
    """
    Analyze volume against its trailing average

    The trend is taken from the mean of the last five ratios: above 1.2 is
    increasing, below 0.8 decreasing, anything else stable.
    """
    volumes = [bar.volume for bar in bars]
    avg_volume = calculate_sma(volumes, period)
    volume_ratio = []

    for i in range(period - 1, len(volumes)):
        avg = avg_volume[i - period + 1]
        volume_ratio.append(volumes[i] / avg if avg > 0 else 0.0)

    trend = "stable"
    recent = volume_ratio[-TREND_LOOKBACK:]
    if recent:
        mean_ratio = sum(recent) / len(recent)
        if mean_ratio > INCREASING_RATIO:
            trend = "increasing"
        elif mean_ratio < DECREASING_RATIO:
            trend = "decreasing"

    return VolumeAnalysis(avg_volume=avg_volume, volume_ratio=volume_ratio, volume_trend=trend)
