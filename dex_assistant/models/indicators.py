"""Technical indicator snapshot computed from a price bar series"""

from dataclasses import dataclass, field
from typing import Optional, Sequence


def latest(series: Sequence[float]) -> Optional[float]:
    """Last value of a series, None when empty."""
    return series[-1] if series else None


@dataclass(frozen=True)
class BollingerBands:
    """Upper, middle and lower band series of equal length."""
    upper: list[float] = field(default_factory=list)
    middle: list[float] = field(default_factory=list)
    lower: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class TechnicalIndicators:
    """
    Indicator series over one bar sequence.

    Each series is shorter than the input by its lookback (no warm-up padding),
    except EMA and raw volume which match the input length.
    """
    sma: list[float] = field(default_factory=list)
    ema: list[float] = field(default_factory=list)
    rsi: list[float] = field(default_factory=list)
    atr: list[float] = field(default_factory=list)
    volume: list[float] = field(default_factory=list)
    bollinger: BollingerBands = field(default_factory=BollingerBands)

    @property
    def current_sma(self) -> Optional[float]:
        return latest(self.sma)

    @property
    def current_ema(self) -> Optional[float]:
        return latest(self.ema)

    @property
    def current_rsi(self) -> Optional[float]:
        return latest(self.rsi)

    @property
    def current_atr(self) -> Optional[float]:
        return latest(self.atr)

    def trailing_volume_average(self, period: int = 20) -> Optional[float]:
        """Average of the ``period`` volumes before the latest bar."""
        history = self.volume[:-1][-period:]
        if not history:
            return None
        return sum(history) / len(history)
