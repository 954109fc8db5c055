"""Indicator calculator coordinating all technical indicator calculations"""

from typing import Optional, Sequence

import structlog

from ..config.defaults import IndicatorParams
from ..data.models import PriceBar
from ..errors import InsufficientDataError
from ..models.indicators import TechnicalIndicators
from .atr import calculate_atr
from .bollinger import calculate_bollinger_bands
from .moving_averages import calculate_ema, calculate_sma
from .rsi import calculate_rsi
from .volume import VolumeAnalysis, analyze_volume

logger = structlog.get_logger(__name__)


class IndicatorCalculator:
    """
    Computes the full indicator snapshot for a bar series.

    Stateless apart from its lookback configuration, so one instance can be
    shared by the strategy engine and the radar.
    """

    def __init__(self, params: Optional[IndicatorParams] = None):
        self.params = params or IndicatorParams()

    def compute(self, bars: Sequence[PriceBar]) -> TechnicalIndicators:
        """
        Compute SMA, EMA, RSI, ATR, volume and Bollinger series

        Args:
            bars: Bars in chronological order

        Returns:
            TechnicalIndicators snapshot; series that lack history are empty

        Raises:
            InsufficientDataError: If no bars are supplied
        """
        if not bars:
            raise InsufficientDataError(
                "No price bars to compute indicators from",
                required_count=1,
                available_count=0,
            )

        p = self.params
        closes = [bar.close for bar in bars]

        indicators = TechnicalIndicators(
            sma=calculate_sma(closes, p.sma_period),
            ema=calculate_ema(closes, p.ema_period),
            rsi=calculate_rsi(closes, p.rsi_period),
            atr=calculate_atr(bars, p.atr_period),
            volume=[bar.volume for bar in bars],
            bollinger=calculate_bollinger_bands(closes, p.bollinger_period, p.bollinger_std_dev),
        )

        logger.debug(
            "Indicators computed",
            bars=len(bars),
            sma=indicators.current_sma,
            rsi=indicators.current_rsi,
            atr=indicators.current_atr,
        )
        return indicators

    def volume_analysis(self, bars: Sequence[PriceBar]) -> VolumeAnalysis:
        return analyze_volume(bars, self.params.volume_period)


def compute_indicators(bars: Sequence[PriceBar],
                       params: Optional[IndicatorParams] = None) -> TechnicalIndicators:
    """Convenience wrapper around ``IndicatorCalculator.compute``."""
    return IndicatorCalculator(params).compute(bars)
