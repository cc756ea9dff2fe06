"""
볼린저 밴드 전략 구현.

[ 지표 ]
    중심선 = SMA(period)
    상단   = 중심선 + std_dev_multiplier × σ(period)
    하단   = 중심선 - std_dev_multiplier × σ(period)
    σ는 최근 period개 종가의 모표준편차.

[ 매매 시그널 ]
    하단 반등 (직전 종가 <= 직전 하단, 현재 종가 > 현재 하단) → BUY
    상단 이탈 (직전 종가 >= 직전 상단, 현재 종가 < 현재 상단) → SELL
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from journal_backtest.core import indicators
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import Signal, StrategyType, TradingStrategy
from journal_backtest.strategies import register
from journal_backtest.utils.money import quantize, to_decimal


@dataclass(frozen=True)
class BollingerBands:
    middle: Decimal
    upper: Decimal
    lower: Decimal
    standard_deviation: Decimal


@register(StrategyType.BOLLINGER_BAND)
class BollingerBandStrategy(TradingStrategy):
    """볼린저 밴드 반등/이탈 전략."""

    DEFAULT_PARAMS = {
        "period": 20,
        "std_dev_multiplier": 2.0,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name=StrategyType.BOLLINGER_BAND.value, params=merged)

        self.period = self._int_param("period", minimum=2)
        self.std_dev_multiplier = self._float_param("std_dev_multiplier", minimum=0)
        if self.std_dev_multiplier == 0:
            raise ValidationError("std_dev_multiplier는 0보다 커야 합니다", field="std_dev_multiplier")
        self._multiplier = to_decimal(self.std_dev_multiplier)

    def minimum_data_points(self) -> int:
        return self.period + 1

    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        if index < self.minimum_data_points() or index >= len(prices):
            return Signal.HOLD

        current = self.calculate_bands(prices, index)
        prev = self.calculate_bands(prices, index - 1)
        current_close = prices[index].close
        prev_close = prices[index - 1].close

        if prev_close <= prev.lower and current_close > current.lower:
            return Signal.BUY
        if prev_close >= prev.upper and current_close < current.upper:
            return Signal.SELL
        return Signal.HOLD

    def calculate_bands(self, prices: Sequence[PriceBar], index: int) -> BollingerBands:
        middle = indicators.sma(prices, index, self.period)
        std_dev = indicators.standard_deviation(prices, index, self.period, middle)
        width = quantize(std_dev * self._multiplier)
        return BollingerBands(
            middle=middle,
            upper=middle + width,
            lower=middle - width,
            standard_deviation=std_dev,
        )

    @property
    def label(self) -> str:
        return f"Bollinger Band ({self.period}, {self.std_dev_multiplier:.1f})"

    @property
    def description(self) -> str:
        return (
            f"{self.period}일 볼린저 밴드 ({self.std_dev_multiplier:.1f} σ) 기준, "
            "하단 밴드 반등 시 매수, 상단 밴드 하락 시 매도"
        )
