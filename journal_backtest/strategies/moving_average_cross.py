"""
이동평균 교차(MA Cross) 전략 구현.

[ 역할 ]
    core/trading_strategy.py::TradingStrategy의 구현체.
    "단기 이동평균이 장기 이동평균을 상향 돌파하면 매수, 하향 돌파하면 매도"

[ 전략 흐름 ]
    매 봉 generate_signal() 호출됨 (← backtest/engine.py에서)
        ├── 현재/직전 봉의 단기·장기 MA 계산 (SMA 또는 EMA)
        ├── 골든크로스 (직전 단기 <= 장기, 현재 단기 > 장기) → BUY
        └── 데드크로스 (직전 단기 >= 장기, 현재 단기 < 장기) → SELL

[ 파라미터 ]
    short_period: 단기 이동평균 기간 (일)
    long_period:  장기 이동평균 기간 (일), short_period보다 커야 함
    ma_type:      "SMA" 또는 "EMA"
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from journal_backtest.core import indicators
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import Signal, StrategyType, TradingStrategy
from journal_backtest.strategies import register

MA_TYPES = ("SMA", "EMA")


@register(StrategyType.MOVING_AVERAGE)
class MovingAverageCrossStrategy(TradingStrategy):
    """이동평균 교차 전략 구현체."""

    DEFAULT_PARAMS = {
        "short_period": 20,
        "long_period": 60,
        "ma_type": "SMA",
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name=StrategyType.MOVING_AVERAGE.value, params=merged)

        self.short_period = self._int_param("short_period")
        self.long_period = self._int_param("long_period", minimum=2)
        self.ma_type = str(self._require("ma_type")).upper()

        if self.short_period >= self.long_period:
            raise ValidationError(
                f"short_period({self.short_period})는 long_period({self.long_period})보다 작아야 합니다",
                field="short_period",
            )
        if self.ma_type not in MA_TYPES:
            raise ValidationError(f"ma_type은 {MA_TYPES} 중 하나여야 합니다: {self.ma_type}", field="ma_type")
        self.params["ma_type"] = self.ma_type

    def minimum_data_points(self) -> int:
        return self.long_period + 1

    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        """골든크로스 매수, 데드크로스 매도."""
        if index < self.minimum_data_points() or index >= len(prices):
            return Signal.HOLD

        prev_short, short_ma = self._moving_averages(prices, index, self.short_period)
        prev_long, long_ma = self._moving_averages(prices, index, self.long_period)

        if indicators.is_golden_cross(prev_short, short_ma, prev_long, long_ma):
            return Signal.BUY
        if indicators.is_dead_cross(prev_short, short_ma, prev_long, long_ma):
            return Signal.SELL
        return Signal.HOLD

    def _moving_averages(self, prices: Sequence[PriceBar], index: int, period: int) -> tuple[Decimal, Decimal]:
        """(직전 봉 MA, 현재 봉 MA)."""
        if self.ma_type == "EMA":
            closes = [prices[i].close for i in range(index + 1)]
            series = indicators.ema_series(closes, period, scale=4)
            return series[index - 1], series[index]
        return (
            indicators.sma(prices, index - 1, period, scale=4),
            indicators.sma(prices, index, period, scale=4),
        )

    @property
    def label(self) -> str:
        return f"MA Cross ({self.short_period}/{self.long_period} {self.ma_type})"

    @property
    def description(self) -> str:
        return f"{self.short_period}일 이동평균이 {self.long_period}일 이동평균을 상향 돌파하면 매수, 하향 돌파하면 매도"
