"""
RSI(상대강도지수) 전략 구현.

[ 전략 흐름 ]
    매 봉 generate_signal() 호출됨
        ├── 현재/직전 봉의 RSI 계산 (core/indicators.py::rsi)
        ├── 과매도 탈출 (직전 < oversold, 현재 >= oversold)       → BUY
        └── 과매수 이탈 (직전 > overbought, 현재 <= overbought)   → SELL

[ 파라미터 ]
    period:          RSI 기간 (일)
    overbought_level: 과매수 기준 (0~100)
    oversold_level:   과매도 기준 (0~100), overbought_level보다 작아야 함
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from journal_backtest.core import indicators
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import Signal, StrategyType, TradingStrategy
from journal_backtest.strategies import register
from journal_backtest.utils.money import to_decimal


@register(StrategyType.RSI)
class RSIStrategy(TradingStrategy):
    """RSI 과매수/과매도 반전 전략."""

    DEFAULT_PARAMS = {
        "period": 14,
        "overbought_level": 70,
        "oversold_level": 30,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name=StrategyType.RSI.value, params=merged)

        self.period = self._int_param("period")
        self.overbought_level = self._float_param("overbought_level", minimum=0, maximum=100)
        self.oversold_level = self._float_param("oversold_level", minimum=0, maximum=100)

        if self.oversold_level >= self.overbought_level:
            raise ValidationError(
                f"oversold_level({self.oversold_level})는 overbought_level({self.overbought_level})보다 작아야 합니다",
                field="oversold_level",
            )
        self._overbought: Decimal = to_decimal(self.overbought_level)
        self._oversold: Decimal = to_decimal(self.oversold_level)

    def minimum_data_points(self) -> int:
        return self.period + 2

    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        if index < self.minimum_data_points() or index >= len(prices):
            return Signal.HOLD

        current_rsi = indicators.rsi(prices, index, self.period)
        prev_rsi = indicators.rsi(prices, index - 1, self.period)

        if prev_rsi < self._oversold <= current_rsi:
            return Signal.BUY
        if prev_rsi > self._overbought >= current_rsi:
            return Signal.SELL
        return Signal.HOLD

    @property
    def label(self) -> str:
        return f"RSI ({self.period}, {self.oversold_level:g}/{self.overbought_level:g})"

    @property
    def description(self) -> str:
        return (
            f"RSI {self.period}일 기준, {self.oversold_level:g} 이하에서 반등 시 매수, "
            f"{self.overbought_level:g} 이상에서 하락 시 매도"
        )
