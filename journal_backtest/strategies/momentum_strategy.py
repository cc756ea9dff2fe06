"""
모멘텀 전략 구현.

[ 전략 흐름 ]
    N일 수익률(%) = (현재 종가 - N일 전 종가) / N일 전 종가 × 100
        ├── 직전 <= entry_threshold, 현재 > entry_threshold → BUY
        └── 직전 >= exit_threshold,  현재 < exit_threshold  → SELL

[ 파라미터 ]
    period:          모멘텀 기간 (일)
    entry_threshold: 매수 진입 임계값 (%)
    exit_threshold:  매도 청산 임계값 (%)
"""

from collections.abc import Sequence
from typing import Any

from journal_backtest.core import indicators
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.trading_strategy import Signal, StrategyType, TradingStrategy
from journal_backtest.strategies import register
from journal_backtest.utils.money import to_decimal


@register(StrategyType.MOMENTUM)
class MomentumStrategy(TradingStrategy):
    """N일 모멘텀 임계값 돌파 전략."""

    DEFAULT_PARAMS = {
        "period": 20,
        "entry_threshold": 0.0,
        "exit_threshold": 0.0,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name=StrategyType.MOMENTUM.value, params=merged)

        self.period = self._int_param("period")
        self.entry_threshold = self._float_param("entry_threshold", minimum=-100)
        self.exit_threshold = self._float_param("exit_threshold", minimum=-100)
        self._entry_level = to_decimal(self.entry_threshold)
        self._exit_level = to_decimal(self.exit_threshold)

    def minimum_data_points(self) -> int:
        return self.period + 2

    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        if index < self.minimum_data_points() or index >= len(prices):
            return Signal.HOLD

        current = indicators.momentum(prices, index, self.period)
        prev = indicators.momentum(prices, index - 1, self.period)

        if indicators.crossed_above(prev, current, self._entry_level):
            return Signal.BUY
        if indicators.crossed_below(prev, current, self._exit_level):
            return Signal.SELL
        return Signal.HOLD

    @property
    def label(self) -> str:
        return f"Momentum ({self.period} days)"

    @property
    def description(self) -> str:
        return (
            f"{self.period}일 모멘텀(수익률)이 {self.entry_threshold:.1f}% 돌파 시 매수, "
            f"{self.exit_threshold:.1f}% 하향 돌파 시 매도"
        )
