"""
MACD(Moving Average Convergence Divergence) 전략 구현.

[ 지표 ]
    MACD Line   = EMA(fast) - EMA(slow)
    Signal Line = MACD Line의 EMA(signal)
                  처음 signal_period개 MACD 값의 단순평균으로 시드한 뒤 EMA 재귀
    Histogram   = MACD Line - Signal Line

[ 매매 시그널 ]
    골든크로스 (직전 MACD <= Signal, 현재 MACD > Signal) → BUY
    데드크로스 (직전 MACD >= Signal, 현재 MACD < Signal) → SELL

[ 파라미터 ]
    fast_period:   단기 EMA 기간 (기본 12일)
    slow_period:   장기 EMA 기간 (기본 26일)
    signal_period: 시그널 EMA 기간 (기본 9일)
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from journal_backtest.core import indicators
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import Signal, StrategyType, TradingStrategy
from journal_backtest.strategies import register


@register(StrategyType.MACD)
class MACDStrategy(TradingStrategy):
    """MACD / Signal 교차 전략."""

    DEFAULT_PARAMS = {
        "fast_period": 12,
        "slow_period": 26,
        "signal_period": 9,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name=StrategyType.MACD.value, params=merged)

        self.fast_period = self._int_param("fast_period")
        self.slow_period = self._int_param("slow_period", minimum=2)
        self.signal_period = self._int_param("signal_period")

        if self.fast_period >= self.slow_period:
            raise ValidationError(
                f"fast_period({self.fast_period})는 slow_period({self.slow_period})보다 작아야 합니다",
                field="fast_period",
            )

    def minimum_data_points(self) -> int:
        return self.slow_period + self.signal_period

    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        if index < self.minimum_data_points() or index >= len(prices):
            return Signal.HOLD

        macd_line, signal_line = self.calculate_lines(prices, index)
        prev_macd, current_macd = macd_line[-2], macd_line[-1]
        prev_signal, current_signal = signal_line[-2], signal_line[-1]

        if indicators.is_golden_cross(prev_macd, current_macd, prev_signal, current_signal):
            return Signal.BUY
        if indicators.is_dead_cross(prev_macd, current_macd, prev_signal, current_signal):
            return Signal.SELL
        return Signal.HOLD

    def calculate_lines(self, prices: Sequence[PriceBar], index: int) -> tuple[list[Decimal], list[Decimal]]:
        """index까지의 MACD 라인과 시그널 라인.

        두 리스트 모두 시그널 라인이 정의되는 봉(slow + signal - 2)부터 index까지의 값.
        """
        closes = [prices[i].close for i in range(index + 1)]
        fast = indicators.ema_series(closes, self.fast_period)
        slow = indicators.ema_series(closes, self.slow_period)

        # MACD는 장기 EMA가 시드되는 봉(slow_period - 1)부터 정의됨
        macd = [f - s for f, s in zip(fast[self.slow_period - 1:], slow[self.slow_period - 1:])]
        signal = indicators.ema_series(macd, self.signal_period)

        start = self.signal_period - 1
        return macd[start:], signal[start:]

    @property
    def label(self) -> str:
        return f"MACD ({self.fast_period}/{self.slow_period}/{self.signal_period})"

    @property
    def description(self) -> str:
        return (
            f"MACD({self.fast_period}, {self.slow_period})와 Signal({self.signal_period}) 교차 시 매매. "
            "골든크로스 매수, 데드크로스 매도"
        )
