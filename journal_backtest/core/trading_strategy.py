"""
매매 전략 추상 클래스 정의.

[ 역할 ]
    시그널 생성 로직의 인터페이스를 정의.
    가격 시계열과 현재 인덱스를 받아 매수/매도/홀드 시그널을 반환한다.
    포지션/현금 상태는 전략이 알 필요가 없다 (시뮬레이터 책임).

[ 계약 ]
    - generate_signal()은 순수 함수: 내부 상태 변경, I/O 없음
    - index < minimum_data_points() 이면 항상 HOLD
    - 파라미터는 생성 시점에 검증하고 이후 변경하지 않는다

[ 구현체 ]
    - strategies/moving_average_cross.py::MovingAverageCrossStrategy
    - strategies/rsi_strategy.py::RSIStrategy
    - strategies/macd_strategy.py::MACDStrategy
    - strategies/bollinger_band_strategy.py::BollingerBandStrategy
    - strategies/momentum_strategy.py::MomentumStrategy

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()에서
      매 봉마다 generate_signal()을 호출하여 시뮬레이터에 전달
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from typing import Any

from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import ValidationError


class Signal(Enum):
    """전략이 반환하는 시그널 종류."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class StrategyType(Enum):
    """전략 유형. value는 레지스트리 이름과 같다."""
    MOVING_AVERAGE = "moving_average"
    RSI = "rsi"
    BOLLINGER_BAND = "bollinger_band"
    MOMENTUM = "momentum"
    MACD = "macd"

    @property
    def label(self) -> str:
        return _STRATEGY_LABELS[self][0]

    @property
    def description(self) -> str:
        return _STRATEGY_LABELS[self][1]


_STRATEGY_LABELS = {
    StrategyType.MOVING_AVERAGE: ("이동평균", "이동평균선 기반 전략"),
    StrategyType.RSI: ("RSI", "상대강도지수 기반 전략"),
    StrategyType.BOLLINGER_BAND: ("볼린저밴드", "볼린저밴드 기반 전략"),
    StrategyType.MOMENTUM: ("모멘텀", "가격 모멘텀 기반 전략"),
    StrategyType.MACD: ("MACD", "MACD 기반 전략"),
}


class TradingStrategy(ABC):
    """매매 전략 추상 클래스.

    새 전략을 만들려면 이 클래스를 상속받아 아래를 구현하면 된다:
    - DEFAULT_PARAMS: 파라미터 기본값
    - generate_signal(): 핵심 시그널 생성
    - minimum_data_points(): 시그널 계산에 필요한 최소 봉 수
    - label / description: 표시용 이름과 설명
    """

    DEFAULT_PARAMS: dict[str, Any] = {}
    strategy_type: StrategyType

    def __init__(self, name: str, params: dict[str, Any] | None = None):
        self.name = name
        self.params = params or {}  # DEFAULT_PARAMS와 병합된 최종 파라미터

    @abstractmethod
    def generate_signal(self, prices: Sequence[PriceBar], index: int) -> Signal:
        """매매 시그널 생성.

        Args:
            prices: 날짜 오름차순 가격 시계열 (전체)
            index: 현재 봉 인덱스. prices[index + 1:]는 참조하지 않는다.

        Returns:
            Signal: BUY / SELL / HOLD
        """
        ...

    @abstractmethod
    def minimum_data_points(self) -> int:
        """시그널 계산에 필요한 최소 봉 수."""
        ...

    @property
    @abstractmethod
    def label(self) -> str:
        """표시용 전략 이름 (예: 'MA Cross (20/60 SMA)'). 거래 기록의 시그널 태그로도 쓰인다."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """전략 설명."""
        ...

    @property
    def parameters(self) -> dict[str, Any]:
        """최종 파라미터 사본."""
        return dict(self.params)

    # ─── 파라미터 검증 헬퍼 ──────────────────────────────────────────────

    def _int_param(self, key: str, minimum: int = 1, maximum: int | None = None) -> int:
        value = self._require(key)
        if isinstance(value, bool):
            raise ValidationError(f"{self.name}.{key}는 정수여야 합니다: {value!r}", field=key)
        try:
            as_float = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{self.name}.{key}는 정수여야 합니다: {value!r}", field=key) from e
        if not math.isfinite(as_float) or as_float != int(as_float):
            raise ValidationError(f"{self.name}.{key}는 정수여야 합니다: {value!r}", field=key)
        result = int(as_float)
        self._check_range(key, result, minimum, maximum)
        return result

    def _float_param(self, key: str, minimum: float | None = None, maximum: float | None = None) -> float:
        value = self._require(key)
        if isinstance(value, bool):
            raise ValidationError(f"{self.name}.{key}는 숫자여야 합니다: {value!r}", field=key)
        try:
            result = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{self.name}.{key}는 숫자여야 합니다: {value!r}", field=key) from e
        if not math.isfinite(result):
            raise ValidationError(f"{self.name}.{key}는 유한한 숫자여야 합니다: {value!r}", field=key)
        self._check_range(key, result, minimum, maximum)
        return result

    def _require(self, key: str) -> Any:
        value = self.params.get(key)
        if value is None:
            raise ValidationError(f"{self.name} 전략의 필수 파라미터 누락: {key}", field=key)
        return value

    def _check_range(self, key: str, value: float, minimum: float | None, maximum: float | None) -> None:
        if minimum is not None and value < minimum:
            raise ValidationError(f"{self.name}.{key}는 {minimum} 이상이어야 합니다: {value}", field=key)
        if maximum is not None and value > maximum:
            raise ValidationError(f"{self.name}.{key}는 {maximum} 이하여야 합니다: {value}", field=key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params!r})"
