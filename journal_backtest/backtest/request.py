"""
백테스트 요청 정의.

[ 역할 ]
    엔진 입력값(BacktestRequest)과 검증 로직.
    퍼센트 필드는 모두 퍼센트 단위 (commission_rate=0.015 → 0.015%).

[ 검증 규칙 ]
    - 숫자 필드는 유한값 (NaN, Infinity 불가)
    - start_date <= end_date
    - initial_capital > 0
    - 0 < position_size_percent <= 100
    - max_positions >= 1
    - commission_rate, slippage >= 0
    - stop_loss_percent: 0 < x < 100 (None이면 미사용)
    - take_profit_percent, trailing_stop_percent: x > 0 (trailing은 < 100)
    위반 시 ValidationError.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest() 시작 시 validate()
    - backtest/optimizer.py에서 파라미터 조합별 요청 생성 (with_strategy_params)
    - utils/config.py::BacktestConfig.to_request()
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any

from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import StrategyType
from journal_backtest.strategies import normalize_params, resolve_strategy_type
from journal_backtest.utils.money import HUNDRED, to_decimal

DEFAULT_POSITION_SIZE_PERCENT = Decimal("100")
DEFAULT_MAX_POSITIONS = 1
DEFAULT_COMMISSION_RATE = Decimal("0.015")  # 0.015%
DEFAULT_SLIPPAGE = Decimal("0.1")           # 0.1%

_DECIMAL_FIELDS = (
    "initial_capital",
    "position_size_percent",
    "commission_rate",
    "slippage",
    "stop_loss_percent",
    "take_profit_percent",
    "trailing_stop_percent",
)


@dataclass(frozen=True)
class BacktestRequest:
    """백테스트 요청. 생성 후 변경 불가."""
    symbol: str
    strategy_type: StrategyType
    start_date: date
    end_date: date
    initial_capital: Decimal
    strategy_params: dict[str, Any] = field(default_factory=dict)
    position_size_percent: Decimal = DEFAULT_POSITION_SIZE_PERCENT
    max_positions: int = DEFAULT_MAX_POSITIONS
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    slippage: Decimal = DEFAULT_SLIPPAGE
    stop_loss_percent: Decimal | None = None      # None이면 손절 없음
    take_profit_percent: Decimal | None = None    # None이면 익절 없음
    trailing_stop_percent: Decimal | None = None  # None이면 후행손절 없음

    def __post_init__(self):
        # 숫자/문자열 입력을 Decimal로 정규화 (frozen이므로 object.__setattr__)
        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Decimal):
                try:
                    object.__setattr__(self, name, to_decimal(value))
                except (TypeError, ValueError) as e:
                    raise ValidationError(f"{name}는 숫자여야 합니다: {value!r}", field=name) from e
            value = getattr(self, name)
            if value is not None and not value.is_finite():
                raise ValidationError(f"{name}는 유한한 숫자여야 합니다: {value!r}", field=name)
        if not isinstance(self.strategy_type, StrategyType):
            object.__setattr__(self, "strategy_type", resolve_strategy_type(self.strategy_type))
        object.__setattr__(self, "strategy_params", normalize_params(self.strategy_params))

    def validate(self) -> None:
        """요청값 검증. 실패 시 ValidationError."""
        if not self.symbol or not str(self.symbol).strip():
            raise ValidationError("심볼은 필수입니다", field="symbol")
        if self.start_date > self.end_date:
            raise ValidationError(
                f"시작일({self.start_date})이 종료일({self.end_date})보다 늦습니다", field="start_date"
            )
        if self.initial_capital <= 0:
            raise ValidationError(f"초기 자본금은 양수여야 합니다: {self.initial_capital}", field="initial_capital")
        if not (0 < self.position_size_percent <= HUNDRED):
            raise ValidationError(
                f"position_size_percent는 0 초과 100 이하여야 합니다: {self.position_size_percent}",
                field="position_size_percent",
            )
        if isinstance(self.max_positions, bool) or not isinstance(self.max_positions, int) or self.max_positions < 1:
            raise ValidationError(f"max_positions는 1 이상의 정수여야 합니다: {self.max_positions}", field="max_positions")
        if self.commission_rate < 0 or self.commission_rate >= HUNDRED:
            raise ValidationError(f"수수료율이 범위를 벗어났습니다: {self.commission_rate}", field="commission_rate")
        if self.slippage < 0 or self.slippage >= HUNDRED:
            raise ValidationError(f"슬리피지가 범위를 벗어났습니다: {self.slippage}", field="slippage")
        if self.stop_loss_percent is not None and not (0 < self.stop_loss_percent < HUNDRED):
            raise ValidationError(
                f"stop_loss_percent는 0 초과 100 미만이어야 합니다: {self.stop_loss_percent}",
                field="stop_loss_percent",
            )
        if self.take_profit_percent is not None and self.take_profit_percent <= 0:
            raise ValidationError(
                f"take_profit_percent는 양수여야 합니다: {self.take_profit_percent}",
                field="take_profit_percent",
            )
        if self.trailing_stop_percent is not None and not (0 < self.trailing_stop_percent < HUNDRED):
            raise ValidationError(
                f"trailing_stop_percent는 0 초과 100 미만이어야 합니다: {self.trailing_stop_percent}",
                field="trailing_stop_percent",
            )

    def with_strategy_params(self, params: dict[str, Any]) -> "BacktestRequest":
        """전략 파라미터만 바꾼 사본. 최적화기에서 조합별 요청 생성용."""
        return replace(self, strategy_params={**self.strategy_params, **normalize_params(params)})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestRequest":
        """딕셔너리에서 요청 생성. camelCase/snake_case 키 모두 허용."""
        normalized = normalize_params(data)
        if "strategy_type" not in normalized and "strategy" in normalized:
            normalized["strategy_type"] = normalized.pop("strategy")

        for key in ("symbol", "strategy_type", "start_date", "end_date", "initial_capital"):
            if normalized.get(key) is None:
                raise ValidationError(f"필수 항목 누락: {key}", field=key)

        for key in ("start_date", "end_date"):
            value = normalized[key]
            if isinstance(value, str):
                try:
                    normalized[key] = date.fromisoformat(value)
                except ValueError as e:
                    raise ValidationError(f"{key} 날짜 형식 오류: {value!r}", field=key) from e

        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in normalized.items() if k in fields and v is not None})

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화 가능한 딕셔너리."""
        data = asdict(self)
        data["strategy_type"] = self.strategy_type.value
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        for name in _DECIMAL_FIELDS:
            if data[name] is not None:
                data[name] = str(data[name])
        return data
