"""
금액/비율 계산 유틸리티.

[ 역할 ]
    모든 금액·가격·수량·퍼센트 계산을 Decimal로 통일.
    float 누적 오차로 수천 봉 시뮬레이션 후 원 단위가 틀어지는 것을 막는다.

[ 스케일 규칙 ]
    DECIMAL_SCALE  = 6  → 금액, 가격, 지표 계산
    QUANTITY_SCALE = 4  → 수량, 비율(샤프/수익팩터 등)
    DISPLAY_SCALE  = 2  → 리포트 표시용 금액

    반올림은 전부 ROUND_HALF_UP. 단, 매수 수량은 ROUND_DOWN (현금 초과 방지).

[ 호출하는 곳 ]
    - core/indicators.py, strategies/*  → 지표 계산
    - backtest/simulator.py             → 체결가/수수료/손익
    - backtest/metrics.py               → 성과 지표
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

DECIMAL_SCALE = 6
QUANTITY_SCALE = 4
DISPLAY_SCALE = 2

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# 손실이 없는 경우 등 비율이 무한대가 되는 상황의 상한값
MAX_RATIO_VALUE = Decimal("999.99")

_EXPONENTS = {scale: Decimal(1).scaleb(-scale) for scale in range(0, 13)}


def to_decimal(value: Any) -> Decimal:
    """숫자/문자열을 Decimal로 변환. float은 repr 문자열을 거쳐 이진 오차를 피한다."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"bool은 Decimal로 변환할 수 없습니다: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"숫자로 변환할 수 없는 값: {value!r}") from e


def quantize(value: Decimal, scale: int = DECIMAL_SCALE) -> Decimal:
    """지정 스케일로 ROUND_HALF_UP 반올림."""
    return value.quantize(_EXPONENTS[scale], rounding=ROUND_HALF_UP)


def quantize_down(value: Decimal, scale: int = QUANTITY_SCALE) -> Decimal:
    """지정 스케일로 버림. 매수 수량 계산 전용."""
    return value.quantize(_EXPONENTS[scale], rounding=ROUND_DOWN)


def divide(numerator: Decimal, denominator: Decimal, scale: int = DECIMAL_SCALE) -> Decimal:
    """나눗셈 후 반올림. 분모가 0이면 0 반환."""
    if denominator == 0:
        return ZERO
    return quantize(numerator / denominator, scale)


def percent_to_rate(percent: Decimal) -> Decimal:
    """퍼센트(0.015)를 비율(0.00015)로 변환."""
    return divide(percent, HUNDRED, DECIMAL_SCALE + 4)


def sqrt(value: Decimal, scale: int = DECIMAL_SCALE) -> Decimal:
    """Decimal 제곱근. 음수는 0으로 취급."""
    if value <= 0:
        return ZERO
    return quantize(value.sqrt(), scale)
