"""
기술적 지표 계산 모듈.

[ 역할 ]
    전략들이 공통으로 쓰는 SMA, EMA, 표준편차, RSI, 모멘텀과
    교차(크로스오버) 판정 함수를 제공. 모두 순수 함수이며 Decimal로 계산한다.

[ 교차 판정 규칙 ]
    상향 돌파: 이전 값 <= 기준, 현재 값 >  기준
    하향 돌파: 이전 값 >= 기준, 현재 값 <  기준
    기준선 근처에서 값이 머물러도 시그널이 반복 발생하지 않도록
    이전 봉은 비엄격, 현재 봉은 엄격 비교를 쓴다.

[ 호출하는 곳 ]
    - strategies/*.py 의 generate_signal()
"""

from collections.abc import Sequence
from decimal import Decimal

from journal_backtest.core.data_provider import PriceBar
from journal_backtest.utils.money import DECIMAL_SCALE, HUNDRED, ZERO, divide, quantize, sqrt


def _check_window(index: int, period: int) -> None:
    if period <= 0:
        raise ValueError(f"period는 1 이상이어야 합니다: {period}")
    if index < period - 1:
        raise ValueError(f"데이터 부족: index={index}, period={period}")


def sma(prices: Sequence[PriceBar], index: int, period: int, scale: int = DECIMAL_SCALE) -> Decimal:
    """단순이동평균. index를 포함한 최근 period개 종가의 평균."""
    _check_window(index, period)
    total = sum((prices[i].close for i in range(index - period + 1, index + 1)), ZERO)
    return divide(total, Decimal(period), scale)


def ema_series(values: Sequence[Decimal], period: int, scale: int = DECIMAL_SCALE) -> list[Decimal | None]:
    """값 시퀀스 전체의 지수이동평균.

    첫 EMA(인덱스 period-1)는 처음 period개 값의 단순평균으로 시드하고,
    이후 EMA = (값 - 직전 EMA) * 2/(period+1) + 직전 EMA.
    시드 이전 구간은 None.
    """
    if period <= 0:
        raise ValueError(f"period는 1 이상이어야 합니다: {period}")
    result: list[Decimal | None] = [None] * len(values)
    if len(values) < period:
        return result

    multiplier = Decimal(2) / Decimal(period + 1)
    ema = divide(sum(values[:period], ZERO), Decimal(period), scale)
    result[period - 1] = ema
    for i in range(period, len(values)):
        ema = quantize((values[i] - ema) * multiplier + ema, scale)
        result[i] = ema
    return result


def ema(prices: Sequence[PriceBar], index: int, period: int, scale: int = DECIMAL_SCALE) -> Decimal:
    """index 시점의 종가 EMA."""
    _check_window(index, period)
    closes = [prices[i].close for i in range(index + 1)]
    value = ema_series(closes, period, scale)[index]
    assert value is not None
    return value


def standard_deviation(prices: Sequence[PriceBar], index: int, period: int, mean: Decimal) -> Decimal:
    """최근 period개 종가의 모표준편차."""
    _check_window(index, period)
    variance = ZERO
    for i in range(index - period + 1, index + 1):
        diff = prices[i].close - mean
        variance += diff * diff
    return sqrt(divide(variance, Decimal(period)))


def rsi(prices: Sequence[PriceBar], index: int, period: int) -> Decimal:
    """상대강도지수.

    index로 끝나는 period개 종가 변화의 평균 상승폭/평균 하락폭으로 계산.
    평균 하락폭이 0이면 100.
    """
    if index < period:
        raise ValueError(f"데이터 부족: index={index}, period={period}")

    gains = ZERO
    losses = ZERO
    for i in range(index - period + 1, index + 1):
        change = prices[i].close - prices[i - 1].close
        if change > 0:
            gains += change
        else:
            losses += -change

    avg_gain = divide(gains, Decimal(period))
    avg_loss = divide(losses, Decimal(period))
    if avg_loss == 0:
        return HUNDRED

    rs = divide(avg_gain, avg_loss)
    return HUNDRED - divide(HUNDRED, 1 + rs, 4)


def momentum(prices: Sequence[PriceBar], index: int, period: int) -> Decimal:
    """N일 수익률 (%). 기준 가격이 0이면 0."""
    if index < period:
        raise ValueError(f"데이터 부족: index={index}, period={period}")
    current = prices[index].close
    past = prices[index - period].close
    if past == 0:
        return ZERO
    return divide(current - past, past) * HUNDRED


def crossed_above(prev_value: Decimal, current_value: Decimal, threshold: Decimal) -> bool:
    """기준선 상향 돌파."""
    return prev_value <= threshold and current_value > threshold


def crossed_below(prev_value: Decimal, current_value: Decimal, threshold: Decimal) -> bool:
    """기준선 하향 돌파."""
    return prev_value >= threshold and current_value < threshold


def is_golden_cross(prev_fast: Decimal, current_fast: Decimal, prev_slow: Decimal, current_slow: Decimal) -> bool:
    """빠른 지표가 느린 지표를 상향 돌파."""
    return prev_fast <= prev_slow and current_fast > current_slow


def is_dead_cross(prev_fast: Decimal, current_fast: Decimal, prev_slow: Decimal, current_slow: Decimal) -> bool:
    """빠른 지표가 느린 지표를 하향 돌파."""
    return prev_fast >= prev_slow and current_fast < current_slow
