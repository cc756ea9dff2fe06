"""
포지션 / 거래 기록 모듈.

[ 역할 ]
    보유 중인 포지션(Position)과 청산된 거래(ClosedTrade)를 표현.
    모두 불변 객체이며, 상태 변화는 새 객체를 만들어 교체한다.
    거래 원장(ledger)은 ClosedTrade의 tuple.

[ 주요 클래스 ]
    ExitReason  - 청산 사유 (전략 시그널 / 손절 / 익절 / 후행손절)
    Position    - 진입가, 수량, 손절·익절 가격, 고점(high-water mark) 추적
    ClosedTrade - 청산된 거래 1건 (손익, 보유일수, 진입·청산 시점 자산 포함)

[ 호출하는 곳 ]
    - backtest/simulator.py::step()에서 생성/교체
    - backtest/metrics.py에서 ledger로 승률/수익팩터/연속기록 계산
    - backtest/result.py::BacktestResult.to_dict()에서 직렬화
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from journal_backtest.utils.money import HUNDRED, ONE, ZERO, divide, percent_to_rate, quantize


class ExitReason(Enum):
    """청산 사유."""
    SIGNAL = "SIGNAL"
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    TRAILING_STOP = "TRAILING_STOP"

    def exit_signal(self, strategy_label: str) -> str:
        """거래 기록에 남길 청산 시그널 태그."""
        if self is ExitReason.SIGNAL:
            return strategy_label
        return self.value


@dataclass(frozen=True)
class Position:
    """보유 포지션. 진입 후 청산 전까지만 존재."""
    entry_date: date
    entry_price: Decimal                       # 슬리피지 적용 후 체결가
    quantity: Decimal                          # 소수점 4자리, 항상 > 0
    entry_cost: Decimal                        # 수수료 포함 총 매수 금액
    entry_signal: str
    high_water_mark: Decimal                   # 진입 이후 최고가
    portfolio_value_at_entry: Decimal
    stop_loss_price: Decimal | None = None
    take_profit_price: Decimal | None = None
    trailing_stop_percent: Decimal | None = None

    def market_value(self, price: Decimal) -> Decimal:
        """현재가 기준 평가 금액."""
        return quantize(self.quantity * price)

    def ratchet(self, high: Decimal) -> "Position":
        """고점 갱신. 더 높은 고가가 나오지 않으면 자기 자신을 그대로 반환."""
        if high <= self.high_water_mark:
            return self
        return replace(self, high_water_mark=high)

    @property
    def trailing_stop_price(self) -> Decimal | None:
        """고점 × (1 - trailing%). 후행손절 미사용이면 None."""
        if self.trailing_stop_percent is None:
            return None
        return quantize(self.high_water_mark * (ONE - percent_to_rate(self.trailing_stop_percent)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_date": self.entry_date.isoformat(),
            "entry_price": str(self.entry_price),
            "quantity": str(self.quantity),
            "entry_cost": str(self.entry_cost),
            "entry_signal": self.entry_signal,
            "high_water_mark": str(self.high_water_mark),
            "stop_loss_price": _str_or_none(self.stop_loss_price),
            "take_profit_price": _str_or_none(self.take_profit_price),
            "trailing_stop_percent": _str_or_none(self.trailing_stop_percent),
        }


@dataclass(frozen=True)
class ClosedTrade:
    """청산 완료된 거래. metrics.py에서 승률/수익 계산에 사용됨."""
    trade_number: int
    symbol: str
    entry_date: date
    exit_date: date
    entry_price: Decimal
    exit_price: Decimal        # 슬리피지 적용 후 체결가
    quantity: Decimal
    profit: Decimal            # 매도 대금(수수료 차감) - 매수 비용
    profit_percent: Decimal    # profit / 매수 비용 × 100
    holding_days: int          # 달력 기준 일수
    entry_signal: str
    exit_signal: str
    exit_reason: ExitReason
    portfolio_value_at_entry: Decimal
    portfolio_value_at_exit: Decimal

    @property
    def is_win(self) -> bool:
        """손익이 0보다 커야 승리. 0은 패배로 집계."""
        return self.profit > ZERO

    @property
    def exit_month(self) -> str:
        """월별 성과 집계 키 (YYYY-MM)."""
        return self.exit_date.strftime("%Y-%m")

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_number": self.trade_number,
            "symbol": self.symbol,
            "entry_date": self.entry_date.isoformat(),
            "exit_date": self.exit_date.isoformat(),
            "entry_price": str(self.entry_price),
            "exit_price": str(self.exit_price),
            "quantity": str(self.quantity),
            "profit": str(self.profit),
            "profit_percent": str(self.profit_percent),
            "holding_days": self.holding_days,
            "entry_signal": self.entry_signal,
            "exit_signal": self.exit_signal,
            "exit_reason": self.exit_reason.value,
            "portfolio_value_at_entry": str(self.portfolio_value_at_entry),
            "portfolio_value_at_exit": str(self.portfolio_value_at_exit),
        }


def close_position(
    position: Position,
    *,
    trade_number: int,
    symbol: str,
    exit_date: date,
    exit_price: Decimal,
    proceeds: Decimal,
    exit_reason: ExitReason,
    exit_signal: str,
    portfolio_value_at_exit: Decimal,
) -> ClosedTrade:
    """포지션을 청산하여 ClosedTrade 생성."""
    profit = quantize(proceeds - position.entry_cost)
    return ClosedTrade(
        trade_number=trade_number,
        symbol=symbol,
        entry_date=position.entry_date,
        exit_date=exit_date,
        entry_price=position.entry_price,
        exit_price=exit_price,
        quantity=position.quantity,
        profit=profit,
        profit_percent=divide(profit * HUNDRED, position.entry_cost, 4),
        holding_days=(exit_date - position.entry_date).days,
        entry_signal=position.entry_signal,
        exit_signal=exit_signal,
        exit_reason=exit_reason,
        portfolio_value_at_entry=position.portfolio_value_at_entry,
        portfolio_value_at_exit=portfolio_value_at_exit,
    )


def _str_or_none(value: Decimal | None) -> str | None:
    return None if value is None else str(value)
