"""
봉 단위 시뮬레이션 모듈.

[ 역할 ]
    가격 봉 하나와 전략 시그널 하나를 받아 다음 시뮬레이션 상태를 만든다.
    상태(SimulationState)는 불변이며, 전체 백테스트는 step()의 fold.

[ 상태 전이 ]
    FLAT ──BUY──▶ ENTERING ──체결──▶ OPEN
      ▲             │ 현금 부족/수량 0
      │             ▼
      └──────────  FLAT (진입 생략, 예외 없음)

    OPEN ──손절/익절/후행손절/SELL──▶ EXITING ──▶ FLAT

    ENTERING / EXITING은 step() 내부의 일시 단계이며,
    step()이 반환하는 상태는 항상 FLAT 또는 OPEN.

[ 봉 처리 순서 ]
    1. 보유 포지션 고점 갱신 (max(고점, 당일 고가))
    2. 리스크 청산 검사 (순서 고정)
         손절    당일 저가 <= 손절가
         익절    당일 고가 >= 익절가
         후행손절 당일 저가 <= 고점 × (1 - trailing%)
       체결가는 트리거 가격, 시가가 이미 트리거를 넘어 갭이 생겼으면 시가.
    3. 전략 SELL → 남은 포지션 전부 종가 청산
    4. 이번 봉에 청산이 없었고 BUY면 종가로 진입 (max_positions까지)

[ 체결 규칙 ]
    매수가 = 종가 × (1 + 슬리피지)
    수량   = (현금 × 투자비율) / (매수가 × (1 + 수수료)) → 소수점 4자리 버림
    비용   = 수량 × 매수가 × (1 + 수수료)
    매도가 = 체결 기준가 × (1 - 슬리피지)
    대금   = 수량 × 매도가 × (1 - 수수료)
    손익   = 대금 - 비용

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()에서 simulate() 호출
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.trading_strategy import Signal, TradingStrategy
from journal_backtest.data.portfolio import ClosedTrade, ExitReason, Position, close_position
from journal_backtest.utils.money import ONE, ZERO, percent_to_rate, quantize, quantize_down

logger = logging.getLogger("journal_backtest.simulator")


class Phase(Enum):
    FLAT = "FLAT"
    ENTERING = "ENTERING"
    OPEN = "OPEN"
    EXITING = "EXITING"


@dataclass(frozen=True)
class SimulationContext:
    """한 번의 백테스트 동안 변하지 않는 체결 조건. 비율은 모두 소수 (0.001 = 0.1%)."""
    symbol: str
    strategy_label: str
    position_size_rate: Decimal
    max_positions: int
    commission_rate: Decimal
    slippage_rate: Decimal
    stop_loss_rate: Decimal | None = None
    take_profit_rate: Decimal | None = None
    trailing_stop_percent: Decimal | None = None

    @classmethod
    def from_request(cls, request: BacktestRequest, strategy_label: str) -> "SimulationContext":
        return cls(
            symbol=request.symbol,
            strategy_label=strategy_label,
            position_size_rate=percent_to_rate(request.position_size_percent),
            max_positions=request.max_positions,
            commission_rate=percent_to_rate(request.commission_rate),
            slippage_rate=percent_to_rate(request.slippage),
            stop_loss_rate=_optional_rate(request.stop_loss_percent),
            take_profit_rate=_optional_rate(request.take_profit_percent),
            trailing_stop_percent=request.trailing_stop_percent,
        )


@dataclass(frozen=True)
class SimulationState:
    """시뮬레이션 상태 스냅샷."""
    cash: Decimal
    positions: tuple[Position, ...] = ()
    ledger: tuple[ClosedTrade, ...] = ()
    phase: Phase = Phase.FLAT
    trade_count: int = 0

    @classmethod
    def initial(cls, cash: Decimal) -> "SimulationState":
        return cls(cash=cash)

    def equity(self, price: Decimal) -> Decimal:
        """현금 + 보유 수량 × 가격."""
        return quantize(self.cash + sum((p.quantity * price for p in self.positions), ZERO))


@dataclass(frozen=True)
class EquitySample:
    date: date
    value: Decimal


def step(state: SimulationState, bar: PriceBar, signal: Signal, context: SimulationContext) -> SimulationState:
    """봉 하나를 처리하여 다음 상태 반환."""
    cash = state.cash
    ledger = state.ledger
    trade_count = state.trade_count
    remaining: list[Position] = []
    exited = False

    # ─── 1~2. 고점 갱신 + 리스크 청산 ──────────────────────────────────
    for i, position in enumerate(state.positions):
        position = position.ratchet(bar.high)
        trigger = _risk_trigger(position, bar)
        if trigger is None:
            remaining.append(position)
            continue
        reason, fill = trigger
        others = remaining + list(state.positions[i + 1:])
        cash, trade = _exit(position, bar, fill, reason, cash, others, trade_count + 1, context)
        ledger += (trade,)
        trade_count += 1
        exited = True

    # ─── 3. 전략 SELL ──────────────────────────────────────────────────
    if signal is Signal.SELL and remaining:
        lots, remaining = remaining, []
        for i, position in enumerate(lots):
            cash, trade = _exit(
                position, bar, bar.close, ExitReason.SIGNAL, cash, lots[i + 1:], trade_count + 1, context
            )
            ledger += (trade,)
            trade_count += 1
        exited = True

    next_state = SimulationState(
        cash=cash,
        positions=tuple(remaining),
        ledger=ledger,
        phase=Phase.OPEN if remaining else Phase.FLAT,
        trade_count=trade_count,
    )

    # ─── 4. 진입 ───────────────────────────────────────────────────────
    if signal is Signal.BUY and not exited and len(next_state.positions) < context.max_positions:
        return _enter(next_state, bar, context)
    return next_state


def simulate(
    prices: Sequence[PriceBar],
    strategy: TradingStrategy,
    context: SimulationContext,
    initial_capital: Decimal,
) -> tuple[SimulationState, list[EquitySample]]:
    """전체 시계열에 대해 step()을 fold. 봉마다 종가 기준 자산 가치를 기록."""
    state = SimulationState.initial(initial_capital)
    equity: list[EquitySample] = []
    for index, bar in enumerate(prices):
        signal = strategy.generate_signal(prices, index)
        state = step(state, bar, signal, context)
        equity.append(EquitySample(date=bar.date, value=state.equity(bar.close)))
    return state, equity


# ─── 내부 헬퍼 ─────────────────────────────────────────────────────────

def _risk_trigger(position: Position, bar: PriceBar) -> tuple[ExitReason, Decimal] | None:
    """리스크 청산 조건 검사. (사유, 체결 기준가) 또는 None."""
    stop = position.stop_loss_price
    if stop is not None and bar.low <= stop:
        return ExitReason.STOP_LOSS, min(bar.open, stop)

    target = position.take_profit_price
    if target is not None and bar.high >= target:
        return ExitReason.TAKE_PROFIT, max(bar.open, target)

    trail = position.trailing_stop_price
    if trail is not None and bar.low <= trail:
        return ExitReason.TRAILING_STOP, min(bar.open, trail)

    return None


def _exit(
    position: Position,
    bar: PriceBar,
    fill: Decimal,
    reason: ExitReason,
    cash: Decimal,
    others: Sequence[Position],
    trade_number: int,
    context: SimulationContext,
) -> tuple[Decimal, ClosedTrade]:
    """포지션 청산. (청산 후 현금, 거래 기록) 반환."""
    exit_price = quantize(fill * (ONE - context.slippage_rate))
    proceeds = quantize(position.quantity * exit_price * (ONE - context.commission_rate))
    cash = cash + proceeds
    value_after = quantize(cash + sum((p.quantity * bar.close for p in others), ZERO))

    trade = close_position(
        position,
        trade_number=trade_number,
        symbol=context.symbol,
        exit_date=bar.date,
        exit_price=exit_price,
        proceeds=proceeds,
        exit_reason=reason,
        exit_signal=reason.exit_signal(context.strategy_label),
        portfolio_value_at_exit=value_after,
    )
    logger.debug(
        f"[{bar.date}] {Phase.EXITING.value} {reason.value}: "
        f"{trade.quantity}주 @ {exit_price} 손익 {trade.profit}"
    )
    return cash, trade


def _enter(state: SimulationState, bar: PriceBar, context: SimulationContext) -> SimulationState:
    """종가 기준 진입. 수량이 0이거나 현금이 부족하면 상태를 그대로 반환."""
    entry_price = quantize(bar.close * (ONE + context.slippage_rate))
    unit_cost = entry_price * (ONE + context.commission_rate)
    invest = quantize(state.cash * context.position_size_rate)
    quantity = quantize_down(invest / unit_cost) if unit_cost > 0 else ZERO
    cost = quantize(quantity * unit_cost)

    if quantity <= 0 or cost > state.cash:
        logger.debug(
            f"[{bar.date}] {Phase.ENTERING.value} 생략: 수량={quantity}, 비용={cost}, 현금={state.cash}"
        )
        return state

    position = Position(
        entry_date=bar.date,
        entry_price=entry_price,
        quantity=quantity,
        entry_cost=cost,
        entry_signal=context.strategy_label,
        high_water_mark=entry_price,
        portfolio_value_at_entry=state.equity(bar.close),
        stop_loss_price=_level(entry_price, context.stop_loss_rate, -1),
        take_profit_price=_level(entry_price, context.take_profit_rate, 1),
        trailing_stop_percent=context.trailing_stop_percent,
    )
    logger.debug(f"[{bar.date}] {Phase.ENTERING.value}: {quantity}주 @ {entry_price} 비용 {cost}")
    return replace(
        state,
        cash=state.cash - cost,
        positions=state.positions + (position,),
        phase=Phase.OPEN,
    )


def _level(price: Decimal, rate: Decimal | None, direction: int) -> Decimal | None:
    if rate is None:
        return None
    return quantize(price * (ONE + direction * rate))


def _optional_rate(percent: Decimal | None) -> Decimal | None:
    return None if percent is None else percent_to_rate(percent)
