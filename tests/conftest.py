"""공용 픽스처 / 테스트 데이터 빌더."""

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import pytest

from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.backtest.simulator import SimulationContext
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.trading_strategy import Signal, TradingStrategy
from journal_backtest.data.portfolio import ClosedTrade, ExitReason, Position
from journal_backtest.data.providers import SamplePriceProvider
from journal_backtest.utils.money import ONE, ZERO

START = date(2024, 1, 1)


def make_bars(closes: Sequence[float], start: date = START) -> list[PriceBar]:
    """종가 리스트로 하루 간격 봉 생성 (시가 = 고가 = 저가 = 종가)."""
    bars = []
    for i, close in enumerate(closes):
        price = Decimal(str(close))
        bars.append(PriceBar(date=start + timedelta(days=i), open=price, high=price, low=price, close=price))
    return bars


def make_bar(day: int, open_: str, high: str, low: str, close: str) -> PriceBar:
    return PriceBar(
        date=START + timedelta(days=day),
        open=Decimal(open_),
        high=Decimal(high),
        low=Decimal(low),
        close=Decimal(close),
    )


def crossing_closes() -> list[float]:
    """보합 10봉 → 상승 10봉 → 하락 20봉. 2/4 이동평균 골든/데드 크로스가 한 번씩."""
    flat = [100.0] * 10
    up = [100.0 + i for i in range(1, 11)]        # index 10..19: 101..110
    down = [109.0 - i for i in range(20)]          # index 20..39: 109..90
    return flat + up + down


def ramp_closes() -> list[float]:
    """보합 10봉 후 30봉 단조 상승. 매수 시그널만 한 번."""
    return [100.0] * 10 + [100.0 + i for i in range(1, 31)]


def make_request(**overrides: Any) -> BacktestRequest:
    values: dict[str, Any] = {
        "symbol": "TEST",
        "strategy_type": "moving_average",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "initial_capital": Decimal("1000000"),
        "strategy_params": {"short_period": 2, "long_period": 4},
    }
    values.update(overrides)
    return BacktestRequest(**values)


def make_context(**overrides: Any) -> SimulationContext:
    """수수료/슬리피지 0, 전액 투자, 단일 포지션."""
    values: dict[str, Any] = {
        "symbol": "TEST",
        "strategy_label": "Scripted",
        "position_size_rate": ONE,
        "max_positions": 1,
        "commission_rate": ZERO,
        "slippage_rate": ZERO,
    }
    values.update(overrides)
    return SimulationContext(**values)


def make_position(entry_price: str = "100", quantity: str = "10", **overrides: Any) -> Position:
    price = Decimal(entry_price)
    qty = Decimal(quantity)
    values: dict[str, Any] = {
        "entry_date": START,
        "entry_price": price,
        "quantity": qty,
        "entry_cost": price * qty,
        "entry_signal": "Scripted",
        "high_water_mark": price,
        "portfolio_value_at_entry": price * qty,
    }
    values.update(overrides)
    return Position(**values)


def make_trade(profit: str, exit_date: date = date(2024, 1, 10), number: int = 1, holding_days: int = 5) -> ClosedTrade:
    amount = Decimal(profit)
    return ClosedTrade(
        trade_number=number,
        symbol="TEST",
        entry_date=exit_date - timedelta(days=holding_days),
        exit_date=exit_date,
        entry_price=Decimal("100"),
        exit_price=Decimal("100") + amount / 10,
        quantity=Decimal("10"),
        profit=amount,
        profit_percent=amount / 10,
        holding_days=holding_days,
        entry_signal="Scripted",
        exit_signal="Scripted",
        exit_reason=ExitReason.SIGNAL,
        portfolio_value_at_entry=Decimal("1000"),
        portfolio_value_at_exit=Decimal("1000") + amount,
    )


class ScriptedStrategy(TradingStrategy):
    """인덱스별로 정해진 시그널을 내는 테스트용 전략."""

    def __init__(self, signals: dict[int, Signal] | None = None, default: Signal = Signal.HOLD):
        super().__init__(name="scripted", params={})
        self.signals = signals or {}
        self.default = default

    def generate_signal(self, prices, index):
        return self.signals.get(index, self.default)

    def minimum_data_points(self) -> int:
        return 1

    @property
    def label(self) -> str:
        return "Scripted"

    @property
    def description(self) -> str:
        return "테스트용 고정 시그널"


@pytest.fixture
def sample_bars() -> list[PriceBar]:
    """2023~2024 평일 샘플 데이터 (심볼별 고정 시드)."""
    return SamplePriceProvider().get_price_series("SAMPLE", date(2023, 1, 1), date(2024, 12, 31))


@pytest.fixture
def sample_request() -> BacktestRequest:
    return make_request(
        symbol="SAMPLE",
        start_date=date(2023, 1, 1),
        end_date=date(2024, 12, 31),
        initial_capital=Decimal("10000000"),
        strategy_params={"short_period": 5, "long_period": 20},
    )
