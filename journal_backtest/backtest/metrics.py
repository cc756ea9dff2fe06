"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(거래 원장 + 봉별 자산가치)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 계산 순서 ]
    1. 낙폭 (초기 자본을 첫 고점으로 하는 누적 고점 대비 %, 최대값, 최장 기간)
    2. 총 수익률 / CAGR
    3. 일별 수익률 → 샤프, 소르티노, 연환산 변동성
    4. 칼마 비율 = CAGR / MDD
    5. 거래 기반 지표 (승률, 수익 팩터, 기대값, 연속 승/패, 보유기간)
    6. 월별 성과 (청산월 기준)

[ 수치 가드 ]
    - 표준편차 0        → 샤프 0
    - 하방편차 0        → 소르티노 999.99 (초과수익 평균 > 0) / 0
    - MDD 0             → 칼마 0
    - 손실 거래 없음    → 수익 팩터 999.99 (거래 0건이면 0)
    NaN / Infinity는 결과에 절대 들어가지 않는다.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest() 완료 시 호출
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any

import numpy as np

from journal_backtest.data.portfolio import ClosedTrade
from journal_backtest.utils.money import (
    DISPLAY_SCALE,
    HUNDRED,
    MAX_RATIO_VALUE,
    QUANTITY_SCALE,
    ZERO,
    divide,
    quantize,
    to_decimal,
)

RISK_FREE_RATE = 0.03          # 연 3%
TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365


@dataclass(frozen=True)
class MonthlyPerformance:
    """청산월 기준 월별 성과. return_pct는 해당 월 거래 수익률(%)의 합."""
    month: str                # "YYYY-MM"
    profit: Decimal
    trade_count: int
    return_pct: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "profit": str(self.profit),
            "trade_count": self.trade_count,
            "return_pct": str(self.return_pct),
        }


@dataclass(frozen=True)
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_return: Decimal = ZERO              # 총 수익률 (%)
    cagr: Decimal = ZERO                      # 연평균 복합 성장률 (%)
    sharpe_ratio: Decimal = ZERO              # 샤프 비율 (1 이상 양호)
    sortino_ratio: Decimal = ZERO             # 소르티노 비율 (하방 위험 대비)
    calmar_ratio: Decimal = ZERO              # CAGR / MDD
    max_drawdown: Decimal = ZERO              # 최대 낙폭 MDD (%, 0~100)
    max_drawdown_duration: int = 0            # 고점 → 회복까지 최장 봉 수
    volatility: Decimal = ZERO                # 연환산 변동성 (%)
    benchmark_return: Decimal = ZERO          # 단순 보유(Buy & Hold) 수익률 (%)
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: Decimal = ZERO                  # 승률 (%)
    avg_win: Decimal = ZERO                   # 수익 거래 평균 이익 (금액)
    avg_loss: Decimal = ZERO                  # 손실 거래 평균 손실 (금액, 양수)
    avg_win_percent: Decimal = ZERO
    avg_loss_percent: Decimal = ZERO          # 양수
    profit_factor: Decimal = ZERO             # 총이익 / 총손실
    expectancy: Decimal = ZERO                # 거래당 기대 손익 (금액)
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    avg_holding_days: Decimal = ZERO
    avg_winning_holding_days: Decimal = ZERO
    avg_losing_holding_days: Decimal = ZERO
    avg_monthly_return: Decimal = ZERO        # 월별 return_pct 평균

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환. Decimal은 문자열로."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = str(value) if isinstance(value, Decimal) else value
        return result

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"총 수익률:       {self.total_return:>10.2f}%",
            f"CAGR:            {self.cagr:>10.2f}%",
            f"벤치마크 수익률: {self.benchmark_return:>10.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>10.2f}",
            f"소르티노 비율:   {self.sortino_ratio:>10.2f}",
            f"칼마 비율:       {self.calmar_ratio:>10.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>10.2f}%",
            f"MDD 기간:        {self.max_drawdown_duration:>10d}봉",
            f"변동성:          {self.volatility:>10.2f}%",
            "-" * 50,
            f"총 거래 횟수:    {self.total_trades:>10d}",
            f"승률:            {self.win_rate:>10.2f}%",
            f"수익 거래:       {self.winning_trades:>10d}",
            f"손실 거래:       {self.losing_trades:>10d}",
            f"평균 수익:       {self.avg_win:>10,.2f}",
            f"평균 손실:       {self.avg_loss:>10,.2f}",
            f"수익 팩터:       {self.profit_factor:>10.2f}",
            f"기대값:          {self.expectancy:>10,.2f}",
            f"평균 보유일:     {self.avg_holding_days:>10.1f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>10d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>10d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_metrics(
    ledger: Sequence[ClosedTrade],
    equity_values: Sequence[Decimal],
    initial_capital: Decimal,
    start_date: date,
    end_date: date,
    benchmark_values: Sequence[Decimal] = (),
) -> BacktestMetrics:
    """성과 지표 계산. engine.py에서 백테스트 완료 후 호출됨.

    Args:
        ledger: 청산된 거래 목록 (청산 순서)
        equity_values: 봉별 총 자산 (현금 + 보유 평가액)
        initial_capital: 초기 자본
        start_date, end_date: 요청 기간 (CAGR 일수 계산용)
        benchmark_values: 봉별 단순 보유 자산 (없으면 벤치마크 수익률 0)
    """
    if not equity_values:
        return BacktestMetrics()

    # ─── 낙폭 ────────────────────────────────────────────────────────────
    drawdowns = drawdown_series(equity_values, initial_capital)
    max_dd = max(drawdowns, default=ZERO)

    # ─── 수익률 ──────────────────────────────────────────────────────────
    final_value = equity_values[-1]
    total_return = quantize(divide(final_value - initial_capital, initial_capital) * HUNDRED)
    cagr = calculate_cagr(initial_capital, final_value, (end_date - start_date).days)

    # ─── 위험 조정 수익률 (일별 수익률 기준) ──────────────────────────────
    returns = daily_returns(equity_values, initial_capital)
    sharpe = sharpe_ratio(returns)
    sortino = sortino_ratio(returns)
    volatility = _to_decimal(float(np.std(returns)) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100) if returns.size else ZERO
    calmar = _clamp_ratio(divide(cagr, max_dd, QUANTITY_SCALE))

    benchmark_return = ZERO
    if benchmark_values:
        benchmark_return = quantize(divide(benchmark_values[-1] - initial_capital, initial_capital) * HUNDRED)

    monthly = monthly_performance(ledger)
    avg_monthly = ZERO
    if monthly:
        avg_monthly = divide(sum((m.return_pct for m in monthly), ZERO), Decimal(len(monthly)), QUANTITY_SCALE)

    return BacktestMetrics(
        total_return=total_return,
        cagr=cagr,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        calmar_ratio=calmar,
        max_drawdown=max_dd,
        max_drawdown_duration=max_drawdown_duration(equity_values, initial_capital),
        volatility=volatility,
        benchmark_return=benchmark_return,
        avg_monthly_return=avg_monthly,
        **_trade_statistics(ledger),
    )


# ─── 개별 지표 ─────────────────────────────────────────────────────────

def drawdown_series(values: Sequence[Decimal], initial_capital: Decimal) -> list[Decimal]:
    """봉별 낙폭 (%). 고점은 초기 자본에서 시작."""
    peak = initial_capital
    result = []
    for value in values:
        if value > peak:
            peak = value
        result.append(divide((peak - value) * HUNDRED, peak))
    return result


def max_drawdown_duration(values: Sequence[Decimal], initial_capital: Decimal) -> int:
    """고점 이후 그 고점을 회복할 때까지 걸린 최장 봉 수 (미회복 구간 포함)."""
    peak = initial_capital
    longest = 0
    current = 0
    for value in values:
        if value >= peak:
            peak = value
            current = 0
        else:
            current += 1
            longest = max(longest, current)
    return longest


def calculate_cagr(initial_capital: Decimal, final_value: Decimal, days: int) -> Decimal:
    """((최종/초기)^(365/일수) - 1) × 100. 일수 0 이하면 0."""
    if days <= 0 or initial_capital <= 0:
        return ZERO
    ratio = float(divide(final_value, initial_capital))
    if ratio <= 0:
        return -HUNDRED
    try:
        growth = ratio ** (DAYS_PER_YEAR / days)
    except OverflowError:
        growth = math.inf
    return _to_decimal((growth - 1) * 100, scale=QUANTITY_SCALE)


def daily_returns(values: Sequence[Decimal], initial_capital: Decimal) -> np.ndarray:
    """봉 간 수익률 배열. 첫 봉은 초기 자본 대비."""
    series = np.array([float(initial_capital)] + [float(v) for v in values], dtype=float)
    previous = series[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        returns = np.where(previous > 0, np.diff(series) / previous, 0.0)
    return returns


def sharpe_ratio(returns: np.ndarray) -> Decimal:
    """(평균 일수익률 - 일 무위험수익률) / 표준편차 × √252."""
    if returns.size < 2:
        return ZERO
    std = float(np.std(returns))
    if std == 0:
        return ZERO
    excess = float(np.mean(returns)) - RISK_FREE_RATE / TRADING_DAYS_PER_YEAR
    return _to_decimal(excess / std * math.sqrt(TRADING_DAYS_PER_YEAR))


def sortino_ratio(returns: np.ndarray) -> Decimal:
    """초과수익 평균 / 하방편차 × √252. 하방편차는 음수 수익률 제곱합의 전체 평균 제곱근."""
    if returns.size < 2:
        return ZERO
    excess = float(np.mean(returns)) - RISK_FREE_RATE / TRADING_DAYS_PER_YEAR
    downside = np.minimum(returns, 0.0)
    downside_dev = float(np.sqrt(np.mean(downside ** 2)))
    if downside_dev == 0:
        return MAX_RATIO_VALUE if excess > 0 else ZERO
    return _to_decimal(excess / downside_dev * math.sqrt(TRADING_DAYS_PER_YEAR))


def profit_factor(gross_profit: Decimal, gross_loss: Decimal, total_trades: int) -> Decimal:
    """총이익 / 총손실. 손실 없으면 999.99, 거래 없으면 0."""
    if total_trades == 0:
        return ZERO
    if gross_loss == 0:
        return MAX_RATIO_VALUE
    return min(divide(gross_profit, gross_loss, QUANTITY_SCALE), MAX_RATIO_VALUE)


def monthly_performance(ledger: Sequence[ClosedTrade]) -> list[MonthlyPerformance]:
    """청산월(YYYY-MM)별 손익, 거래 수, 수익률 합. 월 오름차순."""
    buckets: dict[str, list[ClosedTrade]] = {}
    for trade in ledger:
        buckets.setdefault(trade.exit_month, []).append(trade)
    return [
        MonthlyPerformance(
            month=month,
            profit=quantize(sum((t.profit for t in trades), ZERO)),
            trade_count=len(trades),
            return_pct=quantize(sum((t.profit_percent for t in trades), ZERO), QUANTITY_SCALE),
        )
        for month, trades in sorted(buckets.items())
    ]


def streaks(ledger: Sequence[ClosedTrade]) -> tuple[int, int]:
    """(최대 연속 승, 최대 연속 패)."""
    wins = losses = max_wins = max_losses = 0
    for trade in ledger:
        if trade.is_win:
            wins += 1
            losses = 0
            max_wins = max(max_wins, wins)
        else:
            losses += 1
            wins = 0
            max_losses = max(max_losses, losses)
    return max_wins, max_losses


# ─── 내부 헬퍼 ─────────────────────────────────────────────────────────

def _trade_statistics(ledger: Sequence[ClosedTrade]) -> dict[str, Any]:
    """거래 기반 지표. 손익 > 0 이면 승, 0 이하는 패."""
    total = len(ledger)
    if total == 0:
        return {}

    winners = [t for t in ledger if t.is_win]
    losers = [t for t in ledger if not t.is_win]
    gross_profit = sum((t.profit for t in winners), ZERO)
    gross_loss = abs(sum((t.profit for t in losers), ZERO))
    max_wins, max_losses = streaks(ledger)

    return {
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": quantize(divide(Decimal(len(winners)), Decimal(total), QUANTITY_SCALE) * HUNDRED, DISPLAY_SCALE),
        "avg_win": _mean((t.profit for t in winners), DISPLAY_SCALE),
        "avg_loss": abs(_mean((t.profit for t in losers), DISPLAY_SCALE)),
        "avg_win_percent": _mean((t.profit_percent for t in winners), QUANTITY_SCALE),
        "avg_loss_percent": abs(_mean((t.profit_percent for t in losers), QUANTITY_SCALE)),
        "profit_factor": profit_factor(gross_profit, gross_loss, total),
        "expectancy": _mean((t.profit for t in ledger), DISPLAY_SCALE),
        "max_consecutive_wins": max_wins,
        "max_consecutive_losses": max_losses,
        "avg_holding_days": _mean((Decimal(t.holding_days) for t in ledger), DISPLAY_SCALE),
        "avg_winning_holding_days": _mean((Decimal(t.holding_days) for t in winners), DISPLAY_SCALE),
        "avg_losing_holding_days": _mean((Decimal(t.holding_days) for t in losers), DISPLAY_SCALE),
    }


def _mean(values, scale: int) -> Decimal:
    items = list(values)
    if not items:
        return ZERO
    return divide(sum(items, ZERO), Decimal(len(items)), scale)


def _to_decimal(value: float, scale: int = QUANTITY_SCALE) -> Decimal:
    """float 지표를 Decimal로. NaN은 0, 절댓값이 999.99를 넘으면(무한대 포함) ±999.99로 제한."""
    if math.isnan(value):
        return ZERO
    if abs(value) > float(MAX_RATIO_VALUE):
        return MAX_RATIO_VALUE if value > 0 else -MAX_RATIO_VALUE
    return quantize(to_decimal(value), scale)


def _clamp_ratio(value: Decimal) -> Decimal:
    return max(-MAX_RATIO_VALUE, min(value, MAX_RATIO_VALUE))
