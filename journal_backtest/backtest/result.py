"""
백테스트 결과 모델.

[ 역할 ]
    엔진이 조립한 최종 결과(BacktestResult)와 자산 곡선(EquityPoint).
    모두 불변이며, to_dict()는 같은 입력이면 항상 같은 딕셔너리를 만든다
    (Decimal은 문자열, 날짜는 ISO 형식, 실행 시간 같은 비결정 값은 포함하지 않음).

[ 호출하는 곳 ]
    - backtest/engine.py에서 생성
    - backtest/optimizer.py, backtest/comparison.py에서 지표 비교
    - run_backtest.py에서 출력 / JSON 저장
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

import pandas as pd

from journal_backtest.backtest.metrics import BacktestMetrics, MonthlyPerformance
from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.data.market_data import DataGap
from journal_backtest.data.portfolio import ClosedTrade, Position


@dataclass(frozen=True)
class EquityPoint:
    """봉별 자산 곡선 한 점."""
    date: date
    portfolio_value: Decimal
    drawdown_percent: Decimal   # 누적 고점 대비 낙폭 (%, 양수)
    benchmark_value: Decimal    # 첫 봉 종가에 전액 매수했을 때의 평가액

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "portfolio_value": str(self.portfolio_value),
            "drawdown_percent": str(self.drawdown_percent),
            "benchmark_value": str(self.benchmark_value),
        }


@dataclass(frozen=True)
class BacktestResult:
    """백테스트 최종 결과."""
    request: BacktestRequest
    strategy_name: str                  # 표시용 이름 (예: 'MA Cross (20/60 SMA)')
    strategy_description: str
    strategy_parameters: dict[str, Any]
    initial_capital: Decimal
    final_capital: Decimal
    metrics: BacktestMetrics
    equity_curve: tuple[EquityPoint, ...] = ()
    trades: tuple[ClosedTrade, ...] = ()
    monthly_performance: tuple[MonthlyPerformance, ...] = ()
    open_positions: tuple[Position, ...] = ()
    data_gaps: tuple[DataGap, ...] = ()
    bars_processed: int = 0
    warnings: tuple[str, ...] = field(default=())

    @property
    def symbol(self) -> str:
        return self.request.symbol

    @property
    def drawdown_curve(self) -> list[Decimal]:
        return [p.drawdown_percent for p in self.equity_curve]

    @property
    def benchmark_curve(self) -> list[Decimal]:
        return [p.benchmark_value for p in self.equity_curve]

    @property
    def is_empty(self) -> bool:
        """데이터 부족 등으로 시뮬레이션이 한 번도 돌지 않은 결과."""
        return self.bars_processed == 0

    def equity_dataframe(self) -> pd.DataFrame:
        """자산 곡선을 DataFrame으로 (date 인덱스, float 컬럼). 차트/분석용."""
        df = pd.DataFrame(
            [
                {
                    "date": pd.Timestamp(p.date),
                    "portfolio_value": float(p.portfolio_value),
                    "drawdown_percent": float(p.drawdown_percent),
                    "benchmark_value": float(p.benchmark_value),
                }
                for p in self.equity_curve
            ],
            columns=["date", "portfolio_value", "drawdown_percent", "benchmark_value"],
        )
        return df.set_index("date")

    def trades_dataframe(self) -> pd.DataFrame:
        """거래 원장을 DataFrame으로."""
        columns = list(ClosedTrade.__dataclass_fields__)
        return pd.DataFrame([t.to_dict() for t in self.trades], columns=columns)

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화 가능한 딕셔너리."""
        return {
            "request": self.request.to_dict(),
            "symbol": self.symbol,
            "strategy_name": self.strategy_name,
            "strategy_description": self.strategy_description,
            "strategy_parameters": dict(self.strategy_parameters),
            "initial_capital": str(self.initial_capital),
            "final_capital": str(self.final_capital),
            "metrics": self.metrics.to_dict(),
            "equity_curve": [p.to_dict() for p in self.equity_curve],
            "trades": [t.to_dict() for t in self.trades],
            "monthly_performance": [m.to_dict() for m in self.monthly_performance],
            "open_positions": [p.to_dict() for p in self.open_positions],
            "data_gaps": [g.to_dict() for g in self.data_gaps],
            "bars_processed": self.bars_processed,
            "warnings": list(self.warnings),
        }
