"""
백테스트 결과 비교 모듈.

[ 역할 ]
    여러 BacktestResult를 지표별로 순위 매기고 종합 점수를 계산.
    자산 곡선은 시작점 100 기준으로 정규화하여 나란히 비교할 수 있게 한다.

[ 종합 점수 ]
    30 × 수익률/최대수익률 + 30 × 샤프/최대샤프 + 20 × 승률/최대승률
    + 20 × (1 - MDD/최대MDD)
    각 항은 해당 지표의 최대값이 0 이하이면 0점.

[ 호출하는 곳 ]
    - run_backtest.py --compare
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from journal_backtest.backtest.result import BacktestResult
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.utils.money import DISPLAY_SCALE, HUNDRED, ONE, QUANTITY_SCALE, ZERO, divide, quantize

logger = logging.getLogger("journal_backtest.comparison")

# 지표 이름 → (추출 함수, 내림차순 여부)
RANKED_METRICS: dict[str, tuple[Callable[[BacktestResult], Decimal], bool]] = {
    "total_return": (lambda r: r.metrics.total_return, True),
    "cagr": (lambda r: r.metrics.cagr, True),
    "sharpe_ratio": (lambda r: r.metrics.sharpe_ratio, True),
    "profit_factor": (lambda r: r.metrics.profit_factor, True),
    "win_rate": (lambda r: r.metrics.win_rate, True),
    "max_drawdown": (lambda r: r.metrics.max_drawdown, False),
}

SCORE_WEIGHTS = {
    "total_return": Decimal(30),
    "sharpe_ratio": Decimal(30),
    "win_rate": Decimal(20),
    "max_drawdown": Decimal(20),
}


@dataclass(frozen=True)
class RankEntry:
    rank: int
    index: int            # 입력 리스트에서의 위치
    strategy_name: str
    value: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"rank": self.rank, "index": self.index, "strategy_name": self.strategy_name, "value": str(self.value)}


@dataclass(frozen=True)
class ComparisonResult:
    strategy_names: tuple[str, ...]
    rankings: dict[str, tuple[RankEntry, ...]]          # 지표별 + "overall_score"
    overall_scores: tuple[Decimal, ...]                 # 입력 순서
    equity_curves: tuple[tuple[Decimal, ...], ...]      # 시작 = 100
    monthly_returns: dict[str, dict[int, Decimal]]      # 월 → {입력 위치: return_pct}

    @property
    def winner(self) -> RankEntry:
        """종합 점수 1위."""
        return self.rankings["overall_score"][0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_names": list(self.strategy_names),
            "rankings": {k: [e.to_dict() for e in v] for k, v in self.rankings.items()},
            "overall_scores": [str(s) for s in self.overall_scores],
            "equity_curves": [[str(v) for v in curve] for curve in self.equity_curves],
            "monthly_returns": {
                month: {str(i): str(v) for i, v in values.items()} for month, values in self.monthly_returns.items()
            },
        }


def compare_results(results: Sequence[BacktestResult]) -> ComparisonResult:
    """여러 백테스트 결과 비교.

    Raises:
        ValidationError: 결과가 2개 미만
    """
    if len(results) < 2:
        raise ValidationError("비교하려면 최소 2개의 백테스트가 필요합니다.", field="results")

    logger.info(f"백테스트 {len(results)}개 비교")

    rankings = {name: _rank_by(results, extractor, descending) for name, (extractor, descending) in RANKED_METRICS.items()}
    scores = tuple(overall_scores(results))
    rankings["overall_score"] = _rank_values(results, scores, descending=True)

    return ComparisonResult(
        strategy_names=tuple(r.strategy_name for r in results),
        rankings=rankings,
        overall_scores=scores,
        equity_curves=tuple(normalize_curve([p.portfolio_value for p in r.equity_curve]) for r in results),
        monthly_returns=_monthly_comparison(results),
    )


def overall_scores(results: Sequence[BacktestResult]) -> list[Decimal]:
    """종합 점수 (입력 순서). 소수점 2자리."""
    maxima = {name: max(RANKED_METRICS[name][0](r) for r in results) for name in SCORE_WEIGHTS}

    scores = []
    for r in results:
        score = ZERO
        for name, weight in SCORE_WEIGHTS.items():
            top = maxima[name]
            if top <= 0:
                continue
            ratio = divide(RANKED_METRICS[name][0](r), top, QUANTITY_SCALE)
            if name == "max_drawdown":
                ratio = ONE - ratio   # 낙폭은 낮을수록 좋음
            score += ratio * weight
        scores.append(quantize(score, DISPLAY_SCALE))
    return scores


def normalize_curve(values: Sequence[Decimal]) -> tuple[Decimal, ...]:
    """첫 값을 100으로 정규화. 첫 값이 0이면 원본 그대로."""
    if not values:
        return ()
    initial = values[0]
    if initial == 0:
        return tuple(values)
    return tuple(divide(v * HUNDRED, initial, QUANTITY_SCALE) for v in values)


def _rank_by(
    results: Sequence[BacktestResult],
    extractor: Callable[[BacktestResult], Decimal],
    descending: bool,
) -> tuple[RankEntry, ...]:
    return _rank_values(results, [extractor(r) for r in results], descending)


def _rank_values(results: Sequence[BacktestResult], values: Sequence[Decimal], descending: bool) -> tuple[RankEntry, ...]:
    # 동점은 입력 순서
    order = sorted(range(len(results)), key=lambda i: (-values[i] if descending else values[i], i))
    return tuple(
        RankEntry(rank=rank, index=i, strategy_name=results[i].strategy_name, value=values[i])
        for rank, i in enumerate(order, start=1)
    )


def _monthly_comparison(results: Sequence[BacktestResult]) -> dict[str, dict[int, Decimal]]:
    monthly: dict[str, dict[int, Decimal]] = {}
    for i, r in enumerate(results):
        for m in r.monthly_performance:
            monthly.setdefault(m.month, {})[i] = m.return_pct
    return dict(sorted(monthly.items()))
