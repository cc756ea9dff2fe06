"""
전략 파라미터 최적화 모듈.

[ 역할 ]
    파라미터 범위의 모든 조합(카르테시안 곱)에 대해 독립적인 백테스트를 실행하고
    최적화 목표(OptimizationTarget) 기준으로 순위를 매긴다.

[ 실행 흐름 ]
    optimize(request, prices) 호출 시:
        1. 파라미터 조합 생성 (generate_parameter_combinations)
        2. ThreadPoolExecutor로 조합별 백테스트 병렬 실행
           → 가격 시계열은 모든 워커가 읽기 전용으로 공유
           → 조합 시작 전 취소 이벤트 확인 (cancel() / 시간 초과)
           → 실패한 조합은 로그 후 건너뜀
        3. 모든 워커 종료 후 결과 병합 → 목표값 내림차순 정렬 (동점은 조합 순서)
        4. 최적 조합으로 전체 결과 재생성 (결정적이므로 동일 결과)

[ 호출하는 곳 ]
    - run_backtest.py --optimize
"""

import concurrent.futures
import itertools
import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any

from journal_backtest.backtest.engine import run_backtest
from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.backtest.result import BacktestResult
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.exceptions import OptimizationError, ValidationError
from journal_backtest.strategies import normalize_params
from journal_backtest.utils.money import ZERO, to_decimal

logger = logging.getLogger("journal_backtest.optimizer")

DEFAULT_MAX_WORKERS = 4
DEFAULT_MAX_COMBINATIONS = 10_000


class OptimizationTarget(Enum):
    """최적화 목표. label은 표시용."""
    TOTAL_RETURN = "총 수익률"
    SHARPE_RATIO = "샤프 비율"
    PROFIT_FACTOR = "손익비"
    MIN_DRAWDOWN = "최대낙폭 최소화"
    CALMAR_RATIO = "칼마 비율"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | OptimizationTarget") -> "OptimizationTarget":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        if key not in cls.__members__:
            raise ValidationError(
                f"알 수 없는 최적화 목표: '{value}'. 사용 가능: {', '.join(cls.__members__)}", field="target"
            )
        return cls[key]

    def value_of(self, result: BacktestResult) -> Decimal:
        """결과에서 목표값 추출. 클수록 좋은 값으로 통일 (MDD는 부호 반전)."""
        metrics = result.metrics
        if self is OptimizationTarget.SHARPE_RATIO:
            return metrics.sharpe_ratio
        if self is OptimizationTarget.PROFIT_FACTOR:
            return metrics.profit_factor
        if self is OptimizationTarget.MIN_DRAWDOWN:
            return -metrics.max_drawdown if metrics.max_drawdown else ZERO
        if self is OptimizationTarget.CALMAR_RATIO:
            return metrics.calmar_ratio
        return metrics.total_return


@dataclass(frozen=True)
class ParameterRange:
    """min ~ max (포함)를 step 간격으로. min과 step이 정수면 정수 값 생성."""
    min: Any
    max: Any
    step: Any = 1

    def values(self) -> list[int | float]:
        low, high, step = self._bounds()

        integral = low == low.to_integral_value() and step == step.to_integral_value()
        result: list[int | float] = []
        current = low
        while current <= high:
            result.append(int(current) if integral else float(current))
            current += step
        return result

    def count(self) -> int:
        """값 개수. 리스트를 만들지 않고 계산."""
        low, high, step = self._bounds()
        return int(((high - low) / step).to_integral_value(rounding=ROUND_FLOOR)) + 1

    def _bounds(self) -> tuple[Decimal, Decimal, Decimal]:
        low, high, step = to_decimal(self.min), to_decimal(self.max), to_decimal(self.step)
        if not (low.is_finite() and high.is_finite() and step.is_finite()):
            raise ValidationError(f"범위 값은 유한한 숫자여야 합니다: {self}", field="parameter_ranges")
        if step <= 0:
            raise ValidationError(f"step은 양수여야 합니다: {self.step}", field="step")
        if low > high:
            raise ValidationError(f"min({self.min})이 max({self.max})보다 큽니다", field="min")
        return low, high, step

    @classmethod
    def from_value(cls, value: "ParameterRange | dict[str, Any] | Sequence[Any]") -> "ParameterRange":
        """{min, max, step} 딕셔너리 또는 [min, max, step] 시퀀스 허용."""
        if isinstance(value, ParameterRange):
            return value
        if isinstance(value, dict):
            if "min" not in value or "max" not in value:
                raise ValidationError(f"파라미터 범위에 min/max가 필요합니다: {value}", field="parameter_ranges")
            return cls(min=value["min"], max=value["max"], step=value.get("step", 1))
        items = list(value)
        if len(items) not in (2, 3):
            raise ValidationError(f"파라미터 범위 형식 오류: {value}", field="parameter_ranges")
        return cls(*items)


@dataclass(frozen=True)
class OptimizationRequest:
    """최적화 요청. base의 strategy_params는 범위에 없는 파라미터의 고정값으로 쓰인다."""
    base: BacktestRequest
    parameter_ranges: dict[str, ParameterRange]
    target: OptimizationTarget = OptimizationTarget.TOTAL_RETURN
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: float | None = None
    max_combinations: int = DEFAULT_MAX_COMBINATIONS

    def __post_init__(self):
        ranges = {k: ParameterRange.from_value(v) for k, v in normalize_params(self.parameter_ranges).items()}
        object.__setattr__(self, "parameter_ranges", ranges)
        object.__setattr__(self, "target", OptimizationTarget.parse(self.target))


@dataclass(frozen=True)
class ParameterResult:
    """조합 하나의 요약 결과."""
    combination_index: int
    parameters: dict[str, Any]
    target_value: Decimal
    total_return: Decimal
    max_drawdown: Decimal
    sharpe_ratio: Decimal
    profit_factor: Decimal
    total_trades: int
    win_rate: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameters": dict(self.parameters),
            "target_value": str(self.target_value),
            "total_return": str(self.total_return),
            "max_drawdown": str(self.max_drawdown),
            "sharpe_ratio": str(self.sharpe_ratio),
            "profit_factor": str(self.profit_factor),
            "total_trades": self.total_trades,
            "win_rate": str(self.win_rate),
        }


@dataclass(frozen=True)
class OptimizationResult:
    best_parameters: dict[str, Any]
    best_result: BacktestResult
    all_results: tuple[ParameterResult, ...]   # 목표값 내림차순
    total_combinations: int
    completed: int
    cancelled: int
    timed_out: bool
    target: OptimizationTarget
    failures: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "best_parameters": dict(self.best_parameters),
            "best_result": self.best_result.to_dict(),
            "all_results": [r.to_dict() for r in self.all_results],
            "total_combinations": self.total_combinations,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "timed_out": self.timed_out,
            "target": self.target.name,
            "failures": list(self.failures),
        }


def count_parameter_combinations(ranges: dict[str, ParameterRange]) -> int:
    """조합 수. 범위가 없으면 1."""
    return math.prod(r.count() for r in ranges.values())


def generate_parameter_combinations(ranges: dict[str, ParameterRange]) -> list[dict[str, Any]]:
    """파라미터 범위의 카르테시안 곱. 범위가 없으면 빈 조합 하나."""
    if not ranges:
        return [{}]
    names = list(ranges)
    value_lists = [ranges[name].values() for name in names]
    return [dict(zip(names, combo)) for combo in itertools.product(*value_lists)]


class StrategyOptimizer:
    """파라미터 스윕 실행기. cancel()로 실행 중인 최적화를 협조적으로 중단."""

    def __init__(self):
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """아직 시작하지 않은 조합을 건너뛰게 한다. 실행 중인 조합은 끝까지 돈다."""
        self._cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def optimize(self, request: OptimizationRequest, prices: Sequence[PriceBar]) -> OptimizationResult:
        """최적화 실행.

        Raises:
            ValidationError: 잘못된 기본 요청/범위, 조합 수 초과
            OptimizationError: 유효한 결과가 하나도 없음
        """
        request.base.validate()
        total = count_parameter_combinations(request.parameter_ranges)
        if total > request.max_combinations:
            raise ValidationError(
                f"파라미터 조합 수({total})가 최대값({request.max_combinations})을 초과합니다",
                field="parameter_ranges",
            )
        combinations = generate_parameter_combinations(request.parameter_ranges)

        self._cancel_event.clear()
        logger.info(
            f"전략 최적화 시작: {request.base.strategy_type.value} - {request.base.symbol}, "
            f"조합 {total}개, 목표 {request.target.name}"
        )

        outcomes: dict[int, ParameterResult | None] = {}
        failures: list[str] = []
        timed_out = False
        progress = _Progress(total)

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=max(1, request.max_workers))
        try:
            future_to_index = {
                executor.submit(self._evaluate, index, params, request, prices, progress): index
                for index, params in enumerate(combinations)
            }
            _, not_done = concurrent.futures.wait(future_to_index, timeout=request.timeout_seconds)
            if not_done:
                timed_out = True
                logger.warning(f"최적화 시간 초과 ({request.timeout_seconds}초): 남은 조합 {len(not_done)}개 취소")
                self._cancel_event.set()
                for future in not_done:
                    future.cancel()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        # 모든 워커 종료 후 병합
        for future, index in future_to_index.items():
            if future.cancelled():
                outcomes[index] = None
                continue
            try:
                outcomes[index] = future.result()
            except Exception as exc:
                logger.warning(f"파라미터 조합 테스트 실패: {combinations[index]} - {exc}")
                failures.append(f"{combinations[index]}: {exc}")

        results = [r for r in outcomes.values() if r is not None]
        cancelled = sum(1 for r in outcomes.values() if r is None)
        if not results:
            raise OptimizationError("최적화 실패: 유효한 결과가 없습니다")

        ranked = tuple(sorted(results, key=lambda r: (-r.target_value, r.combination_index)))
        best = ranked[0]
        best_result = run_backtest(request.base.with_strategy_params(best.parameters), prices)

        logger.info(
            f"최적화 완료: {len(results)}/{total} 조합, 최적 {best.parameters} "
            f"({request.target.name}={best.target_value})"
        )
        return OptimizationResult(
            best_parameters=dict(best.parameters),
            best_result=best_result,
            all_results=ranked,
            total_combinations=total,
            completed=len(results),
            cancelled=cancelled,
            timed_out=timed_out,
            target=request.target,
            failures=tuple(failures),
        )

    def _evaluate(
        self,
        index: int,
        params: dict[str, Any],
        request: OptimizationRequest,
        prices: Sequence[PriceBar],
        progress: "_Progress",
    ) -> ParameterResult | None:
        """조합 하나 실행. 취소된 상태면 None."""
        if self._cancel_event.is_set():
            return None
        try:
            result = run_backtest(request.base.with_strategy_params(params), prices)
        finally:
            progress.tick()
        metrics = result.metrics
        return ParameterResult(
            combination_index=index,
            parameters=dict(params),
            target_value=request.target.value_of(result),
            total_return=metrics.total_return,
            max_drawdown=metrics.max_drawdown,
            sharpe_ratio=metrics.sharpe_ratio,
            profit_factor=metrics.profit_factor,
            total_trades=metrics.total_trades,
            win_rate=metrics.win_rate,
        )


class _Progress:
    """10% 단위 진행률 로깅."""

    def __init__(self, total: int):
        self.total = total
        self.interval = max(1, total // 10)
        self._completed = 0
        self._lock = threading.Lock()

    def tick(self) -> None:
        with self._lock:
            self._completed += 1
            completed = self._completed
        if completed % self.interval == 0 or completed == self.total:
            logger.info(f"최적화 진행률: {completed}/{self.total} ({completed / self.total * 100:.0f}%)")
