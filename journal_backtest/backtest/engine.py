"""
백테스팅 엔진 모듈.

[ 역할 ]
    단일 종목 가격 시계열에 전략을 적용하여 가상 매매를 시뮬레이션하고 성과를 측정.
    시스템의 핵심 실행 경로를 담당.

[ 실행 흐름 ]
    run_backtest(request, prices) 호출 시:
        1. 요청 검증 (BacktestRequest.validate)
        2. 전략 생성 (strategies.create_strategy)
        3. 시계열 검증 (오름차순/중복) → [start, end] 구간 추출 → 공백 기록
        4. 데이터가 전략 최소 요구량보다 적으면 빈 결과 반환 (예외 아님)
        5. simulator.simulate()로 봉 단위 fold
        6. 자산 곡선 / 낙폭 / 벤치마크 곡선 생성
        7. metrics.calculate_metrics()로 성과 지표 계산
        8. BacktestResult 조립

[ 의존성 ]
    - core/trading_strategy.py::TradingStrategy (전략 인터페이스)
    - backtest/simulator.py (상태 전이)
    - backtest/metrics.py::calculate_metrics() (성과 계산)

[ 호출하는 곳 ]
    - run_backtest.py (진입점)
    - backtest/optimizer.py (파라미터 조합별 실행)
"""

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from journal_backtest.backtest.metrics import BacktestMetrics, calculate_metrics, drawdown_series, monthly_performance
from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.backtest.result import BacktestResult, EquityPoint
from journal_backtest.backtest.simulator import SimulationContext, simulate
from journal_backtest.core.data_provider import PriceBar
from journal_backtest.core.trading_strategy import TradingStrategy
from journal_backtest.data.market_data import MarketDataManager, filter_range, find_gaps, validate_series
from journal_backtest.strategies import create_strategy
from journal_backtest.utils.money import divide, quantize

logger = logging.getLogger("journal_backtest.backtest")


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행.

    result는 마지막 실행 결과 (generate_report 기본값).
    최적화기는 조합마다 새 엔진을 만든다.
    """

    def __init__(self, data_manager: MarketDataManager | None = None):
        self.data_manager = data_manager
        self.result: BacktestResult | None = None

    def run(self, request: BacktestRequest) -> BacktestResult:
        """data_manager에서 가격을 조회하여 백테스트 실행."""
        if self.data_manager is None:
            raise ValueError("data_manager 없이 run()을 호출할 수 없습니다. run_backtest()에 가격을 직접 전달하세요.")
        request.validate()
        prices = self.data_manager.get_price_series(request.symbol, request.start_date, request.end_date)
        return self.run_backtest(request, prices)

    def run_backtest(self, request: BacktestRequest, prices: Sequence[PriceBar]) -> BacktestResult:
        """백테스트 실행.

        Args:
            request: 백테스트 요청
            prices: 날짜 오름차순 일봉 시계열 (요청 구간 밖의 봉은 무시)

        Returns:
            BacktestResult

        Raises:
            ValidationError: 잘못된 요청/전략 파라미터, 역순/중복 날짜
        """
        request.validate()
        strategy = create_strategy(request.strategy_type, request.strategy_params)

        validate_series(prices)
        bars = filter_range(prices, request.start_date, request.end_date)
        gaps = find_gaps(bars)
        for gap in gaps:
            logger.info(f"{request.symbol} 데이터 공백: {gap.prev_date} → {gap.next_date} ({gap.calendar_days}일)")

        required = strategy.minimum_data_points()
        if len(bars) < required:
            message = f"데이터 부족: {len(bars)}개 봉 (최소 {required}개 필요)"
            logger.warning(f"{request.symbol} {strategy.label}: {message}")
            result = self._empty_result(request, strategy, gaps, message)
            self.result = result
            return result

        logger.info(
            f"백테스트 시작: {request.symbol} {strategy.label} "
            f"{bars[0].date} ~ {bars[-1].date} ({len(bars)}봉)"
        )

        context = SimulationContext.from_request(request, strategy.label)
        state, samples = simulate(bars, strategy, context, request.initial_capital)

        values = [s.value for s in samples]
        drawdowns = drawdown_series(values, request.initial_capital)
        benchmark = self._benchmark_values(bars, request.initial_capital)
        equity_curve = tuple(
            EquityPoint(date=s.date, portfolio_value=s.value, drawdown_percent=dd, benchmark_value=b)
            for s, dd, b in zip(samples, drawdowns, benchmark)
        )

        metrics = calculate_metrics(
            ledger=state.ledger,
            equity_values=values,
            initial_capital=request.initial_capital,
            start_date=request.start_date,
            end_date=request.end_date,
            benchmark_values=benchmark,
        )

        warnings = ()
        if state.positions:
            warnings = (f"종료 시점 미청산 포지션 {len(state.positions)}개 (종가 평가)",)

        result = BacktestResult(
            request=request,
            strategy_name=strategy.label,
            strategy_description=strategy.description,
            strategy_parameters=strategy.parameters,
            initial_capital=request.initial_capital,
            final_capital=values[-1],
            metrics=metrics,
            equity_curve=equity_curve,
            trades=state.ledger,
            monthly_performance=tuple(monthly_performance(state.ledger)),
            open_positions=state.positions,
            data_gaps=tuple(gaps),
            bars_processed=len(bars),
            warnings=warnings,
        )

        logger.info(
            f"백테스트 완료: {request.symbol} {strategy.label} "
            f"총 수익률 {metrics.total_return:.2f}%, 거래 {metrics.total_trades}건"
        )
        self.result = result
        return result

    @staticmethod
    def _benchmark_values(bars: Sequence[PriceBar], initial_capital: Decimal) -> list[Decimal]:
        """첫 봉 종가에 전액 매수 후 보유했을 때의 봉별 평가액."""
        first_close = bars[0].close
        return [quantize(divide(initial_capital * bar.close, first_close)) for bar in bars]

    @staticmethod
    def _empty_result(
        request: BacktestRequest,
        strategy: TradingStrategy,
        gaps: list,
        message: str,
    ) -> BacktestResult:
        return BacktestResult(
            request=request,
            strategy_name=strategy.label,
            strategy_description=strategy.description,
            strategy_parameters=strategy.parameters,
            initial_capital=request.initial_capital,
            final_capital=request.initial_capital,
            metrics=BacktestMetrics(),
            data_gaps=tuple(gaps),
            warnings=(message,),
        )

    def generate_report(self, result: BacktestResult | None = None) -> dict[str, Any]:
        """백테스트 리포트 생성."""
        result = result or self.result
        if result is None:
            return {"error": "백테스트를 먼저 실행하세요."}

        return {
            "symbol": result.symbol,
            "strategy": result.strategy_name,
            "period": f"{result.request.start_date} ~ {result.request.end_date}",
            "initial_capital": str(result.initial_capital),
            "final_capital": str(result.final_capital),
            "metrics": result.metrics.to_dict(),
            "trade_count": len(result.trades),
            "trades": [
                {
                    "trade_number": t.trade_number,
                    "entry_date": t.entry_date.isoformat(),
                    "exit_date": t.exit_date.isoformat(),
                    "quantity": str(t.quantity),
                    "entry_price": str(t.entry_price),
                    "exit_price": str(t.exit_price),
                    "profit": str(t.profit),
                    "exit_reason": t.exit_reason.value,
                }
                for t in result.trades
            ],
            "open_positions": len(result.open_positions),
            "warnings": list(result.warnings),
        }


def run_backtest(request: BacktestRequest, prices: Sequence[PriceBar]) -> BacktestResult:
    """BacktestEngine().run_backtest() 단축 함수."""
    return BacktestEngine().run_backtest(request, prices)
