"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 전략 사용, 샘플 데이터)
    python run_backtest.py

    # 전략 지정
    python run_backtest.py --strategy rsi
    python run_backtest.py --strategy macd --symbol AAPL

    # 파라미터 오버라이드
    python run_backtest.py --strategy moving_average -p short_period=10 -p long_period=30 -p ma_type=EMA

    # CSV 데이터 사용 (파일 또는 {symbol}.csv가 있는 디렉토리)
    python run_backtest.py --source csv --csv data/AAPL.csv --symbol AAPL

    # 여러 전략 비교
    python run_backtest.py --compare moving_average rsi macd

    # 파라미터 최적화 (config.yaml의 optimization 섹션 사용)
    python run_backtest.py --strategy moving_average --optimize

    # 결과를 JSON으로 저장
    python run_backtest.py --json result.json

    # 등록된 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from journal_backtest.backtest.comparison import ComparisonResult, compare_results
from journal_backtest.backtest.engine import BacktestEngine
from journal_backtest.backtest.optimizer import OptimizationResult, StrategyOptimizer
from journal_backtest.backtest.request import BacktestRequest
from journal_backtest.backtest.result import BacktestResult
from journal_backtest.core.data_provider import PriceBar, PriceSeriesProvider
from journal_backtest.core.exceptions import BacktestError
from journal_backtest.data.market_data import MarketDataManager
from journal_backtest.data.providers import CsvPriceProvider, SamplePriceProvider
from journal_backtest.strategies import create_strategy, default_parameters, list_strategies
from journal_backtest.utils.config import Config
from journal_backtest.utils.logger import setup_logger


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        # bool 변환
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def build_provider(source: str, csv_path: str | None) -> PriceSeriesProvider:
    """--source 옵션에 맞는 가격 제공자 생성."""
    if source == "csv":
        if not csv_path:
            raise BacktestError("--source csv에는 --csv 경로가 필요합니다")
        return CsvPriceProvider(csv_path)
    return SamplePriceProvider()


def load_prices(manager: MarketDataManager, request: BacktestRequest) -> list[PriceBar]:
    """요청 기간의 가격 데이터 로드."""
    print(f"{request.symbol} 데이터 로드 중 ({request.start_date} ~ {request.end_date})...")
    bars = manager.get_price_series(request.symbol, request.start_date, request.end_date)
    print(f"  {len(bars)}개 봉")
    return bars


def print_single_result(result: BacktestResult):
    """단일 전략 결과 출력."""
    print(f"\n[전략: {result.strategy_name}]")
    print(f"  {result.strategy_description}")
    print(f"  초기 자본: {result.initial_capital:,.0f} → 최종 자산: {result.final_capital:,.2f}")
    print(result.metrics.summary())

    for warning in result.warnings:
        print(f"[경고] {warning}")
    for gap in result.data_gaps:
        print(f"[데이터 공백] {gap.prev_date} → {gap.next_date} ({gap.calendar_days}일)")

    if result.trades:
        print("\n최근 거래 (최대 5건):")
        for t in result.trades[-5:]:
            profit_str = f"+{t.profit:,.2f}" if t.profit > 0 else f"{t.profit:,.2f}"
            print(
                f"  #{t.trade_number} [{t.entry_date} → {t.exit_date}] {t.quantity}주 "
                f"{t.entry_price:,.2f} → {t.exit_price:,.2f} ({t.exit_reason.value}) {profit_str}"
            )

    if result.monthly_performance:
        print("\n월별 성과:")
        for m in result.monthly_performance:
            print(f"  {m.month}: {m.trade_count}건, 손익 {m.profit:,.2f}, 수익률 {m.return_pct:.2f}%")


def print_comparison(results: list[BacktestResult], comparison: ComparisonResult):
    """여러 전략 비교 결과 출력."""
    names = [r.strategy_name for r in results]
    col_width = max(14, max(len(n) for n in names) + 2)
    first = results[0].request
    period = f"{first.start_date} ~ {first.end_date}"

    print(f"\n{'=' * (20 + col_width * len(names))}")
    print(f"전략 비교 결과 ({first.symbol}, {period})")
    print(f"{'=' * (20 + col_width * len(names))}")

    # 헤더
    header = f"{'':>20}" + "".join(f"{n:>{col_width}}" for n in names)
    print(header)
    print("-" * len(header))

    # 지표 행
    rows = [
        ("총 수익률", lambda m: f"{m.total_return:.2f}%"),
        ("CAGR", lambda m: f"{m.cagr:.2f}%"),
        ("샤프 비율", lambda m: f"{m.sharpe_ratio:.2f}"),
        ("소르티노 비율", lambda m: f"{m.sortino_ratio:.2f}"),
        ("최대 낙폭(MDD)", lambda m: f"{m.max_drawdown:.2f}%"),
        ("총 거래 횟수", lambda m: f"{m.total_trades}"),
        ("승률", lambda m: f"{m.win_rate:.1f}%"),
        ("수익 팩터", lambda m: f"{m.profit_factor:.2f}"),
        ("최대 연속 수익", lambda m: f"{m.max_consecutive_wins}"),
        ("최대 연속 손실", lambda m: f"{m.max_consecutive_losses}"),
    ]

    for label, fmt in rows:
        row = f"{label:>20}" + "".join(f"{fmt(r.metrics):>{col_width}}" for r in results)
        print(row)

    score_row = f"{'종합 점수':>20}" + "".join(f"{s:>{col_width}}" for s in comparison.overall_scores)
    print(score_row)
    print(f"{'=' * (20 + col_width * len(names))}")
    print(f"종합 1위: {comparison.winner.strategy_name}")


def print_optimization(result: OptimizationResult, top: int = 10):
    """최적화 결과 출력."""
    print(f"\n최적화 목표: {result.target.label}")
    print(
        f"조합 {result.total_combinations}개 중 {result.completed}개 완료"
        f"{', 시간 초과' if result.timed_out else ''}"
        f"{f', 취소 {result.cancelled}개' if result.cancelled else ''}"
        f"{f', 실패 {len(result.failures)}개' if result.failures else ''}"
    )
    print(f"\n상위 {min(top, len(result.all_results))}개 조합:")
    for rank, r in enumerate(result.all_results[:top], start=1):
        print(
            f"  {rank:>2}. {r.parameters}  목표값={r.target_value}  "
            f"수익률={r.total_return:.2f}%  MDD={r.max_drawdown:.2f}%  거래={r.total_trades}"
        )
    print(f"\n최적 파라미터: {result.best_parameters}")
    print_single_result(result.best_result)


def save_json(data: dict[str, Any], path: str):
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    print(f"\nJSON 저장: {output}")


def main() -> int:
    parser = argparse.ArgumentParser(description="매매 전략 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=str, default=None, help="전략 이름 (config.yaml 대신 지정)")
    parser.add_argument("-p", "--param", action="append", default=[], help="파라미터 오버라이드 (예: -p short_period=10)")
    parser.add_argument("--symbol", type=str, default=None, help="종목 심볼 (config.yaml 대신 지정)")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "csv"], help="데이터 소스")
    parser.add_argument("--csv", type=str, default=None, help="CSV 파일 또는 디렉토리 경로 (--source csv)")
    parser.add_argument("--compare", nargs="+", metavar="STRATEGY", help="여러 전략 비교 (예: --compare rsi macd)")
    parser.add_argument("--optimize", action="store_true", help="config.yaml의 optimization 범위로 파라미터 최적화")
    parser.add_argument("--json", type=str, default=None, metavar="PATH", help="결과를 JSON 파일로 저장")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for name in list_strategies():
            strategy = create_strategy(name)
            print(f"  - {name:<16} {strategy.strategy_type.label}: {default_parameters(name)}")
        return 0

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    # 로거
    setup_logger(level=config.log_level, log_dir=config.log_dir)

    if args.strategy:
        config.strategy.name = args.strategy
    if args.symbol:
        config.strategy.symbol = args.symbol

    # CLI 파라미터 오버라이드
    for p in args.param:
        key, value = parse_param(p)
        config.strategy.params[key] = value
    if args.param:
        print(f"파라미터 오버라이드: {dict(parse_param(p) for p in args.param)}")

    try:
        base_request = config.backtest.to_request(config.strategy)
        manager = MarketDataManager(build_provider(args.source, args.csv))
        prices = load_prices(manager, base_request)
        engine = BacktestEngine(manager)

        # ─── 비교 모드 ───────────────────────────────────────────────────
        if args.compare:
            print(f"\n{len(args.compare)}개 전략 비교 실행...")
            results = []
            for name in args.compare:
                print(f"\n--- {name} 실행 중 ---")
                # 비교 모드에서는 각 전략의 기본 파라미터 사용
                request = config.backtest.to_request(config.strategy, strategy_type=name, strategy_params={})
                results.append(engine.run_backtest(request, prices))
            comparison = compare_results(results)
            print_comparison(results, comparison)
            if args.json:
                save_json(comparison.to_dict(), args.json)
            return 0

        # ─── 최적화 모드 ─────────────────────────────────────────────────
        if args.optimize:
            optimization_request = config.optimization.to_request(base_request)
            print(f"\n전략 최적화: {base_request.strategy_type.value} {dict(config.optimization.parameter_ranges)}")
            optimization = StrategyOptimizer().optimize(optimization_request, prices)
            print_optimization(optimization)
            if args.json:
                save_json(optimization.to_dict(), args.json)
            return 0

        # ─── 단일 실행 모드 ─────────────────────────────────────────────
        print(f"\n전략: {base_request.strategy_type.value}")
        result = engine.run_backtest(base_request, prices)
        print_single_result(result)
        if args.json:
            save_json(result.to_dict(), args.json)
        return 0

    except BacktestError as e:
        print(f"\n오류: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
