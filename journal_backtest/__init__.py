"""
=============================================================================
매매일지 백테스트 엔진 (Journal Backtest)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         ├── data/providers.py      ← 가격 시계열 (CSV / 샘플 / DataFrame)
         ├── data/market_data.py    ← 캐싱 + 시계열 검증
         │
         ├── strategies/            ← 매매 전략 (시그널 생성, 레지스트리)
         │     ├── moving_average_cross.py
         │     ├── rsi_strategy.py
         │     ├── macd_strategy.py
         │     ├── bollinger_band_strategy.py
         │     └── momentum_strategy.py
         │
         └── backtest/engine.py     ← 백테스트 실행 엔진
               │
               ├── backtest/request.py    ← 요청 검증
               ├── backtest/simulator.py  ← 봉 단위 상태 전이 (불변 상태 fold)
               ├── data/portfolio.py      ← 포지션 / 청산 거래 기록
               ├── backtest/metrics.py    ← 성과 지표 계산
               └── backtest/result.py     ← 최종 결과

         backtest/optimizer.py      ← 파라미터 스윕 (병렬)
         backtest/comparison.py     ← 여러 결과 비교 / 종합 점수


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/data_provider.py    → data/providers.py (CSV, DataFrame, 샘플)
    core/trading_strategy.py → strategies/*.py (5개 전략)


[ 데이터 흐름 ]

    1. config.yaml에서 전략/백테스트 설정 로드 → BacktestRequest
    2. PriceSeriesProvider가 일봉 시계열 제공
    3. TradingStrategy가 시계열 + 현재 인덱스로 시그널(매수/매도/홀드) 생성
    4. simulator.step()이 시그널과 손절/익절/후행손절 규칙으로 다음 상태 생성
    5. metrics.py가 자산 곡선과 거래 원장으로 성과 지표 계산


[ 금액 계산 ]

    모든 가격/금액/수량은 Decimal (utils/money.py).
    같은 입력이면 결과가 완전히 동일하다 (BacktestResult.to_dict() 기준).
"""

__version__ = "0.1.0"
