"""
백테스트 예외 정의.

[ 계층 ]
    BacktestError
      ├── ValidationError    요청/전략 파라미터/가격 시계열 검증 실패 (ValueError 호환)
      ├── DataError          가격 데이터 로드 실패 (파일 없음, 컬럼 누락 등)
      └── OptimizationError  파라미터 최적화 결과가 하나도 없음

[ 설계 메모 ]
    가격 데이터가 전략 최소 요구량보다 짧은 경우는 예외가 아니다.
    backtest/engine.py가 빈 결과(거래 0건)를 반환한다.
"""


class BacktestError(Exception):
    """백테스트 관련 모든 예외의 부모."""


class ValidationError(BacktestError, ValueError):
    """입력값 검증 실패."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DataError(BacktestError):
    """가격 데이터 로드/변환 실패."""


class OptimizationError(BacktestError):
    """최적화 실패 (유효한 결과 없음)."""
