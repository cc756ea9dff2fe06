"""
전략 모듈.

[ 전략 등록 방식 ]
    @register(StrategyType.XXX) 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    엔진/최적화기/CLI는 이름(또는 StrategyType)만으로 전략을 생성한다.

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. TradingStrategy를 상속받는 클래스 작성
    3. StrategyType에 유형 추가 후 @register 데코레이터 부착
    → 끝. 엔진 수정 불필요.

[ 파라미터 키 ]
    snake_case가 기본이며, 원본 API 호환을 위해 camelCase 키
    (shortPeriod, stdDevMultiplier 등)도 받아서 변환한다.
"""

import re
from importlib import import_module
from pathlib import Path
from typing import Any

from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import StrategyType, TradingStrategy

# 전략 유형 → 전략 클래스 매핑
STRATEGY_REGISTRY: dict[StrategyType, type[TradingStrategy]] = {}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def register(strategy_type: StrategyType):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[TradingStrategy]):
        cls.strategy_type = strategy_type
        STRATEGY_REGISTRY[strategy_type] = cls
        return cls
    return decorator


def resolve_strategy_type(name: str | StrategyType) -> StrategyType:
    """'moving_average', 'MOVING_AVERAGE', StrategyType.MOVING_AVERAGE 모두 허용.

    Raises:
        ValidationError: 등록되지 않은 전략 이름
    """
    if isinstance(name, StrategyType):
        return name
    key = str(name).strip().lower()
    for strategy_type in StrategyType:
        if key in (strategy_type.value, strategy_type.name.lower()):
            return strategy_type
    available = ", ".join(list_strategies())
    raise ValidationError(f"알 수 없는 전략: '{name}'. 사용 가능: {available}", field="strategy_type")


def normalize_params(params: dict[str, Any] | None) -> dict[str, Any]:
    """camelCase 파라미터 키를 snake_case로 변환."""
    return {_CAMEL_BOUNDARY.sub("_", str(k)).lower(): v for k, v in (params or {}).items()}


def create_strategy(name: str | StrategyType, params: dict[str, Any] | None = None) -> TradingStrategy:
    """이름으로 전략 인스턴스를 생성.

    Args:
        name: 등록된 전략 이름 (예: "moving_average", "RSI")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        ValidationError: 등록되지 않은 전략 이름 또는 잘못된 파라미터
    """
    strategy_type = resolve_strategy_type(name)
    if strategy_type not in STRATEGY_REGISTRY:
        raise ValidationError(f"구현되지 않은 전략: '{name}'", field="strategy_type")
    return STRATEGY_REGISTRY[strategy_type](params=normalize_params(params))


def list_strategies() -> list[str]:
    """등록된 전략 이름 목록 반환."""
    return sorted(t.value for t in STRATEGY_REGISTRY)


def default_parameters(name: str | StrategyType) -> dict[str, Any]:
    """전략별 기본 파라미터."""
    strategy_type = resolve_strategy_type(name)
    return dict(STRATEGY_REGISTRY[strategy_type].DEFAULT_PARAMS)


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in sorted(strategies_dir.glob("*.py")):
        if py_file.name.startswith("_"):
            continue
        module_name = f"journal_backtest.strategies.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
