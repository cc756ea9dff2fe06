"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 파라미터, 백테스트 요청 기본값, 최적화 설정, 로깅 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    strategy:         → StrategyConfig (전략 이름, 심볼, 파라미터)
    backtest:         → BacktestConfig (기간, 자본, 수수료, 리스크 한도)
    optimization:     → OptimizationConfig (파라미터 범위, 목표, 워커 수)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

    알 수 없는 키는 무시한다.

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - BacktestConfig.to_request()로 BacktestRequest 생성
    - OptimizationConfig.to_request()로 OptimizationRequest 생성
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from journal_backtest.backtest.optimizer import OptimizationRequest
from journal_backtest.backtest.request import BacktestRequest


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    전략별 파라미터는 params dict에 자유롭게 넣는다.
    각 전략 클래스의 DEFAULT_PARAMS가 기본값 역할을 하므로,
    여기서는 오버라이드할 값만 지정하면 된다.
    """
    name: str = "moving_average"
    symbol: str = "SAMPLE"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응. 퍼센트 단위."""
    start_date: str = "2023-01-01"
    end_date: str = "2024-12-31"
    initial_capital: float = 10_000_000
    position_size_percent: float = 100
    max_positions: int = 1
    commission_rate: float = 0.015   # 0.015%
    slippage: float = 0.1            # 0.1%
    stop_loss_percent: float | None = None
    take_profit_percent: float | None = None
    trailing_stop_percent: float | None = None

    def to_request(self, strategy: StrategyConfig, **overrides: Any) -> BacktestRequest:
        """설정값으로 BacktestRequest 생성. overrides로 일부 필드 교체."""
        values: dict[str, Any] = {
            "symbol": strategy.symbol,
            "strategy_type": strategy.name,
            "strategy_params": dict(strategy.params),
            **asdict(self),
        }
        values.update(overrides)
        for key in ("start_date", "end_date"):
            if isinstance(values[key], str):
                values[key] = date.fromisoformat(values[key])
        return BacktestRequest(**values)


@dataclass
class OptimizationConfig:
    """최적화 설정. config.yaml의 optimization 섹션에 대응.

    parameter_ranges 예:
        short_period: {min: 5, max: 20, step: 5}
        long_period: [40, 80, 20]
    """
    parameter_ranges: dict[str, Any] = field(default_factory=dict)
    target: str = "TOTAL_RETURN"
    max_workers: int = 4
    timeout_seconds: float | None = None
    max_combinations: int = 10_000

    def to_request(self, base: BacktestRequest) -> OptimizationRequest:
        return OptimizationRequest(
            base=base,
            parameter_ranges=dict(self.parameter_ranges),
            target=self.target,
            max_workers=self.max_workers,
            timeout_seconds=self.timeout_seconds,
            max_combinations=self.max_combinations,
        )


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    optimization: OptimizationConfig = field(default_factory=OptimizationConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        strategy_data = data.get("strategy") or {}
        backtest_data = data.get("backtest") or {}
        optimization_data = data.get("optimization") or {}

        # strategy 섹션: name, symbol은 직접 필드
        # params가 명시적으로 있으면 그것을 사용, 없으면 name/symbol 외 나머지를 params로
        if "params" in strategy_data:
            strategy_params = strategy_data["params"] or {}
        else:
            strategy_params = {
                k: v for k, v in strategy_data.items()
                if k not in ("name", "symbol")
            }
        strategy = StrategyConfig(
            name=strategy_data.get("name", StrategyConfig.name),
            symbol=strategy_data.get("symbol", StrategyConfig.symbol),
            params=strategy_params,
        )
        backtest = BacktestConfig(**{
            k: v for k, v in backtest_data.items()
            if k in BacktestConfig.__dataclass_fields__
        })
        optimization = OptimizationConfig(**{
            k: v for k, v in optimization_data.items()
            if k in OptimizationConfig.__dataclass_fields__
        })

        return cls(
            strategy=strategy,
            backtest=backtest,
            optimization=optimization,
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
