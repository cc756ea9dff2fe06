"""
가격 시계열 제공 추상 클래스 정의.

[ 역할 ]
    단일 종목의 일봉 OHLCV 시계열을 제공하는 인터페이스.
    데이터 소스(CSV, DataFrame, 샘플 생성기 등)에 독립적으로 엔진에 데이터 공급.
    네트워크/히스토리 누락 같은 수집 실패는 구현체 책임이며,
    엔진은 전달받은 시계열의 정합성만 검증한다 (data/market_data.py).

[ 구현체 ]
    - data/providers.py::CsvPriceProvider        (CSV 파일)
    - data/providers.py::DataFramePriceProvider  (메모리 DataFrame)
    - data/providers.py::SamplePriceProvider     (재현 가능한 샘플 데이터)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 통해 조회 + 캐싱
    - run_backtest.py에서 --source 옵션에 따라 구현체 선택
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from journal_backtest.utils.money import quantize


@dataclass(frozen=True)
class PriceBar:
    """단일 일봉. 불변이며 시계열 내에서 날짜 오름차순으로 정렬됨."""
    date: date
    open: Decimal    # 시가
    high: Decimal    # 고가
    low: Decimal     # 저가
    close: Decimal   # 종가
    volume: int = 0  # 거래량

    @property
    def typical_price(self) -> Decimal:
        """전형적 가격 (고가 + 저가 + 종가) / 3."""
        return quantize((self.high + self.low + self.close) / 3, 4)


class PriceSeriesProvider(ABC):
    """가격 시계열 제공 추상 클래스."""

    @abstractmethod
    def get_price_series(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[PriceBar]:
        """[start_date, end_date] 구간의 일봉 시계열 조회.

        Args:
            symbol: 종목 심볼
            start_date: 시작일 (포함)
            end_date: 종료일 (포함)

        Returns:
            날짜 오름차순 PriceBar 리스트
        """
        ...

    @abstractmethod
    def get_symbols(self) -> list[str]:
        """조회 가능한 심볼 목록."""
        ...
