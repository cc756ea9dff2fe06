"""
PriceSeriesProvider 구현체.

[ 구현체 ]
    CsvPriceProvider        CSV 파일 (심볼별 파일 또는 symbol 컬럼이 있는 단일 파일)
    DataFramePriceProvider  메모리의 {심볼: DataFrame}
    SamplePriceProvider     심볼별로 재현 가능한 랜덤워크 샘플 데이터

[ CSV 형식 ]
    date,open,high,low,close,volume
    2024-01-02,185.64,188.44,183.89,185.64,82488700
    컬럼명 대소문자 무관. volume은 생략 가능.

[ 호출하는 곳 ]
    - run_backtest.py에서 --source 옵션에 따라 선택
    - tests/에서 DataFramePriceProvider / SamplePriceProvider 사용
"""

import zlib
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

from journal_backtest.core.data_provider import PriceBar, PriceSeriesProvider
from journal_backtest.core.exceptions import DataError
from journal_backtest.data.market_data import bars_from_dataframe, filter_range


class DataFramePriceProvider(PriceSeriesProvider):
    """{심볼: OHLCV DataFrame}을 그대로 제공."""

    def __init__(self, frames: dict[str, pd.DataFrame]):
        self._bars = {symbol: bars_from_dataframe(df) for symbol, df in frames.items()}

    def get_price_series(self, symbol: str, start_date: date, end_date: date) -> list[PriceBar]:
        if symbol not in self._bars:
            raise DataError(f"데이터 없는 심볼: {symbol}")
        return filter_range(self._bars[symbol], start_date, end_date)

    def get_symbols(self) -> list[str]:
        return sorted(self._bars)


class CsvPriceProvider(PriceSeriesProvider):
    """CSV 파일 기반 가격 제공자.

    path가 디렉토리면 {path}/{symbol}.csv를 읽고,
    파일이면 symbol 컬럼으로 필터링한다 (symbol 컬럼이 없으면 모든 심볼에 같은 데이터).
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.exists():
            raise DataError(f"CSV 경로가 존재하지 않습니다: {self.path}")
        self._cache: dict[str, list[PriceBar]] = {}

    def get_price_series(self, symbol: str, start_date: date, end_date: date) -> list[PriceBar]:
        if symbol not in self._cache:
            self._cache[symbol] = bars_from_dataframe(self._read(symbol))
        return filter_range(self._cache[symbol], start_date, end_date)

    def get_symbols(self) -> list[str]:
        if self.path.is_dir():
            return sorted(p.stem for p in self.path.glob("*.csv"))
        df = self._read_csv(self.path)
        if "symbol" in df.columns:
            return sorted(df["symbol"].astype(str).unique())
        return [self.path.stem]

    def _read(self, symbol: str) -> pd.DataFrame:
        if self.path.is_dir():
            csv_path = self.path / f"{symbol}.csv"
            if not csv_path.exists():
                raise DataError(f"{symbol} CSV 파일이 없습니다: {csv_path}")
            return self._read_csv(csv_path)

        df = self._read_csv(self.path)
        if "symbol" in df.columns:
            df = df[df["symbol"].astype(str) == symbol]
            if df.empty:
                raise DataError(f"{self.path}에 {symbol} 데이터가 없습니다")
        return df

    @staticmethod
    def _read_csv(path: Path) -> pd.DataFrame:
        try:
            df = pd.read_csv(path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise DataError(f"CSV 읽기 실패: {path}: {e}") from e
        df.columns = [str(c).strip().lower() for c in df.columns]
        return df


class SamplePriceProvider(PriceSeriesProvider):
    """백테스트용 샘플 주가 데이터 생성기.

    평일(월~금) 기준 랜덤워크. 같은 심볼/구간이면 항상 같은 데이터.
    """

    def __init__(
        self,
        initial_price: float = 100.0,
        volatility: float = 0.02,
        drift: float = 0.0002,
        symbols: list[str] | None = None,
    ):
        self.initial_price = initial_price
        self.volatility = volatility
        self.drift = drift
        self._symbols = symbols or ["SAMPLE"]

    def get_price_series(self, symbol: str, start_date: date, end_date: date) -> list[PriceBar]:
        return bars_from_dataframe(self.generate(symbol, start_date, end_date))

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    def generate(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        """샘플 OHLCV DataFrame 생성."""
        # hash()는 프로세스마다 달라지므로 crc32로 시드 고정
        rng = np.random.default_rng(zlib.crc32(symbol.encode("utf-8")))

        dates = pd.bdate_range(start=start_date, end=end_date)
        n = len(dates)

        returns = rng.normal(self.drift, self.volatility, n)
        closes = self.initial_price * np.cumprod(1 + returns)
        highs = closes * (1 + np.abs(rng.normal(0, 0.01, n)))
        lows = closes * (1 - np.abs(rng.normal(0, 0.01, n)))
        opens = np.clip(closes * (1 + rng.normal(0, 0.005, n)), lows, highs)
        volumes = rng.lognormal(12, 1, n).astype(int)

        return pd.DataFrame({
            "date": [d.date() for d in dates],
            "open": np.round(opens, 2),
            "high": np.round(highs, 2),
            "low": np.round(lows, 2),
            "close": np.round(closes, 2),
            "volume": volumes,
        })
