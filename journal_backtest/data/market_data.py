"""
시장 데이터 관리 모듈.

[ 역할 ]
    PriceSeriesProvider를 감싸서 캐싱 + 시계열 검증/변환 편의 함수 제공.
    동일 구간 반복 조회(최적화 실행 등) 시 캐시에서 즉시 반환.

[ 시계열 검증 규칙 ]
    - 날짜 오름차순 (역순이면 ValidationError)
    - 중복 날짜 금지 (ValidationError)
    - 4일 초과 공백은 오류가 아니라 DataGap으로 기록 (주말/연휴 3~4일은 정상)

[ 의존성 ]
    - core/data_provider.py::PriceSeriesProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()에서 validate_series / find_gaps
    - data/providers.py에서 DataFrame ↔ PriceBar 변환
    - run_backtest.py에서 MarketDataManager로 조회
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

import pandas as pd

from journal_backtest.core.data_provider import PriceBar, PriceSeriesProvider
from journal_backtest.core.exceptions import DataError, ValidationError
from journal_backtest.utils.money import to_decimal

logger = logging.getLogger("journal_backtest.data")

REQUIRED_COLUMNS = ("date", "open", "high", "low", "close")
MAX_NORMAL_GAP_DAYS = 4


@dataclass(frozen=True)
class DataGap:
    """시계열 공백 구간."""
    prev_date: date
    next_date: date
    calendar_days: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "prev_date": self.prev_date.isoformat(),
            "next_date": self.next_date.isoformat(),
            "calendar_days": self.calendar_days,
        }


class MarketDataManager:
    """PriceSeriesProvider 위에 캐싱 레이어를 추가한 매니저.

    사용 예:
        provider = SamplePriceProvider()
        manager = MarketDataManager(provider)
        bars = manager.get_price_series("AAPL", start, end)
    """

    def __init__(self, provider: PriceSeriesProvider):
        self.provider = provider
        self._cache: dict[tuple[str, date, date], list[PriceBar]] = {}

    def get_price_series(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        use_cache: bool = True,
    ) -> list[PriceBar]:
        """가격 시계열 조회 (캐싱 지원). 반환 리스트는 호출자가 수정하지 않는다."""
        cache_key = (symbol, start_date, end_date)

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        bars = self.provider.get_price_series(symbol, start_date, end_date)
        logger.info(f"{symbol}: {len(bars)}개 봉 로드 ({start_date} ~ {end_date})")
        if use_cache:
            self._cache[cache_key] = bars
        return bars

    def get_symbols(self) -> list[str]:
        return self.provider.get_symbols()

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._cache.clear()


# ─── 시계열 검증 ───────────────────────────────────────────────────────

def validate_series(bars: Sequence[PriceBar]) -> None:
    """날짜 오름차순/중복 여부 검증.

    Raises:
        ValidationError: 역순 또는 중복 날짜
    """
    for prev, current in zip(bars, bars[1:]):
        if current.date == prev.date:
            raise ValidationError(f"중복된 날짜: {current.date}", field="prices")
        if current.date < prev.date:
            raise ValidationError(
                f"가격 데이터가 날짜 오름차순이 아닙니다: {prev.date} → {current.date}", field="prices"
            )


def find_gaps(bars: Sequence[PriceBar], max_gap_days: int = MAX_NORMAL_GAP_DAYS) -> list[DataGap]:
    """max_gap_days를 초과하는 날짜 공백 목록."""
    gaps = []
    for prev, current in zip(bars, bars[1:]):
        days = (current.date - prev.date).days
        if days > max_gap_days:
            gaps.append(DataGap(prev_date=prev.date, next_date=current.date, calendar_days=days))
    return gaps


def filter_range(bars: Sequence[PriceBar], start_date: date, end_date: date) -> list[PriceBar]:
    """[start_date, end_date] 구간의 봉만 추출."""
    return [bar for bar in bars if start_date <= bar.date <= end_date]


# ─── DataFrame 변환 ────────────────────────────────────────────────────

def bars_from_dataframe(df: pd.DataFrame) -> list[PriceBar]:
    """OHLCV DataFrame → PriceBar 리스트. 날짜 오름차순으로 정렬해서 반환.

    Raises:
        DataError: 필수 컬럼 누락 또는 숫자로 변환할 수 없는 값
    """
    columns = {c: str(c).strip().lower() for c in df.columns}
    frame = df.rename(columns=columns)
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise DataError(f"필수 컬럼 누락: {missing}")

    if frame.empty:
        return []

    frame = frame.copy()
    frame["date"] = pd.to_datetime(frame["date"]).dt.date
    if "volume" not in frame.columns:
        frame["volume"] = 0
    frame = frame.sort_values("date", kind="stable").reset_index(drop=True)

    bars = []
    for row in frame.itertuples(index=False):
        try:
            prices = [to_decimal(str(getattr(row, c))) for c in ("open", "high", "low", "close")]
        except ValueError as e:
            raise DataError(f"{row.date} 가격 변환 실패: {e}") from e
        if not all(p.is_finite() for p in prices):
            raise DataError(f"{row.date} 가격에 NaN/무한대가 있습니다")
        open_, high, low, close = prices
        bars.append(PriceBar(
            date=row.date,
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=0 if pd.isna(row.volume) else int(row.volume),
        ))
    return bars


def bars_to_dataframe(bars: Sequence[PriceBar]) -> pd.DataFrame:
    """PriceBar 리스트 → OHLCV DataFrame (가격은 float)."""
    return pd.DataFrame(
        [
            {
                "date": bar.date,
                "open": float(bar.open),
                "high": float(bar.high),
                "low": float(bar.low),
                "close": float(bar.close),
                "volume": bar.volume,
            }
            for bar in bars
        ],
        columns=["date", "open", "high", "low", "close", "volume"],
    )
