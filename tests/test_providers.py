from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from conftest import make_bars
from journal_backtest.core.exceptions import DataError
from journal_backtest.data.market_data import (
    MarketDataManager,
    bars_from_dataframe,
    bars_to_dataframe,
    find_gaps,
)
from journal_backtest.data.providers import CsvPriceProvider, DataFramePriceProvider, SamplePriceProvider

CSV_TEXT = """Date,Open,High,Low,Close,Volume
2024-01-03,11,12,10,11.5,2000
2024-01-02,10,11,9,10.5,1000
2024-01-04,11.5,13,11,12.25,3000
"""


class TestCsvPriceProvider:
    def test_directory_of_symbol_files(self, tmp_path):
        (tmp_path / "AAPL.csv").write_text(CSV_TEXT, encoding="utf-8")
        provider = CsvPriceProvider(tmp_path)

        bars = provider.get_price_series("AAPL", date(2024, 1, 1), date(2024, 1, 31))
        assert [b.date for b in bars] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]
        assert bars[0].close == Decimal("10.5")
        assert bars[2].close == Decimal("12.25")
        assert bars[0].volume == 1000
        assert provider.get_symbols() == ["AAPL"]

    def test_range_filter(self, tmp_path):
        path = tmp_path / "AAPL.csv"
        path.write_text(CSV_TEXT, encoding="utf-8")
        bars = CsvPriceProvider(path).get_price_series("AAPL", date(2024, 1, 3), date(2024, 1, 3))
        assert [b.date for b in bars] == [date(2024, 1, 3)]

    def test_single_file_with_symbol_column(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text(
            "symbol,date,open,high,low,close\n"
            "AAA,2024-01-02,1,1,1,1\n"
            "BBB,2024-01-02,2,2,2,2\n"
            "AAA,2024-01-03,1.5,1.5,1.5,1.5\n",
            encoding="utf-8",
        )
        provider = CsvPriceProvider(path)
        assert provider.get_symbols() == ["AAA", "BBB"]
        bars = provider.get_price_series("AAA", date(2024, 1, 1), date(2024, 12, 31))
        assert [b.close for b in bars] == [Decimal("1"), Decimal("1.5")]
        assert bars[0].volume == 0
        with pytest.raises(DataError):
            provider.get_price_series("CCC", date(2024, 1, 1), date(2024, 12, 31))

    def test_missing_path(self, tmp_path):
        with pytest.raises(DataError):
            CsvPriceProvider(tmp_path / "nope.csv")

    def test_missing_symbol_file(self, tmp_path):
        with pytest.raises(DataError):
            CsvPriceProvider(tmp_path).get_price_series("MSFT", date(2024, 1, 1), date(2024, 1, 31))

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("date,close\n2024-01-02,10\n", encoding="utf-8")
        with pytest.raises(DataError):
            CsvPriceProvider(path).get_price_series("bad", date(2024, 1, 1), date(2024, 1, 31))


class TestDataFrameConversion:
    def test_nan_price_rejected(self):
        df = pd.DataFrame({
            "date": ["2024-01-02"],
            "open": [1.0],
            "high": [float("nan")],
            "low": [1.0],
            "close": [1.0],
        })
        with pytest.raises(DataError):
            bars_from_dataframe(df)

    def test_non_numeric_price_rejected(self):
        df = pd.DataFrame({"date": ["2024-01-02"], "open": ["x"], "high": [1], "low": [1], "close": [1]})
        with pytest.raises(DataError):
            bars_from_dataframe(df)

    def test_round_trip_columns(self):
        bars = make_bars([1, 2, 3])
        df = bars_to_dataframe(bars)
        assert list(df.columns) == ["date", "open", "high", "low", "close", "volume"]
        assert bars_from_dataframe(df) == bars

    def test_dataframe_provider(self):
        provider = DataFramePriceProvider({"X": bars_to_dataframe(make_bars([1, 2, 3]))})
        assert provider.get_symbols() == ["X"]
        assert len(provider.get_price_series("X", date(2024, 1, 2), date(2024, 1, 3))) == 2
        with pytest.raises(DataError):
            provider.get_price_series("Y", date(2024, 1, 1), date(2024, 1, 3))


class TestSamplePriceProvider:
    def test_deterministic_per_symbol(self):
        provider = SamplePriceProvider()
        first = provider.get_price_series("AAPL", date(2024, 1, 1), date(2024, 3, 31))
        second = SamplePriceProvider().get_price_series("AAPL", date(2024, 1, 1), date(2024, 3, 31))
        other = provider.get_price_series("MSFT", date(2024, 1, 1), date(2024, 3, 31))
        assert first == second
        assert [b.close for b in first] != [b.close for b in other]

    def test_weekdays_only_with_consistent_ohlc(self):
        bars = SamplePriceProvider().get_price_series("SAMPLE", date(2024, 1, 1), date(2024, 2, 29))
        assert all(b.date.weekday() < 5 for b in bars)
        assert all(b.low <= b.open <= b.high for b in bars)
        assert all(b.low <= b.close <= b.high for b in bars)
        assert find_gaps(bars) == []


class TestMarketDataManager:
    def test_caches_provider_calls(self):
        calls = []

        class CountingProvider(SamplePriceProvider):
            def get_price_series(self, symbol, start_date, end_date):
                calls.append(symbol)
                return super().get_price_series(symbol, start_date, end_date)

        manager = MarketDataManager(CountingProvider())
        first = manager.get_price_series("SAMPLE", date(2024, 1, 1), date(2024, 1, 31))
        second = manager.get_price_series("SAMPLE", date(2024, 1, 1), date(2024, 1, 31))
        assert first is second
        assert calls == ["SAMPLE"]

        manager.clear_cache()
        manager.get_price_series("SAMPLE", date(2024, 1, 1), date(2024, 1, 31))
        assert calls == ["SAMPLE", "SAMPLE"]
        assert manager.get_symbols() == ["SAMPLE"]
