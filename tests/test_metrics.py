import math
from datetime import date
from decimal import Decimal

import numpy as np
import pytest

from conftest import make_trade
from journal_backtest.backtest import metrics
from journal_backtest.backtest.metrics import BacktestMetrics, calculate_metrics
from journal_backtest.utils.money import MAX_RATIO_VALUE, ZERO


def values(*items):
    return [Decimal(str(v)) for v in items]


class TestDrawdown:
    def test_peak_starts_at_initial_capital(self):
        assert metrics.drawdown_series(values(90, 100, 110, 99), Decimal(100)) == values(10, 0, 0, 10)

    def test_bounded_between_zero_and_hundred(self):
        series = metrics.drawdown_series(values(100, 150, 10, 0, 200), Decimal(100))
        assert all(0 <= d <= 100 for d in series)
        assert max(series) == Decimal(100)

    def test_duration_counts_bars_until_recovery(self):
        assert metrics.max_drawdown_duration(values(100, 95, 96, 100, 99, 101), Decimal(100)) == 2

    def test_duration_includes_unrecovered_tail(self):
        assert metrics.max_drawdown_duration(values(110, 100, 100, 100), Decimal(100)) == 3


class TestRatios:
    def test_profit_factor(self):
        assert metrics.profit_factor(Decimal(300), Decimal(100), 3) == Decimal(3)

    def test_profit_factor_without_losses(self):
        assert metrics.profit_factor(Decimal(300), ZERO, 2) == MAX_RATIO_VALUE

    def test_profit_factor_without_trades(self):
        assert metrics.profit_factor(ZERO, ZERO, 0) == ZERO

    def test_sharpe_zero_for_constant_returns(self):
        assert metrics.sharpe_ratio(np.array([0.5, 0.5, 0.5])) == ZERO

    def test_sharpe_zero_for_single_return(self):
        assert metrics.sharpe_ratio(np.array([0.05])) == ZERO

    def test_sharpe_sign_follows_excess_return(self):
        rising = np.array([0.01, 0.02, 0.015, 0.01])
        falling = -rising
        assert metrics.sharpe_ratio(rising) > 0
        assert metrics.sharpe_ratio(falling) < 0

    def test_sortino_caps_when_no_downside(self):
        assert metrics.sortino_ratio(np.array([0.01, 0.02, 0.03])) == MAX_RATIO_VALUE

    def test_sortino_zero_without_downside_or_excess(self):
        assert metrics.sortino_ratio(np.zeros(5)) == ZERO

    def test_cagr(self):
        assert metrics.calculate_cagr(Decimal(100), Decimal(121), 730) == Decimal("10")

    def test_cagr_without_elapsed_days(self):
        assert metrics.calculate_cagr(Decimal(100), Decimal(121), 0) == ZERO

    def test_cagr_capped_for_short_explosive_growth(self):
        assert metrics.calculate_cagr(Decimal(100), Decimal(800), 5) == MAX_RATIO_VALUE

    def test_sortino_uses_downside_deviation(self):
        returns = np.array([0.02, -0.01, 0.02, -0.01])
        excess = 0.005 - 0.03 / 252
        # 하방편차 = sqrt((0.01² + 0.01²) / 4), 표준편차 = 0.015
        expected_sortino = excess / math.sqrt(0.00005) * math.sqrt(252)
        expected_sharpe = excess / 0.015 * math.sqrt(252)

        sortino = metrics.sortino_ratio(returns)
        sharpe = metrics.sharpe_ratio(returns)
        assert float(sortino) == pytest.approx(expected_sortino, abs=1e-4)
        assert float(sharpe) == pytest.approx(expected_sharpe, abs=1e-4)
        assert sortino > sharpe

    def test_daily_returns_start_from_initial_capital(self):
        returns = metrics.daily_returns(values(110, 99), Decimal(100))
        assert returns == pytest.approx([0.1, -0.1])


class TestTradeStatistics:
    def test_streaks(self):
        ledger = [make_trade(p) for p in ("10", "5", "-3", "0", "-1", "7")]
        # 0원 거래는 패배로 집계
        assert metrics.streaks(ledger) == (2, 3)

    def test_monthly_performance_groups_by_exit_month(self):
        ledger = [
            make_trade("10", exit_date=date(2024, 1, 5)),
            make_trade("-4", exit_date=date(2024, 1, 20)),
            make_trade("6", exit_date=date(2024, 3, 1)),
        ]
        monthly = metrics.monthly_performance(ledger)
        assert [m.month for m in monthly] == ["2024-01", "2024-03"]
        assert monthly[0].profit == Decimal("6")
        assert monthly[0].trade_count == 2
        assert monthly[0].return_pct == Decimal("0.6")
        assert monthly[1].profit == Decimal("6")

    def test_calculate_metrics_from_ledger(self):
        ledger = [make_trade("100", holding_days=4), make_trade("-50", holding_days=2), make_trade("50", holding_days=6)]
        equity = values(1000, 1100, 1050, 1100)
        result = calculate_metrics(ledger, equity, Decimal(1000), date(2024, 1, 1), date(2024, 12, 31))

        assert result.total_trades == 3
        assert result.winning_trades == 2
        assert result.losing_trades == 1
        assert result.win_rate == Decimal("66.67")
        assert result.profit_factor == Decimal("3")
        assert result.avg_win == Decimal("75")
        assert result.avg_loss == Decimal("50")
        assert result.expectancy == Decimal("33.33")
        assert result.avg_holding_days == Decimal("4")
        assert result.total_return == Decimal("10")
        assert result.max_drawdown == Decimal("4.545455")
        assert 0 <= result.max_drawdown <= 100

    def test_empty_ledger_is_all_zero(self):
        result = calculate_metrics([], values(1000, 1000), Decimal(1000), date(2024, 1, 1), date(2024, 1, 2))
        assert result.total_trades == 0
        assert result.win_rate == ZERO
        assert result.profit_factor == ZERO
        assert result.max_drawdown == ZERO
        assert result.sharpe_ratio == ZERO

    def test_empty_equity_returns_defaults(self):
        assert calculate_metrics([], [], Decimal(1000), date(2024, 1, 1), date(2024, 1, 2)) == BacktestMetrics()

    def test_calmar_zero_without_drawdown(self):
        result = calculate_metrics([], values(1000, 1100), Decimal(1000), date(2024, 1, 1), date(2024, 12, 31))
        assert result.max_drawdown == ZERO
        assert result.calmar_ratio == ZERO

    def test_benchmark_return(self):
        result = calculate_metrics(
            [], values(1000), Decimal(1000), date(2024, 1, 1), date(2024, 1, 2), benchmark_values=values(1200)
        )
        assert result.benchmark_return == Decimal("20")

    def test_to_dict_serializes_decimals_as_strings(self):
        data = BacktestMetrics(total_return=Decimal("1.5")).to_dict()
        assert data["total_return"] == "1.5"
        assert data["total_trades"] == 0

    def test_summary_mentions_key_metrics(self):
        text = BacktestMetrics(total_return=Decimal("12.34")).summary()
        assert "12.34%" in text
        assert "샤프 비율" in text

    def test_calmar_capped_for_tiny_drawdown(self):
        result = calculate_metrics([], values(1000, "999.999", 2000), Decimal(1000), date(2024, 1, 1), date(2024, 12, 31))
        assert result.max_drawdown == Decimal("0.0001")
        assert result.calmar_ratio == MAX_RATIO_VALUE
