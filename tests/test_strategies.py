import pytest

from conftest import crossing_closes, make_bars
from journal_backtest.core.exceptions import ValidationError
from journal_backtest.core.trading_strategy import Signal, StrategyType
from journal_backtest.strategies import (
    STRATEGY_REGISTRY,
    create_strategy,
    default_parameters,
    list_strategies,
    normalize_params,
    resolve_strategy_type,
)


def signals_for(strategy, bars):
    return [strategy.generate_signal(bars, i) for i in range(len(bars))]


def indices_of(signals, signal):
    return [i for i, s in enumerate(signals) if s is signal]


def bollinger_closes() -> list[float]:
    """25봉 보합 후 한 번 급락(25) → 반등(26), 이후 보합. 총 100봉."""
    closes = [100.0] * 100
    closes[25] = 90.0
    return closes


class TestRegistry:
    def test_all_strategies_registered(self):
        assert set(STRATEGY_REGISTRY) == set(StrategyType)
        assert list_strategies() == ["bollinger_band", "macd", "momentum", "moving_average", "rsi"]

    @pytest.mark.parametrize("name", ["moving_average", "MOVING_AVERAGE", StrategyType.MOVING_AVERAGE])
    def test_resolve_accepts_value_name_and_enum(self, name):
        assert resolve_strategy_type(name) is StrategyType.MOVING_AVERAGE

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError) as exc:
            create_strategy("turtle")
        assert exc.value.field == "strategy_type"

    def test_camel_case_params(self):
        assert normalize_params({"shortPeriod": 5, "stdDevMultiplier": 1.5}) == {
            "short_period": 5,
            "std_dev_multiplier": 1.5,
        }
        strategy = create_strategy("moving_average", {"shortPeriod": 5, "longPeriod": 10})
        assert strategy.parameters["short_period"] == 5
        assert strategy.parameters["long_period"] == 10

    def test_defaults_fill_missing_params(self):
        strategy = create_strategy("rsi", {"period": 7})
        assert strategy.parameters == {**default_parameters("rsi"), "period": 7}


class TestParameterValidation:
    @pytest.mark.parametrize(
        "name, params, field",
        [
            ("moving_average", {"short_period": 20, "long_period": 20}, "short_period"),
            ("moving_average", {"ma_type": "WMA"}, "ma_type"),
            ("rsi", {"oversold_level": 80, "overbought_level": 70}, "oversold_level"),
            ("rsi", {"overbought_level": 120}, "overbought_level"),
            ("macd", {"fast_period": 26, "slow_period": 12}, "fast_period"),
            ("bollinger_band", {"std_dev_multiplier": 0}, "std_dev_multiplier"),
            ("momentum", {"period": 0}, "period"),
            ("momentum", {"period": 2.5}, "period"),
            ("momentum", {"period": True}, "period"),
            ("momentum", {"period": float("inf")}, "period"),
            ("momentum", {"period": float("nan")}, "period"),
            ("rsi", {"overbought_level": float("nan")}, "overbought_level"),
            ("bollinger_band", {"std_dev_multiplier": float("inf")}, "std_dev_multiplier"),
            ("momentum", {"entry_threshold": "nan"}, "entry_threshold"),
        ],
    )
    def test_invalid_params_raise(self, name, params, field):
        with pytest.raises(ValidationError) as exc:
            create_strategy(name, params)
        assert exc.value.field == field

    def test_integral_float_is_accepted(self):
        strategy = create_strategy("momentum", {"period": 10.0})
        assert strategy.period == 10


class TestSignals:
    @pytest.mark.parametrize("name", ["moving_average", "rsi", "macd", "bollinger_band", "momentum"])
    def test_hold_before_minimum_data(self, name):
        strategy = create_strategy(name)
        bars = make_bars(crossing_closes() * 3)
        for index in range(min(strategy.minimum_data_points(), len(bars))):
            assert strategy.generate_signal(bars, index) is Signal.HOLD

    @pytest.mark.parametrize("name", ["moving_average", "rsi", "macd", "bollinger_band", "momentum"])
    def test_flat_series_never_trades(self, name):
        strategy = create_strategy(name)
        signals = signals_for(strategy, make_bars([100] * 120))
        assert set(signals) == {Signal.HOLD}

    def test_index_past_end_is_hold(self):
        strategy = create_strategy("moving_average", {"short_period": 2, "long_period": 4})
        bars = make_bars(crossing_closes())
        assert strategy.generate_signal(bars, len(bars)) is Signal.HOLD

    def test_moving_average_crosses_exactly_once(self):
        strategy = create_strategy("moving_average", {"short_period": 2, "long_period": 4})
        signals = signals_for(strategy, make_bars(crossing_closes()))
        assert indices_of(signals, Signal.BUY) == [10]
        assert indices_of(signals, Signal.SELL) == [21]

    def test_ema_variant_crosses_once_each_way(self):
        strategy = create_strategy("moving_average", {"short_period": 2, "long_period": 4, "ma_type": "ema"})
        signals = signals_for(strategy, make_bars(crossing_closes()))
        assert len(indices_of(signals, Signal.BUY)) == 1
        assert len(indices_of(signals, Signal.SELL)) == 1
        assert strategy.parameters["ma_type"] == "EMA"

    def test_bollinger_buy_fires_once_at_rebound(self):
        strategy = create_strategy("bollinger_band", {"period": 20, "stdDevMultiplier": 2.0})
        signals = signals_for(strategy, make_bars(bollinger_closes()))
        assert indices_of(signals, Signal.BUY) == [26]

    def test_rsi_rebound_from_oversold(self):
        closes = [100.0] * 5 + [100.0 - 2 * i for i in range(1, 11)] + [80.0 + 3 * i for i in range(1, 6)]
        strategy = create_strategy("rsi", {"period": 5})
        signals = signals_for(strategy, make_bars(closes))
        buys = indices_of(signals, Signal.BUY)
        assert buys == [16]

    def test_momentum_threshold_cross(self):
        closes = [100.0] * 10 + [101.0, 102.0, 103.0]
        strategy = create_strategy("momentum", {"period": 3})
        signals = signals_for(strategy, make_bars(closes))
        assert indices_of(signals, Signal.BUY) == [10]
        assert indices_of(signals, Signal.SELL) == []

    def test_momentum_exit_threshold_cross(self):
        closes = [100.0] * 10 + [101.0, 102.0, 103.0, 102.0, 101.0, 100.0, 99.0]
        strategy = create_strategy("momentum", {"period": 3})
        signals = signals_for(strategy, make_bars(closes))
        assert indices_of(signals, Signal.BUY) == [10]
        assert indices_of(signals, Signal.SELL) == [14]

    def test_rsi_falls_back_from_overbought(self):
        # 상승 구간 RSI 100 → index 15에서 72.73, index 16에서 50으로 70 하향 돌파
        closes = [100.0] * 5 + [100.0 + 2 * i for i in range(1, 11)] + [120.0 - 3 * i for i in range(1, 6)]
        strategy = create_strategy("rsi", {"period": 5})
        signals = signals_for(strategy, make_bars(closes))
        assert indices_of(signals, Signal.SELL) == [16]
        assert indices_of(signals, Signal.BUY) == []

    def test_bollinger_sell_fires_once_after_upper_breakout(self):
        closes = [100.0] * 100
        closes[25] = 110.0
        strategy = create_strategy("bollinger_band", {"period": 20, "std_dev_multiplier": 2.0})
        signals = signals_for(strategy, make_bars(closes))
        assert indices_of(signals, Signal.SELL) == [26]

    def test_macd_crosses_signal_line_once_each_way(self):
        # 보합 → 상승 첫 봉에서 골든크로스, 하락 첫 봉에서 데드크로스
        strategy = create_strategy("macd", {"fast_period": 2, "slow_period": 4, "signal_period": 2})
        signals = signals_for(strategy, make_bars(crossing_closes()))
        assert indices_of(signals, Signal.BUY) == [10]
        assert indices_of(signals, Signal.SELL) == [20]

    def test_signal_ignores_future_bars(self):
        strategy = create_strategy("macd")
        bars = make_bars([100.0 + (i % 7) * 1.5 for i in range(80)])
        full = signals_for(strategy, bars)
        truncated = [strategy.generate_signal(bars[: i + 1], i) for i in range(len(bars))]
        assert full == truncated


class TestDescriptions:
    def test_label_and_description(self):
        strategy = create_strategy("moving_average", {"short_period": 5, "long_period": 20})
        assert strategy.label == "MA Cross (5/20 SMA)"
        assert "5일" in strategy.description
        assert strategy.strategy_type is StrategyType.MOVING_AVERAGE
