from decimal import Decimal

from conftest import ScriptedStrategy, make_bar, make_bars, make_context, make_position
from journal_backtest.backtest.simulator import Phase, SimulationState, simulate, step
from journal_backtest.core.trading_strategy import Signal
from journal_backtest.data.portfolio import ExitReason


def open_state(position, cash="0"):
    return SimulationState(cash=Decimal(cash), positions=(position,), phase=Phase.OPEN)


class TestEntry:
    def test_buy_fills_at_close_with_slippage_and_commission(self):
        context = make_context(slippage_rate=Decimal("0.001"), commission_rate=Decimal("0.00015"))
        state = step(SimulationState.initial(Decimal("10000")), make_bar(0, "100", "100", "100", "100"), Signal.BUY, context)

        position = state.positions[0]
        assert state.phase is Phase.OPEN
        assert position.entry_price == Decimal("100.1")
        # 10000 / (100.1 × 1.00015) = 99.8851... → 4자리 버림
        assert position.quantity == Decimal("99.8851")
        assert position.entry_cost == Decimal("9999.998285")
        assert state.cash == Decimal("10000") - position.entry_cost
        assert state.cash >= 0

    def test_position_size_percent(self):
        context = make_context(position_size_rate=Decimal("0.5"))
        state = step(SimulationState.initial(Decimal("1000")), make_bar(0, "10", "10", "10", "10"), Signal.BUY, context)
        assert state.positions[0].quantity == Decimal("50")
        assert state.cash == Decimal("500")

    def test_insufficient_cash_stays_flat(self):
        initial = SimulationState.initial(Decimal("1"))
        state = step(initial, make_bar(0, "1000000", "1000000", "1000000", "1000000"), Signal.BUY, make_context())
        assert state == initial
        assert state.phase is Phase.FLAT
        assert state.ledger == ()

    def test_stop_and_target_prices_set_from_entry(self):
        context = make_context(stop_loss_rate=Decimal("0.05"), take_profit_rate=Decimal("0.1"))
        state = step(SimulationState.initial(Decimal("1000")), make_bar(0, "100", "100", "100", "100"), Signal.BUY, context)
        position = state.positions[0]
        assert position.stop_loss_price == Decimal("95")
        assert position.take_profit_price == Decimal("110")


class TestExits:
    def test_sell_signal_closes_at_close(self):
        state = open_state(make_position())
        state = step(state, make_bar(3, "104", "106", "103", "105"), Signal.SELL, make_context())

        assert state.phase is Phase.FLAT
        trade = state.ledger[0]
        assert trade.exit_reason is ExitReason.SIGNAL
        assert trade.exit_signal == "Scripted"
        assert trade.exit_price == Decimal("105")
        assert trade.profit == Decimal("50")
        assert trade.profit_percent == Decimal("5")
        assert trade.holding_days == 3
        assert state.cash == Decimal("1050")

    def test_stop_loss_wins_over_take_profit(self):
        position = make_position(stop_loss_price=Decimal("90"), take_profit_price=Decimal("110"))
        state = step(open_state(position), make_bar(1, "100", "115", "85", "100"), Signal.HOLD, make_context())
        trade = state.ledger[0]
        assert trade.exit_reason is ExitReason.STOP_LOSS
        assert trade.exit_price == Decimal("90")
        assert trade.exit_signal == "STOP_LOSS"

    def test_take_profit_wins_over_trailing_stop(self):
        position = make_position(take_profit_price=Decimal("110"), trailing_stop_percent=Decimal("5"))
        state = step(open_state(position), make_bar(1, "100", "112", "90", "100"), Signal.HOLD, make_context())
        assert state.ledger[0].exit_reason is ExitReason.TAKE_PROFIT
        assert state.ledger[0].exit_price == Decimal("110")

    def test_stop_loss_gap_fills_at_open(self):
        position = make_position(stop_loss_price=Decimal("90"))
        state = step(open_state(position), make_bar(1, "80", "82", "75", "81"), Signal.HOLD, make_context())
        assert state.ledger[0].exit_price == Decimal("80")

    def test_take_profit_gap_fills_at_open(self):
        position = make_position(take_profit_price=Decimal("110"))
        state = step(open_state(position), make_bar(1, "120", "125", "118", "121"), Signal.HOLD, make_context())
        assert state.ledger[0].exit_price == Decimal("120")

    def test_trailing_stop_follows_high_water_mark(self):
        position = make_position(trailing_stop_percent=Decimal("10"))
        context = make_context()

        state = step(open_state(position), make_bar(1, "110", "120", "115", "118"), Signal.HOLD, context)
        assert state.ledger == ()
        assert state.positions[0].high_water_mark == Decimal("120")
        assert state.positions[0].trailing_stop_price == Decimal("108")

        state = step(state, make_bar(2, "112", "113", "105", "106"), Signal.HOLD, context)
        trade = state.ledger[0]
        assert trade.exit_reason is ExitReason.TRAILING_STOP
        assert trade.exit_price == Decimal("108")

    def test_risk_exit_blocks_entry_on_same_bar(self):
        position = make_position(stop_loss_price=Decimal("90"))
        state = step(open_state(position), make_bar(1, "95", "96", "85", "95"), Signal.BUY, make_context(max_positions=2))
        assert state.positions == ()
        assert len(state.ledger) == 1

    def test_sell_without_position_is_noop(self):
        initial = SimulationState.initial(Decimal("1000"))
        assert step(initial, make_bar(0, "10", "10", "10", "10"), Signal.SELL, make_context()) == initial


class TestSimulate:
    def test_equity_recorded_for_every_bar(self):
        bars = make_bars([100, 101, 102, 103])
        state, equity = simulate(bars, ScriptedStrategy({1: Signal.BUY}), make_context(), Decimal("1000"))
        assert [e.date for e in equity] == [b.date for b in bars]
        assert equity[0].value == Decimal("1000")
        # 101에 9.9009주 매수, 이후 종가로 평가
        assert equity[-1].value == state.cash + state.positions[0].quantity * Decimal("103")

    def test_single_position_never_overlaps(self):
        bars = make_bars([100, 101, 102, 103, 104, 105])
        strategy = ScriptedStrategy({2: Signal.SELL, 4: Signal.SELL}, default=Signal.BUY)
        state, _ = simulate(bars, strategy, make_context(), Decimal("1000"))

        assert [t.exit_date for t in state.ledger] == [bars[2].date, bars[4].date]
        assert [t.entry_date for t in state.ledger] == [bars[0].date, bars[3].date]
        for earlier, later in zip(state.ledger, state.ledger[1:]):
            assert later.entry_date > earlier.exit_date
        assert len(state.positions) == 1
        assert state.positions[0].entry_date == bars[5].date

    def test_pyramiding_up_to_max_positions(self):
        bars = make_bars([100, 100, 100, 100])
        context = make_context(max_positions=2, position_size_rate=Decimal("0.5"))
        state, _ = simulate(bars, ScriptedStrategy(default=Signal.BUY), context, Decimal("1000"))
        assert len(state.positions) == 2
        assert state.positions[0].quantity == Decimal("5")
        assert state.positions[1].quantity == Decimal("2.5")

    def test_sell_closes_all_lots(self):
        bars = make_bars([100, 100, 110])
        context = make_context(max_positions=2, position_size_rate=Decimal("0.5"))
        strategy = ScriptedStrategy({0: Signal.BUY, 1: Signal.BUY, 2: Signal.SELL})
        state, _ = simulate(bars, strategy, context, Decimal("1000"))

        assert state.positions == ()
        assert [t.trade_number for t in state.ledger] == [1, 2]
        assert state.cash == Decimal("1075")
        # 두 번째 청산 후에는 남은 포지션이 없으므로 현금과 같다
        assert state.ledger[-1].portfolio_value_at_exit == state.cash
