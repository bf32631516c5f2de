"""
SCALPING BOT (DRIVER) TESTS
===========================

End-to-end update cycles: reconcile -> guard -> engine -> persist.
"""

import json
from datetime import datetime, time as dtime
from unittest.mock import MagicMock

from scalper_platform.domain.business_models import (
    BracketState,
    CycleAction,
    OrderStatus,
    Phase,
    TradeSide,
)
from scalper_platform.execution.gateway import GatewayError
from scalper_platform.execution.recovery import RecoveryReport, ReconciliationStrategy
from scalper_platform.execution.scalping_bot import ScalpingBot
from scalper_platform.persistence.state_store import BracketStateStore

from .conftest import IN_WINDOW, TICK


def persisted(store):
    with open(store.path, encoding="utf-8") as f:
        return BracketState.from_dict(json.load(f)["state"])


def test_first_update_reconciles_then_submits(bot, gateway, state_store):
    assert not bot.reconciled

    result = bot.on_update(1, 100.0, IN_WINDOW)

    assert bot.reconciled
    assert result.action is CycleAction.SUBMIT
    assert result.state == BracketState.armed(100, 101)
    assert persisted(state_store) == result.state
    assert gateway.calls_named("submit_oco_bracket") == [
        ("submit_oco_bracket", 99.0, 101.0, 2, 1.0, 2.0)
    ]


def test_full_round_trip(bot, gateway, state_store):
    bot.on_update(1, 100.0, IN_WINDOW)

    gateway.set_status(101, OrderStatus.FILLED, filled_quantity=2, average_fill_price=101.0)
    gateway.position = -2
    result = bot.on_update(2, 100.5, IN_WINDOW)
    assert result.state == BracketState.in_trade(101, TradeSide.SHORT, entry_b=101)
    assert persisted(state_store) == result.state

    gateway.set_status(1012, OrderStatus.FILLED, filled_quantity=2, average_fill_price=99.0)
    gateway.set_status(1011, OrderStatus.CANCELED)
    gateway.set_status(100, OrderStatus.CANCELED)
    for oid in (1001, 1002):
        gateway.set_status(oid, OrderStatus.CANCELED)
    gateway.position = 0
    result = bot.on_update(3, 99.0, IN_WINDOW)
    assert result.state.is_flat
    assert result.reason == "exit_filled"

    result = bot.on_update(4, 99.0, IN_WINDOW)
    assert result.action is CycleAction.SUBMIT
    assert result.state == BracketState.armed(102, 103)


def test_invalid_reading_after_reconcile(bot, gateway, volatility):
    volatility.set_reading(1, 0.0)

    result = bot.on_update(1, 100.0, IN_WINDOW)

    assert result.action is CycleAction.RECONCILE
    assert result.reason == "invalid_reading"
    assert result.state.is_flat
    assert gateway.calls_named("submit_oco_bracket") == []


def test_missing_reading_blocks_entry(bot, gateway):
    result = bot.on_update(500, 100.0, IN_WINDOW)

    assert result.state.is_flat
    assert gateway.calls_named("submit_oco_bracket") == []


def test_restart_recovers_armed_bracket(strategy_config, gateway, volatility, state_store):
    first = ScalpingBot(
        config=strategy_config, gateway=gateway, volatility=volatility,
        tick_size=TICK, state_store=state_store,
    )
    first.on_update(1, 100.0, IN_WINDOW)
    gateway.reset_calls()

    restarted = ScalpingBot(
        config=strategy_config, gateway=gateway, volatility=volatility,
        tick_size=TICK, state_store=BracketStateStore(state_store.path),
    )
    assert restarted.state == BracketState.armed(100, 101)

    result = restarted.on_update(2, 100.0, IN_WINDOW)

    assert result.state == BracketState.armed(100, 101)
    assert result.action is CycleAction.RECONCILE
    assert gateway.calls_named("submit_oco_bracket") == []


def test_restart_with_filled_leg_resumes_trade(strategy_config, gateway, volatility, state_store):
    state_store.save(BracketState.armed(100, 101))
    gateway.submit_oco_bracket(99.0, 101.0, 2, 1.0, 2.0)
    gateway.set_status(100, OrderStatus.FILLED, filled_quantity=2)
    gateway.position = 2

    bot = ScalpingBot(
        config=strategy_config, gateway=gateway, volatility=volatility,
        tick_size=TICK, state_store=BracketStateStore(state_store.path),
    )
    result = bot.on_update(5, 100.0, IN_WINDOW)

    assert result.state.phase is Phase.IN_TRADE
    assert result.state.trade_side is TradeSide.LONG
    assert result.state.active_parent_order_id == 100


def test_reconciliation_retried_after_gateway_failure(bot, gateway):
    gateway.position_error = GatewayError("not connected")

    result = bot.on_update(1, 100.0, IN_WINDOW)

    assert result.reason == "reconciliation_pending"
    assert not bot.reconciled
    assert gateway.calls_named("submit_oco_bracket") == []

    gateway.position_error = None
    result = bot.on_update(2, 100.0, IN_WINDOW)

    assert bot.reconciled
    assert result.state.is_armed


def test_unexpected_error_never_escapes(bot, monkeypatch):
    bot.on_update(1, 100.0, IN_WINDOW)
    before = bot.state

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(bot.engine, "step", explode)
    result = bot.on_update(2, 100.0, IN_WINDOW)

    assert result.reason == "internal_error"
    assert result.action is CycleAction.NONE
    assert bot.state == before


def test_accepts_datetime(bot, gateway):
    result = bot.on_update(1, 100.0, datetime(2026, 3, 2, 16, 0))

    assert result.reason == "after_window"
    assert result.action is CycleAction.RECONCILE
    assert gateway.calls_named("submit_oco_bracket") == []


def test_session_close_through_driver(bot, gateway):
    bot.on_update(1, 100.0, IN_WINDOW)
    gateway.reset_calls()

    result = bot.on_update(2, 100.0, dtime(15, 0))

    assert result.action is CycleAction.CANCEL
    assert result.state.is_flat
    gateway.reset_calls()

    result = bot.on_update(3, 100.0, dtime(15, 1))
    assert gateway.calls == []


def test_tick_override_is_validated(bot, gateway):
    result = bot.on_update(1, 100.0, IN_WINDOW, tick_size=0)

    assert result.reason == "invalid_tick"
    assert gateway.calls_named("submit_oco_bracket") == []


def test_full_reinit_reconciles_again(bot, gateway):
    bot.on_update(1, 100.0, IN_WINDOW)
    gateway.orders.clear()

    result = bot.on_update(2, 100.0, IN_WINDOW, full_reinit=True)

    assert result.action is CycleAction.SUBMIT
    assert result.state == BracketState.armed(102, 103)


def test_runs_without_state_store(strategy_config, gateway, volatility):
    bot = ScalpingBot(config=strategy_config, gateway=gateway, volatility=volatility, tick_size=TICK)

    result = bot.on_update(1, 100.0, IN_WINDOW)

    assert result.state.is_armed


def test_custom_reconciler_receives_persisted_state(strategy_config, gateway, volatility, state_store):
    state_store.save(BracketState.armed(7, 8))
    reconciler = MagicMock(spec=ReconciliationStrategy)
    reconciler.reconcile.return_value = RecoveryReport(state=BracketState.flat(), reason="tagged_none")

    bot = ScalpingBot(
        config=strategy_config, gateway=gateway, volatility=volatility, tick_size=TICK,
        state_store=BracketStateStore(state_store.path), reconciler=reconciler,
    )
    result = bot.on_update(1, 100.0, IN_WINDOW)

    reconciler.reconcile.assert_called_once_with(BracketState.armed(7, 8), gateway)
    assert result.state.is_armed


def test_position_without_bracket_is_flattened_at_close(strategy_config, gateway, volatility, state_store):
    gateway.position = 3
    bot = ScalpingBot(
        config=strategy_config, gateway=gateway, volatility=volatility,
        tick_size=TICK, state_store=state_store,
    )

    opened = bot.on_update(1, 100.0, IN_WINDOW)
    assert opened.state.is_flat
    assert opened.reason == "position_open(qty=3)"

    closed = bot.on_update(2, 100.0, dtime(15, 30))
    again = bot.on_update(2, 100.0, dtime(15, 30))

    assert closed.action is CycleAction.FLATTEN
    assert again.action is CycleAction.NONE
    assert gateway.calls_named("flatten_position") == [("flatten_position",)]
    assert gateway.position == 0
    assert gateway.calls_named("submit_oco_bracket") == []


def test_unreadable_reference_price_skips_entry(bot, gateway):
    result = bot.on_update(1, float("nan"), IN_WINDOW)

    assert result.reason == "invalid_reading"
    assert gateway.calls_named("submit_oco_bracket") == []
