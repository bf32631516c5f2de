import logging
import os
from datetime import time as dtime

import pytest

from scalper_platform.core.config import RUNTIME_ENV_KEYS, STRATEGY_ENV_KEYS, StrategyConfig
from scalper_platform.execution.bracket_engine import BracketEngine
from scalper_platform.execution.execution_guard import ExecutionGuard
from scalper_platform.execution.scalping_bot import ScalpingBot
from scalper_platform.market.volatility import SeriesVolatilitySource
from scalper_platform.persistence.state_store import BracketStateStore

from .fake_broker import FakeGateway

TICK = 0.25
IN_WINDOW = dtime(10, 0, 0)


@pytest.fixture
def strategy_config():
    # half-R bracket and stop, full-R target, trading switched on
    return StrategyConfig(
        quantity=2,
        bracket_fraction=0.5,
        stop_fraction=0.5,
        take_profit_fraction=1.0,
        use_trading_window=True,
        start_time=dtime(8, 30),
        stop_time=dtime(15, 0),
        trading_enabled=True,
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine(strategy_config, gateway):
    return BracketEngine(strategy_config, gateway)


@pytest.fixture
def guard(strategy_config, gateway):
    return ExecutionGuard(strategy_config, gateway)


@pytest.fixture
def volatility():
    return SeriesVolatilitySource([2.0] * 50)


@pytest.fixture
def state_store(tmp_path):
    return BracketStateStore(tmp_path / "state" / "bracket_state_TEST.json")


@pytest.fixture
def bot(strategy_config, gateway, volatility, state_store):
    return ScalpingBot(
        config=strategy_config,
        gateway=gateway,
        volatility=volatility,
        tick_size=TICK,
        state_store=state_store,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Strip strategy env keys before and after a config test."""
    keys = STRATEGY_ENV_KEYS + RUNTIME_ENV_KEYS
    for key in keys:
        monkeypatch.delenv(key, raising=False)
    yield
    for key in keys:
        os.environ.pop(key, None)


@pytest.fixture
def isolated_logging():
    """Undo setup_application_logging: root handlers, level and component file handlers."""
    from scalper_platform.logging import logger_config

    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    for name, handler in list(logger_config._component_handlers.items()):
        logging.getLogger(name).removeHandler(handler)
        handler.close()
    logger_config._component_handlers.clear()
