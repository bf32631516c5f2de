"""
Logging setup, notice throttling, volatility adapters and the CLI entry point.
"""

import logging

import pandas as pd
import pytest

import main as entry
from scalper_platform.core.config import Config
from scalper_platform.domain.business_models import BracketState, LogLevel, TradeSide
from scalper_platform.execution.gateway import GatewayError
from scalper_platform.logging import logger_config
from scalper_platform.logging.logger_config import (
    VERBOSE,
    StrategyLogger,
    get_component_logger,
    resolve_level,
)
from scalper_platform.market.volatility import SeriesVolatilitySource, VolatilitySource
from scalper_platform.persistence.state_store import BracketStateStore
from scalper_platform.tools.state_inspect import state_table
from scalper_platform.utils.utils import NoticeThrottle

from .conftest import IN_WINDOW


# ---------------------------------------------------------------------
# LOGGING
# ---------------------------------------------------------------------

@pytest.mark.parametrize("level, expected", [
    (LogLevel.ERROR, logging.ERROR),
    (LogLevel.WARN, logging.WARNING),
    ("warning", logging.WARNING),
    (LogLevel.DEBUG, logging.DEBUG),
    (LogLevel.VERBOSE, VERBOSE),
    (logging.INFO, logging.INFO),
])
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


def test_unknown_component_rejected():
    with pytest.raises(ValueError):
        get_component_logger("nope")


def test_trade_log_mirror(caplog):
    slog = StrategyLogger("bracket_engine")

    with caplog.at_level(logging.INFO):
        slog.event("fill", "ENTRY", parent=11, side="LONG")

    by_logger = {r.name: r.getMessage() for r in caplog.records}
    assert by_logger["BRACKET_ENGINE"] == "[FILL] ENTRY | parent=11 | side=LONG"
    assert by_logger["TRADE_LOG"] == "[BRACKET_ENGINE] [FILL] ENTRY | parent=11 | side=LONG"


def test_level_none_is_silent(caplog):
    slog = StrategyLogger("bot")

    with caplog.at_level(logging.DEBUG):
        slog.log(LogLevel.NONE, "should not appear", trade_log=True)

    assert caplog.records == []


def test_setup_writes_component_files(tmp_path, isolated_logging):
    logger_config.setup_application_logging(log_dir=str(tmp_path), level="DEBUG")
    files = logger_config.get_log_files()

    assert files["TRADE_LOG"] == tmp_path / "trade_log.log"
    assert (tmp_path / "bracket_engine.log").exists()


# ---------------------------------------------------------------------
# NOTICE THROTTLE
# ---------------------------------------------------------------------

def test_notice_throttle_is_edge_triggered():
    notices = NoticeThrottle()

    assert notices.should_emit("disabled", 1)
    assert not notices.should_emit("disabled", 1)
    assert notices.should_emit("disabled", 2)
    assert notices.should_emit("other", 2)

    notices.clear("disabled")
    assert notices.should_emit("disabled", 2)

    notices.clear()
    assert notices.should_emit("other", 2)


# ---------------------------------------------------------------------
# VOLATILITY
# ---------------------------------------------------------------------

def test_series_source_reads_by_index():
    source = SeriesVolatilitySource(pd.Series([1.5, float("nan"), 0.0]))

    assert source.reading(0).value == 1.5
    assert source.reading(0).valid_at == 0
    assert source.reading(1).value == 0.0
    assert not source.reading(2).is_valid
    assert source.reading(99).value == 0.0


def test_series_source_live_append():
    source = SeriesVolatilitySource([])
    source.set_reading(3, 2.25)

    assert source.reading(3).is_valid
    assert source.reading(3).value == 2.25


def test_non_numeric_reading_is_unavailable():

    class Broken(VolatilitySource):
        def get_reading(self, update_index):
            return "n/a"

    assert Broken().reading(1).value == 0.0


# ---------------------------------------------------------------------
# TOOLS / ENTRY POINT
# ---------------------------------------------------------------------

def test_state_table(capsys):
    df = state_table(BracketState.in_trade(9, TradeSide.LONG, entry_a=9))

    assert df.loc[0, "phase"] == "IN_TRADE"
    assert "IN_TRADE" in capsys.readouterr().out


def test_main_bad_config_exits_2(tmp_path, clean_env, capsys):
    env = tmp_path / "strategy.env"
    env.write_text("QUANTITY=0\n", encoding="utf-8")

    assert entry.main(["--env", str(env), "--check-config"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_main_show_state(tmp_path, clean_env, monkeypatch, capsys):
    state_file = tmp_path / "state.json"
    BracketStateStore(state_file).save(BracketState.armed(11, 12))
    env = tmp_path / "strategy.env"
    env.write_text(f"STATE_FILE={state_file}\nLOG_DIR={tmp_path / 'logs'}\n", encoding="utf-8")
    monkeypatch.setattr(entry, "setup_application_logging", lambda **kwargs: None)

    assert entry.main(["--env", str(env), "--show-state"]) == 0

    out = capsys.readouterr().out
    assert "BRACKET_ARMED" in out
    assert "client_id" not in out


class _Collector(logging.Handler):
    def __init__(self):
        super().__init__(level=0)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.mark.parametrize("level, expect_records", [("NONE", False), ("ERROR", True)])
def test_build_bot_applies_log_level(tmp_path, clean_env, isolated_logging, gateway, volatility,
                                     level, expect_records):
    env = tmp_path / "strategy.env"
    env.write_text(
        f"LOG_LEVEL={level}\nTRADING_ENABLED=yes\nUSE_TRADING_WINDOW=no\n"
        f"LOG_DIR={tmp_path / 'logs'}\nSTATE_FILE={tmp_path / 'state.json'}\n",
        encoding="utf-8",
    )
    config = Config(env)
    gateway.submit_error = GatewayError("refused")

    bot = entry.build_bot(config, gateway, volatility)
    collector = _Collector()
    logging.getLogger().addHandler(collector)
    result = bot.on_update(1, 100.0, IN_WINDOW)

    assert result.reason == "submission_failed"
    assert bool(collector.records) is expect_records
    assert all(r.levelno >= logging.ERROR for r in collector.records)
