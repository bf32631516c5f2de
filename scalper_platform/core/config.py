#!/usr/bin/env python3
"""
Configuration Management Module

Responsibilities:
- Load the strategy environment file exactly ONCE
- Validate every strategy parameter (fractions, quantity, window)
- Provide structured, immutable config access

Create ONE Config in main.py and inject it everywhere. Runtime logic never
reads os.environ directly.

Env keys (config_env/strategy.env):
    QUANTITY, BRACKET_FRACTION, STOP_FRACTION, TAKE_PROFIT_FRACTION,
    USE_TRADING_WINDOW, START_TIME, STOP_TIME, TRADING_ENABLED,
    LOG_LEVEL, SAFETY_EXIT_ENABLED,
    TICK_SIZE, CLIENT_ID, LOG_DIR, STATE_FILE
"""
import os
import logging
from dataclasses import dataclass
from datetime import time as dtime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from scalper_platform.domain.business_models import LogLevel

logger = logging.getLogger(__name__)

STRATEGY_ENV_KEYS = (
    "QUANTITY",
    "BRACKET_FRACTION",
    "STOP_FRACTION",
    "TAKE_PROFIT_FRACTION",
    "USE_TRADING_WINDOW",
    "START_TIME",
    "STOP_TIME",
    "TRADING_ENABLED",
    "LOG_LEVEL",
    "SAFETY_EXIT_ENABLED",
)
RUNTIME_ENV_KEYS = ("TICK_SIZE", "CLIENT_ID", "LOG_DIR", "STATE_FILE")

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# ----------------------------------------------------------------------
# PARSING HELPERS
# ----------------------------------------------------------------------

def _strip_comment(value: str) -> str:
    """Strip comments from config values (everything after #)."""
    if '#' in value:
        return value.split('#')[0].strip()
    return value.strip()


def _parse_int(value: str, name: str, min_val: Optional[int] = None) -> int:
    try:
        num = int(_strip_comment(value))
        if min_val is not None and num < min_val:
            raise ValueError(f"{name} must be >= {min_val}, got: {num}")
        return num
    except ValueError as e:
        raise ConfigValidationError(f"Invalid {name} value '{value}': {e}")


def _parse_float(value: str, name: str) -> float:
    try:
        return float(_strip_comment(value))
    except ValueError as e:
        raise ConfigValidationError(f"Invalid {name} value '{value}': {e}")


def _parse_bool(value: str, name: str) -> bool:
    clean = _strip_comment(value).lower()
    if clean in _TRUE:
        return True
    if clean in _FALSE:
        return False
    raise ConfigValidationError(f"Invalid {name} value '{value}': expected yes/no")


def parse_time(value: str, name: str = "time") -> dtime:
    """Parse HH:MM or HH:MM:SS."""
    clean = _strip_comment(value)
    parts = clean.split(":")
    try:
        if len(parts) not in (2, 3):
            raise ValueError("expected HH:MM or HH:MM:SS")
        return dtime(*(int(p) for p in parts))
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"Invalid {name} value '{value}': {e}")


def _parse_log_level(value: str) -> LogLevel:
    try:
        return LogLevel.parse(_strip_comment(value))
    except ValueError:
        raise ConfigValidationError(
            f"Invalid LOG_LEVEL value '{value}': expected one of "
            f"{[lvl.value for lvl in LogLevel]}"
        )


# ----------------------------------------------------------------------
# STRATEGY CONFIG
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StrategyConfig:
    """
    Strategy parameters, read-only for the whole run.

    Defaults match the values the strategy was tuned with: one contract,
    half-R bracket and stop, full-R target, 08:30-15:00 window, trading off.
    """
    quantity: int = 1
    bracket_fraction: float = 0.5
    stop_fraction: float = 0.5
    take_profit_fraction: float = 1.0
    use_trading_window: bool = True
    start_time: dtime = dtime(8, 30, 0)
    stop_time: dtime = dtime(15, 0, 0)
    trading_enabled: bool = False
    log_level: LogLevel = LogLevel.INFO
    safety_exit_enabled: bool = True

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ConfigValidationError(f"quantity must be a positive integer, got: {self.quantity!r}")

        for name in ("bracket_fraction", "stop_fraction", "take_profit_fraction"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not value > 0:
                raise ConfigValidationError(f"{name} must be > 0, got: {value!r}")

        if not isinstance(self.log_level, LogLevel):
            raise ConfigValidationError(f"log_level must be a LogLevel, got: {self.log_level!r}")

        if self.use_trading_window and not self.start_time < self.stop_time:
            raise ConfigValidationError(
                f"start_time must be before stop_time, got: {self.start_time} >= {self.stop_time}"
            )

    @classmethod
    def from_env(cls) -> "StrategyConfig":
        """Build from os.environ (after load_dotenv), falling back to defaults."""
        defaults = cls()

        def env(key: str) -> Optional[str]:
            raw = os.getenv(key)
            if raw is None or not _strip_comment(raw):
                return None
            return raw

        kwargs = {}
        if env("QUANTITY") is not None:
            kwargs["quantity"] = _parse_int(env("QUANTITY"), "QUANTITY", 1)
        for key, field_name in (
            ("BRACKET_FRACTION", "bracket_fraction"),
            ("STOP_FRACTION", "stop_fraction"),
            ("TAKE_PROFIT_FRACTION", "take_profit_fraction"),
        ):
            if env(key) is not None:
                kwargs[field_name] = _parse_float(env(key), key)
        for key, field_name in (
            ("USE_TRADING_WINDOW", "use_trading_window"),
            ("TRADING_ENABLED", "trading_enabled"),
            ("SAFETY_EXIT_ENABLED", "safety_exit_enabled"),
        ):
            if env(key) is not None:
                kwargs[field_name] = _parse_bool(env(key), key)
        if env("START_TIME") is not None:
            kwargs["start_time"] = parse_time(env("START_TIME"), "START_TIME")
        if env("STOP_TIME") is not None:
            kwargs["stop_time"] = parse_time(env("STOP_TIME"), "STOP_TIME")
        if env("LOG_LEVEL") is not None:
            kwargs["log_level"] = _parse_log_level(env("LOG_LEVEL"))

        merged = {**defaults.__dict__, **kwargs}
        return cls(**merged)


# ----------------------------------------------------------------------
# APPLICATION CONFIG
# ----------------------------------------------------------------------

class Config:
    """
    Central configuration object.

    Holds the immutable StrategyConfig plus the runtime settings the bot
    needs around it (instrument tick size, log directory, state file).
    """

    def __init__(self, env_path: Optional[Path] = None):
        self.env_path: Path = Path(env_path) if env_path else (
            Path(__file__).resolve().parents[2] / "config_env" / "strategy.env"
        )
        self._load_env()
        self._load_values()
        logger.info(
            "Configuration loaded | client=%s | qty=%s | window=%s-%s | enabled=%s",
            self.client_id,
            self.strategy.quantity,
            self.strategy.start_time,
            self.strategy.stop_time,
            self.strategy.trading_enabled,
        )

    def _load_env(self) -> None:
        if not self.env_path.exists():
            raise FileNotFoundError(
                f".env file not found: {self.env_path} "
                f"(copy config_env/strategy.env.example)"
            )
        load_dotenv(self.env_path)

    def _load_values(self) -> None:
        self.strategy: StrategyConfig = StrategyConfig.from_env()

        self.tick_size: float = _parse_float(os.getenv("TICK_SIZE", "0.25"), "TICK_SIZE")
        if not self.tick_size > 0:
            raise ConfigValidationError(f"TICK_SIZE must be > 0, got: {self.tick_size}")

        self.client_id: str = _strip_comment(os.getenv("CLIENT_ID", "default")) or "default"
        self.log_dir: Path = Path(_strip_comment(os.getenv("LOG_DIR", "logs")) or "logs")

        default_state = Path("state") / f"bracket_state_{self.client_id}.json"
        self.state_file: Path = Path(
            _strip_comment(os.getenv("STATE_FILE", str(default_state))) or str(default_state)
        )

    def summary(self) -> dict:
        s = self.strategy
        return {
            "client_id": self.client_id,
            "quantity": s.quantity,
            "bracket_fraction": s.bracket_fraction,
            "stop_fraction": s.stop_fraction,
            "take_profit_fraction": s.take_profit_fraction,
            "use_trading_window": s.use_trading_window,
            "start_time": s.start_time.isoformat(),
            "stop_time": s.stop_time.isoformat(),
            "trading_enabled": s.trading_enabled,
            "safety_exit_enabled": s.safety_exit_enabled,
            "log_level": s.log_level.value,
            "tick_size": self.tick_size,
            "state_file": str(self.state_file),
        }
