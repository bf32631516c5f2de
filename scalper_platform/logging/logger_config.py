#!/usr/bin/env python3
"""
CENTRALIZED LOGGING CONFIGURATION
==================================

Purpose:
- Setup per-component loggers with rotating file handlers
- Isolate logs by component: bot, bracket_engine, execution_guard, recovery, state_store
- Separate TRADE_LOG channel for order / fill / flatten events
- All logs also go to console with clean formatting

USAGE:
    from scalper_platform.logging.logger_config import setup_application_logging, get_component_logger

    # Setup once in main
    setup_application_logging(log_dir="logs", level=LogLevel.INFO)

    # Get logger in each module
    logger = get_component_logger("bracket_engine")

Strategy verbosity (LOG_LEVEL) uses the strategy enum:
    NONE    -> nothing is emitted
    ERROR   -> logging.ERROR
    WARN    -> logging.WARNING
    INFO    -> logging.INFO
    DEBUG   -> logging.DEBUG
    VERBOSE -> VERBOSE (5), below DEBUG
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Union

from scalper_platform.domain.business_models import LogLevel

# Standard format: [TIMESTAMP] [LEVEL] [COMPONENT] [MESSAGE]
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'
LOG_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")

# Above CRITICAL: used for LogLevel.NONE
_SILENT = logging.CRITICAL + 10

_LEVEL_MAP = {
    LogLevel.NONE: _SILENT,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.VERBOSE: VERBOSE,
}

# Component key -> logger name.
# Loggers using __name__ (e.g. 'scalper_platform.execution.pricing') are
# children of the 'scalper_platform' logger, registered as 'platform'.
COMPONENT_NAMES = {
    'bot':             'SCALPING_BOT',
    'bracket_engine':  'BRACKET_ENGINE',
    'execution_guard': 'EXECUTION_GUARD',
    'recovery':        'RECOVERY_SERVICE',
    'state_store':     'STATE_STORE',
    'trade_log':       'TRADE_LOG',
    'platform':        'scalper_platform',
}

# Global configuration
_log_dir: Optional[Path] = None
_log_level: int = logging.INFO
_console_handler: Optional[logging.StreamHandler] = None
_component_handlers: Dict[str, logging.handlers.RotatingFileHandler] = {}


def resolve_level(level: Union[LogLevel, str, int]) -> int:
    """Translate a strategy LogLevel (or its name, or a stdlib level) to a logging level."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = LogLevel.parse(level)
    return _LEVEL_MAP[level]


def setup_application_logging(
    log_dir: str = 'logs',
    level: Union[LogLevel, str, int] = LogLevel.INFO,
    max_bytes: int = 20 * 1024 * 1024,  # 20 MB per file
    backup_count: int = 5,
) -> None:
    """
    Initialize application-wide logging with per-component rotating handlers.

    This MUST be called once at application startup (in main()).

    Args:
        log_dir: Directory to store log files
        level: Strategy verbosity (NONE, ERROR, WARN, INFO, DEBUG, VERBOSE)
        max_bytes: Max size of a log file before rotation
        backup_count: Number of backup files to keep
    """
    global _log_dir, _log_level, _console_handler

    _log_dir = Path(log_dir)
    _log_level = resolve_level(level)

    _log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(_log_level)

    # Remove any existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATETIME_FORMAT)

    _console_handler = logging.StreamHandler(sys.stdout)
    _console_handler.setLevel(_log_level)
    _console_handler.setFormatter(formatter)
    root_logger.addHandler(_console_handler)

    _setup_component_handlers(max_bytes, backup_count, formatter)


def _setup_component_handlers(max_bytes: int, backup_count: int, formatter: logging.Formatter) -> None:
    """
    Setup rotating file handlers for each component and attach them immediately,
    so modules using logging.getLogger(__name__) also land in a file.
    """
    for key, component_name in COMPONENT_NAMES.items():
        log_file = _log_dir / f"{key}.log"

        old = _component_handlers.pop(component_name, None)
        logger = logging.getLogger(component_name)
        if old is not None:
            logger.removeHandler(old)
            old.close()

        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        handler.setLevel(_log_level)
        handler.setFormatter(formatter)

        _component_handlers[component_name] = handler
        logger.addHandler(handler)


def get_component_logger(component_key: str) -> logging.Logger:
    """
    Get or create a logger for a specific component.

    Example:
        logger = get_component_logger('bracket_engine')
        logger.info("Bracket submitted")
    """
    if component_key not in COMPONENT_NAMES:
        raise ValueError(f"Unknown component: {component_key}. Must be one of {list(COMPONENT_NAMES.keys())}")

    return logging.getLogger(COMPONENT_NAMES[component_key])


def get_log_files() -> Dict[str, Path]:
    """Paths of all active component log files."""
    return {
        name: Path(handler.baseFilename)
        for name, handler in _component_handlers.items()
    }


class StrategyLogger:
    """
    Component logger with an optional trade-log mirror.

    Every message goes to the component logger. Messages flagged with
    trade_log=True are also written to the TRADE_LOG channel, which keeps a
    compact record of orders, fills and flattens.

    Example:
        slog = StrategyLogger('bracket_engine')
        slog.log(logging.INFO, "Bracket submitted | a=11 b=12", trade_log=True)
        slog.event("fill", "ENTRY", leg=11, side="LONG")
    """

    def __init__(self, component_key: str):
        self.logger = get_component_logger(component_key)
        self.trade_logger = get_component_logger('trade_log')
        self.component = COMPONENT_NAMES[component_key]

    def log(self, level: Union[LogLevel, int], message: str, trade_log: bool = False) -> None:
        lvl = resolve_level(level)
        if lvl >= _SILENT:
            return
        self.logger.log(lvl, message)
        if trade_log:
            self.trade_logger.log(lvl, f"[{self.component}] {message}")

    def event(self, event_type: str, action: str, trade_log: bool = True, **context) -> None:
        """Log a business event with key=value context."""
        ctx_str = " | ".join(f"{k}={v}" for k, v in context.items())
        msg = f"[{event_type.upper()}] {action}"
        if ctx_str:
            msg += f" | {ctx_str}"
        self.log(logging.INFO, msg, trade_log=trade_log)

    def verbose(self, message: str) -> None:
        self.logger.log(VERBOSE, message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str, trade_log: bool = False) -> None:
        self.log(logging.INFO, message, trade_log=trade_log)

    def warning(self, message: str, trade_log: bool = False, **context) -> None:
        ctx_str = " | ".join(f"{k}={v}" for k, v in context.items())
        msg = f"⚠️  {message}"
        if ctx_str:
            msg += f" | {ctx_str}"
        self.log(logging.WARNING, msg, trade_log=trade_log)

    def error(self, message: str, trade_log: bool = True, **context) -> None:
        ctx_str = " | ".join(f"{k}={v}" for k, v in context.items())
        msg = f"❌ {message}"
        if ctx_str:
            msg += f" | {ctx_str}"
        self.log(logging.ERROR, msg, trade_log=trade_log)
