#!/usr/bin/env python3
"""
BRACKET SCALPER SERVICE ENTRY POINT
===================================

Purpose:
- Load and validate the strategy configuration (config_env/strategy.env)
- Initialize per-component logging at the configured verbosity
- Inspect the persisted bracket state
- Build a ScalpingBot for a host that supplies the order gateway and the
  volatility source

STRICT RULES:
- NO order routing here
- NO strategy logic here
- Configuration errors fail fast at startup

Usage:
    python main.py --check-config
    python main.py --show-state
    python main.py --env path/to/strategy.env --show-state
"""

import sys
import argparse
from pathlib import Path
from typing import Optional

from scalper_platform.core.config import Config, ConfigValidationError
from scalper_platform.execution.gateway import OrderGateway
from scalper_platform.execution.recovery import ReconciliationStrategy
from scalper_platform.execution.scalping_bot import ScalpingBot
from scalper_platform.logging.logger_config import setup_application_logging, get_component_logger
from scalper_platform.market.volatility import VolatilitySource
from scalper_platform.persistence.state_store import BracketStateStore
from scalper_platform.tools.state_inspect import config_table, show_state


def build_bot(
    config: Config,
    gateway: OrderGateway,
    volatility: VolatilitySource,
    reconciler: Optional[ReconciliationStrategy] = None,
) -> ScalpingBot:
    """
    Wire a ScalpingBot with the configured state file and tick size.

    Hosts embedding the bot call this instead of main(); it also applies
    the strategy LOG_LEVEL to every component logger.
    """
    setup_application_logging(log_dir=str(config.log_dir), level=config.strategy.log_level)
    return ScalpingBot(
        config=config.strategy,
        gateway=gateway,
        volatility=volatility,
        tick_size=config.tick_size,
        state_store=BracketStateStore(config.state_file),
        reconciler=reconciler,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Mean-reversion bracket scalper")
    parser.add_argument(
        "--env",
        default=None,
        help="Path to strategy env file (default: config_env/strategy.env)",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration, print it and exit",
    )
    parser.add_argument(
        "--show-state",
        action="store_true",
        help="Print the persisted bracket state and exit",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = Config(Path(args.env) if args.env else None)
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 2

    setup_application_logging(log_dir=str(config.log_dir), level=config.strategy.log_level)
    logger = get_component_logger('bot')
    logger.info("Configuration valid | client=%s", config.client_id)

    if args.check_config or not args.show_state:
        config_table(config)

    if args.show_state:
        show_state(config)

    return 0


if __name__ == "__main__":
    sys.exit(main())
