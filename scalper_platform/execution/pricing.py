"""
BRACKET PRICE CALCULATOR
========================

Pure functions turning (reference price, R, fractions, tick size) into the
two entry limits and the stop / target offsets of an OCO bracket.

• No side effects, no state
• Every offset is a whole number of ticks, never less than one tick
• buy_limit < sell_limit, or the bracket is refused
"""

import math
from dataclasses import dataclass

from scalper_platform.execution.errors import (
    DegenerateBracketError,
    InvalidReadingError,
    InvalidTickError,
)

# Float noise guard for prices built from tick multiples (e.g. 1001 * 0.1)
_PRICE_DECIMALS = 10


@dataclass(frozen=True)
class BracketPrices:
    buy_limit: float
    sell_limit: float
    entry_offset: float
    stop_offset: float
    tp_offset: float


def _check_tick(tick_size: float) -> None:
    if not (isinstance(tick_size, (int, float)) and math.isfinite(tick_size) and tick_size > 0):
        raise InvalidTickError(f"tick size must be > 0, got {tick_size!r}")


def ticks_in(value: float, tick_size: float) -> int:
    """Nearest whole number of ticks in value, rounding halves up."""
    _check_tick(tick_size)
    return int(math.floor(value / tick_size + 0.5))


def round_to_tick(value: float, tick_size: float) -> float:
    """Round a price or offset to the nearest tick multiple."""
    return round(ticks_in(value, tick_size) * tick_size, _PRICE_DECIMALS)


def offset_from_fraction(r_value: float, fraction: float, tick_size: float) -> float:
    """max(tick, roundToTick(R * fraction))"""
    ticks = max(1, ticks_in(r_value * fraction, tick_size))
    return round(ticks * tick_size, _PRICE_DECIMALS)


def compute_bracket_prices(
    reference_price: float,
    r_value: float,
    bracket_fraction: float,
    stop_fraction: float,
    take_profit_fraction: float,
    tick_size: float,
) -> BracketPrices:
    """
    Compute entry limits and protective offsets.

    Raises:
        InvalidTickError: tick_size <= 0
        InvalidReadingError: R <= 0 or not finite, or reference price not finite
        DegenerateBracketError: buy_limit < sell_limit cannot be achieved
    """
    _check_tick(tick_size)
    if not (math.isfinite(r_value) and r_value > 0):
        raise InvalidReadingError(f"volatility reading must be > 0, got {r_value!r}")
    if not (isinstance(reference_price, (int, float)) and math.isfinite(reference_price)):
        raise InvalidReadingError(f"reference price must be finite, got {reference_price!r}")

    entry_offset = offset_from_fraction(r_value, bracket_fraction, tick_size)
    stop_offset = offset_from_fraction(r_value, stop_fraction, tick_size)
    tp_offset = offset_from_fraction(r_value, take_profit_fraction, tick_size)

    buy_limit = round_to_tick(reference_price - entry_offset, tick_size)
    sell_limit = round_to_tick(reference_price + entry_offset, tick_size)

    if buy_limit >= sell_limit:
        buy_limit = round(buy_limit - tick_size, _PRICE_DECIMALS)
        if buy_limit >= sell_limit:
            raise DegenerateBracketError(
                f"bracket collapsed: buy={buy_limit} sell={sell_limit} "
                f"ref={reference_price} tick={tick_size}"
            )

    return BracketPrices(
        buy_limit=buy_limit,
        sell_limit=sell_limit,
        entry_offset=entry_offset,
        stop_offset=stop_offset,
        tp_offset=tp_offset,
    )
