#!/usr/bin/env python3
"""
Data Models Module
Contains enums and data classes shared by the bracket engine, the
reconciliation service, the execution guard and the order gateway.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any


# ---------------------------------------------------------
# ENUMS
# ---------------------------------------------------------

class LogLevel(Enum):
    """Strategy log verbosity."""
    NONE = "NONE"
    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    DEBUG = "DEBUG"
    VERBOSE = "VERBOSE"

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        name = value.strip().upper()
        if name == "WARNING":
            name = "WARN"
        return cls(name)


class Phase(Enum):
    FLAT_READY = "FLAT_READY"
    BRACKET_ARMED = "BRACKET_ARMED"
    IN_TRADE = "IN_TRADE"


class TradeSide(Enum):
    NONE = "NONE"
    LONG = "LONG"
    SHORT = "SHORT"

    @classmethod
    def from_position(cls, qty: int) -> "TradeSide":
        if qty > 0:
            return cls.LONG
        if qty < 0:
            return cls.SHORT
        return cls.NONE


class OrderStatus(Enum):
    WORKING = "WORKING"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    ERROR = "ERROR"


class OrderKind(Enum):
    LIMIT = "LIMIT"
    STOP = "STOP"
    TARGET = "TARGET"


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"

    def to_trade_side(self) -> TradeSide:
        return TradeSide.LONG if self is OrderSide.BUY else TradeSide.SHORT


class CycleAction(Enum):
    """Class of gateway command issued during one update cycle."""
    NONE = "NONE"
    SUBMIT = "SUBMIT"
    CANCEL = "CANCEL"
    FLATTEN = "FLATTEN"
    RECONCILE = "RECONCILE"


# ---------------------------------------------------------
# READINGS / ORDERS
# ---------------------------------------------------------

@dataclass(frozen=True)
class VolatilityReading:
    """Range measure R for one update. Never persisted."""
    value: float
    valid_at: int

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.value) and self.value > 0


@dataclass(frozen=True)
class OrderRecord:
    """Gateway view of a single order (read-only to the strategy)."""
    order_id: int
    parent_id: int
    status: OrderStatus
    kind: OrderKind
    side: OrderSide
    limit_price: float = 0.0
    filled_quantity: int = 0
    average_fill_price: float = 0.0

    @property
    def is_root(self) -> bool:
        return self.parent_id == 0

    @property
    def is_working(self) -> bool:
        return self.status is OrderStatus.WORKING

    @property
    def is_filled(self) -> bool:
        return self.status is OrderStatus.FILLED


# ---------------------------------------------------------
# BRACKET STATE (PERSISTED)
# ---------------------------------------------------------

@dataclass(frozen=True)
class BracketState:
    """
    The single persisted trading state.

    Construction enforces the phase invariants, so an inconsistent state
    cannot exist:

    - FLAT_READY    -> no ids, no side
    - BRACKET_ARMED -> two distinct non-zero entry ids, no active parent, no side
    - IN_TRADE      -> active parent and side set, the other OCO leg cleared
    """
    phase: Phase = Phase.FLAT_READY
    entry_order_id_a: int = 0
    entry_order_id_b: int = 0
    active_parent_order_id: int = 0
    trade_side: TradeSide = TradeSide.NONE

    def __post_init__(self):
        a, b = self.entry_order_id_a, self.entry_order_id_b
        parent = self.active_parent_order_id

        if self.phase is Phase.FLAT_READY:
            if a or b or parent or self.trade_side is not TradeSide.NONE:
                raise ValueError(f"FLAT_READY must be clear: {self!r}")

        elif self.phase is Phase.BRACKET_ARMED:
            if self.trade_side is not TradeSide.NONE or parent:
                raise ValueError(f"BRACKET_ARMED cannot carry a trade: {self!r}")
            if a <= 0 or b <= 0 or a == b:
                raise ValueError(f"BRACKET_ARMED needs two distinct entry ids: {self!r}")

        elif self.phase is Phase.IN_TRADE:
            if parent <= 0 or self.trade_side is TradeSide.NONE:
                raise ValueError(f"IN_TRADE needs an active parent and side: {self!r}")
            if a and b:
                raise ValueError(f"IN_TRADE must clear the other OCO leg: {self!r}")
            if (a or b) and (a or b) != parent:
                raise ValueError(f"IN_TRADE leg id must be the active parent: {self!r}")

    # ------------------------------------------------------------------
    # Named constructors
    # ------------------------------------------------------------------

    @classmethod
    def flat(cls) -> "BracketState":
        return cls()

    @classmethod
    def armed(cls, entry_a: int, entry_b: int) -> "BracketState":
        return cls(
            phase=Phase.BRACKET_ARMED,
            entry_order_id_a=entry_a,
            entry_order_id_b=entry_b,
        )

    @classmethod
    def in_trade(
        cls,
        active_parent: int,
        side: TradeSide,
        entry_a: int = 0,
        entry_b: int = 0,
    ) -> "BracketState":
        return cls(
            phase=Phase.IN_TRADE,
            entry_order_id_a=entry_a,
            entry_order_id_b=entry_b,
            active_parent_order_id=active_parent,
            trade_side=side,
        )

    # ------------------------------------------------------------------

    @property
    def is_flat(self) -> bool:
        return self.phase is Phase.FLAT_READY

    @property
    def is_armed(self) -> bool:
        return self.phase is Phase.BRACKET_ARMED

    @property
    def in_trade_phase(self) -> bool:
        return self.phase is Phase.IN_TRADE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'entry_order_id_a': self.entry_order_id_a,
            'entry_order_id_b': self.entry_order_id_b,
            'active_parent_order_id': self.active_parent_order_id,
            'trade_side': self.trade_side.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BracketState":
        """Raises ValueError / KeyError on malformed or inconsistent data."""
        return cls(
            phase=Phase(data['phase']),
            entry_order_id_a=int(data.get('entry_order_id_a', 0)),
            entry_order_id_b=int(data.get('entry_order_id_b', 0)),
            active_parent_order_id=int(data.get('active_parent_order_id', 0)),
            trade_side=TradeSide(data.get('trade_side', TradeSide.NONE.value)),
        )

    def describe(self) -> str:
        return (
            f"phase={self.phase.value} a={self.entry_order_id_a} "
            f"b={self.entry_order_id_b} parent={self.active_parent_order_id} "
            f"side={self.trade_side.value}"
        )


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one update cycle, returned to the driver."""
    action: CycleAction
    state: BracketState
    reason: str = ""
