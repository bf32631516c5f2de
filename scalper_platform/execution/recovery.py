"""
RECOVERY CORE
=============

• Runs once at process start (or on a full state re-initialization)
• Gateway truth first: net position, then the working order book
• Repairs the persisted BracketState to match reality
• Does NOT place or cancel orders

The shape heuristic (two working root LIMIT orders with two children each)
cannot tell this strategy's brackets from same-shaped manual orders. It sits
behind ReconciliationStrategy so an exact-match strategy (e.g. client-tagged
orders) can replace it without touching the bracket engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from scalper_platform.domain.business_models import (
    BracketState,
    OrderKind,
    OrderRecord,
    OrderSide,
    TradeSide,
)
from scalper_platform.execution.gateway import OrderGateway
from scalper_platform.logging.logger_config import get_component_logger
from scalper_platform.utils.utils import log_exception

logger = get_component_logger('recovery')


@dataclass
class RecoveryReport:
    state: BracketState
    reason: str
    position: int = 0
    candidates: List[int] = field(default_factory=list)
    consistent: bool = True


class ReconciliationStrategy(ABC):

    @abstractmethod
    def reconcile(self, persisted: BracketState, gateway: OrderGateway) -> RecoveryReport:
        ...


class ShapeReconciler(ReconciliationStrategy):
    """
    Infer bracket state from order-book shape.

    Flat position:
        exactly two working root LIMIT orders with two children each
        -> BRACKET_ARMED, lower limit price is leg A (buy), higher is leg B (sell)
        anything else -> FLAT_READY
    Open position:
        keep the persisted ids as the reference for the active trade
    """

    def reconcile(self, persisted: BracketState, gateway: OrderGateway) -> RecoveryReport:
        position = gateway.get_position()
        side = TradeSide.from_position(position)

        if side is TradeSide.NONE:
            return self._reconcile_flat(gateway.list_orders(), position)

        return self._reconcile_open(persisted, side, position, gateway)

    # --------------------------------------------------
    # FLAT POSITION
    # --------------------------------------------------

    @staticmethod
    def _child_counts(orders: List[OrderRecord]) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for o in orders:
            if o.parent_id:
                counts[o.parent_id] = counts.get(o.parent_id, 0) + 1
        return counts

    def _reconcile_flat(self, orders: List[OrderRecord], position: int) -> RecoveryReport:
        roots = [
            o for o in orders
            if o.is_working and o.is_root and o.kind is OrderKind.LIMIT
        ]
        counts = self._child_counts(orders)
        candidates = [o for o in roots if counts.get(o.order_id, 0) == 2]

        if len(candidates) == 2:
            leg_a, leg_b = sorted(candidates, key=lambda o: (o.limit_price, o.order_id))
            return RecoveryReport(
                state=BracketState.armed(leg_a.order_id, leg_b.order_id),
                reason="armed_bracket_found",
                position=position,
                candidates=[leg_a.order_id, leg_b.order_id],
            )

        return RecoveryReport(
            state=BracketState.flat(),
            reason="no_bracket" if not roots else "unrecognised_order_shape",
            position=position,
            candidates=[o.order_id for o in candidates],
            consistent=not roots,
        )

    # --------------------------------------------------
    # OPEN POSITION
    # --------------------------------------------------

    def _reconcile_open(
        self,
        persisted: BracketState,
        side: TradeSide,
        position: int,
        gateway: OrderGateway,
    ) -> RecoveryReport:
        if persisted.in_trade_phase and persisted.trade_side is side:
            return RecoveryReport(
                state=persisted,
                reason="trade_resumed",
                position=position,
                candidates=[persisted.active_parent_order_id],
            )

        consistent = True
        reason = "trade_adopted"
        if persisted.is_armed:
            consistent = False
            reason = "armed_with_open_position"
        elif persisted.in_trade_phase:
            consistent = False
            reason = "side_mismatch"

        parent = self._persisted_parent(persisted, side)
        if not parent:
            parent = self._filled_root_for(side, gateway.list_orders())

        if not parent:
            return RecoveryReport(
                state=BracketState.flat(),
                reason="position_without_bracket",
                position=position,
                consistent=False,
            )

        if side is TradeSide.LONG:
            state = BracketState.in_trade(parent, side, entry_a=parent)
        else:
            state = BracketState.in_trade(parent, side, entry_b=parent)

        return RecoveryReport(
            state=state,
            reason=reason,
            position=position,
            candidates=[parent],
            consistent=consistent,
        )

    @staticmethod
    def _persisted_parent(persisted: BracketState, side: TradeSide) -> int:
        """Leg A is the buy leg, leg B the sell leg."""
        if persisted.is_armed:
            return persisted.entry_order_id_a if side is TradeSide.LONG else persisted.entry_order_id_b
        return 0

    def _filled_root_for(self, side: TradeSide, orders: List[OrderRecord]) -> int:
        order_side = OrderSide.BUY if side is TradeSide.LONG else OrderSide.SELL
        counts = self._child_counts(orders)
        filled = [
            o for o in orders
            if o.is_root
            and o.is_filled
            and o.kind is OrderKind.LIMIT
            and o.side is order_side
            and counts.get(o.order_id, 0) > 0
        ]
        if not filled:
            return 0
        return max(o.order_id for o in filled)


class RecoveryInspector:
    """
    Runs the reconciliation strategy and logs the outcome.

    Returns None when the gateway could not be inspected; the caller keeps
    its persisted state and tries again on the next update.
    """

    def __init__(self, gateway: OrderGateway, strategy: Optional[ReconciliationStrategy] = None):
        self.gateway = gateway
        self.strategy = strategy or ShapeReconciler()

    def run(self, persisted: BracketState) -> Optional[RecoveryReport]:
        logger.warning("♻️ Recovery started | persisted: %s", persisted.describe())

        try:
            report = self.strategy.reconcile(persisted, self.gateway)
        except Exception as e:
            log_exception("RecoveryInspector.run", e)
            logger.warning("♻️ Recovery skipped (gateway unreachable), will retry next update")
            return None

        if report.consistent:
            logger.info(
                "♻️ Recovery complete | reason=%s | position=%s | %s",
                report.reason,
                report.position,
                report.state.describe(),
            )
        else:
            logger.warning(
                "♻️ Recovery found an inconsistent state | reason=%s | position=%s | candidates=%s | using %s",
                report.reason,
                report.position,
                report.candidates,
                report.state.describe(),
            )
        return report
