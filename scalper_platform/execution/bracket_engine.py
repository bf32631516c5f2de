#!/usr/bin/env python3
"""
BracketEngine
=============

Bracket-order lifecycle state machine.

    FLAT_READY    --submit OCO pair-------------------> BRACKET_ARMED
    BRACKET_ARMED --one leg FILLED--------------------> IN_TRADE
    BRACKET_ARMED --both legs dead, none filled-------> FLAT_READY
    IN_TRADE      --stop / target child FILLED--------> FLAT_READY
    IN_TRADE      --child CANCELED / ERROR unfilled---> FLATTEN -> FLAT_READY

Invariants:
- The engine never mutates state in place: every transition builds a new
  BracketState through its named constructors
- At most one class of gateway command per step (submit, flatten, or none)
- R and tick are validated before any gateway call
- Gateway failures leave the state untouched; the next update retries
"""

from typing import Optional

from scalper_platform.core.config import StrategyConfig
from scalper_platform.domain.business_models import (
    BracketState,
    CycleAction,
    CycleResult,
    OrderRecord,
    OrderStatus,
    VolatilityReading,
)
from scalper_platform.execution.errors import (
    DegenerateBracketError,
    InvalidReadingError,
    InvalidTickError,
    SubmissionFailure,
)
from scalper_platform.execution.gateway import GatewayError, OrderGateway
from scalper_platform.execution.pricing import BracketPrices, compute_bracket_prices
from scalper_platform.logging.logger_config import StrategyLogger
from scalper_platform.utils.utils import NoticeThrottle, log_exception

slog = StrategyLogger('bracket_engine')

_DEAD_ENTRY = (OrderStatus.CANCELED, OrderStatus.REJECTED, OrderStatus.ERROR)
_UNPROTECTED = (OrderStatus.CANCELED, OrderStatus.ERROR, OrderStatus.REJECTED)


class BracketEngine:
    """
    Decides and issues the per-update gateway command for the current phase.

    The caller (ScalpingBot) owns the BracketState and persists whatever
    step() returns.
    """

    def __init__(
        self,
        config: StrategyConfig,
        gateway: OrderGateway,
        notices: Optional[NoticeThrottle] = None,
    ):
        self.config = config
        self.gateway = gateway
        self.notices = notices or NoticeThrottle()

    # --------------------------------------------------
    # PUBLIC ENTRY
    # --------------------------------------------------

    def step(
        self,
        state: BracketState,
        reading: VolatilityReading,
        reference_price: float,
        tick_size: float,
        update_index: int,
        allow_entry: bool = True,
    ) -> CycleResult:
        if tick_size is None or not (tick_size > 0):
            if self.notices.should_emit("invalid_tick", update_index):
                slog.error(
                    "Invalid tick size, order actions halted this cycle",
                    trade_log=False,
                    tick=tick_size,
                )
            return CycleResult(CycleAction.NONE, state, "invalid_tick")

        try:
            if state.is_flat:
                if not allow_entry:
                    return CycleResult(CycleAction.NONE, state, "entries_suppressed")
                return self._try_entry(state, reading, reference_price, tick_size, update_index)

            if state.is_armed:
                return self._poll_entry_fill(state)

            return self._watch_exit(state, update_index)

        except GatewayError as e:
            slog.error("Gateway query failed, state unchanged", phase=state.phase.value, error=e)
            return CycleResult(CycleAction.NONE, state, "gateway_error")

    # --------------------------------------------------
    # FLAT_READY -> BRACKET_ARMED
    # --------------------------------------------------

    def _try_entry(
        self,
        state: BracketState,
        reading: VolatilityReading,
        reference_price: float,
        tick_size: float,
        update_index: int,
    ) -> CycleResult:
        if not reading.is_valid:
            if self.notices.should_emit("no_volatility", update_index):
                slog.info(f"No volatility data (R={reading.value}), entry skipped | index={update_index}")
            return CycleResult(CycleAction.NONE, state, "invalid_reading")

        cfg = self.config
        try:
            prices = compute_bracket_prices(
                reference_price,
                reading.value,
                cfg.bracket_fraction,
                cfg.stop_fraction,
                cfg.take_profit_fraction,
                tick_size,
            )
        except DegenerateBracketError as e:
            slog.warning(f"Degenerate bracket, entry skipped: {e}")
            return CycleResult(CycleAction.NONE, state, "degenerate_bracket")
        except InvalidReadingError as e:
            slog.info(f"Entry skipped: {e}")
            return CycleResult(CycleAction.NONE, state, "invalid_reading")
        except InvalidTickError as e:
            slog.error(f"Entry halted: {e}", trade_log=False)
            return CycleResult(CycleAction.NONE, state, "invalid_tick")

        blocker = self._entry_blocker()
        if blocker:
            if self.notices.should_emit(("entry_blocked", blocker), update_index):
                slog.warning(f"Entry suppressed: {blocker}", index=update_index)
            return CycleResult(CycleAction.NONE, state, blocker)

        slog.verbose(
            f"Placing bracket | ref={reference_price} R={reading.value} "
            f"entryOff={prices.entry_offset} stopOff={prices.stop_offset} tpOff={prices.tp_offset}"
        )

        try:
            leg_a, leg_b = self._submit(prices)
        except SubmissionFailure as e:
            slog.error("SubmitOcoBracket failed, retrying next update", error=e)
            return CycleResult(CycleAction.SUBMIT, state, "submission_failed")

        slog.event(
            "bracket",
            "SUBMITTED",
            leg_a=leg_a,
            leg_b=leg_b,
            buy=prices.buy_limit,
            sell=prices.sell_limit,
            stop_off=prices.stop_offset,
            tp_off=prices.tp_offset,
            qty=cfg.quantity,
        )
        return CycleResult(CycleAction.SUBMIT, BracketState.armed(leg_a, leg_b), "bracket_submitted")

    def _entry_blocker(self) -> Optional[str]:
        """An entry needs a flat book: no position and no working orders."""
        position = self.gateway.get_position()
        if position != 0:
            return f"position_open(qty={position})"
        working = [o for o in self.gateway.list_orders() if o.is_working]
        if working:
            return f"working_orders({len(working)})"
        return None

    def _submit(self, prices: BracketPrices):
        try:
            sub = self.gateway.submit_oco_bracket(
                prices.buy_limit,
                prices.sell_limit,
                self.config.quantity,
                prices.stop_offset,
                prices.tp_offset,
            )
        except GatewayError as e:
            raise SubmissionFailure(str(e)) from e

        if sub is None or sub.leg_a_id <= 0 or sub.leg_b_id <= 0 or sub.leg_a_id == sub.leg_b_id:
            raise SubmissionFailure(f"gateway returned invalid leg ids: {sub!r}")
        return sub.leg_a_id, sub.leg_b_id

    # --------------------------------------------------
    # BRACKET_ARMED -> IN_TRADE / FLAT_READY
    # --------------------------------------------------

    def _poll_entry_fill(self, state: BracketState) -> CycleResult:
        leg_a = self.gateway.get_order_by_id(state.entry_order_id_a)
        if leg_a is not None and leg_a.is_filled:
            return self._entered(leg_a, BracketState.in_trade(
                leg_a.order_id, leg_a.side.to_trade_side(), entry_a=leg_a.order_id,
            ))

        leg_b = self.gateway.get_order_by_id(state.entry_order_id_b)
        if leg_b is not None and leg_b.is_filled:
            return self._entered(leg_b, BracketState.in_trade(
                leg_b.order_id, leg_b.side.to_trade_side(), entry_b=leg_b.order_id,
            ))

        if self._is_dead(leg_a) and self._is_dead(leg_b):
            slog.event(
                "bracket",
                "EXPIRED",
                leg_a=state.entry_order_id_a,
                leg_b=state.entry_order_id_b,
                status_a=leg_a.status.value if leg_a else "ABSENT",
                status_b=leg_b.status.value if leg_b else "ABSENT",
            )
            return CycleResult(CycleAction.NONE, BracketState.flat(), "bracket_expired")

        slog.debug(
            f"Bracket working | a={state.entry_order_id_a}:{leg_a.status.value if leg_a else 'ABSENT'} "
            f"b={state.entry_order_id_b}:{leg_b.status.value if leg_b else 'ABSENT'}"
        )
        return CycleResult(CycleAction.NONE, state, "bracket_working")

    @staticmethod
    def _is_dead(order: Optional[OrderRecord]) -> bool:
        return order is None or order.status in _DEAD_ENTRY

    def _entered(self, leg: OrderRecord, new_state: BracketState) -> CycleResult:
        slog.event(
            "fill",
            "ENTRY",
            parent=leg.order_id,
            side=new_state.trade_side.value,
            price=leg.average_fill_price,
            qty=leg.filled_quantity,
        )
        return CycleResult(CycleAction.NONE, new_state, "entry_filled")

    # --------------------------------------------------
    # IN_TRADE -> FLAT_READY
    # --------------------------------------------------

    def _watch_exit(self, state: BracketState, update_index: int) -> CycleResult:
        parent = state.active_parent_order_id
        children = [o for o in self.gateway.list_orders() if o.parent_id == parent]

        filled = [c for c in children if c.is_filled]
        if filled:
            child = filled[0]
            slog.event(
                "fill",
                "EXIT",
                child=child.order_id,
                kind=child.kind.value,
                parent=parent,
                price=child.average_fill_price,
            )
            return CycleResult(CycleAction.NONE, BracketState.flat(), "exit_filled")

        broken = [c for c in children if c.status in _UNPROTECTED and c.filled_quantity == 0]
        if not broken:
            return CycleResult(CycleAction.NONE, state, "in_trade")

        detail = ", ".join(f"{c.kind.value}#{c.order_id}={c.status.value}" for c in broken)

        if not self.config.safety_exit_enabled:
            if self.notices.should_emit("unprotected", update_index):
                slog.error("Protective order lost, safety exit disabled", parent=parent, orders=detail)
            return CycleResult(CycleAction.NONE, state, "unprotected_position")

        slog.error("UNPROTECTED POSITION, flattening", parent=parent, orders=detail)
        try:
            self.gateway.flatten_position()
        except Exception as e:
            log_exception("BracketEngine.flatten_position", e)
            slog.error("Flatten request failed, state reset anyway", parent=parent)
        return CycleResult(CycleAction.FLATTEN, BracketState.flat(), "safety_exit")
