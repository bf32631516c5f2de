# 🔒 EXECUTION GUARD: time window, master enable, session-close flatten
#
# Wraps every update cycle:
# • TRADING_ENABLED=no       -> nothing happens (one notice per bar)
# • before START_TIME        -> no entries; an armed bracket is cancelled
# • at / after STOP_TIME     -> cancel armed legs, flatten any position, reset
# • USE_TRADING_WINDOW=no    -> only the enable flag is checked
#
# The session-close path is idempotent: once the state is flat and the position
# has been read as zero it makes no gateway calls at all.

from dataclasses import dataclass
from datetime import time as dtime

from scalper_platform.core.config import StrategyConfig
from scalper_platform.domain.business_models import BracketState, CycleAction
from scalper_platform.execution.gateway import OrderGateway
from scalper_platform.logging.logger_config import StrategyLogger
from scalper_platform.utils.utils import NoticeThrottle, log_exception

slog = StrategyLogger('execution_guard')


@dataclass(frozen=True)
class GateOutcome:
    state: BracketState
    action: CycleAction = CycleAction.NONE
    run_cycle: bool = True
    allow_entry: bool = True
    reason: str = "window_open"


class ExecutionGuard:

    def __init__(self, config: StrategyConfig, gateway: OrderGateway, notices: NoticeThrottle = None):
        self.config = config
        self.gateway = gateway
        self.notices = notices or NoticeThrottle()
        # True once the position was read as zero after STOP_TIME; re-armed when the window reopens
        self._close_verified = False

    # -----------------------------------------------------
    # PUBLIC ENTRY
    # -----------------------------------------------------
    def evaluate(self, state: BracketState, now: dtime, update_index: int) -> GateOutcome:
        cfg = self.config

        if not cfg.trading_enabled:
            if self.notices.should_emit("trading_disabled", update_index):
                slog.info("Trading disabled")
            return GateOutcome(state, run_cycle=False, allow_entry=False, reason="trading_disabled")

        if not cfg.use_trading_window:
            return GateOutcome(state)

        if now < cfg.start_time:
            return self._before_window(state, now, update_index)

        if now >= cfg.stop_time:
            return self._after_window(state, now, update_index)

        self.notices.clear("before_window")
        self.notices.clear("after_window")
        self._close_verified = False
        return GateOutcome(state)

    # -----------------------------------------------------
    # BEFORE START_TIME
    # -----------------------------------------------------
    def _before_window(self, state: BracketState, now: dtime, update_index: int) -> GateOutcome:
        if self.notices.should_emit("before_window", update_index):
            slog.info(f"Before trading window (now={now.strftime('%H:%M:%S')})")

        if state.is_armed:
            slog.warning("Bracket working before window open, cancelling", trade_log=True)
            self._cancel_legs(state)
            return GateOutcome(
                BracketState.flat(),
                action=CycleAction.CANCEL,
                run_cycle=False,
                allow_entry=False,
                reason="before_window_cancel",
            )

        # An open trade keeps being managed; only entries are suppressed.
        return GateOutcome(
            state,
            run_cycle=state.in_trade_phase,
            allow_entry=False,
            reason="before_window",
        )

    # -----------------------------------------------------
    # AT / AFTER STOP_TIME
    # -----------------------------------------------------
    def _after_window(self, state: BracketState, now: dtime, update_index: int) -> GateOutcome:
        if self.notices.should_emit("after_window", update_index):
            slog.info(f"After trading window (now={now.strftime('%H:%M:%S')})")

        if state.is_flat:
            return self._verify_flat_after_close(state, update_index)

        slog.warning(f"Session close, resetting bracket | {state.describe()}", trade_log=True)

        action = CycleAction.NONE
        if state.is_armed:
            self._cancel_legs(state)
            action = CycleAction.CANCEL

        if self._flatten_if_open():
            action = CycleAction.FLATTEN
        else:
            self._close_verified = True

        return GateOutcome(
            BracketState.flat(),
            action=action,
            run_cycle=False,
            allow_entry=False,
            reason="session_close",
        )

    def _verify_flat_after_close(self, state: BracketState, update_index: int) -> GateOutcome:
        """
        A flat state can still sit on a real position (recovered without a
        parent order, or a flatten that did not go through). Check the
        position at most once per bar until it reads zero.
        """
        if self._close_verified or not self.notices.should_emit("close_position_check", update_index):
            return GateOutcome(state, run_cycle=False, allow_entry=False, reason="after_window")

        if not self._flatten_if_open():
            self._close_verified = True
            return GateOutcome(state, run_cycle=False, allow_entry=False, reason="after_window")

        slog.warning("Position open after session close with no tracked bracket, flattened", trade_log=True)
        return GateOutcome(
            state,
            action=CycleAction.FLATTEN,
            run_cycle=False,
            allow_entry=False,
            reason="session_close",
        )

    # -----------------------------------------------------
    # GATEWAY HELPERS (failures are logged, reset still happens)
    # -----------------------------------------------------
    def _cancel_legs(self, state: BracketState) -> None:
        for leg in (state.entry_order_id_a, state.entry_order_id_b):
            if not leg:
                continue
            try:
                self.gateway.cancel_order(leg)
                slog.event("cancel", "ENTRY_LEG", order_id=leg)
            except Exception as e:
                log_exception("ExecutionGuard.cancel_order", e)

    def _flatten_if_open(self) -> bool:
        try:
            position = self.gateway.get_position()
        except Exception as e:
            # Unknown position at session close: flatten blind.
            log_exception("ExecutionGuard.get_position", e)
            position = None

        if position == 0:
            return False

        try:
            self.gateway.flatten_position()
            slog.event("flatten", "SESSION_CLOSE", position=position)
        except Exception as e:
            log_exception("ExecutionGuard.flatten_position", e)
            slog.error("Session-close flatten failed", position=position)
        return True
