#!/usr/bin/env python3
"""
ScalpingBot
===========

Per-update driver surface of the mean-reversion bracket scalper.

The host calls on_update() exactly once per market update (tick or bar
close). Each call runs to completion:

    reconcile (first call / full re-init only)
      -> ExecutionGuard (enable flag, trading window, session close)
      -> BracketEngine (prices from R, gateway polling, one command class)
      -> persist BracketState
      -> CycleResult back to the host

on_update() never raises. Anything unexpected is logged with its traceback
and the cycle returns with the state unchanged.
"""

from datetime import datetime, time as dtime
from typing import Optional, Union

from scalper_platform.core.config import StrategyConfig
from scalper_platform.domain.business_models import (
    BracketState,
    CycleAction,
    CycleResult,
)
from scalper_platform.execution.bracket_engine import BracketEngine
from scalper_platform.execution.execution_guard import ExecutionGuard
from scalper_platform.execution.gateway import OrderGateway
from scalper_platform.execution.recovery import RecoveryInspector, ReconciliationStrategy
from scalper_platform.logging.logger_config import StrategyLogger
from scalper_platform.market.volatility import VolatilitySource
from scalper_platform.persistence.state_store import BracketStateStore
from scalper_platform.utils.utils import NoticeThrottle, log_exception

slog = StrategyLogger('bot')


class ScalpingBot:

    def __init__(
        self,
        *,
        config: StrategyConfig,
        gateway: OrderGateway,
        volatility: VolatilitySource,
        tick_size: float,
        state_store: Optional[BracketStateStore] = None,
        reconciler: Optional[ReconciliationStrategy] = None,
    ):
        self.config = config
        self.gateway = gateway
        self.volatility = volatility
        self.tick_size = tick_size
        self.state_store = state_store

        self.notices = NoticeThrottle()
        self.guard = ExecutionGuard(config, gateway, self.notices)
        self.engine = BracketEngine(config, gateway, self.notices)
        self.recovery = RecoveryInspector(gateway, reconciler)

        self.state: BracketState = state_store.load() if state_store else BracketState.flat()
        self._reconciled = False
        self._last_phase = self.state.phase

        slog.info(f"🚀 STARTUP: ScalpingBot ready | {self.state.describe()}")

    @property
    def reconciled(self) -> bool:
        return self._reconciled

    # --------------------------------------------------
    # HOST CALLBACK
    # --------------------------------------------------

    def on_update(
        self,
        update_index: int,
        reference_price: float,
        time_of_day: Union[dtime, datetime],
        full_reinit: bool = False,
        tick_size: Optional[float] = None,
    ) -> CycleResult:
        try:
            return self._run_cycle(update_index, reference_price, time_of_day, full_reinit, tick_size)
        except Exception as e:
            log_exception("ScalpingBot.on_update", e)
            return CycleResult(CycleAction.NONE, self.state, "internal_error")

    def _run_cycle(self, update_index, reference_price, time_of_day, full_reinit, tick_size) -> CycleResult:
        reconciled_now = False
        if full_reinit or not self._reconciled:
            self._reconciled = False
            if not self._reconcile():
                return CycleResult(CycleAction.NONE, self.state, "reconciliation_pending")
            reconciled_now = True

        now = time_of_day.time() if isinstance(time_of_day, datetime) else time_of_day

        gate = self.guard.evaluate(self.state, now, update_index)
        if not gate.run_cycle:
            self._commit(gate.state)
            return CycleResult(self._action(gate.action, reconciled_now), self.state, gate.reason)

        reading = self.volatility.reading(update_index)
        tick = self.tick_size if tick_size is None else tick_size

        result = self.engine.step(
            gate.state,
            reading,
            reference_price,
            tick,
            update_index,
            allow_entry=gate.allow_entry,
        )
        self._commit(result.state)
        return CycleResult(self._action(result.action, reconciled_now), self.state, result.reason)

    # --------------------------------------------------
    # INTERNAL
    # --------------------------------------------------

    @staticmethod
    def _action(action: CycleAction, reconciled_now: bool) -> CycleAction:
        if action is CycleAction.NONE and reconciled_now:
            return CycleAction.RECONCILE
        return action

    def _reconcile(self) -> bool:
        report = self.recovery.run(self.state)
        if report is None:
            return False
        self.notices.clear()
        self._commit(report.state)
        self._reconciled = True
        return True

    def _commit(self, new_state: BracketState) -> None:
        if new_state.phase is not self._last_phase:
            slog.info(
                f"Phase {self._last_phase.value} -> {new_state.phase.value} | {new_state.describe()}",
                trade_log=True,
            )
            self._last_phase = new_state.phase
        self.state = new_state
        if self.state_store is not None:
            self.state_store.save(new_state)
