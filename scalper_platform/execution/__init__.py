"""
Bracket Execution
=================

- pricing: entry limits and stop / target offsets from R
- bracket_engine: FLAT_READY / BRACKET_ARMED / IN_TRADE state machine
- recovery: startup reconciliation against the order gateway
- execution_guard: enable flag, trading window, session-close flatten
- scalping_bot: per-update host callback
"""

from .bracket_engine import BracketEngine
from .execution_guard import ExecutionGuard
from .gateway import BracketSubmission, GatewayError, OrderGateway
from .recovery import RecoveryInspector, ReconciliationStrategy, ShapeReconciler
from .scalping_bot import ScalpingBot

__all__ = [
    "BracketEngine",
    "BracketSubmission",
    "ExecutionGuard",
    "GatewayError",
    "OrderGateway",
    "RecoveryInspector",
    "ReconciliationStrategy",
    "ScalpingBot",
    "ShapeReconciler",
]
