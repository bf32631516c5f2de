"""
Bracket execution error taxonomy.

These never cross ScalpingBot.on_update: every one of them is caught inside
the cycle, logged, and resolved to a safe state or retried next update.
"""


class BracketError(Exception):
    """Base class for strategy-cycle errors."""


class InvalidReadingError(BracketError):
    """R or the reference price is unusable. Skip the entry attempt only."""


class InvalidTickError(BracketError):
    """Tick size is non-positive. Halt all order actions for the cycle."""


class DegenerateBracketError(BracketError):
    """Rounding collapsed buy >= sell. Skip the entry, no gateway call."""


class SubmissionFailure(BracketError):
    """Gateway refused the OCO bracket. No state mutation."""
