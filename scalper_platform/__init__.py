"""
Scalper Platform - Mean-Reversion Bracket Scalper
=================================================

1. **core** - Strategy / runtime configuration (env file)
2. **domain** - Enums, order view, persisted BracketState
3. **execution** - Price calculator, bracket state machine, reconciliation,
   execution guard, per-update ScalpingBot
4. **persistence** - Atomic JSON BracketState store
5. **market** - Volatility (R) source adapters
"""

__version__ = "1.0.0"
