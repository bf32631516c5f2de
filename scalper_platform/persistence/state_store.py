"""
BRACKET STATE PERSISTENCE
=========================

One JSON record per client holding the BracketState aggregate.

• Loaded once at startup, before reconciliation
• Saved atomically (temp file + replace) at cycle boundaries
• Missing file -> FLAT_READY
• Corrupt / inconsistent file -> FLAT_READY (logged, reconciliation repairs the rest)
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from scalper_platform.domain.business_models import BracketState
from scalper_platform.logging.logger_config import get_component_logger
from scalper_platform.utils.utils import log_exception

logger = get_component_logger('state_store')

STATE_VERSION = 1


class BracketStateStore:

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._last_saved: Optional[BracketState] = None

    # --------------------------------------------------
    # LOAD
    # --------------------------------------------------

    def load(self) -> BracketState:
        if not self.path.exists():
            logger.info("STATE: no previous state file found, starting FLAT_READY | path=%s", self.path)
            return BracketState.flat()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            state = BracketState.from_dict(data["state"])
        except Exception as e:
            log_exception("BracketStateStore.load", e)
            logger.warning("STATE: unreadable state file, starting FLAT_READY | path=%s", self.path)
            return BracketState.flat()

        self._last_saved = state
        logger.info("STATE: loaded | %s | saved_at=%s", state.describe(), data.get("saved_at"))
        return state

    # --------------------------------------------------
    # SAVE
    # --------------------------------------------------

    def save(self, state: BracketState) -> bool:
        """Persist state if it changed since the last save. Returns True when written."""
        if state == self._last_saved:
            return False

        payload = {
            "version": STATE_VERSION,
            "saved_at": datetime.now().isoformat(timespec="seconds"),
            "state": state.to_dict(),
        }

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            log_exception("BracketStateStore.save", e)
            return False

        self._last_saved = state
        logger.debug("STATE: saved | %s", state.describe())
        return True
