#!/usr/bin/env python3
"""
Utility Functions Module
Contains helper functions and utilities used throughout the application
"""

import logging
import traceback
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


def log_exception(func_name: str, exception: Exception) -> None:
    """Log exception with traceback"""
    logger.error(f"Exception in {func_name}: {exception}")
    logger.error(f"Traceback: {traceback.format_exc()}")


class NoticeThrottle:
    """
    Edge-triggered notices.

    should_emit(key, bucket) is True the first time a condition is seen
    within a bucket (an update index / bar), and False for repeats inside
    the same bucket. clear(key) re-arms a condition once it stops holding,
    so the next occurrence is reported again.

    Kept in memory only; never part of the persisted trading state.
    """

    def __init__(self):
        self._last: Dict[Hashable, Hashable] = {}

    def should_emit(self, key: Hashable, bucket: Hashable) -> bool:
        if key in self._last and self._last[key] == bucket:
            return False
        self._last[key] = bucket
        return True

    def clear(self, key: Optional[Hashable] = None) -> None:
        if key is None:
            self._last.clear()
        else:
            self._last.pop(key, None)
