# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Short-lived memory of recently matched words.

A spoken word that just moved the cursor keeps showing up in later interim
results. Holding it here for a few seconds stops it from matching again
further down the script.
"""

import logging
from collections import deque
from functools import partial

from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class RecentMatchCache:
    """
    Ordered collection of normalized words with FIFO expiry.

    Each insert schedules exactly one removal. When a removal fires it drops
    the OLDEST entry, whichever word that is. Inserting a word that is already
    present adds a second entry with its own expiry.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._entries: deque[str] = deque()
        self._pending: dict[int, TimerHandle] = {}
        self._next_id: int = 0

    def __contains__(self, word: object) -> bool:
        return word in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def contains(self, word: str) -> bool:
        """Check whether a word is currently blocked from matching."""
        return word in self._entries

    @property
    def entries(self) -> list[str]:
        """Snapshot of the cached words, oldest first."""
        return list(self._entries)

    def insert(self, word: str, ttl: float) -> None:
        """
        Add a word and schedule the removal of the oldest entry.

        Args:
            word: Normalized word to block
            ttl: Seconds until one entry is removed
        """
        self._entries.append(word)
        timer_id = self._next_id
        self._next_id += 1
        self._pending[timer_id] = self._scheduler.call_later(
            ttl, partial(self._expire, timer_id))
        logger.debug("Cached '%s' for %.2fs (%d cached)",
                     word, ttl, len(self._entries))

    def _expire(self, timer_id: int) -> None:
        self._pending.pop(timer_id, None)
        if self._entries:
            word = self._entries.popleft()
            logger.debug("Expired '%s' (%d cached)", word, len(self._entries))

    def clear(self) -> None:
        """Drop every entry and cancel all pending expiries."""
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        self._entries.clear()
