# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Cursor position within the script.

Changing the position only updates state and notifies listeners. Scrolling
the display is left to whoever listens.
"""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

CursorListener = Callable[[int], None]


class CursorController:
    """Owns the cursor position and tells listeners whenever it changes."""

    def __init__(self, script_length: int = 0) -> None:
        self._script_length: int = max(0, script_length)
        self._position: int = 0
        self._listeners: list[CursorListener] = []

    @property
    def position(self) -> int:
        return self._position

    @property
    def script_length(self) -> int:
        return self._script_length

    @property
    def at_end(self) -> bool:
        """True once the cursor has passed the last script word."""
        return self._position >= self._script_length

    def add_listener(self, listener: CursorListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CursorListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _clamp(self, position: int) -> int:
        return max(0, min(position, self._script_length))

    def _update(self, position: int) -> int:
        self._position = self._clamp(position)
        for listener in list(self._listeners):
            listener(self._position)
        return self._position

    def advance(self, delta: int) -> int:
        """
        Move forward by ``delta`` words, stopping at the end of the script.

        Raises:
            ValueError: If delta is negative. The cursor never moves back
                through advance(); use set() for explicit jumps.
        """
        if delta < 0:
            raise ValueError(f"Cannot advance cursor by {delta}")
        return self._update(self._position + delta)

    def set(self, position: int) -> int:
        """Move directly to a position, e.g. when the user clicks a word."""
        return self._update(position)

    def reset(self) -> int:
        """Move back to the start of the script."""
        return self._update(0)

    def set_script_length(self, script_length: int) -> None:
        """Use a new script length. Does not notify; callers reset afterwards."""
        self._script_length = max(0, script_length)
        self._position = self._clamp(self._position)
