# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Prompter engine that follows a speaker through a script.

Ties together transcript aggregation, word matching and the cursor, and
manages the session lifecycle (start, pause, resume, stop, restart). The
speech recognizer is external: the engine tells it what to do through
recognition listeners and receives its results through handle_event().
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from . import debug_log
from .aggregator import TranscriptAggregator
from .config import (
    DEFAULT_CONFIG,
    TrackingSettings,
    _deep_merge,
    validate_tracking_settings,
)
from .cursor import CursorController, CursorListener
from .matcher import AlignmentMatcher, MatchResult
from .recent_matches import RecentMatchCache
from .recognition import RecognitionEvent
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

RecognitionCommand = Literal["start", "stop", "abort"]
MatchListener = Callable[[str, int], None]
RecognitionListener = Callable[[RecognitionCommand], None]


@dataclass
class TrackingState:
    """Private matching state for one reading session."""
    aggregator: TranscriptAggregator
    recent_matches: RecentMatchCache
    events_processed: int = 0
    matches: list[MatchResult] = field(default_factory=list)

    @property
    def last_transcript(self) -> str | None:
        return self.aggregator.last_transcript

    def clear(self) -> None:
        """Forget the transcript snapshot and every recently matched word."""
        self.aggregator.reset()
        self.recent_matches.clear()
        self.events_processed = 0
        self.matches.clear()


class PrompterEngine:
    """
    Follows a speaker through a script using recognition events.

    Events are only accepted while the engine is listening (started and not
    paused, stopped or mid-restart). Each accepted event is processed to
    completion before handle_event() returns.

    Session state is cleared on stop(), restart(), jump_to() and
    load_script(). It is kept across pause() and resume().

    Usage:
        engine = PrompterEngine(loop, split_script(text))
        engine.add_cursor_listener(scroll_to_word)
        engine.start()
        engine.handle_event(RecognitionEvent.from_dict(payload))
    """

    def __init__(
        self,
        scheduler: Scheduler,
        script: Sequence[str] = (),
        settings: TrackingSettings | None = None
    ) -> None:
        """
        Args:
            scheduler: Timer source; an asyncio event loop or ManualScheduler
            script: Script words for the first session
            settings: Tracking settings; missing keys come from DEFAULT_CONFIG

        Raises:
            ValueError: If the settings are out of range.
        """
        self.scheduler = scheduler
        self.settings: TrackingSettings = validate_tracking_settings(
            _deep_merge(DEFAULT_CONFIG["tracking"], settings or {}))

        self.matcher = AlignmentMatcher(
            lookahead=self.settings["lookahead_word_count"],
            prefix_length=self.settings["normalized_word_prefix_length"],
            match_expiry=self.settings["match_expiry_ms"] / 1000
        )
        self.state = TrackingState(
            aggregator=TranscriptAggregator(
                confidence_threshold=self.settings["confidence_threshold"],
                max_length=self.settings["max_transcript_length"]
            ),
            recent_matches=RecentMatchCache(scheduler)
        )

        self.script: tuple[str, ...] = tuple(script)
        self.cursor = CursorController(len(self.script))

        # Session flags
        self.active: bool = False  # Prompter is showing a session
        self.paused: bool = False
        self.listening: bool = False  # Recognition events are accepted
        self.restart_on_end: bool = False  # Restart recognizer if it stops by itself

        self._rearm_handle: TimerHandle | None = None
        self._match_listeners: list[MatchListener] = []
        self._recognition_listeners: list[RecognitionListener] = []

    # Listener registration

    def add_cursor_listener(self, listener: CursorListener) -> None:
        """Call ``listener(position)`` on every cursor change."""
        self.cursor.add_listener(listener)

    def add_match_listener(self, listener: MatchListener) -> None:
        """Call ``listener(word, advance)`` whenever a spoken word matches."""
        self._match_listeners.append(listener)

    def add_recognition_listener(self, listener: RecognitionListener) -> None:
        """Call ``listener(command)`` when the recognizer should start, stop or abort."""
        self._recognition_listeners.append(listener)

    def _command_recognizer(self, command: RecognitionCommand) -> None:
        logger.debug("Recognizer command: %s", command)
        for listener in list(self._recognition_listeners):
            listener(command)

    # Session lifecycle

    @property
    def position(self) -> int:
        return self.cursor.position

    def load_script(self, words: Sequence[str]) -> None:
        """Begin a new session with a different script. Does not start listening."""
        if self._rearm_handle is not None:
            # Recognition was aborted for a restart that will no longer happen
            self._cancel_rearm()
            self.active = False
            self.paused = False
        self.script = tuple(words)
        self.cursor.set_script_length(len(self.script))
        self.state.clear()
        debug_log.clear_logs()
        logger.info("Script loaded: %d words", len(self.script))
        self.cursor.reset()

    def start(self) -> None:
        """Start listening for speech."""
        self._cancel_rearm()
        self._arm()
        self._command_recognizer("start")

    def pause(self) -> None:
        """Stop listening but keep the session, including matching state."""
        self._cancel_rearm()
        self.restart_on_end = False
        self.listening = False
        self.paused = True
        self._command_recognizer("stop")

    def resume(self) -> None:
        """Continue a paused session."""
        self.start()

    def stop(self) -> None:
        """End the session and return the cursor to the start."""
        self._cancel_rearm()
        self.restart_on_end = False
        self.listening = False
        self.active = False
        self.paused = False
        self.state.clear()
        self._command_recognizer("abort")
        self._move_cursor(0, "reset")

    def restart(self) -> None:
        """
        Abort recognition, clear matching state and start listening again
        after the configured restart delay.
        """
        self._cancel_rearm()
        self.restart_on_end = False
        self.listening = False
        self.state.clear()
        self._command_recognizer("abort")
        self._rearm_handle = self.scheduler.call_later(
            self.settings["restart_delay_ms"] / 1000, self._rearm_after_restart)

    def jump_to(self, index: int) -> None:
        """Move the cursor to a word chosen by the user, then restart."""
        self._move_cursor(index, "jump")
        self.restart()

    def _arm(self) -> None:
        self.restart_on_end = True
        self.listening = True
        self.active = True
        self.paused = False

    def _rearm_after_restart(self) -> None:
        self._rearm_handle = None
        self._arm()
        self._command_recognizer("start")

    def _cancel_rearm(self) -> None:
        if self._rearm_handle is not None:
            self._rearm_handle.cancel()
            self._rearm_handle = None

    def _move_cursor(self, position: int, reason: str) -> None:
        old_position = self.cursor.position
        new_position = self.cursor.set(position)
        debug_log.log_position_update(
            old_position, new_position,
            self.script[min(old_position, new_position):max(old_position, new_position)],
            reason
        )

    # Recognizer callbacks

    def handle_event(self, event: RecognitionEvent) -> MatchResult | None:
        """
        Process one recognition event.

        Returns:
            The match that moved the cursor, or None if the event was ignored,
            unchanged or matched nothing.
        """
        if not self.listening:
            logger.debug("Ignoring recognition event while not listening")
            return None

        transcript = self.state.aggregator.aggregate(event)
        if transcript is None:
            return None

        self.state.events_processed += 1
        debug_log.log_transcript(
            transcript, self.matcher.spoken_window(transcript))

        old_position = self.cursor.position
        result = self.matcher.match(
            transcript, self.script, old_position, self.state.recent_matches)
        if result is None:
            return None

        self.state.matches.append(result)
        debug_log.log_match(old_position, result.matched_word, result.advance)
        for listener in list(self._match_listeners):
            listener(result.matched_word, result.advance)

        new_position = self.cursor.advance(result.advance)
        debug_log.log_position_update(
            old_position, new_position, self.script[old_position:new_position], "match")
        logger.debug("Advanced %d -> %d on '%s'",
                     old_position, new_position, result.matched_word)
        return result

    def handle_recognition_end(self) -> bool:
        """
        The recognizer stopped. Ask it to start again unless the stop was
        requested.

        Returns:
            True if a restart was requested.
        """
        if not self.restart_on_end:
            return False
        logger.info("Recognition ended unexpectedly, restarting")
        self._command_recognizer("start")
        return True

    def report_recognition_error(self, action: str, message: str) -> None:
        """Record a recognizer failure. The session carries on in its current state."""
        logger.warning("Recognizer %s failed: %s", action or "operation", message)

    def snapshot(self) -> dict[str, Any]:
        """Current session state, for clients and diagnostics."""
        return {
            "words": list(self.script),
            "position": self.cursor.position,
            "active": self.active,
            "paused": self.paused,
            "listening": self.listening,
            "transcript": self.state.last_transcript,
            "recentMatches": self.state.recent_matches.entries,
        }
