# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for PrompterEngine event handling and session lifecycle.
"""

import logging
from dataclasses import dataclass, field
from unittest import mock

import pytest

from voxcue import debug_log
from voxcue.config import DEFAULT_CONFIG
from voxcue.engine import PrompterEngine
from voxcue.normalizer import split_script
from voxcue.recognition import RecognitionEvent
from voxcue.scheduler import ManualScheduler


@dataclass
class Harness:
    """Engine plus everything it told the outside world."""
    engine: PrompterEngine
    scheduler: ManualScheduler
    positions: list[int] = field(default_factory=list)
    matches: list[tuple[str, int]] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)

    def say(self, text: str, confidence: float = 0.95):
        return self.engine.handle_event(RecognitionEvent.from_pairs((text, confidence)))


def make_harness(script: str = "the quick brown fox jumps") -> Harness:
    scheduler = ManualScheduler()
    engine = PrompterEngine(scheduler, split_script(script))
    harness = Harness(engine, scheduler)
    engine.add_cursor_listener(harness.positions.append)
    engine.add_match_listener(lambda word, advance: harness.matches.append((word, advance)))
    engine.add_recognition_listener(harness.commands.append)
    return harness


class TestEventHandling:
    """Tests for aggregate -> match -> cursor flow."""

    def test_events_ignored_before_start(self) -> None:
        """Nothing happens until the engine is started."""
        h = make_harness()
        assert h.say("the quick brown") is None
        assert h.engine.position == 0
        assert h.positions == []

    def test_match_advances_cursor_and_notifies(self) -> None:
        """A matched word moves the cursor and fires both notifications."""
        h = make_harness()
        h.engine.start()

        result = h.say("the quick brown")

        assert result is not None
        assert result.advance == 3
        assert h.engine.position == 3
        assert h.matches == [("brown", 3)]
        assert h.positions == [3]

    def test_repeated_word_does_not_retrigger(self) -> None:
        """A word stays blocked until its cache entry expires."""
        h = make_harness("the quick brown fox jumps")
        h.engine.start()
        h.say("the quick brown")
        h.say("fox jumps jumps")
        assert h.engine.position == 5

        # Overlapping interim result repeats the same text
        assert h.say("fox jumps jumps") is None
        assert h.engine.position == 5
        assert h.matches == [("brown", 3), ("jumps", 2)]

    def test_cached_word_skipped_until_expiry(self) -> None:
        """A repeat of a just-matched word further on is ignored, then allowed after expiry."""
        h = make_harness("fox jumps and jumps again")
        h.engine.start()

        h.say("fox jumps")
        assert h.engine.position == 2

        assert h.say("fox jumps um") is None
        assert h.engine.position == 2

        h.scheduler.advance(5.0)
        assert h.say("fox jumps uh") is not None
        assert h.engine.position == 4

    def test_cursor_is_monotonic(self) -> None:
        """Across a stream of events the cursor never goes backwards."""
        h = make_harness("one two three four five six seven eight nine ten")
        h.engine.start()
        utterances = [
            "one", "one two", "one two three", "three", "two",
            "four five", "one", "seven", "six", "eight nine ten",
        ]
        last = 0
        for text in utterances:
            h.say(text)
            assert h.engine.position >= last
            last = h.engine.position

        assert all(b >= a for a, b in zip(h.positions, h.positions[1:]))
        assert all(advance >= 1 for _, advance in h.matches)

    def test_low_confidence_event_ignored(self) -> None:
        """Low-confidence results never move the cursor."""
        h = make_harness()
        h.engine.start()
        assert h.say("the quick brown", confidence=0.5) is None
        assert h.engine.position == 0

    def test_unmatched_event_updates_transcript_only(self) -> None:
        """Speech that matches nothing is remembered but moves nothing."""
        h = make_harness()
        h.engine.start()
        assert h.say("something else entirely") is None
        assert h.engine.state.last_transcript == "something else entirely"
        assert h.positions == []

    def test_end_of_script(self) -> None:
        """Once past the last word no further matches are possible."""
        h = make_harness("hello world")
        h.engine.start()
        h.say("hello world")
        assert h.engine.cursor.at_end
        assert h.say("hello world again") is None

    def test_debug_log_records_matches(self) -> None:
        """Matches and position changes go to the debug log."""
        h = make_harness()
        h.engine.start()
        with mock.patch.object(debug_log, 'log_match') as log_match, \
                mock.patch.object(debug_log, 'log_position_update') as log_update:
            h.say("the quick")

        log_match.assert_called_once_with(0, "quick", 2)
        log_update.assert_called_once_with(0, 2, ("the", "quick"), "match")


class TestLifecycle:
    """Tests for start, pause, resume, stop, restart and jumps."""

    def test_start_arms_engine(self) -> None:
        """start() begins listening and asks the recognizer to start."""
        h = make_harness()
        h.engine.start()

        assert h.engine.listening
        assert h.engine.active
        assert h.engine.restart_on_end
        assert h.commands == ["start"]

    def test_pause_stops_accepting_events(self) -> None:
        """Events are dropped while paused."""
        h = make_harness()
        h.engine.start()
        h.engine.pause()

        assert h.commands == ["start", "stop"]
        assert h.engine.paused
        assert h.say("the quick") is None
        assert h.engine.position == 0

    def test_pause_resume_preserves_matching_state(self) -> None:
        """Cache and transcript snapshot survive a pause."""
        h = make_harness("fox jumps and jumps again")
        h.engine.start()
        h.say("fox jumps")

        h.engine.pause()
        h.engine.resume()

        assert h.engine.listening
        assert not h.engine.paused
        assert h.engine.state.last_transcript == "fox jumps"
        assert "jumps" in h.engine.state.recent_matches
        # Same transcript is still a duplicate
        assert h.say("fox jumps") is None
        assert h.engine.position == 2

    def test_restart_clears_matching_state(self) -> None:
        """Restart clears the cache and transcript snapshot."""
        h = make_harness("fox jumps and jumps again")
        h.engine.start()
        h.say("fox jumps")

        h.engine.restart()

        assert h.engine.state.last_transcript is None
        assert len(h.engine.state.recent_matches) == 0
        assert h.engine.position == 2

    def test_restart_rearms_after_delay(self) -> None:
        """Recognition is aborted, then restarted after the restart delay."""
        h = make_harness()
        h.engine.start()
        h.engine.restart()

        assert h.commands == ["start", "abort"]
        assert not h.engine.listening
        assert h.say("the quick") is None

        h.scheduler.advance(0.25)

        assert h.commands == ["start", "abort", "start"]
        assert h.engine.listening
        assert h.say("the quick") is not None

    def test_stop_during_restart_cancels_rearm(self) -> None:
        """A stop before the restart delay elapses keeps the engine stopped."""
        h = make_harness()
        h.engine.start()
        h.engine.restart()
        h.engine.stop()

        h.scheduler.advance(1.0)

        assert not h.engine.listening
        assert h.commands == ["start", "abort", "abort"]

    def test_script_during_restart_ends_session(self) -> None:
        """A new script during the restart delay leaves a stopped, consistent session."""
        h = make_harness()
        h.engine.start()
        h.engine.restart()

        h.engine.load_script(split_script("hello world"))
        h.scheduler.advance(1.0)

        assert h.commands == ["start", "abort"]
        assert not h.engine.listening
        assert not h.engine.active
        assert not h.engine.paused
        assert not h.engine.handle_recognition_end()
        assert h.engine.snapshot()["active"] is False

        h.engine.start()
        assert h.say("hello") is not None
        assert h.engine.position == 1

    def test_script_while_listening_keeps_listening(self) -> None:
        """Loading a script mid-read without a pending restart leaves the recognizer running."""
        h = make_harness()
        h.engine.start()

        h.engine.load_script(split_script("hello world"))

        assert h.engine.listening
        assert h.engine.active
        assert h.say("hello") is not None

    def test_stop_resets_session(self) -> None:
        """stop() ends the session, clears state and returns to the start."""
        h = make_harness()
        h.engine.start()
        h.say("the quick brown")

        h.engine.stop()

        assert h.engine.position == 0
        assert h.positions[-1] == 0
        assert not h.engine.active
        assert not h.engine.listening
        assert not h.engine.restart_on_end
        assert h.engine.state.last_transcript is None
        assert len(h.engine.state.recent_matches) == 0
        assert h.commands[-1] == "abort"

    def test_jump_to_sets_cursor_and_restarts(self) -> None:
        """A user jump moves the cursor, notifies, and restarts recognition."""
        h = make_harness("the quick brown fox jumps")
        h.engine.start()

        h.engine.jump_to(3)

        assert h.engine.position == 3
        assert h.positions == [3]
        assert h.commands == ["start", "abort"]

        h.scheduler.advance(0.25)
        h.say("jumps")
        assert h.engine.position == 5

    def test_jump_backwards_allowed(self) -> None:
        """Jumps are the only way back and are clamped to the script."""
        h = make_harness()
        h.engine.start()
        h.say("the quick brown fox")
        h.engine.jump_to(1)
        assert h.engine.position == 1
        h.engine.jump_to(99)
        assert h.engine.position == 5

    def test_recognition_end_restarts_when_running(self) -> None:
        """An unexpected recognizer stop triggers a restart request."""
        h = make_harness()
        h.engine.start()

        assert h.engine.handle_recognition_end()
        assert h.commands == ["start", "start"]

    def test_recognition_end_ignored_when_paused(self) -> None:
        """After a requested stop, the end of recognition is expected."""
        h = make_harness()
        h.engine.start()
        h.engine.pause()

        assert not h.engine.handle_recognition_end()
        assert h.commands == ["start", "stop"]

    def test_load_script_starts_new_session(self) -> None:
        """A new script resets the cursor and matching state."""
        h = make_harness()
        h.engine.start()
        h.say("the quick brown")

        h.engine.load_script(split_script("a new script"))

        assert h.engine.script == ("a", "new", "script")
        assert h.engine.position == 0
        assert h.engine.cursor.script_length == 3
        assert h.engine.state.last_transcript is None
        assert h.positions[-1] == 0

    def test_recognition_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Recognizer failures are logged and change nothing."""
        h = make_harness()
        h.engine.start()
        with caplog.at_level(logging.WARNING, logger="voxcue.engine"):
            h.engine.report_recognition_error("start", "not-allowed")

        assert "not-allowed" in caplog.text
        assert h.engine.listening


class TestSettings:
    """Tests for engine configuration."""

    def test_defaults(self) -> None:
        """The engine uses the documented defaults."""
        engine = PrompterEngine(ManualScheduler())
        assert engine.matcher.lookahead == 5
        assert engine.matcher.prefix_length == 5
        assert engine.matcher.match_expiry == 5.0
        assert engine.state.aggregator.confidence_threshold == 0.85
        assert engine.state.aggregator.max_length == 50

    def test_custom_settings(self) -> None:
        """Settings flow into the matcher and aggregator."""
        settings = {**DEFAULT_CONFIG["tracking"], "lookahead_word_count": 2,
                    "match_expiry_ms": 1000}
        scheduler = ManualScheduler()
        engine = PrompterEngine(scheduler, split_script("a b c d"), settings=settings)
        engine.start()

        assert engine.handle_event(RecognitionEvent.from_pairs(("c", 0.9))) is None
        assert engine.handle_event(RecognitionEvent.from_pairs(("b", 0.9))) is not None
        scheduler.advance(1.0)
        assert len(engine.state.recent_matches) == 0

    def test_partial_settings_use_defaults(self) -> None:
        """Settings missing from a partial mapping fall back to the defaults."""
        engine = PrompterEngine(ManualScheduler(), settings={"lookahead_word_count": 3})

        assert engine.matcher.lookahead == 3
        assert engine.settings["confidence_threshold"] == 0.85
        assert engine.settings["restart_delay_ms"] == 250
        assert DEFAULT_CONFIG["tracking"]["lookahead_word_count"] == 5

    def test_invalid_settings_rejected(self) -> None:
        """Out-of-range settings raise ValueError."""
        settings = {**DEFAULT_CONFIG["tracking"], "lookahead_word_count": 0}
        with pytest.raises(ValueError):
            PrompterEngine(ManualScheduler(), settings=settings)

    def test_snapshot(self) -> None:
        """snapshot() reports the session for clients."""
        h = make_harness("hello world")
        h.engine.start()
        h.say("hello")

        snapshot = h.engine.snapshot()

        assert snapshot["words"] == ["hello", "world"]
        assert snapshot["position"] == 1
        assert snapshot["active"] is True
        assert snapshot["paused"] is False
        assert snapshot["transcript"] == "hello"
        assert snapshot["recentMatches"] == ["hello"]
