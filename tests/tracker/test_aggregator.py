# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for folding recognition events into transcript snapshots.
"""

import pytest

from voxcue.aggregator import TranscriptAggregator, aggregate_transcript
from voxcue.recognition import Alternative, RecognitionEvent, ResultSegment


class TestConfidenceFiltering:
    """Tests for the low-confidence early exit."""

    def test_low_confidence_segment_stops_aggregation(self) -> None:
        """Segments after a low-confidence one are ignored, even confident ones."""
        event = RecognitionEvent.from_pairs(
            ("the quick", 0.90), ("brown", 0.80), ("fox jumps", 0.99))

        transcript = aggregate_transcript(event, None)

        assert transcript == "the quick"
        assert "fox" not in transcript
        assert "brown" not in transcript

    def test_first_segment_below_threshold_gives_nothing(self) -> None:
        """No confident prefix means no transcript."""
        event = RecognitionEvent.from_pairs(("hello", 0.5), ("world", 0.99))
        assert aggregate_transcript(event, None) is None

    def test_threshold_is_inclusive(self) -> None:
        """A confidence equal to the threshold is accepted."""
        event = RecognitionEvent.from_pairs(("hello", 0.85))
        assert aggregate_transcript(event, None) == "hello"

    def test_custom_threshold(self) -> None:
        """The threshold is configurable."""
        event = RecognitionEvent.from_pairs(("hello", 0.6))
        assert aggregate_transcript(event, None, confidence_threshold=0.5) == "hello"

    def test_nan_confidence_stops_aggregation(self) -> None:
        """A NaN confidence is not treated as confident."""
        event = RecognitionEvent.from_pairs(("hello", float("nan")))
        assert aggregate_transcript(event, None) is None

    def test_segment_without_alternatives_stops_aggregation(self) -> None:
        """An empty segment ends aggregation without raising."""
        event = RecognitionEvent((
            ResultSegment(()),
            ResultSegment((Alternative("hello", 1.0),)),
        ))
        assert aggregate_transcript(event, None) is None

    def test_only_top_alternative_is_used(self) -> None:
        """Lower-ranked alternatives are ignored."""
        event = RecognitionEvent((
            ResultSegment((Alternative("brown fox", 0.9), Alternative("brow knocks", 0.99))),
        ))
        assert aggregate_transcript(event, None) == "brown fox"


class TestLengthBounds:
    """Tests for per-segment and overall truncation."""

    def test_short_segment_kept_whole(self) -> None:
        """Text shorter than half the maximum is kept as-is (trimmed)."""
        event = RecognitionEvent.from_pairs(("  hello world  ", 0.9))
        assert aggregate_transcript(event, None) == "hello world"

    def test_long_segment_keeps_tail_without_partial_word(self) -> None:
        """Only the last 25 characters are kept, minus the cut-off leading word."""
        event = RecognitionEvent.from_pairs(
            ("the quick brown fox jumps over the lazy dog", 0.95))
        assert aggregate_transcript(event, None) == "jumps over the lazy dog"

    def test_exact_half_length_drops_leading_word(self) -> None:
        """A segment of exactly 25 characters loses its first word."""
        text = "abcde fghij klmno pqrst u"
        assert len(text) == 25
        event = RecognitionEvent.from_pairs((text, 0.9))
        assert aggregate_transcript(event, None) == "fghij klmno pqrst u"

    def test_long_word_without_spaces_is_kept(self) -> None:
        """With no whitespace to cut at, the 25-character tail is kept."""
        event = RecognitionEvent.from_pairs(("a" * 30, 0.9))
        assert aggregate_transcript(event, None) == "a" * 25

    def test_combined_segments_trimmed_from_front(self) -> None:
        """Segments are joined with spaces and the front is cut to the maximum."""
        event = RecognitionEvent.from_pairs(
            ("alpha beta gamma delta e", 0.9),
            ("one two three four five!", 0.9),
            ("six", 0.9),
        )
        transcript = aggregate_transcript(event, None)
        assert transcript == "beta gamma delta e one two three four five! six"
        assert len(transcript) <= 50

    def test_custom_max_length(self) -> None:
        """The maximum length is configurable."""
        event = RecognitionEvent.from_pairs(("one two three four", 0.9))
        assert aggregate_transcript(event, None, max_length=12) == "four"

    @pytest.mark.parametrize("texts", [
        ["hello"],
        ["the quick brown fox jumps over the lazy dog"] * 4,
        ["a" * 80, "b" * 80, "c" * 80],
        ["one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten"],
        ["supercalifragilistic expialidocious", "x y z"],
    ])
    def test_confident_events_give_bounded_non_empty_transcripts(self, texts: list[str]) -> None:
        """All-confident events with text always produce 1-50 characters."""
        event = RecognitionEvent.from_pairs(*[(t, 0.99) for t in texts])
        transcript = aggregate_transcript(event, None)
        assert transcript
        assert len(transcript) <= 50


class TestDeduplication:
    """Tests for skipping repeated transcripts."""

    def test_same_result_twice_returns_none(self) -> None:
        """The second identical transcript is not an update."""
        aggregator = TranscriptAggregator()
        event = RecognitionEvent.from_pairs(("the quick brown", 0.9))

        assert aggregator.aggregate(event) == "the quick brown"
        assert aggregator.aggregate(event) is None
        assert aggregator.last_transcript == "the quick brown"

    def test_different_events_with_same_result_dedup(self) -> None:
        """Dedup compares the aggregated string, not the event."""
        aggregator = TranscriptAggregator()
        aggregator.aggregate(RecognitionEvent.from_pairs(("hello world", 0.9)))

        repeat = RecognitionEvent.from_pairs(("  hello world ", 0.97), ("more", 0.1))
        assert aggregator.aggregate(repeat) is None

    def test_previous_argument_is_respected(self) -> None:
        """The pure function compares against the given previous value."""
        event = RecognitionEvent.from_pairs(("hello", 0.9))
        assert aggregate_transcript(event, "hello") is None
        assert aggregate_transcript(event, "goodbye") == "hello"

    def test_empty_result_does_not_replace_previous(self) -> None:
        """A rejected event leaves the last transcript in place."""
        aggregator = TranscriptAggregator()
        aggregator.aggregate(RecognitionEvent.from_pairs(("hello", 0.9)))
        aggregator.aggregate(RecognitionEvent.from_pairs(("noise", 0.1)))
        assert aggregator.last_transcript == "hello"

    def test_reset_allows_same_transcript_again(self) -> None:
        """After reset the same transcript is a fresh update."""
        aggregator = TranscriptAggregator()
        event = RecognitionEvent.from_pairs(("hello", 0.9))
        aggregator.aggregate(event)
        aggregator.reset()

        assert aggregator.last_transcript is None
        assert aggregator.aggregate(event) == "hello"
