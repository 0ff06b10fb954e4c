# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Folds recognition events into a short transcript of the most recent speech.

The recognizer re-sends every segment of the utterance on each update, so the
raw text keeps growing and repeating itself. Only the tail of each confident
segment is kept, and the combined result is capped so the matcher always
works on a small, recent window of words.
"""

import logging
import re

from .recognition import RecognitionEvent

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD: float = 0.85
DEFAULT_MAX_TRANSCRIPT_LENGTH: int = 50

_WHITESPACE = re.compile(r'\s')


def _drop_partial_leading_word(text: str) -> str:
    """Drop everything up to and including the first whitespace character.

    Text without whitespace is returned unchanged.
    """
    match = _WHITESPACE.search(text)
    if match is None:
        return text
    return text[match.end():]


def aggregate_transcript(
    event: RecognitionEvent,
    previous: str | None,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    max_length: int = DEFAULT_MAX_TRANSCRIPT_LENGTH
) -> str | None:
    """
    Reduce a recognition event to a bounded transcript string.

    Segments are read in order and reading stops at the first segment whose
    top alternative is below the confidence threshold, even if later
    segments are confident.

    Args:
        event: The recognition event to fold
        previous: The last transcript returned for this session
        confidence_threshold: Minimum top-alternative confidence (0-1)
        max_length: Maximum transcript length in characters

    Returns:
        The new transcript, or None if it is empty or unchanged
    """
    segment_length: int = max_length // 2
    transcript: str = ""

    for segment in event.segments:
        top = segment.top
        # NaN and missing confidences stop aggregation like low ones
        if top is None or not top.confidence >= confidence_threshold:
            break

        part: str = top.text.strip()[-segment_length:] if segment_length > 0 else ""
        if len(part) == segment_length:
            part = _drop_partial_leading_word(part)

        transcript += ' ' + part

    if len(transcript) > max_length:
        transcript = _drop_partial_leading_word(transcript[-max_length:])

    transcript = transcript.strip()

    if not transcript or transcript == previous:
        return None

    return transcript


class TranscriptAggregator:
    """
    Stateful wrapper around aggregate_transcript.

    Remembers the last accepted transcript so duplicate and stale events
    produce no update.
    """

    def __init__(
        self,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        max_length: int = DEFAULT_MAX_TRANSCRIPT_LENGTH
    ) -> None:
        self.confidence_threshold = confidence_threshold
        self.max_length = max_length
        self.last_transcript: str | None = None

    def aggregate(self, event: RecognitionEvent) -> str | None:
        """Fold an event; returns the new transcript or None if nothing changed."""
        transcript = aggregate_transcript(
            event,
            self.last_transcript,
            confidence_threshold=self.confidence_threshold,
            max_length=self.max_length
        )
        if transcript is not None:
            self.last_transcript = transcript
        return transcript

    def reset(self) -> None:
        """Forget the last transcript."""
        self.last_transcript = None
