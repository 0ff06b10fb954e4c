# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Matches recent speech against the next few words of the script.

The most recently spoken word is tried first so the cursor follows the
speaker with as little lag as possible. A hit is trusted even when it lies
past script words that were never heard: the speaker is assumed to have said
them too quietly, or the recognizer dropped them.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .normalizer import DEFAULT_PREFIX_LENGTH, normalize_word
from .recent_matches import RecentMatchCache

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD: int = 5
DEFAULT_MATCH_EXPIRY: float = 5.0


@dataclass(frozen=True)
class MatchResult:
    """A spoken word found in the lookahead window."""
    advance: int  # Words to move the cursor forward (always >= 1)
    matched_word: str  # Normalized spoken word that matched
    window_index: int  # Index of the match within the lookahead window


class AlignmentMatcher:
    """
    Finds the script word the speaker most recently reached.

    Stateless apart from its settings. The recent-match cache is passed in
    per call and receives the matched word.
    """

    def __init__(
        self,
        lookahead: int = DEFAULT_LOOKAHEAD,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
        match_expiry: float = DEFAULT_MATCH_EXPIRY
    ) -> None:
        """
        Args:
            lookahead: Number of spoken words and script words compared
            prefix_length: Characters kept when normalizing words
            match_expiry: Seconds a matched word stays blocked
        """
        self.lookahead = lookahead
        self.prefix_length = prefix_length
        self.match_expiry = match_expiry

    def spoken_window(self, transcript: str) -> list[str]:
        """Normalized last ``lookahead`` words of the transcript, newest last."""
        if self.lookahead <= 0:
            return []
        tokens = transcript.split()[-self.lookahead:]
        return [normalize_word(t, self.prefix_length) for t in tokens]

    def script_window(self, script: Sequence[str], cursor: int) -> list[str]:
        """Normalized script words from the cursor onwards, in script order."""
        if self.lookahead <= 0:
            return []
        start = max(0, cursor)
        return [normalize_word(w, self.prefix_length)
                for w in script[start:start + self.lookahead]]

    def match(
        self,
        transcript: str,
        script: Sequence[str],
        cursor: int,
        cache: RecentMatchCache
    ) -> MatchResult | None:
        """
        Find how far the cursor should advance for this transcript.

        Args:
            transcript: Aggregated transcript snapshot
            script: Full script word list
            cursor: Current cursor position
            cache: Recently matched words, updated on a hit

        Returns:
            MatchResult for the newest uncached spoken word found in the
            window, or None if nothing matched
        """
        spoken = self.spoken_window(transcript)
        window = self.script_window(script, cursor)
        if not spoken or not window:
            return None

        for word in reversed(spoken):
            # Words made only of digits or symbols normalize to nothing
            if not word or word in cache:
                continue

            try:
                found_index = window.index(word)
            except ValueError:
                continue

            cache.insert(word, self.match_expiry)
            logger.debug("Matched '%s' at window index %d (cursor %d)",
                         word, found_index, cursor)
            return MatchResult(
                advance=found_index + 1,
                matched_word=word,
                window_index=found_index
            )

        return None
