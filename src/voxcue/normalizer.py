# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Word normalization for comparing spoken words to script words.

Both sides are reduced to a short lowercase alphabetic key. The key is
deliberately lossy: distinct words sharing a prefix compare equal.
"""

import re
from functools import lru_cache

DEFAULT_PREFIX_LENGTH: int = 5

# Shown when the user starts the prompter without entering any text
PLACEHOLDER_SCRIPT: str = "Enter text for prompter."

_NON_WORD_CHARS = re.compile(r'[^a-z\s]')


@lru_cache(maxsize=4096)
def normalize_word(word: str, prefix_length: int = DEFAULT_PREFIX_LENGTH) -> str:
    """Normalize a word for matching.

    Lowercases, strips everything except a-z and whitespace, then keeps the
    first ``prefix_length`` characters.

    Examples:
        "Hello!" -> "hello"
        "Quickly," -> "quick"
        "don't" -> "dont"
        "42" -> ""
    """
    return _NON_WORD_CHARS.sub('', word.lower())[:prefix_length]


def normalize_words(words, prefix_length: int = DEFAULT_PREFIX_LENGTH) -> list[str]:
    """Normalize each word in an iterable, preserving order."""
    return [normalize_word(w, prefix_length) for w in words]


def split_script(text: str) -> tuple[str, ...]:
    """Split raw script text into the word sequence used for tracking.

    Any run of whitespace (including newlines) separates words. Empty or
    whitespace-only text yields the placeholder script so the prompter
    always has something to show.
    """
    words = tuple(text.split()) if text else ()
    if not words:
        return tuple(PLACEHOLDER_SCRIPT.split())
    return words
