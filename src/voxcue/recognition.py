# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Recognition event types delivered by the speech engine.

The speech engine itself runs outside voxcue (in the browser). Each time its
results change it sends the full list of result segments, mirroring the Web
Speech API's SpeechRecognitionEvent.results.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class RecognitionEventError(ValueError):
    """Raised when an incoming recognition payload cannot be parsed."""


@dataclass(frozen=True)
class Alternative:
    """One hypothesis for a result segment."""

    text: str
    confidence: float = 1.0


@dataclass(frozen=True)
class ResultSegment:
    """A result segment with alternatives ordered best-first."""

    alternatives: tuple[Alternative, ...] = ()
    is_final: bool = False

    @property
    def top(self) -> Alternative | None:
        """The best alternative, or None for an empty segment."""
        return self.alternatives[0] if self.alternatives else None

    def __repr__(self) -> str:
        status: str = "final" if self.is_final else "interim"
        top = self.top
        if top is None:
            return f"ResultSegment({status}: <empty>)"
        return f"ResultSegment({status}: '{top.text}' @ {top.confidence:.2f})"


@dataclass(frozen=True)
class RecognitionEvent:
    """Ordered result segments from a single recognizer callback."""

    segments: tuple[ResultSegment, ...] = field(default_factory=tuple)

    @classmethod
    def from_pairs(cls, *pairs: tuple[str, float]) -> 'RecognitionEvent':
        """Build an event with one single-alternative segment per (text, confidence)."""
        return cls(tuple(
            ResultSegment((Alternative(text, confidence),)) for text, confidence in pairs
        ))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RecognitionEvent':
        """
        Parse the JSON payload sent by the browser.

        Expected shape::

            {"results": [{"isFinal": false,
                          "alternatives": [{"transcript": "...", "confidence": 0.9}]}]}

        A segment may also be given as a bare list of alternatives.

        Raises:
            RecognitionEventError: If the payload does not have this shape.
        """
        results = data.get("results")
        if not isinstance(results, list):
            raise RecognitionEventError("'results' must be a list")

        segments: list[ResultSegment] = []
        for i, raw_segment in enumerate(results):
            if isinstance(raw_segment, list):
                raw_alternatives: object = raw_segment
                is_final = False
            elif isinstance(raw_segment, Mapping):
                raw_alternatives = raw_segment.get("alternatives", [])
                is_final = bool(raw_segment.get("isFinal", False))
            else:
                raise RecognitionEventError(f"Result {i} is not an object or list")

            if not isinstance(raw_alternatives, list):
                raise RecognitionEventError(f"Result {i} alternatives must be a list")

            alternatives = tuple(
                _parse_alternative(raw, i) for raw in raw_alternatives)
            segments.append(ResultSegment(alternatives, is_final))

        return cls(tuple(segments))


def _parse_alternative(raw: object, segment_index: int) -> Alternative:
    if not isinstance(raw, Mapping):
        raise RecognitionEventError(
            f"Result {segment_index} has an alternative that is not an object")

    text = raw.get("transcript", "")
    if not isinstance(text, str):
        raise RecognitionEventError(
            f"Result {segment_index} transcript must be a string")

    confidence = raw.get("confidence", 1.0)
    if isinstance(confidence, bool) or not isinstance(confidence, int | float):
        raise RecognitionEventError(
            f"Result {segment_index} confidence must be a number")
    if math.isnan(confidence):
        raise RecognitionEventError(
            f"Result {segment_index} confidence is not a number")

    return Alternative(text, float(confidence))
