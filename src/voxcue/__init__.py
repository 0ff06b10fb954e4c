"""
voxcue - Speech-following teleprompter engine.

Tracks how far a speaker has read through a script from a live stream of
speech recognition results, and tells the display where to scroll.
"""

__version__ = "0.1.0"

from .aggregator import TranscriptAggregator, aggregate_transcript
from .cursor import CursorController
from .engine import PrompterEngine, TrackingState
from .matcher import AlignmentMatcher, MatchResult
from .normalizer import normalize_word, split_script
from .recent_matches import RecentMatchCache
from .recognition import Alternative, RecognitionEvent, ResultSegment
from .scheduler import ManualScheduler
from .server import WebServer

__all__ = [
    "AlignmentMatcher",
    "Alternative",
    "CursorController",
    "ManualScheduler",
    "MatchResult",
    "PrompterEngine",
    "RecentMatchCache",
    "RecognitionEvent",
    "ResultSegment",
    "TrackingState",
    "TranscriptAggregator",
    "WebServer",
    "aggregate_transcript",
    "normalize_word",
    "split_script",
]
