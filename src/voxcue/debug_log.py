"""
Debug logging for checking what the engine matched and why the cursor moved.

Writes a single log file, logs/matches.log, with one line per transcript,
match and cursor change.

Logging is disabled by default. Call enable() to turn it on.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
MATCH_LOG: Path = LOG_DIR / "matches.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _append(line: str) -> None:
    _ensure_log_dir()
    with open(MATCH_LOG, 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_logs() -> None:
    """Start a fresh log file for a new session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(MATCH_LOG, 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_transcript(transcript: str, spoken_window: Sequence[str]) -> None:
    """Log an accepted transcript and the normalized words taken from it."""
    if not _ENABLED:
        return
    _append(f"transcript: \"{transcript}\" spoken={list(spoken_window)}")


def log_match(position: int, word: str, advance: int) -> None:
    """
    Log a matched word.

    Args:
        position: Cursor position before the match was applied
        word: The normalized spoken word that matched
        advance: How far the cursor moves
    """
    if not _ENABLED:
        return
    _append(f"{'match':15} pos={position:4d} word=\"{word}\" advance={advance}")


def log_position_update(
    old_pos: int,
    new_pos: int,
    words_in_range: Sequence[str],
    reason: str
) -> None:
    """
    Log a cursor position change.

    Args:
        old_pos: Previous position
        new_pos: New position
        words_in_range: The script words between old and new positions
        reason: Why the position changed (match, jump, reset)
    """
    if not _ENABLED:
        return
    _append(f"POSITION CHANGE: {old_pos} -> {new_pos} ({reason})")
    with open(MATCH_LOG, 'a', encoding='utf-8') as f:
        f.write(f"                 words: {list(words_in_range)}\n")
