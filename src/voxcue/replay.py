# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a recorded session through the engine.

Takes a JSONL recording written by ``voxcue --record-events`` (one client
message per line, each with a "t" offset in seconds), replays it on a logical
clock so match expiry and restart delays behave as they did live, and writes
a report of every cursor movement.
"""

import argparse
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, TextIO

from .config import TrackingSettings, get_tracking_settings, load_config
from .engine import PrompterEngine
from .normalizer import split_script
from .protocol import apply_message
from .scheduler import ManualScheduler

EventType = Literal["advance", "no_match", "ignored", "jump", "reset", "control"]


@dataclass
class ReplayEvent:
    """Outcome of a single replayed message."""
    line: int
    time: float
    message_type: str
    position_before: int
    position_after: int
    event_type: EventType
    matched_word: str = ""


def load_recording(path: Path) -> list[dict[str, Any]]:
    """Load a JSONL recording, skipping blank lines.

    Raises:
        ValueError: If a line is not a JSON object.
    """
    messages: list[dict[str, Any]] = []
    with open(path, encoding='utf-8') as f:
        for line_num, line in enumerate(f, start=1):
            stripped_line: str = line.strip()
            if not stripped_line:
                continue
            try:
                data = json.loads(stripped_line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Line {line_num}: invalid JSON ({e})") from e
            if not isinstance(data, dict):
                raise ValueError(f"Line {line_num}: expected a JSON object")
            offset = data.get("t", 0.0)
            if isinstance(offset, bool) or not isinstance(offset, (int, float)):
                raise ValueError(f"Line {line_num}: 't' must be a number of seconds")
            messages.append(data)
    return messages


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def replay_session(
    messages: list[dict[str, Any]],
    output: TextIO,
    script_text: str | None = None,
    settings: TrackingSettings | None = None,
    verbose: bool = False
) -> list[ReplayEvent]:
    """Replay recorded messages through a fresh engine and log the outcome.

    Args:
        messages: Recorded client messages, in order
        output: File handle to write log output
        script_text: Script to load before replaying, if the recording
            does not start with one
        settings: Tracking settings for the engine
        verbose: If True, log every message. If False, only log cursor moves.

    Returns:
        List of all replay events
    """
    scheduler = ManualScheduler()
    engine = PrompterEngine(
        scheduler,
        split_script(script_text or ""),
        settings=settings
    )
    if script_text is not None:
        engine.start()

    events: list[ReplayEvent] = []
    last_match: list[str] = []
    engine.add_match_listener(lambda word, _advance: last_match.append(word))

    output.write("=" * 80 + "\n")
    output.write("SESSION REPLAY LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Messages: {len(messages)}\n")
    output.write("=" * 80 + "\n\n")

    for line_num, message in enumerate(messages, start=1):
        when = float(message.get("t", scheduler.time()))
        scheduler.advance_to(max(when, scheduler.time()))

        msg_type = str(message.get("type", ""))
        position_before = engine.position
        listening_before = engine.listening
        last_match.clear()

        try:
            apply_message(engine, message)
        except ValueError as e:
            output.write(f"[{when:8.3f}] line {line_num}: rejected {msg_type}: {e}\n")
            continue

        position_after = engine.position
        event_type: EventType
        if msg_type == "result":
            if not listening_before:
                event_type = "ignored"
            elif last_match:
                event_type = "advance"
            else:
                event_type = "no_match"
        elif msg_type == "jump_to":
            event_type = "jump"
        elif position_after < position_before or msg_type in ("script", "stop"):
            event_type = "reset"
        else:
            event_type = "control"

        event = ReplayEvent(
            line=line_num,
            time=when,
            message_type=msg_type,
            position_before=position_before,
            position_after=position_after,
            event_type=event_type,
            matched_word=last_match[0] if last_match else ""
        )
        events.append(event)

        if event_type == "advance":
            script_word = (engine.script[position_after - 1]
                           if 0 < position_after <= len(engine.script) else "<START>")
            output.write(
                f"[{when:8.3f}] [{position_before:4d} -> {position_after:4d}] "
                f"\"{event.matched_word}\" matched \"{script_word}\"\n")
        elif event_type in ("jump", "reset") or verbose:
            output.write(
                f"[{when:8.3f}] {msg_type:16} ({event_type}) "
                f"pos: {position_before} -> {position_after}"
                f"  transcript=\"{engine.state.last_transcript or ''}\"\n")

    advances = [e for e in events if e.event_type == "advance"]
    misses = [e for e in events if e.event_type == "no_match"]
    ignored = [e for e in events if e.event_type == "ignored"]

    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")
    output.write(f"Final position: {engine.position} / {len(engine.script)}\n")
    output.write(f"Advances: {len(advances)}\n")
    output.write(f"Results without a match: {len(misses)}\n")
    output.write(f"Results ignored while not listening: {len(ignored)}\n")

    return events


def main() -> None:
    """CLI entry point for the replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay a recorded voxcue session through the tracking engine"
    )

    parser.add_argument(
        "recording",
        type=Path,
        help="Path to JSONL recording (from voxcue --record-events)"
    )

    parser.add_argument(
        "-s", "--script",
        type=Path,
        default=None,
        help="Script file to load first (for recordings without a script message)"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every message, not just cursor movements"
    )

    args: argparse.Namespace = parser.parse_args()

    if not args.recording.exists():
        print(f"Error: Recording not found: {args.recording}", file=sys.stderr)
        sys.exit(1)

    if args.script is not None and not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    try:
        messages = load_recording(args.recording)
        script_text = load_script(args.script) if args.script else None
    except (OSError, ValueError) as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not messages:
        print("Error: No messages found in recording", file=sys.stderr)
        sys.exit(1)

    settings = get_tracking_settings(load_config())

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_session(messages, f, script_text, settings, args.verbose)
        print(f"Replay log written to: {args.output}")
    else:
        replay_session(messages, sys.stdout, script_text, settings, args.verbose)


if __name__ == "__main__":
    main()
