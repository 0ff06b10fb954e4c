# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Client message handling shared by the WebSocket server and the replay tool.

Messages are JSON objects with a "type" field. Incoming types:

    script              {"text": "..."}  load a new script
    start               {"text": "..."}  optional text loads a script first
    pause, resume, stop
    jump_to             {"index": 12}
    result              {"results": [...]}  recognition event
    recognition_end     the browser's recognizer stopped
    recognition_error   {"action": "start", "message": "..."}

Outgoing types are produced by the server: init, script, position, match,
recognition and error.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from .engine import PrompterEngine
from .normalizer import split_script
from .recognition import RecognitionEvent

logger = logging.getLogger(__name__)


class ProtocolError(ValueError):
    """Raised for messages that cannot be applied to the engine."""


def _on_script(engine: PrompterEngine, data: Mapping[str, Any]) -> None:
    text = data.get("text", "")
    if not isinstance(text, str):
        raise ProtocolError("'text' must be a string")
    engine.load_script(split_script(text))


def _on_start(engine: PrompterEngine, data: Mapping[str, Any]) -> None:
    if "text" in data:
        _on_script(engine, data)
    engine.start()


def _on_jump_to(engine: PrompterEngine, data: Mapping[str, Any]) -> None:
    index = data.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise ProtocolError("'index' must be an integer")
    engine.jump_to(index)


def _on_result(engine: PrompterEngine, data: Mapping[str, Any]) -> None:
    # RecognitionEventError is a ValueError and propagates as-is
    engine.handle_event(RecognitionEvent.from_dict(data))


def _on_recognition_error(engine: PrompterEngine, data: Mapping[str, Any]) -> None:
    engine.report_recognition_error(
        str(data.get("action", "")), str(data.get("message", "")))


MESSAGE_HANDLERS: dict[str, Callable[[PrompterEngine, Mapping[str, Any]], None]] = {
    "script": _on_script,
    "start": _on_start,
    "pause": lambda engine, _data: engine.pause(),
    "resume": lambda engine, _data: engine.resume(),
    "stop": lambda engine, _data: engine.stop(),
    "jump_to": _on_jump_to,
    "result": _on_result,
    "recognition_end": lambda engine, _data: engine.handle_recognition_end(),
    "recognition_error": _on_recognition_error,
}


def apply_message(engine: PrompterEngine, data: object) -> str:
    """
    Apply one client message to the engine.

    Returns:
        The message type that was handled.

    Raises:
        ProtocolError: Unknown type or malformed fields.
        RecognitionEventError: Malformed recognition results.
    """
    if not isinstance(data, Mapping):
        raise ProtocolError("Message must be a JSON object")

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise ProtocolError("Message has no type")

    handler = MESSAGE_HANDLERS.get(msg_type)
    if handler is None:
        raise ProtocolError(f"Unknown message type: {msg_type}")

    handler(engine, data)
    return msg_type
