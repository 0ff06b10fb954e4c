# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server for the voxcue engine.
Accepts recognition results and control messages from the browser over a
WebSocket and pushes cursor positions back for the display to scroll to.
"""

import asyncio
import contextlib
import json
import logging
import time
from pathlib import Path
from typing import Any

from aiohttp import web

from .config import DEFAULT_CONFIG, TrackingSettings
from .engine import PrompterEngine, RecognitionCommand
from .normalizer import split_script
from .protocol import apply_message

logger = logging.getLogger(__name__)

# Message types that change the session and are worth recording
RECORDED_TYPES: frozenset[str] = frozenset([
    "script", "start", "pause", "resume", "stop", "jump_to",
    "result", "recognition_end",
])


class WebServer:
    """
    Serves the voxcue WebSocket endpoint and relays engine notifications.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        tracking_settings: TrackingSettings | None = None,
        engine: PrompterEngine | None = None,
        record_path: str | Path | None = None
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.tracking_settings: TrackingSettings = (
            tracking_settings or DEFAULT_CONFIG["tracking"]
        )
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None

        self.engine: PrompterEngine | None = engine
        self.record_path: Path | None = Path(record_path) if record_path else None
        self._record_start: float | None = None

        self._outbox: asyncio.Queue[dict[str, Any]] | None = None
        self._sender: asyncio.Task[None] | None = None

        if self.engine is not None:
            self._attach_engine(self.engine)

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes and lifecycle hooks."""
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_get('/state', self._handle_get_state)
        self.app.on_startup.append(self._on_startup)
        self.app.on_cleanup.append(self._on_cleanup)

    async def _on_startup(self, _app: web.Application) -> None:
        """Create the engine on the running loop and start the sender task."""
        if self.engine is None:
            self.engine = PrompterEngine(
                asyncio.get_running_loop(),
                split_script(""),
                settings=self.tracking_settings
            )
            self._attach_engine(self.engine)
        self._outbox = asyncio.Queue()
        self._sender = asyncio.create_task(self._send_loop())

    async def _on_cleanup(self, _app: web.Application) -> None:
        if self._sender is not None:
            self._sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sender
            self._sender = None
        for ws in list(self.websockets):
            await ws.close()

    def _attach_engine(self, engine: PrompterEngine) -> None:
        engine.add_cursor_listener(self._on_cursor_changed)
        engine.add_match_listener(self._on_match)
        engine.add_recognition_listener(self._on_recognition_command)

    # Engine notifications (called synchronously from engine code)

    def _queue(self, message: dict[str, Any]) -> None:
        if self._outbox is not None:
            self._outbox.put_nowait(message)

    def _on_cursor_changed(self, position: int) -> None:
        self._queue({"type": "position", "index": position})

    def _on_match(self, word: str, advance: int) -> None:
        self._queue({"type": "match", "word": word, "advance": advance})

    def _on_recognition_command(self, command: RecognitionCommand) -> None:
        self._queue({"type": "recognition", "command": command})

    async def _send_loop(self) -> None:
        """Deliver queued notifications to all clients, in order."""
        assert self._outbox is not None
        while True:
            message = await self._outbox.get()
            await self.broadcast(message)

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to every connected client."""
        for ws in list(self.websockets):
            try:
                await ws.send_json(message)
            except (ConnectionResetError, RuntimeError) as e:
                logger.warning("Dropping client after send failure: %s", e)
                self.websockets.discard(ws)

    # HTTP handlers

    async def _handle_get_state(self, _request: web.Request) -> web.Response:
        """Return the current session state as JSON."""
        assert self.engine is not None, "Engine must be initialized"
        return web.json_response(self.engine.snapshot())

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        assert self.engine is not None, "Engine must be initialized"

        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            await ws.send_json({"type": "init", **self.engine.snapshot()})

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    await self._handle_ws_text(ws, msg.data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_text(self, ws: web.WebSocketResponse, text: str) -> None:
        """Decode a client message and apply it to the engine."""
        assert self.engine is not None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring malformed WebSocket message: %s", e)
            await ws.send_json({"type": "error", "message": "Invalid JSON"})
            return

        try:
            msg_type = apply_message(self.engine, data)
        except ValueError as e:
            # ProtocolError and RecognitionEventError
            logger.warning("Rejected WebSocket message: %s", e)
            await ws.send_json({"type": "error", "message": str(e)})
            return

        if msg_type in RECORDED_TYPES:
            self.record_message(data)

        if msg_type == "script" or (msg_type == "start" and "text" in data):
            self._queue({"type": "script", "words": list(self.engine.script)})

    def record_message(self, data: dict[str, Any]) -> None:
        """Append a client message to the recording file, if recording."""
        if self.record_path is None:
            return
        now = time.monotonic()
        if self._record_start is None:
            self._record_start = now
        entry = {"t": round(now - self._record_start, 3), **data}
        try:
            self.record_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.record_path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning("Could not record message to %s: %s", self.record_path, e)

    # Lifecycle

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Server listening on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
