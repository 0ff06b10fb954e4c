"""
Main voxcue application.
Loads configuration, then runs the WebSocket server until interrupted.
"""

import argparse
import asyncio
import logging
import signal

from . import debug_log
from .config import (
    Config,
    get_config_path,
    get_tracking_settings,
    load_config,
    save_config,
    update_config_tracking,
    validate_tracking_settings,
)
from .server import WebServer

logger = logging.getLogger(__name__)


def build_parser(config: Config) -> argparse.ArgumentParser:
    """Build the command line parser, using config values as defaults."""
    tracking = get_tracking_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="voxcue - speech-following teleprompter engine"
    )

    parser.add_argument(
        "--host",
        default=config.get("host", "127.0.0.1"),
        help="Web server host (default: from config or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=config.get("port", 8000),
        help="Web server port (default: from config or 8000)"
    )

    parser.add_argument(
        "--lookahead",
        type=int,
        default=tracking["lookahead_word_count"],
        help="Number of upcoming script words compared with speech"
    )

    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=tracking["confidence_threshold"],
        help="Minimum recognizer confidence for a result to be used (0-1)"
    )

    parser.add_argument(
        "--match-expiry-ms",
        type=int,
        default=tracking["match_expiry_ms"],
        help="How long a matched word is ignored afterwards, in milliseconds"
    )

    parser.add_argument(
        "--record-events",
        default=config.get("record_events"),
        help="Append received recognition messages to this JSONL file"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        help="Enable match logging to ./logs/"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output from the tracking engine"
    )

    return parser


async def run_server(server: WebServer, shutdown_event: asyncio.Event) -> None:
    """Run the server until the shutdown event is set."""
    await server.start()
    print(f"\n✓ voxcue ready on ws://{server.host}:{server.port}/ws")
    print("  Press Ctrl+C to stop\n")
    try:
        await shutdown_event.wait()
    finally:
        print("\nStopping voxcue...")
        await server.stop()
        print("voxcue stopped.")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    config: Config = load_config()
    args: argparse.Namespace = build_parser(config).parse_args(argv)

    # Configure logging - minimal console output
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )
    if not args.verbose:
        logging.getLogger("voxcue").setLevel(logging.INFO)

    config = update_config_tracking(config, {
        "lookahead_word_count": args.lookahead,
        "confidence_threshold": args.confidence_threshold,
        "match_expiry_ms": args.match_expiry_ms,
    })
    config["host"] = args.host
    config["port"] = args.port
    config["record_events"] = args.record_events

    try:
        tracking = validate_tracking_settings(get_tracking_settings(config))
    except ValueError as e:
        raise SystemExit(f"Error: {e}") from e

    if args.save_config:
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    if args.debug_log:
        debug_log.enable()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    server = WebServer(
        host=args.host,
        port=args.port,
        tracking_settings=tracking,
        record_path=args.record_events
    )

    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    shutdown_event: asyncio.Event = asyncio.Event()

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(run_server(server, shutdown_event))
    finally:
        loop.close()


if __name__ == "__main__":
    main()
