"""
Main readalong application.
Runs the read-along web service, or scores a single attempt offline.
"""

import argparse
import asyncio
import contextlib
import json
import logging
import signal
from pathlib import Path

from . import debug_log
from .config import (
    Config,
    get_config_path,
    get_matching_settings,
    get_session_settings,
    load_config,
    save_config,
)
from .scorer import assess
from .server import WebServer

logger = logging.getLogger(__name__)


class ReadalongApp:
    """
    Main application: owns the web server for its lifetime.
    """

    def __init__(self, config: Config) -> None:
        self.config: Config = config
        self.server: WebServer | None = None
        self.running: bool = False

    async def start(self) -> None:
        """Start serving until stop() is called."""
        print("Starting Readalong...")
        self.server = WebServer(
            host=self.config["host"],
            port=self.config["port"],
            matching_settings=get_matching_settings(self.config),
            session_settings=get_session_settings(self.config)
        )
        await self.server.start()
        self.running = True

        print("\n✓ Readalong ready!")
        print("  Press Ctrl+C to stop\n")

        while self.running:
            await asyncio.sleep(0.1)

    async def stop(self) -> None:
        """Stop the application."""
        print("\nStopping Readalong...")
        self.running = False
        if self.server:
            await self.server.stop()
        print("Readalong stopped.")


def run_assessment(expected: str, actual: str, threshold: float) -> str:
    """Score one attempt and return the result as JSON."""
    return json.dumps(assess(expected, actual, threshold).to_dict(), indent=2)


def setup_debug_log(log_dir: str) -> None:
    """Turn on debug logging and start fresh log files for this run."""
    debug_log.enable(Path(log_dir))
    debug_log.clear_logs()
    print(f"Debug logging enabled (logs will be saved to {log_dir}/)")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    # Load config first to use as defaults
    config: Config = load_config()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Readalong - reading practice with live word highlighting"
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
        "--log-level",
        default=config.get("log_level", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: from config or WARNING)"
    )

    parser.add_argument(
        "--assess",
        nargs=2,
        metavar=("EXPECTED", "ACTUAL"),
        help="Score ACTUAL against EXPECTED, print the result as JSON and exit"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        nargs="?",
        const="logs",
        default=None,
        metavar="DIR",
        help="Enable highlight/transcript debug logging (default dir: ./logs/)"
    )

    args: argparse.Namespace = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    if args.assess:
        expected, actual = args.assess
        print(run_assessment(expected, actual, config["matching"]["scoring_threshold"]))
        return

    if args.save_config:
        config["host"] = args.host
        config["port"] = args.port
        config["log_level"] = args.log_level
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    if args.debug_log:
        setup_debug_log(args.debug_log)

    config["host"] = args.host
    config["port"] = args.port
    app: ReadalongApp = ReadalongApp(config)

    # Handle shutdown gracefully
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        app.running = False

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        app.running = False
    finally:
        # Ensure clean shutdown
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        loop.close()


if __name__ == "__main__":
    main()
