#!/usr/bin/env python3
"""Claude Bridge - Main application entry point"""
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from core.config import BridgeConfig, load_config
from core.errors import ConfigError
from core.telemetry import configure_logging
from orchestrator.dispatcher import RequestDispatcher
from state.session import SessionManager
from transport.stdio import open_stdin_lines, open_stdout_writer

logger = logging.getLogger(__name__)


class ClaudeBridge:
    """Main application controller"""

    def __init__(self, config: BridgeConfig):
        self.config = config
        self.shutdown_event = asyncio.Event()
        self.dispatcher: Optional[RequestDispatcher] = None

    async def initialize(self):
        """Initialize all components"""
        writer = await open_stdout_writer()
        self.dispatcher = RequestDispatcher(
            config=self.config,
            session=SessionManager(),
            writer=writer
        )
        logger.info("Request dispatcher initialized")

    async def run(self):
        """Run until stdin closes or a shutdown signal arrives"""
        dispatch_task = asyncio.create_task(self.dispatcher.run(open_stdin_lines()))
        shutdown_task = asyncio.create_task(self.shutdown_event.wait())

        logger.info("Claude Bridge is running")

        done, _ = await asyncio.wait(
            {dispatch_task, shutdown_task},
            return_when=asyncio.FIRST_COMPLETED
        )

        if dispatch_task in done:
            shutdown_task.cancel()
            # Surface errors from the control loop
            dispatch_task.result()
            logger.info("Input closed, exiting")
            return

        logger.info("Shutdown signal received")
        dispatch_task.cancel()
        await asyncio.gather(dispatch_task, return_exceptions=True)
        await self.dispatcher.shutdown()

    def handle_signal(self, sig):
        """Handle shutdown signals"""
        logger.info(f"Received signal {sig}")
        self.shutdown_event.set()


async def main(config_path: Optional[Path] = None):
    """Main entry point"""
    config = load_config(config_path)
    configure_logging(config.logging.level, config.logging.format)

    app = ClaudeBridge(config)
    await app.initialize()

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: app.handle_signal(s))

    await app.run()


def cli():
    """Console script entry: claude-bridge [config.yaml]"""
    config_path = None
    if len(sys.argv) > 1:
        config_path = Path(sys.argv[1])
        if not config_path.exists():
            print(f"Config file not found: {config_path}", file=sys.stderr)
            print("Usage: claude-bridge [config.yaml]", file=sys.stderr)
            sys.exit(1)

    try:
        asyncio.run(main(config_path))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    cli()
