"""
BlogDB Server - Main entry point.

This module starts the BlogDB server:
- builds the service context (store + event bus)
- serves the HTTP API and SSE subscriptions until SIGINT/SIGTERM

Usage:
    python -m dbaas.blogdb_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - One service context per process
    - Shutdown closes every open subscription before the HTTP runner stops
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import run_http_server
from .config import ServerConfig
from .service import ServiceContext

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.VerboseJSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """BlogDB Server orchestrator.

    Attributes:
        config: Server configuration
        context: Service context shared by all requests

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self.context = ServiceContext.create(max_queue_size=self.config.events.queue_size)
        self._http_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._http_task is not None and not self._http_task.done()

    async def start(self) -> None:
        """Start serving HTTP in the background."""
        if self.is_running:
            return

        self.config.log_config()
        self._http_task = asyncio.create_task(
            run_http_server(self.context, self.config.http),
            name="blogdb-http",
        )
        logger.info("BlogDB server started")

    async def stop(self) -> None:
        """Stop serving and release every subscription."""
        if self._http_task is None:
            return

        self._http_task.cancel()
        try:
            await self._http_task
        except asyncio.CancelledError:
            pass
        self._http_task = None
        self.context.close()
        logger.info("BlogDB server stopped")

    async def run_forever(self) -> None:
        """Run until SIGINT/SIGTERM."""
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)

        await self.start()
        try:
            await shutdown.wait()
            logger.info("Shutdown signal received")
        finally:
            await self.stop()


def main() -> int:
    """Load configuration, configure logging and run the server."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config)
    asyncio.run(Server(config).run_forever())
    return 0


if __name__ == "__main__":
    sys.exit(main())
