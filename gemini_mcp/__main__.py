"""Entry point for the Gemini CLI MCP server.

Run with:
  python -m gemini_mcp     # MCP stdio transport
  gemini-cli-mcp           # same, via the console script
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from gemini_core.config import GeminiConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("gemini_mcp")


def _load_env() -> None:
    """Load .env: GEMINI_MCP_ENV_FILE if set, else search from cwd."""
    env_file = os.getenv("GEMINI_MCP_ENV_FILE")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file)
    else:
        load_dotenv()


def _request_shutdown(sig: signal.Signals, task: asyncio.Task[None]) -> None:
    logger.info("Received %s, shutting down gracefully", sig.name)
    task.cancel()


async def _serve() -> None:
    from .server import run_stdio

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    if task is not None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _request_shutdown, sig, task)
            except NotImplementedError:
                # Windows event loops have no signal handler support.
                pass

    try:
        await run_stdio()
    except asyncio.CancelledError:
        logger.info("Server stopped")


def main() -> None:
    """Main entry point."""
    _load_env()

    # stdout carries the protocol; all logging goes to stderr.
    try:
        config = GeminiConfig.from_env()
    except ValueError as e:
        logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT, stream=sys.stderr)

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except Exception:
        logger.exception("Failed to start server")
        sys.exit(1)


if __name__ == "__main__":
    main()
