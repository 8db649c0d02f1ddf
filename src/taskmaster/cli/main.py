# src/taskmaster/cli/main.py

"""
CLI entrypoint.

Loads settings, initializes logging, builds AppState (fails fast on missing
backend credentials), then runs the console REPL until /exit or EOF.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..config import load_settings
from ..connectors.console_connector import run_console_loop
from ..errors import ConfigError, friendly_error_message
from ..logging_setup import setup_logging
from .bootstrap import create_initial_state, shutdown

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings)
    try:
        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(friendly_error_message(e), file=sys.stderr)
        sys.exit(2)

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.WARNING)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(_run(settings))
    except ConfigError as e:
        logger.error("Startup failed: %s", e)
        print(friendly_error_message(e), file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
