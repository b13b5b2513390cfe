# src/flowboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the user's lists, then runs the
console connector on the asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, load_lists
from ..config import get_settings
from ..connectors.console_connector import ConsoleEventSink, ConsoleNotifier, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for res in state.closers:
        try:
            res.close()
        except Exception:
            logger.debug("Close failed for %s.", res.__class__.__name__, exc_info=True)


async def _run(state: AppState) -> None:
    if state.signed_in:
        if not await load_lists(state):
            print("Error loading tasks. Use /reload to try again.")
    await run_console_loop(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/flowboard")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "flowboard"))

    state = create_initial_state(
        settings=settings,
        notifier=ConsoleNotifier(),
        events=ConsoleEventSink(),
    )

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
