# src/flowboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import drain_background, registry as command_registry
from ..core.ports import Notice, NoticeLevel, TaskEvent
from ..core.state import AppState

logger = logging.getLogger(__name__)

_EVENT_TEXT = {
    TaskEvent.TASK_COMPLETED: "Task completed. Nice!",
    TaskEvent.TASK_LIST_COMPLETED: "Whole list completed!",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Notifier that prints notices (toasts) to the console."""

    def notify(self, notice: Notice) -> None:
        if notice.level == NoticeLevel.INFO:
            _print_ts(notice.text)
        else:
            _print_ts(f"[{notice.level.value.upper()}] {notice.text}")


class ConsoleEventSink:
    def emit(self, event: TaskEvent, *, list_id: str, task_id: str | None = None) -> None:
        logger.debug("Event %s list=%s task=%s", event.value, list_id, task_id)
        _print_ts(f"[EVENT] {_EVENT_TEXT.get(event, event.value)}")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.store.user_id)
    _print_ts("[CONSOLE] Type /help for commands, /show to see the list. Use /exit to quit.\n")
    if not state.signed_in:
        _print_ts("[CONSOLE] Signed out: showing a read-only preview. Set FLOWBOARD_USER_ID to sign in.")

    def emit(text: str) -> None:
        _print_ts(text)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            # Plain text adds a task to the selected list.
            user_input = f"/add {user_input}"

        try:
            response = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            _print_ts(response)

    # Let in-flight writes settle (and roll back) before the process exits.
    await drain_background()
    logger.info("Console connector finished.")
