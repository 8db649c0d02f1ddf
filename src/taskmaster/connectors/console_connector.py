# src/taskmaster/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import format_tasks, session_notifier
from ..cli.bootstrap import open_session
from ..config import AuthMode
from ..core.state import AppState
from ..errors import TaskMasterError, friendly_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def _start_anonymous(state: AppState) -> None:
    try:
        user = await state.identity.sign_in_anonymously()
        session = await open_session(state, user, notify=session_notifier(state, _print_ts))
        await session.wait_ready(timeout=state.settings.http_timeout_seconds)
        _print_ts(f"Signed in as {user.display_name}.\n{format_tasks(session.snapshot)}")
    except TaskMasterError as e:
        logger.warning("Anonymous sign-in failed: %s", e)
        _print_ts(f"{friendly_error_message(e)} Use /login to retry.")
    except Exception:
        logger.exception("Anonymous sign-in crashed.")
        _print_ts("Internal error while signing in. Use /login to retry.")


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL.

    input() runs in a worker thread so snapshot listeners and prioritization
    calls keep running on the loop while the prompt is waiting.
    """
    app_name = str(getattr(state.settings, "app_name", "TaskMaster"))
    logger.info("Console connector started.")
    _print_ts(f"[{app_name}] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    if state.settings.auth_mode == AuthMode.ANONYMOUS:
        await _start_anonymous(state)
    else:
        _print_ts("Sign in with /login <email> <password> or create an account with /register <email> <password>.")

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

        # Plain text is shorthand for /add.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply:
            _print_ts(reply)

    logger.info("Console connector finished.")
