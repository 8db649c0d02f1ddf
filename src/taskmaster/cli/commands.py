# src/taskmaster/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from ..config import AuthMode
from ..core.models import PrioritizationResult, TaskSnapshot
from ..core.session import Notifier, SessionEvent, TaskSession
from ..core.state import AppState
from ..errors import TaskMasterError, friendly_error_message
from .bootstrap import close_session, open_session

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], "CommandEmitter | None"], "str | Awaitable[str]"]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Application errors become the reply text; they never escape.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            reply = handler(state, args, emit)
            if inspect.isawaitable(reply):
                reply = await reply
        except TaskMasterError as e:
            logger.info("/%s failed: %s", name, e)
            return friendly_error_message(e)
        return reply

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def format_tasks(snapshot: TaskSnapshot | None) -> str:
    if snapshot is None:
        return "Tasks are still loading..."
    if not snapshot.tasks:
        return "No tasks yet. Type some text (or /add <text>) to add one."
    lines = ["Tasks:"]
    for i, t in enumerate(snapshot.tasks, start=1):
        mark = "x" if t.completed else " "
        lines.append(f"  {i}. [{mark}] {t.description}")
    return "\n".join(lines)


def format_ranking(ranking: PrioritizationResult | None) -> str:
    if ranking is None or not len(ranking):
        return "Add tasks to see AI-powered prioritization."
    lines = ["AI Prioritization:"]
    for i, t in enumerate(ranking, start=1):
        lines.append(f"  #{i}: {t.description} ({t.reason})")
    return "\n".join(lines)


def session_notifier(state: AppState, emit: CommandEmitter | None) -> Notifier:
    """Route session events to the console: new rankings and errors are printed, list updates are not."""

    def notify(kind: SessionEvent, message: str) -> None:
        if emit is None:
            return
        if kind == SessionEvent.RANKING and state.session is not None:
            emit(format_ranking(state.session.ranking))
        elif kind == SessionEvent.ERROR:
            emit(message)

    return notify


class _NotSignedIn(TaskMasterError):
    pass


def _require_session(state: AppState) -> TaskSession:
    if state.session is None:
        if state.settings.auth_mode == AuthMode.EMAIL_PASSWORD:
            raise _NotSignedIn("Not signed in. Use /login <email> <password> or /register <email> <password>.")
        raise _NotSignedIn("Not signed in. Use /login to start a new anonymous session.")
    return state.session


def _resolve_task_id(session: TaskSession, ref: str) -> str:
    """Accept a 1-based list position or a raw task id."""
    snap = session.snapshot
    if snap is not None and ref.isdigit():
        n = int(ref)
        if 1 <= n <= len(snap.tasks):
            return snap.tasks[n - 1].id
    return ref


# ---- commands ----


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    user = state.identity.current_user
    tasks = len(state.session.snapshot) if state.session and state.session.snapshot else 0
    return (
        "Status:\n"
        f"  Backend: {s.backend.value}\n"
        f"  Auth mode: {s.auth_mode.value}\n"
        f"  User: {user.display_name if user else 'signed out'}\n"
        f"  Tasks: {tasks}\n"
        f"  Prioritizer: {state.llm.__class__.__name__} ({getattr(state.llm, 'model', 'offline')})"
    )


async def _sign_in_done(state: AppState, user, emit: CommandEmitter | None) -> str:
    session = await open_session(state, user, notify=session_notifier(state, emit))
    await session.wait_ready(timeout=state.settings.http_timeout_seconds)
    return f"Signed in as {user.display_name}.\n{format_tasks(session.snapshot)}"


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.settings.auth_mode == AuthMode.ANONYMOUS:
        if args:
            return "Email sign-in is disabled (TASKMASTER_AUTH_MODE=anonymous). Use /login without arguments."
        return await _sign_in_done(state, await state.identity.sign_in_anonymously(), emit)
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    user = await state.identity.sign_in_with_password(args[0], args[1])
    return await _sign_in_done(state, user, emit)


async def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.settings.auth_mode != AuthMode.EMAIL_PASSWORD:
        return "Registration is disabled (TASKMASTER_AUTH_MODE=anonymous)."
    if len(args) != 2:
        return "Usage: /register <email> <password>"
    user = await state.identity.register(args[0], args[1])
    return await _sign_in_done(state, user, emit)


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    await close_session(state)
    await state.identity.sign_out()
    return "Signed out."


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _require_session(state)
    text = " ".join(args).strip()
    if not text:
        return "Usage: /add <task description>"
    await session.add(text)
    return f"Added: {text}"


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return format_tasks(_require_session(state).snapshot)


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _require_session(state)
    if len(args) != 1:
        return "Usage: /done <number|id>"
    if not await session.toggle(_resolve_task_id(session, args[0])):
        return f"No such task: {args[0]}"
    return "Toggled."


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _require_session(state)
    if len(args) != 1:
        return "Usage: /rm <number|id>"
    if not await session.delete(_resolve_task_id(session, args[0])):
        return f"No such task: {args[0]}"
    return "Deleted."


async def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    n = await _require_session(state).clear_completed()
    return f"Removed {n} completed task(s)."


async def cmd_prioritize(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _require_session(state)
    if session.snapshot is None or not session.snapshot.tasks:
        return "No tasks to prioritize."
    result = await session.refresh_priorities()
    if result is None:
        # Superseded by a newer call; its answer will be printed instead.
        return "Prioritization superseded by a newer request."
    # The session notifier already printed the ranking.
    return "Prioritization refreshed."


def cmd_ranking(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return format_ranking(_require_session(state).ranking)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user and prioritizer.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("register", cmd_register, help_text="Create an account: /register <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("add", cmd_add, help_text="Add a task: /add <text> (plain text works too).", aliases=["a"])
registry.register("list", cmd_list, help_text="Show tasks.", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completed: /done <number|id>.", aliases=["toggle"])
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <number|id>.", aliases=["del", "delete"])
registry.register("clear", cmd_clear, help_text="Delete all completed tasks.")
registry.register("prioritize", cmd_prioritize, help_text="Ask the AI to rank the tasks again.", aliases=["p"])
registry.register("ranking", cmd_ranking, help_text="Show the last AI ranking.", aliases=["r"])
