# src/taskmaster/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- takes validated settings,
- picks the backend (hosted or local) and the LLM client (real or offline),
- opens/closes the per-user TaskSession when the signed-in user changes.
"""

from __future__ import annotations

import logging

from ..auth.identity_toolkit import IdentityToolkitProvider
from ..auth.local import LocalIdentityProvider
from ..config import Backend, Settings
from ..core.gateway import TaskGateway
from ..core.models import User
from ..core.ports import IdentityProvider, LLMClient, TaskStore
from ..core.session import Notifier, TaskSession
from ..core.state import AppState
from ..errors import ConfigError
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..prioritization.service import PrioritizationService
from ..store.realtime_db import RealtimeDatabaseStore
from ..store.sqlite_store import SQLiteTaskStore

logger = logging.getLogger(__name__)


def _build_backend(settings: Settings) -> tuple[IdentityProvider, TaskStore]:
    if settings.backend == Backend.FIREBASE:
        identity = IdentityToolkitProvider(
            str(settings.firebase_api_key),
            timeout_seconds=settings.http_timeout_seconds,
        )
        store = RealtimeDatabaseStore(
            str(settings.firebase_database_url),
            auth_token=identity.id_token,
            timeout_seconds=settings.http_timeout_seconds,
        )
        return identity, store

    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    return LocalIdentityProvider(settings.tasks_db_path), SQLiteTaskStore(settings.tasks_db_path)


def _build_llm(settings: Settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except ConfigError as e:
        # Demo / local runs without an LLM key still get a (trivial) ranking.
        logger.info("LLM not configured (%s); using offline ranking.", e)
        return OfflineLLMClient()


def create_initial_state(settings: Settings) -> AppState:
    """
    Create AppState from validated settings.

    Raises ConfigError when the selected backend is missing credentials.
    """
    settings.validate()
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    identity, store = _build_backend(settings)
    llm = _build_llm(settings)
    prioritizer = PrioritizationService(llm, timeout_seconds=settings.prioritize_timeout_seconds)

    logger.info(
        "State ready backend=%s auth_mode=%s llm=%s",
        settings.backend.value,
        settings.auth_mode.value,
        llm.__class__.__name__,
    )
    return AppState(settings=settings, identity=identity, store=store, llm=llm, prioritizer=prioritizer)


async def open_session(state: AppState, user: User, *, notify: Notifier | None = None) -> TaskSession:
    """Replace the current session (if any) with one for `user` and start listening."""
    await close_session(state)
    session = TaskSession(TaskGateway(state.store, user.uid), state.prioritizer, notify=notify)
    await session.start(state.store.subscribe(user.uid))
    state.session = session
    logger.info("Session opened for %s", user.display_name)
    return session


async def close_session(state: AppState) -> None:
    if state.session is None:
        return
    session, state.session = state.session, None
    await session.close()


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown: each resource is closed even if another one fails."""
    await close_session(state)
    for name, obj in (("store", state.store), ("identity", state.identity), ("llm", state.llm)):
        aclose = getattr(obj, "aclose", None)
        if aclose is None:
            continue
        try:
            await aclose()
        except Exception:
            logger.debug("%s close failed.", name, exc_info=True)
