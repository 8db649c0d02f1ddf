# src/taskmaster/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..prioritization.service import PrioritizationService
from .ports import IdentityProvider, LLMClient, TaskStore
from .session import TaskSession


@dataclass
class AppState:
    """
    Everything one console session needs, wired by cli.bootstrap.

    The backend clients are created once at startup and closed on shutdown;
    `session` exists only while a user is signed in.
    """

    settings: Any
    identity: IdentityProvider
    store: TaskStore
    llm: LLMClient
    prioritizer: PrioritizationService
    session: TaskSession | None = None
