# src/taskmaster/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the hosted backend, the local backend and the LLM provider
swappable and makes testing easier.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from .models import TaskSnapshot, User

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Single-shot chat completion client (OpenAI/OpenRouter-compatible)."""

    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str: ...


class Subscription(Protocol):
    """
    Live view of one user's task subtree.

    Iterating yields full snapshots; aclose() unsubscribes. Usable as an
    async context manager so teardown is tied to a scope.
    """

    def __aiter__(self) -> AsyncIterator[TaskSnapshot]: ...
    async def aclose(self) -> None: ...
    async def __aenter__(self) -> "Subscription": ...
    async def __aexit__(self, *exc: Any) -> None: ...


class TaskStore(Protocol):
    """Key-value tree at tasks/<user_id>/<task_id> holding {description, completed}."""

    async def create(self, user_id: str, value: dict[str, Any]) -> str: ...
    async def write(self, user_id: str, task_id: str, value: dict[str, Any]) -> None: ...
    async def delete(self, user_id: str, task_id: str) -> None: ...
    def subscribe(self, user_id: str) -> Subscription: ...
    async def aclose(self) -> None: ...


class IdentityProvider(Protocol):
    @property
    def current_user(self) -> User | None: ...

    async def sign_in_anonymously(self) -> User: ...
    async def sign_in_with_password(self, email: str, password: str) -> User: ...
    async def register(self, email: str, password: str) -> User: ...
    async def sign_out(self) -> None: ...
    def watch(self) -> AsyncIterator[User | None]: ...
    async def aclose(self) -> None: ...
