# tests/fakes.py

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from taskmaster.core.ports import ChatMessage


def ranking_json(*items: tuple[str, str, int, str]) -> str:
    return json.dumps(
        {
            "prioritizedTasks": [
                {"id": i, "description": d, "priority": p, "reason": r} for (i, d, p, r) in items
            ]
        }
    )


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Returns a predefined text, or whatever `responder(prompt)` returns
    """

    def __init__(self, next_text: str = "{}", responder: Callable[[str], str] | None = None) -> None:
        self.next_text = next_text
        self.responder = responder
        self.calls: list[tuple[list[ChatMessage], str]] = []

    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        self.calls.append((messages, system_prompt))
        if self.responder is not None:
            return self.responder(messages[-1]["content"])
        return self.next_text

    @property
    def prompts(self) -> list[str]:
        return [m[-1]["content"] for m, _ in self.calls]


class GatedLLMClient:
    """
    Each call blocks until the test resolves it, so tests can finish calls
    in any order.
    """

    def __init__(self) -> None:
        self.pending: list[asyncio.Future[str]] = []

    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        fut: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut


class FailingLLMClient:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc
        self.calls = 0

    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        self.calls += 1
        raise self.exc


class SlowLLMClient:
    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        await asyncio.sleep(10)
        return "{}"


class RecordingStore:
    """In-memory TaskStore that records calls; subscriptions are not supported."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self._n = 0

    async def create(self, user_id: str, value: dict[str, Any]) -> str:
        self._n += 1
        self.calls.append(("create", user_id, value))
        return f"t{self._n}"

    async def write(self, user_id: str, task_id: str, value: dict[str, Any]) -> None:
        self.calls.append(("write", user_id, task_id, value))

    async def delete(self, user_id: str, task_id: str) -> None:
        self.calls.append(("delete", user_id, task_id))

    def subscribe(self, user_id: str):
        raise NotImplementedError

    async def aclose(self) -> None:
        return


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)
