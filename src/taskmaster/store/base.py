# src/taskmaster/store/base.py

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ..core.models import TaskSnapshot, snapshot_from_tree
from ..errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

_CLOSED = object()


def new_task_id() -> str:
    """Time-ordered unique key: sorting keys gives creation order."""
    return f"{time.time_ns():019d}{secrets.token_hex(4)}"


def check_value(value: Any) -> dict[str, Any]:
    """Stored values are exactly {description: non-empty str, completed: bool}."""
    if not isinstance(value, dict):
        raise ValidationError("task value must be an object")
    desc = value.get("description")
    completed = value.get("completed", False)
    if not isinstance(desc, str) or not desc.strip():
        raise ValidationError("task description must be a non-empty string")
    if not isinstance(completed, bool):
        raise ValidationError("task 'completed' must be a boolean")
    return {"description": desc, "completed": completed}


class QueueSubscription:
    """
    Snapshot stream backed by an asyncio.Queue.

    Producers call publish_tree()/fail(); the consumer iterates. Every
    snapshot is stamped with received_seq in the order it was queued.
    An optional pump coroutine (e.g. a network stream reader) runs as a
    task owned by the subscription and is cancelled on aclose().
    """

    def __init__(
        self,
        user_id: str,
        *,
        pump: Callable[["QueueSubscription"], Awaitable[None]] | None = None,
        on_close: Callable[["QueueSubscription"], None] | None = None,
    ) -> None:
        self.user_id = user_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._seq = 0
        self._closed = False
        self._pump = pump
        self._pump_task: asyncio.Task[None] | None = None
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def publish_tree(self, tree: Any) -> TaskSnapshot | None:
        if self._closed:
            return None
        self._seq += 1
        snap, skipped = snapshot_from_tree(self.user_id, tree, received_seq=self._seq)
        if skipped:
            logger.warning("Skipped %d malformed task record(s) for user=%s: %s", len(skipped), self.user_id, skipped)
        self._queue.put_nowait(snap)
        return snap

    def fail(self, exc: BaseException) -> None:
        if not self._closed:
            self._queue.put_nowait(exc)

    def start(self) -> None:
        if self._pump is not None and self._pump_task is None:
            self._pump_task = asyncio.get_running_loop().create_task(self._run_pump())

    async def _run_pump(self) -> None:
        assert self._pump is not None
        try:
            await self._pump(self)
        except asyncio.CancelledError:
            raise
        except StoreError as e:
            self.fail(e)
        except Exception as e:
            logger.exception("Subscription pump crashed user=%s", self.user_id)
            self.fail(StoreError(f"subscription failed ({e.__class__.__name__})"))
        else:
            self.fail(StoreError("subscription ended"))

    def __aiter__(self) -> AsyncIterator[TaskSnapshot]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[TaskSnapshot]:
        self.start()
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        if self._on_close is not None:
            self._on_close(self)
        self._queue.put_nowait(_CLOSED)
        logger.debug("Unsubscribed user=%s", self.user_id)

    async def __aenter__(self) -> "QueueSubscription":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
