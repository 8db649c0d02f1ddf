# src/taskmaster/core/session.py

"""
Per-user session state.

Control flow:
    command -> TaskGateway mutation -> store snapshot -> apply_snapshot()
            -> (list non-empty) prioritization call -> ranking

Everything runs on one event loop, so no locks: the only ordering rules are
- the displayed list is the last snapshot *received* (older ones are dropped),
- the displayed ranking comes from the last prioritization call *issued*;
  answers to superseded calls are dropped when they arrive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum

from ..errors import StoreError, TaskMasterError, friendly_error_message
from ..prioritization.request import build_prioritization_request
from ..prioritization.service import PrioritizationService
from .gateway import TaskGateway
from .models import PrioritizationResult, TaskSnapshot
from .ports import Subscription

logger = logging.getLogger(__name__)


class SessionEvent(StrEnum):
    TASKS = "tasks"
    RANKING = "ranking"
    ERROR = "error"


Notifier = Callable[[SessionEvent, str], None]


class TaskSession:
    def __init__(
        self,
        gateway: TaskGateway,
        prioritizer: PrioritizationService,
        *,
        notify: Notifier | None = None,
        auto_prioritize: bool = True,
    ) -> None:
        self.gateway = gateway
        self.prioritizer = prioritizer
        self.auto_prioritize = auto_prioritize
        self._notify_cb = notify

        self.snapshot: TaskSnapshot | None = None
        self.ranking: PrioritizationResult | None = None

        self._issued_seq = 0
        self._subscription: Subscription | None = None
        self._listener: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._first_snapshot = asyncio.Event()

    @property
    def user_id(self) -> str:
        return self.gateway.user_id

    def _notify(self, kind: SessionEvent, message: str) -> None:
        if self._notify_cb is None:
            return
        try:
            self._notify_cb(kind, message)
        except Exception:
            logger.exception("Session notify callback failed")

    # ---- snapshots ----

    async def start(self, subscription: Subscription) -> None:
        """Begin consuming snapshots. The session owns the subscription from here on."""
        self._subscription = subscription
        self._listener = asyncio.get_running_loop().create_task(self._listen(subscription))

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait for the first snapshot; False on timeout."""
        try:
            async with asyncio.timeout(timeout):
                await self._first_snapshot.wait()
        except TimeoutError:
            return False
        return True

    async def _listen(self, subscription: Subscription) -> None:
        try:
            async for snap in subscription:
                self.apply_snapshot(snap)
        except StoreError as e:
            logger.warning("Snapshot listener stopped user=%s: %s", self.user_id, e)
            self._notify(SessionEvent.ERROR, friendly_error_message(e))

    def apply_snapshot(self, snap: TaskSnapshot) -> bool:
        """Replace the task list with `snap` unless a later-received one is already shown."""
        if snap.user_id != self.user_id:
            logger.warning("Dropping snapshot for foreign user=%s", snap.user_id)
            return False
        if self.snapshot is not None and snap.received_seq <= self.snapshot.received_seq:
            logger.debug("Dropping stale snapshot seq=%s (have %s)", snap.received_seq, self.snapshot.received_seq)
            return False

        self.snapshot = snap
        self._first_snapshot.set()
        logger.debug("Snapshot seq=%s tasks=%d", snap.received_seq, len(snap))
        self._notify(SessionEvent.TASKS, f"{len(snap)} task(s)")

        if not snap.tasks:
            # Nothing to rank: forget the old ranking and any answer still in flight.
            self._issued_seq += 1
            self.ranking = None
        elif self.auto_prioritize:
            self._schedule_prioritization()
        return True

    # ---- prioritization ----

    def _schedule_prioritization(self) -> None:
        task = asyncio.get_running_loop().create_task(self._auto_prioritize())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _auto_prioritize(self) -> None:
        try:
            await self.refresh_priorities()
        except TaskMasterError as e:
            logger.info("Automatic prioritization failed: %s", e)
            self._notify(SessionEvent.ERROR, friendly_error_message(e))

    async def refresh_priorities(self) -> PrioritizationResult | None:
        """
        Rank every task of the current snapshot, completed or not.

        Returns None without calling the model when the list is empty,
        or when a newer call was issued while this one was in flight (its
        answer or error is discarded). Other errors propagate; the previous
        ranking stays.
        """
        snap = self.snapshot
        if snap is None or not snap.tasks:
            return None

        self._issued_seq += 1
        seq = self._issued_seq
        request = build_prioritization_request(snap.tasks)
        logger.debug("Prioritization #%d for %d task(s)", seq, len(request))

        try:
            result = await self.prioritizer.prioritize(request)
        except TaskMasterError as e:
            if seq != self._issued_seq:
                logger.debug("Dropping failed prioritization #%d (latest is #%d): %s", seq, self._issued_seq, e)
                return None
            raise

        if seq != self._issued_seq:
            logger.debug("Dropping prioritization #%d (latest is #%d)", seq, self._issued_seq)
            return None
        self.ranking = result
        self._notify(SessionEvent.RANKING, f"ranked {len(result)} task(s)")
        return result

    # ---- mutations (thin pass-through, effects arrive as snapshots) ----

    async def add(self, description: str) -> str:
        return await self.gateway.add(description)

    async def toggle(self, task_id: str) -> bool:
        return await self.gateway.toggle(task_id, self.snapshot)

    async def delete(self, task_id: str) -> bool:
        return await self.gateway.delete(task_id, self.snapshot)

    async def clear_completed(self) -> int:
        return await self.gateway.clear_completed(self.snapshot)

    # ---- teardown ----

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        if self._subscription is not None:
            await self._subscription.aclose()
            self._subscription = None

        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        logger.info("Session closed user=%s", self.user_id)
