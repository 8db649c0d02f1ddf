# src/taskmaster/core/gateway.py

from __future__ import annotations

import logging

from ..errors import ValidationError
from .models import Task, TaskSnapshot
from .ports import TaskStore

logger = logging.getLogger(__name__)


class TaskGateway:
    """
    Create/toggle/delete against the task store for one user.

    Nothing here touches local state: the caller sees the effect of a
    mutation only when the next snapshot arrives. Toggle and delete are
    checked against the snapshot the caller is looking at; a task that is not
    in it is left alone (returns False).
    """

    def __init__(self, store: TaskStore, user_id: str) -> None:
        self.store = store
        self.user_id = user_id

    async def add(self, description: str) -> str:
        text = (description or "").strip()
        if not text:
            raise ValidationError("task description must not be empty")
        return await self.store.create(self.user_id, Task(id="", description=text).to_value())

    async def toggle(self, task_id: str, snapshot: TaskSnapshot | None) -> bool:
        task = snapshot.get(task_id) if snapshot is not None else None
        if task is None:
            logger.debug("toggle: task %s not in snapshot, ignoring", task_id)
            return False
        await self.store.write(self.user_id, task.id, task.toggled().to_value())
        return True

    async def delete(self, task_id: str, snapshot: TaskSnapshot | None) -> bool:
        if snapshot is None or task_id not in snapshot:
            logger.debug("delete: task %s not in snapshot, ignoring", task_id)
            return False
        await self.store.delete(self.user_id, task_id)
        return True

    async def clear_completed(self, snapshot: TaskSnapshot | None) -> int:
        if snapshot is None:
            return 0
        n = 0
        for task in snapshot.tasks:
            if task.completed:
                await self.store.delete(self.user_id, task.id)
                n += 1
        return n
