# src/taskmaster/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Task:
    """A user-owned to-do item. `id` is assigned by the task store."""

    id: str
    description: str
    completed: bool = False

    def to_value(self) -> dict[str, Any]:
        """Stored value under tasks/<uid>/<id> (the id is the key, not part of the value)."""
        return {"description": self.description, "completed": self.completed}

    def toggled(self) -> Task:
        return Task(id=self.id, description=self.description, completed=not self.completed)


@dataclass(frozen=True, slots=True)
class TaskSummary:
    """Prioritization request element: only what the model needs to see."""

    id: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "description": self.description}


@dataclass(frozen=True, slots=True)
class PrioritizedTask:
    id: str
    description: str
    priority: int  # 1 = highest
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "priority": self.priority,
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class PrioritizationResult:
    """One ranking, produced fresh per call and never merged with a previous one."""

    prioritized_tasks: tuple[PrioritizedTask, ...] = ()

    def __len__(self) -> int:
        return len(self.prioritized_tasks)

    def __iter__(self):
        return iter(self.prioritized_tasks)

    def to_dict(self) -> dict[str, Any]:
        return {"prioritizedTasks": [t.to_dict() for t in self.prioritized_tasks]}


@dataclass(frozen=True, slots=True)
class TaskSnapshot:
    """
    Full point-in-time copy of one user's task subtree.

    received_seq is assigned by the subscription in receipt order; consumers
    use it to discard snapshots that arrive after a newer one.
    """

    user_id: str
    tasks: tuple[Task, ...] = ()
    received_seq: int = 0

    def get(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def __contains__(self, task_id: object) -> bool:
        return isinstance(task_id, str) and self.get(task_id) is not None

    def __len__(self) -> int:
        return len(self.tasks)


@dataclass(frozen=True, slots=True)
class User:
    uid: str
    email: str | None = None
    anonymous: bool = False
    id_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)

    @property
    def display_name(self) -> str:
        if self.anonymous:
            return f"anonymous ({self.uid[:8]})"
        return self.email or self.uid


def snapshot_from_tree(user_id: str, tree: Any, *, received_seq: int = 0) -> tuple[TaskSnapshot, list[str]]:
    """
    Build a snapshot from a raw {task_id: {description, completed}} mapping.

    Returns (snapshot, skipped_ids). Records that are not objects or have no
    usable description are skipped rather than failing the whole snapshot.
    Tasks are ordered by key: store-assigned keys sort in creation order.
    """
    tasks: list[Task] = []
    skipped: list[str] = []
    if not isinstance(tree, dict):
        return TaskSnapshot(user_id=user_id, tasks=(), received_seq=received_seq), skipped

    for task_id in sorted(tree):
        value = tree[task_id]
        if not isinstance(value, dict):
            skipped.append(str(task_id))
            continue
        desc = value.get("description")
        if not isinstance(desc, str) or not desc.strip():
            skipped.append(str(task_id))
            continue
        tasks.append(Task(id=str(task_id), description=desc, completed=value.get("completed") is True))

    return TaskSnapshot(user_id=user_id, tasks=tuple(tasks), received_seq=received_seq), skipped
