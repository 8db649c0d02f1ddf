# src/taskmaster/prioritization/request.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..core.models import TaskSummary
from ..errors import ValidationError


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def build_prioritization_request(tasks: Iterable[Any]) -> list[TaskSummary]:
    """
    Reduce tasks to the {id, description} pairs the model is allowed to see.

    Order and length are preserved. `completed` and any other local field are
    dropped. Values are passed through unchanged; validate_request decides
    whether they are acceptable.
    """
    return [TaskSummary(id=_field(t, "id"), description=_field(t, "description")) for t in tasks]


def validate_request(payload: Any) -> list[TaskSummary]:
    """
    Check the request shape before any network call.

    Accepted: a non-empty list/tuple of mappings or TaskSummary objects, each
    with a non-empty string id and a string description, ids unique.
    """
    if isinstance(payload, (str, bytes, Mapping)) or not isinstance(payload, (list, tuple)):
        raise ValidationError(f"tasks must be an array of objects, got {type(payload).__name__}")
    if not payload:
        raise ValidationError("tasks must not be empty")

    out: list[TaskSummary] = []
    seen: set[str] = set()
    for i, item in enumerate(payload):
        if not isinstance(item, (Mapping, TaskSummary)):
            raise ValidationError(f"tasks[{i}] must be an object, got {type(item).__name__}")
        task_id = _field(item, "id")
        desc = _field(item, "description")
        if not isinstance(task_id, str) or not task_id:
            raise ValidationError(f"tasks[{i}].id must be a non-empty string")
        if not isinstance(desc, str):
            raise ValidationError(f"tasks[{i}].description must be a string")
        if task_id in seen:
            raise ValidationError(f"tasks[{i}].id is duplicated: {task_id!r}")
        seen.add(task_id)
        out.append(TaskSummary(id=task_id, description=desc))
    return out
