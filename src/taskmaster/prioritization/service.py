# src/taskmaster/prioritization/service.py

"""
AI task prioritization.

prioritize() = validate -> render prompt -> one LLM call -> parse + check.

The parser is strict: the ranking must contain
exactly the submitted tasks, ids and descriptions unchanged, each with an
integer priority >= 1 and a non-empty reason. Anything else is a
SchemaViolationError; nothing is coerced or dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections import Counter
from collections.abc import Sequence
from typing import Any

from ..core.models import PrioritizationResult, PrioritizedTask, TaskSummary
from ..core.ports import LLMClient
from ..errors import PrioritizationError, SchemaViolationError
from .request import validate_request

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a task prioritization expert. "
    "You answer with a single JSON object and nothing else."
)

PROMPT_HEADER = (
    "You are a task prioritization expert. Given the following list of tasks, "
    "prioritize them based on their descriptions. Return the tasks with their original IDs, "
    "descriptions, a priority (1 being highest priority), and a short reason for the "
    "assigned priority."
)

PROMPT_INSTRUCTION = (
    "Rank every task listed above. Do not add, drop, merge or rename tasks; copy each ID "
    "and description exactly. Give each task an integer priority starting at 1 for the most "
    "important one, and a one-sentence reason justifying its rank.\n"
    'Answer with JSON only, in this exact shape: {"prioritizedTasks": '
    '[{"id": "<id>", "description": "<description>", "priority": 1, "reason": "<reason>"}]}, '
    "ordered from priority 1 downwards."
)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _escape_line(text: str) -> str:
    # JSON string body, so a task never spans more than one line.
    return json.dumps(text, ensure_ascii=False)[1:-1]


def render_prompt(tasks: Sequence[TaskSummary]) -> str:
    """One line per task in input order, between a fixed header and a fixed instruction."""
    lines = [PROMPT_HEADER, "", "Tasks:"]
    for t in tasks:
        lines.append(f"- ID: {_escape_line(t.id)}, Description: {_escape_line(t.description)}")
    lines.extend(["", PROMPT_INSTRUCTION, "", "Prioritized Tasks:"])
    return "\n".join(lines)


def _extract_json(text: str) -> Any:
    raw = (text or "").strip()
    if not raw:
        raise SchemaViolationError("model returned an empty response")

    candidates = [raw]
    m = _FENCE.search(raw)
    if m:
        candidates.append(m.group(1).strip())
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = raw.find(open_ch), raw.rfind(close_ch)
        if 0 <= start < end:
            candidates.append(raw[start : end + 1])

    for c in candidates:
        try:
            return json.loads(c)
        except json.JSONDecodeError:
            continue
    raise SchemaViolationError("model response is not valid JSON")


def _parse_item(i: int, item: Any) -> PrioritizedTask:
    if not isinstance(item, dict):
        raise SchemaViolationError(f"prioritizedTasks[{i}] is not an object")

    for name in ("id", "description", "priority", "reason"):
        if name not in item:
            raise SchemaViolationError(f"prioritizedTasks[{i}] is missing {name!r}")

    task_id, desc, priority, reason = item["id"], item["description"], item["priority"], item["reason"]
    if not isinstance(task_id, str):
        raise SchemaViolationError(f"prioritizedTasks[{i}].id must be a string")
    if not isinstance(desc, str):
        raise SchemaViolationError(f"prioritizedTasks[{i}].description must be a string")
    # bool is an int subclass; True is not a priority.
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise SchemaViolationError(f"prioritizedTasks[{i}].priority must be an integer")
    if priority < 1:
        raise SchemaViolationError(f"prioritizedTasks[{i}].priority must be >= 1")
    if not isinstance(reason, str) or not reason.strip():
        raise SchemaViolationError(f"prioritizedTasks[{i}].reason must be a non-empty string")

    return PrioritizedTask(id=task_id, description=desc, priority=priority, reason=reason)


def parse_prioritization_response(text: str, request: Sequence[TaskSummary]) -> PrioritizationResult:
    """Decode model output and check it against the request it answers."""
    data = _extract_json(text)

    if isinstance(data, dict):
        if "prioritizedTasks" not in data:
            raise SchemaViolationError("response object has no 'prioritizedTasks'")
        items = data["prioritizedTasks"]
    else:
        items = data
    if not isinstance(items, list):
        raise SchemaViolationError("'prioritizedTasks' must be an array")

    parsed = [_parse_item(i, item) for i, item in enumerate(items)]

    if len(parsed) != len(request):
        raise SchemaViolationError(f"expected {len(request)} tasks in the ranking, got {len(parsed)}")

    if Counter(p.id for p in parsed) != Counter(t.id for t in request):
        raise SchemaViolationError("ranking ids do not match the submitted task ids")

    submitted = {t.id: t.description for t in request}
    for p in parsed:
        if p.description != submitted[p.id]:
            raise SchemaViolationError(f"description of task {p.id!r} was changed by the model")

    # Stable: model order is kept among equal priorities.
    ranked = sorted(parsed, key=lambda p: p.priority)
    return PrioritizationResult(prioritized_tasks=tuple(ranked))


class PrioritizationService:
    """
    Stateless client for the prioritization contract.

    No caching and no retries: each call goes to the model, and any failure
    is raised to the caller as PrioritizationError.
    """

    def __init__(self, llm: LLMClient, *, timeout_seconds: float = 20.0) -> None:
        self._llm = llm
        self._timeout = float(timeout_seconds)

    async def prioritize(self, tasks: Any) -> PrioritizationResult:
        request = validate_request(tasks)
        prompt = render_prompt(request)

        try:
            async with asyncio.timeout(self._timeout):
                text = await self._llm.complete([{"role": "user", "content": prompt}], SYSTEM_PROMPT)
        except TimeoutError as e:
            raise PrioritizationError(f"no answer within {self._timeout:.0f}s") from e
        except PrioritizationError:
            raise
        except Exception as e:
            # Transport-level errors from custom LLM clients.
            logger.exception("LLM call failed")
            raise PrioritizationError(f"LLM call failed ({e.__class__.__name__})") from e

        result = parse_prioritization_response(text, request)
        logger.info("Prioritized %d tasks", len(result))
        return result
