# src/taskmaster/llm/offline.py

from __future__ import annotations

import json
import re

from ..core.ports import ChatMessage

_TASK_LINE = re.compile(r"^- ID: (?P<id>.*?), Description: (?P<description>.*)$")


def _unescape(text: str) -> str:
    # Task lines carry JSON string bodies.
    try:
        return json.loads(f'"{text}"')
    except ValueError:
        return text


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Prioritization prompts -> ranks tasks in the order they were listed,
      with a reason that says no model was consulted
    - Anything else -> {"prioritizedTasks": []}
    """

    async def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        ranked = []
        for line in user_text.split("\n"):
            m = _TASK_LINE.match(line)
            if not m:
                continue
            ranked.append(
                {
                    "id": _unescape(m.group("id")),
                    "description": _unescape(m.group("description")),
                    "priority": len(ranked) + 1,
                    "reason": "Offline mode: kept in the order it was added.",
                }
            )
        return json.dumps({"prioritizedTasks": ranked}, ensure_ascii=False)

    async def aclose(self) -> None:
        return
