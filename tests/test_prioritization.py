# tests/test_prioritization.py

from __future__ import annotations

import json

import pytest

from taskmaster.core.models import Task, TaskSummary
from taskmaster.errors import PrioritizationError, SchemaViolationError, ValidationError
from taskmaster.prioritization.request import build_prioritization_request, validate_request
from taskmaster.prioritization.service import (
    PrioritizationService,
    parse_prioritization_response,
    render_prompt,
)

from .fakes import FailingLLMClient, FakeLLMClient, SlowLLMClient, ranking_json

SCENARIO = [{"id": "1", "description": "Buy milk"}, {"id": "2", "description": "File taxes"}]
SCENARIO_ANSWER = ranking_json(
    ("2", "File taxes", 1, "Deadline-driven"),
    ("1", "Buy milk", 2, "Low urgency"),
)


def _req(*pairs: tuple[str, str]) -> list[TaskSummary]:
    return [TaskSummary(id=i, description=d) for i, d in pairs]


# ---- request builder ----


def test_build_request_strips_local_fields_and_keeps_order() -> None:
    tasks = [
        Task(id="b", description="second", completed=True),
        Task(id="a", description="first"),
        {"id": "c", "description": "third", "completed": False, "color": "red"},
    ]
    req = build_prioritization_request(tasks)
    assert [t.to_dict() for t in req] == [
        {"id": "b", "description": "second"},
        {"id": "a", "description": "first"},
        {"id": "c", "description": "third"},
    ]


def test_build_request_of_empty_list_is_empty() -> None:
    assert build_prioritization_request([]) == []


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "tasks",
        {"id": "1", "description": "x"},
        [],
        ["not an object"],
        [{"description": "no id"}],
        [{"id": "", "description": "empty id"}],
        [{"id": 1, "description": "int id"}],
        [{"id": "1"}],
        [{"id": "1", "description": None}],
        [{"id": "1", "description": "a"}, {"id": "1", "description": "b"}],
    ],
)
def test_validate_request_rejects_malformed_payloads(payload) -> None:
    with pytest.raises(ValidationError):
        validate_request(payload)


def test_validate_request_accepts_empty_description() -> None:
    assert validate_request([{"id": "1", "description": ""}]) == [TaskSummary(id="1", description="")]


# ---- prompt ----


def test_render_prompt_lists_every_task_in_order() -> None:
    prompt = render_prompt(_req(("1", "Buy milk"), ("2", "File taxes")))
    lines = prompt.splitlines()
    first = lines.index("- ID: 1, Description: Buy milk")
    second = lines.index("- ID: 2, Description: File taxes")
    assert first + 1 == second
    assert lines[first - 1] == "Tasks:"
    assert "1 being highest priority" in prompt
    assert "prioritizedTasks" in prompt


def test_render_prompt_keeps_multiline_description_on_one_line() -> None:
    prompt = render_prompt(_req(("1", "Buy milk\nand eggs"), ("2", 'Say "hi"')))
    task_lines = [line for line in prompt.splitlines() if line.startswith("- ID:")]
    assert task_lines == [
        "- ID: 1, Description: Buy milk\\nand eggs",
        '- ID: 2, Description: Say \\"hi\\"',
    ]


def test_render_prompt_is_deterministic() -> None:
    req = _req(("x", "a"), ("y", "b"))
    assert render_prompt(req) == render_prompt(list(req))


# ---- response parsing ----


def test_parse_sorts_by_priority_and_keeps_pairs() -> None:
    req = _req(("1", "Buy milk"), ("2", "File taxes"))
    result = parse_prioritization_response(SCENARIO_ANSWER, req)
    assert [t.id for t in result] == ["2", "1"]
    assert [t.priority for t in result] == [1, 2]
    assert {(t.id, t.description) for t in result} == {(t.id, t.description) for t in req}
    assert result.to_dict()["prioritizedTasks"][0]["reason"] == "Deadline-driven"


def test_parse_accepts_fenced_json_and_bare_array() -> None:
    req = _req(("1", "Buy milk"))
    item = {"id": "1", "description": "Buy milk", "priority": 1, "reason": "Only task"}

    fenced = "Here you go:\n```json\n" + json.dumps({"prioritizedTasks": [item]}) + "\n```"
    assert parse_prioritization_response(fenced, req).prioritized_tasks[0].reason == "Only task"

    bare = json.dumps([item])
    assert len(parse_prioritization_response(bare, req)) == 1


def test_parse_allows_ties_and_keeps_model_order_among_them() -> None:
    req = _req(("a", "A"), ("b", "B"), ("c", "C"))
    text = ranking_json(("b", "B", 1, "r"), ("c", "C", 2, "r"), ("a", "A", 1, "r"))
    result = parse_prioritization_response(text, req)
    assert [t.id for t in result] == ["b", "a", "c"]
    assert all(t.priority >= 1 for t in result)


def _item(**overrides):
    base = {"id": "1", "description": "Buy milk", "priority": 1, "reason": "Because"}
    base.update(overrides)
    return base


@pytest.mark.parametrize(
    "items",
    [
        [{"id": "1", "description": "Buy milk", "reason": "missing priority"}],
        [_item(id=1)],
        [],
        [_item(priority="1")],
        [_item(priority=1.0)],
        [_item(priority=True)],
        [_item(priority=0)],
        [_item(reason="")],
        [_item(reason="   ")],
        [_item(description="Buy oat milk")],
        [_item(id="2")],
        [_item(), _item(id="2", description="Extra")],
        ["not an object"],
    ],
)
def test_parse_rejects_shape_violations(items) -> None:
    with pytest.raises(SchemaViolationError):
        parse_prioritization_response(json.dumps({"prioritizedTasks": items}), _req(("1", "Buy milk")))


@pytest.mark.parametrize("text", ["", "no json here", '{"tasks": []}', '{"prioritizedTasks": {}}', "42"])
def test_parse_rejects_undecodable_output(text: str) -> None:
    with pytest.raises(SchemaViolationError):
        parse_prioritization_response(text, _req(("1", "Buy milk")))


def test_build_then_parse_recovers_original_pairs() -> None:
    tasks = [Task(id="k1", description="Call mom", completed=True), Task(id="k2", description="Pay rent")]
    req = build_prioritization_request(tasks)
    text = ranking_json(*[(t.id, t.description, n, "ok") for n, t in enumerate(reversed(req), start=1)])
    result = parse_prioritization_response(text, req)
    assert sorted((t.id, t.description) for t in result) == [("k1", "Call mom"), ("k2", "Pay rent")]


# ---- service ----


@pytest.mark.asyncio
async def test_prioritize_scenario() -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    result = await PrioritizationService(llm).prioritize(SCENARIO)

    assert sorted(t.id for t in result) == ["1", "2"]
    assert all(t.priority >= 1 and t.reason for t in result)
    assert result.prioritized_tasks[0].id == "2"
    assert "- ID: 1, Description: Buy milk" in llm.prompts[0]


@pytest.mark.asyncio
async def test_invalid_request_never_reaches_the_model() -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    with pytest.raises(ValidationError):
        await PrioritizationService(llm).prioritize([{"id": "", "description": "x"}])
    assert llm.calls == []


@pytest.mark.asyncio
async def test_schema_violation_is_a_prioritization_error() -> None:
    llm = FakeLLMClient(json.dumps({"prioritizedTasks": []}))
    with pytest.raises(PrioritizationError) as info:
        await PrioritizationService(llm).prioritize(SCENARIO)
    assert isinstance(info.value, SchemaViolationError)


@pytest.mark.asyncio
async def test_timeout_surfaces_as_prioritization_error() -> None:
    service = PrioritizationService(SlowLLMClient(), timeout_seconds=0.01)
    with pytest.raises(PrioritizationError) as info:
        await service.prioritize(SCENARIO)
    assert not isinstance(info.value, SchemaViolationError)


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped_and_not_retried() -> None:
    llm = FailingLLMClient(ConnectionError("boom"))
    with pytest.raises(PrioritizationError):
        await PrioritizationService(llm).prioritize(SCENARIO)
    assert llm.calls == 1


@pytest.mark.asyncio
async def test_service_is_stateless_between_calls() -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    service = PrioritizationService(llm)
    first = await service.prioritize(SCENARIO)
    second = await service.prioritize(SCENARIO)
    assert len(llm.calls) == 2
    assert first == second
