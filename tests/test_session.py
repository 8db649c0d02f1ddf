# tests/test_session.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from taskmaster.core.gateway import TaskGateway
from taskmaster.core.models import Task, TaskSnapshot
from taskmaster.core.session import SessionEvent, TaskSession
from taskmaster.errors import ValidationError
from taskmaster.prioritization.service import PrioritizationService
from taskmaster.store.base import QueueSubscription
from taskmaster.store.sqlite_store import SQLiteTaskStore

from .fakes import (
    FailingLLMClient,
    FakeLLMClient,
    GatedLLMClient,
    RecordingStore,
    ranking_json,
    wait_until,
)


def _session(llm, store=None, events=None) -> TaskSession:
    gateway = TaskGateway(store or RecordingStore(), "u1")
    notify = (lambda kind, msg: events.append((kind, msg))) if events is not None else None
    return TaskSession(gateway, PrioritizationService(llm, timeout_seconds=1.0), notify=notify)


def _snap(seq: int, *tasks: Task) -> TaskSnapshot:
    return TaskSnapshot(user_id="u1", tasks=tasks, received_seq=seq)


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


SCENARIO_ANSWER = ranking_json(
    ("2", "File taxes", 1, "Deadline-driven"),
    ("1", "Buy milk", 2, "Low urgency"),
)


@pytest.mark.asyncio
async def test_empty_snapshot_never_calls_the_model() -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    session = _session(llm)

    assert session.apply_snapshot(_snap(1))
    await _settle()
    assert await session.refresh_priorities() is None

    assert llm.calls == []
    assert session.ranking is None


@pytest.mark.asyncio
async def test_all_completed_list_is_still_prioritized() -> None:
    llm = FakeLLMClient(ranking_json(("1", "Buy milk", 1, "Already done")))
    session = _session(llm)
    session.apply_snapshot(_snap(1, Task(id="1", description="Buy milk", completed=True)))
    await wait_until(lambda: session.ranking is not None)

    assert len(llm.calls) == 1
    assert [t.id for t in session.ranking] == ["1"]


@pytest.mark.asyncio
async def test_non_empty_snapshot_triggers_prioritization(two_tasks: TaskSnapshot) -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    events: list = []
    session = _session(llm, events=events)

    session.apply_snapshot(two_tasks)
    await wait_until(lambda: session.ranking is not None)

    assert [t.id for t in session.ranking] == ["2", "1"]
    assert len(llm.calls) == 1
    assert (SessionEvent.RANKING, "ranked 2 task(s)") in events


@pytest.mark.asyncio
async def test_completed_tasks_are_sent_without_their_flag() -> None:
    llm = FakeLLMClient(SCENARIO_ANSWER)
    session = _session(llm)
    session.apply_snapshot(
        _snap(1, Task(id="1", description="Buy milk", completed=True), Task(id="2", description="File taxes"))
    )
    await wait_until(lambda: session.ranking is not None)

    prompt = llm.prompts[0]
    assert "- ID: 1, Description: Buy milk" in prompt
    assert "- ID: 2, Description: File taxes" in prompt
    assert "completed" not in prompt.lower()
    assert [t.id for t in session.ranking] == ["2", "1"]


@pytest.mark.asyncio
async def test_older_snapshot_received_later_is_dropped() -> None:
    session = _session(FakeLLMClient(), store=None)
    session.auto_prioritize = False

    newer = _snap(2, Task(id="a", description="new"))
    older = _snap(1, Task(id="a", description="old"))

    assert session.apply_snapshot(newer)
    assert not session.apply_snapshot(older)
    assert session.snapshot == newer


@pytest.mark.asyncio
async def test_snapshot_for_another_user_is_dropped() -> None:
    session = _session(FakeLLMClient())
    assert not session.apply_snapshot(TaskSnapshot(user_id="u2", tasks=(), received_seq=5))
    assert session.snapshot is None


@pytest.mark.asyncio
async def test_answer_to_superseded_call_is_discarded(two_tasks: TaskSnapshot) -> None:
    llm = GatedLLMClient()
    session = _session(llm)
    session.auto_prioritize = False
    session.apply_snapshot(two_tasks)

    first = asyncio.create_task(session.refresh_priorities())
    second = asyncio.create_task(session.refresh_priorities())
    await wait_until(lambda: len(llm.pending) == 2)

    # Newest answer arrives first, the stale one after it.
    llm.pending[1].set_result(SCENARIO_ANSWER)
    assert (await second) is not None
    llm.pending[0].set_result(
        ranking_json(("1", "Buy milk", 1, "stale"), ("2", "File taxes", 2, "stale"))
    )
    assert (await first) is None

    assert session.ranking is not None
    assert session.ranking.prioritized_tasks[0].reason == "Deadline-driven"


@pytest.mark.asyncio
async def test_emptied_list_discards_in_flight_answer(two_tasks: TaskSnapshot) -> None:
    llm = GatedLLMClient()
    session = _session(llm)
    session.apply_snapshot(two_tasks)
    await wait_until(lambda: len(llm.pending) == 1)

    session.apply_snapshot(_snap(2))
    llm.pending[0].set_result(SCENARIO_ANSWER)
    await _settle()

    assert session.ranking is None


@pytest.mark.asyncio
async def test_failed_call_keeps_previous_ranking_and_notifies(two_tasks: TaskSnapshot) -> None:
    events: list = []
    session = _session(FakeLLMClient(SCENARIO_ANSWER), events=events)
    session.apply_snapshot(two_tasks)
    await wait_until(lambda: session.ranking is not None)
    previous = session.ranking

    session.prioritizer = PrioritizationService(FailingLLMClient(ConnectionError("offline")))
    session.apply_snapshot(
        _snap(2, Task(id="1", description="Buy milk"), Task(id="2", description="File taxes"))
    )
    await wait_until(lambda: any(kind == SessionEvent.ERROR for kind, _ in events))

    assert session.ranking is previous


@pytest.mark.asyncio
async def test_failure_of_superseded_call_is_not_reported(two_tasks: TaskSnapshot) -> None:
    events: list = []
    llm = GatedLLMClient()
    session = _session(llm, events=events)
    session.apply_snapshot(two_tasks)
    await wait_until(lambda: len(llm.pending) == 1)

    session.apply_snapshot(
        _snap(2, Task(id="1", description="Buy milk"), Task(id="2", description="File taxes"))
    )
    await wait_until(lambda: len(llm.pending) == 2)

    llm.pending[0].set_exception(ConnectionError("offline"))
    llm.pending[1].set_result(SCENARIO_ANSWER)
    await wait_until(lambda: session.ranking is not None)
    await _settle()

    assert not any(kind == SessionEvent.ERROR for kind, _ in events)
    assert [t.id for t in session.ranking] == ["2", "1"]


@pytest.mark.asyncio
async def test_toggle_and_delete_of_unknown_task_are_no_ops(two_tasks: TaskSnapshot) -> None:
    store = RecordingStore()
    session = _session(FakeLLMClient(), store=store)
    session.auto_prioritize = False

    assert await session.toggle("1") is False  # no snapshot yet
    session.apply_snapshot(two_tasks)
    assert await session.toggle("missing") is False
    assert await session.delete("missing") is False
    assert store.calls == []


@pytest.mark.asyncio
async def test_gateway_writes_full_values() -> None:
    store = RecordingStore()
    gateway = TaskGateway(store, "u1")
    snap = _snap(1, Task(id="t1", description="Buy milk"))

    assert await gateway.add("  Walk the dog  ") == "t1"
    assert await gateway.toggle("t1", snap) is True
    assert await gateway.delete("t1", snap) is True
    assert store.calls == [
        ("create", "u1", {"description": "Walk the dog", "completed": False}),
        ("write", "u1", "t1", {"description": "Buy milk", "completed": True}),
        ("delete", "u1", "t1"),
    ]

    with pytest.raises(ValidationError):
        await gateway.add("   ")


@pytest.mark.asyncio
async def test_double_toggle_restores_state_through_snapshots(tmp_path: Path) -> None:
    store = SQLiteTaskStore(tmp_path / "tasks.sqlite3")
    session = _session(FakeLLMClient(), store=store)
    session.auto_prioritize = False
    await session.start(store.subscribe("u1"))
    assert await session.wait_ready(timeout=2.0)

    task_id = await session.add("Buy milk")
    await wait_until(lambda: task_id in session.snapshot)
    original = session.snapshot.get(task_id)

    await session.toggle(task_id)
    await wait_until(lambda: session.snapshot.get(task_id).completed)
    await session.toggle(task_id)
    await wait_until(lambda: not session.snapshot.get(task_id).completed)

    assert session.snapshot.get(task_id) == original

    await session.delete(task_id)
    await wait_until(lambda: len(session.snapshot) == 0)
    await session.close()
    await store.aclose()


@pytest.mark.asyncio
async def test_close_unsubscribes() -> None:
    session = _session(FakeLLMClient())
    sub = QueueSubscription("u1")
    await session.start(sub)
    sub.publish_tree({"a": {"description": "x", "completed": False}})
    await wait_until(lambda: session.snapshot is not None)

    await session.close()
    assert sub.closed
    assert sub.publish_tree({}) is None
