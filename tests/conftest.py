# tests/conftest.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from taskmaster.config import Settings
from taskmaster.core.models import Task, TaskSnapshot

from .fakes import FakeLLMClient


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never see the developer's real credentials."""
    for name in list(os.environ):
        if name.startswith("TASKMASTER_") or name == "OPENROUTER_API_KEY":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Local backend + offline LLM, everything under tmp_path."""
    monkeypatch.setenv("TASKMASTER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TASKMASTER_BACKEND", "local")
    monkeypatch.setenv("TASKMASTER_AUTH_MODE", "email_password")
    return Settings.from_env()


@pytest.fixture()
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def two_tasks() -> TaskSnapshot:
    return TaskSnapshot(
        user_id="u1",
        tasks=(
            Task(id="1", description="Buy milk"),
            Task(id="2", description="File taxes"),
        ),
        received_seq=1,
    )
