# tests/test_config.py

from __future__ import annotations

import pytest

from taskmaster.config import AuthMode, Backend, Settings
from taskmaster.errors import ConfigError


def test_defaults_select_local_backend() -> None:
    s = Settings.from_env().validate()
    assert s.backend == Backend.LOCAL
    assert s.auth_mode == AuthMode.EMAIL_PASSWORD
    assert s.llm_api_key is None
    assert s.prioritize_timeout_seconds == 20.0


def test_hosted_backend_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKMASTER_BACKEND", "firebase")
    with pytest.raises(ConfigError) as info:
        Settings.from_env().validate()
    assert "TASKMASTER_FIREBASE_API_KEY" in str(info.value)
    assert "TASKMASTER_FIREBASE_PROJECT_ID" in str(info.value)


def test_database_url_is_derived_from_project(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKMASTER_BACKEND", "firebase")
    monkeypatch.setenv("TASKMASTER_FIREBASE_API_KEY", "k")
    monkeypatch.setenv("TASKMASTER_FIREBASE_PROJECT_ID", "demo")
    s = Settings.from_env().validate()
    assert s.firebase_database_url == "https://demo-default-rtdb.firebaseio.com"


def test_auth_mode_accepts_dashes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKMASTER_AUTH_MODE", "Email-Password")
    assert Settings.from_env().auth_mode == AuthMode.EMAIL_PASSWORD
    monkeypatch.setenv("TASKMASTER_AUTH_MODE", "anonymous")
    assert Settings.from_env().auth_mode == AuthMode.ANONYMOUS


@pytest.mark.parametrize(
    "name, value",
    [
        ("TASKMASTER_BACKEND", "postgres"),
        ("TASKMASTER_AUTH_MODE", "oauth"),
        ("TASKMASTER_PRIORITIZE_TIMEOUT_SECONDS", "soon"),
        ("TASKMASTER_HTTP_TIMEOUT_SECONDS", "0"),
    ],
)
def test_invalid_values_are_config_errors(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_openrouter_key_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")
    assert Settings.from_env().llm_api_key == "sk-or"
