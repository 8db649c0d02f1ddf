# src/taskmaster/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, passed explicitly to the bootstrap.
- No secrets required at import time; validate() is called once at startup.
- One code path for both authentication strategies (AuthMode).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

ENV_PREFIX = "TASKMASTER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


class Backend(StrEnum):
    LOCAL = "local"
    FIREBASE = "firebase"


class AuthMode(StrEnum):
    """Authentication strategy, selected by configuration."""

    ANONYMOUS = "anonymous"
    EMAIL_PASSWORD = "email_password"


def _env_enum(name: str, enum_cls, default):
    raw = (os.getenv(name) or "").strip().lower().replace("-", "_")
    if not raw:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"{name} must be one of: {allowed} (got {raw!r})") from None


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backend selection ----
    backend: Backend
    auth_mode: AuthMode

    # ---- Hosted backend (identity + realtime database) ----
    firebase_api_key: Optional[str]
    firebase_project_id: Optional[str]
    firebase_database_url: Optional[str]
    http_timeout_seconds: float

    # ---- Local backend ----
    tasks_db_path: Path

    # ---- LLM / prioritization ----
    llm_api_key: Optional[str]
    llm_base_url: str
    llm_model: str
    extra_headers: Dict[str, str]
    prioritize_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "TaskMaster").strip() or "TaskMaster"
        log_level = _env(_k("LOG_LEVEL"), "WARNING")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskmaster"))

        backend = _env_enum(_k("BACKEND"), Backend, Backend.LOCAL)
        auth_mode = _env_enum(_k("AUTH_MODE"), AuthMode, AuthMode.EMAIL_PASSWORD)

        firebase_api_key = _first_env(_k("FIREBASE_API_KEY"))
        firebase_project_id = _first_env(_k("FIREBASE_PROJECT_ID"))
        firebase_database_url = _first_env(_k("FIREBASE_DATABASE_URL"))
        if firebase_database_url is None and firebase_project_id:
            # Default instance URL for a project.
            firebase_database_url = f"https://{firebase_project_id}-default-rtdb.firebaseio.com"

        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0)
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENROUTER_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://openrouter.ai/api/v1")
        llm_model = _env(_k("LLM_MODEL"), "google/gemini-2.0-flash-001").strip()

        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": app_name,
        }

        prioritize_timeout_seconds = _env_float(_k("PRIORITIZE_TIMEOUT_SECONDS"), 20.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            auth_mode=auth_mode,
            firebase_api_key=firebase_api_key,
            firebase_project_id=firebase_project_id,
            firebase_database_url=firebase_database_url,
            http_timeout_seconds=http_timeout_seconds,
            tasks_db_path=tasks_db_path,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_model=llm_model,
            extra_headers=extra_headers,
            prioritize_timeout_seconds=prioritize_timeout_seconds,
        )

    def missing_credentials(self) -> List[str]:
        """Names of required env vars that are not set for the selected backend."""
        missing: List[str] = []
        if self.backend == Backend.FIREBASE:
            if not self.firebase_api_key:
                missing.append(_k("FIREBASE_API_KEY"))
            if not self.firebase_project_id:
                missing.append(_k("FIREBASE_PROJECT_ID"))
            if not self.firebase_database_url:
                missing.append(_k("FIREBASE_DATABASE_URL"))
        return missing

    def validate(self) -> "Settings":
        """Raise ConfigError if the selected backend cannot be reached with these settings."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigError(
                f"backend {self.backend.value!r} requires {', '.join(missing)}; set them in your .env"
            )
        if self.backend == Backend.FIREBASE and not str(self.firebase_database_url).startswith("https://"):
            raise ConfigError(f"{_k('FIREBASE_DATABASE_URL')} must be an https:// URL")
        if not self.llm_model:
            raise ConfigError(f"{_k('LLM_MODEL')} is empty")
        return self


def load_settings() -> Settings:
    """Read .env (if present) and the environment. Does not validate."""
    load_dotenv(override=False)
    return Settings.from_env()
