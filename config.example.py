# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored); see .env.example.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKMASTER_APP_NAME": "App display name (default: TaskMaster).",
    "TASKMASTER_LOG_LEVEL": "Console logging level (default: WARNING; the log file always gets DEBUG).",
    "TASKMASTER_DATA_DIR": "Local data directory for logs and the local database (default: .local/taskmaster).",
    # Backend
    "TASKMASTER_BACKEND": "local (SQLite, offline) or firebase (hosted identity + realtime database).",
    "TASKMASTER_AUTH_MODE": "anonymous or email_password (default: email_password).",
    "TASKMASTER_FIREBASE_API_KEY": "Web API key of the hosted project (required for backend=firebase).",
    "TASKMASTER_FIREBASE_PROJECT_ID": "Project id (required for backend=firebase).",
    "TASKMASTER_FIREBASE_DATABASE_URL": (
        "Realtime database URL (default: https://<project id>-default-rtdb.firebaseio.com)."
    ),
    "TASKMASTER_HTTP_TIMEOUT_SECONDS": "Timeout for identity/database requests (default: 15).",
    "TASKMASTER_TASKS_DB_PATH": "Local SQLite path (default: <data_dir>/tasks.sqlite3).",
    # LLM / prioritization
    "TASKMASTER_LLM_API_KEY": "OpenAI-compatible API key (OPENROUTER_API_KEY also works). Unset => offline ranking.",
    "TASKMASTER_LLM_BASE_URL": "API base URL (default: https://openrouter.ai/api/v1).",
    "TASKMASTER_LLM_MODEL": "Model used for prioritization (default: google/gemini-2.0-flash-001).",
    "TASKMASTER_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "TASKMASTER_PRIORITIZE_TIMEOUT_SECONDS": "Upper bound for one prioritization call (default: 20).",
}
