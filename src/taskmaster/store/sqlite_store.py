# src/taskmaster/store/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..errors import StoreError
from .base import QueueSubscription, check_value, new_task_id

logger = logging.getLogger(__name__)


class SQLiteTaskStore:
    """
    Local task store (offline backend).

    Mirrors the hosted tree tasks/<user_id>/<task_id> as one table keyed by
    (user_id, task_id). Subscribers get a full snapshot on subscribe and after
    every successful mutation of their subtree.

    Thread-safety:
    - each call opens its own SQLite connection inside a worker thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subs: dict[str, set[QueueSubscription]] = {}
        self._ensure_schema()
        logger.info("SQLiteTaskStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    user_id TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    description TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, task_id)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _read_tree(self, user_id: str) -> dict[str, Any]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT task_id, description, completed FROM tasks WHERE user_id = ? ORDER BY task_id",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return {r["task_id"]: {"description": r["description"], "completed": bool(r["completed"])} for r in rows}

    def _upsert(self, user_id: str, task_id: str, value: dict[str, Any]) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks (user_id, task_id, description, completed) VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, task_id) DO UPDATE SET
                    description = excluded.description,
                    completed = excluded.completed
                """,
                (user_id, task_id, value["description"], int(value["completed"])),
            )
            conn.commit()
        finally:
            conn.close()

    def _delete(self, user_id: str, task_id: str) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE user_id = ? AND task_id = ?", (user_id, task_id))
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    async def _run(self, what: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.exception("SQLite %s failed", what)
            raise StoreError(f"{what} failed: {e}") from e

    async def _notify(self, user_id: str) -> None:
        subs = self._subs.get(user_id)
        if not subs:
            return
        tree = await self._run("read", self._read_tree, user_id)
        for sub in list(subs):
            sub.publish_tree(tree)

    # ---- public API ----

    async def create(self, user_id: str, value: dict[str, Any]) -> str:
        clean = check_value(value)
        task_id = new_task_id()
        await self._run("create", self._upsert, user_id, task_id, clean)
        logger.info("Task created user=%s id=%s", user_id, task_id)
        await self._notify(user_id)
        return task_id

    async def write(self, user_id: str, task_id: str, value: dict[str, Any]) -> None:
        clean = check_value(value)
        await self._run("write", self._upsert, user_id, task_id, clean)
        logger.info("Task written user=%s id=%s completed=%s", user_id, task_id, clean["completed"])
        await self._notify(user_id)

    async def delete(self, user_id: str, task_id: str) -> None:
        n = await self._run("delete", self._delete, user_id, task_id)
        logger.info("Task deleted user=%s id=%s rows=%s", user_id, task_id, n)
        await self._notify(user_id)

    def subscribe(self, user_id: str) -> QueueSubscription:
        async def pump(sub: QueueSubscription) -> None:
            sub.publish_tree(await self._run("read", self._read_tree, user_id))
            # Later snapshots are pushed by mutations; keep the pump parked until aclose().
            await asyncio.Event().wait()

        sub = QueueSubscription(user_id, pump=pump, on_close=self._forget)
        self._subs.setdefault(user_id, set()).add(sub)
        return sub

    def _forget(self, sub: QueueSubscription) -> None:
        subs = self._subs.get(sub.user_id)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subs[sub.user_id]

    async def aclose(self) -> None:
        for subs in list(self._subs.values()):
            for sub in list(subs):
                await sub.aclose()
        self._subs.clear()
