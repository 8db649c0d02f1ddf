# src/taskmaster/store/realtime_db.py

"""
Hosted realtime database backend (REST + server-sent events).

Layout: tasks/<user_id>/<task_id> = {"description": str, "completed": bool}

The streaming endpoint sends `put` / `patch` events relative to the
subscribed path. We keep a local mirror of the user's subtree, apply each
event to it, and publish the whole mirror as a fresh snapshot.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import StoreError
from .base import QueueSubscription, check_value

logger = logging.getLogger(__name__)

TokenGetter = Callable[[], "str | None"]


def _split_path(path: str) -> list[str]:
    return [p for p in (path or "/").split("/") if p]


def apply_event(tree: Any, event: str, payload: Any) -> Any:
    """
    Apply one streaming event to the mirrored tree and return the new tree.

    put:   replace the node at payload["path"] with payload["data"] (null deletes)
    patch: for each key in payload["data"], put it under payload["path"]
    """
    if not isinstance(payload, dict) or "path" not in payload:
        raise StoreError(f"malformed {event} event")
    parts = _split_path(str(payload["path"]))
    data = payload.get("data")

    if event == "put":
        return _put(tree, parts, data)
    if event == "patch":
        if not isinstance(data, dict):
            raise StoreError("malformed patch event")
        for key, value in data.items():
            tree = _put(tree, parts + _split_path(str(key)), value)
        return tree
    raise StoreError(f"unsupported event: {event}")


def _put(tree: Any, parts: list[str], value: Any) -> Any:
    if not parts:
        return copy.deepcopy(value) if value is not None else {}
    root = tree if isinstance(tree, dict) else {}
    node = root
    for p in parts[:-1]:
        child = node.get(p)
        if not isinstance(child, dict):
            if value is None:
                return root
            child = {}
            node[p] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)
    return root


class RealtimeDatabaseStore:
    """
    Task store on the hosted realtime database REST API.

    `auth_token` is called before every request so a re-authenticated user's
    fresh id token is picked up without rebuilding the store.
    """

    def __init__(
        self,
        database_url: str,
        *,
        auth_token: TokenGetter,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth_token = auth_token
        self._client = httpx.AsyncClient(
            base_url=database_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        # Streams stay open indefinitely; only connect is bounded.
        self._stream_timeout = httpx.Timeout(timeout_seconds, read=None)
        self._subs: set[QueueSubscription] = set()

    def _path(self, user_id: str, task_id: str | None = None) -> str:
        parts = ["tasks", quote(user_id, safe="")]
        if task_id is not None:
            parts.append(quote(task_id, safe=""))
        return "/" + "/".join(parts) + ".json"

    def _params(self) -> dict[str, str]:
        token = self._auth_token()
        return {"auth": token} if token else {}

    async def _request(self, what: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, params=self._params(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Store %s failed: %s", what, e.__class__.__name__)
            raise StoreError(f"{what} failed (network error)") from e
        if resp.status_code in (401, 403):
            raise StoreError(f"{what} was denied (permission denied)")
        if resp.is_error:
            raise StoreError(f"{what} failed (HTTP {resp.status_code})")
        return resp

    # ---- public API ----

    async def create(self, user_id: str, value: dict[str, Any]) -> str:
        clean = check_value(value)
        resp = await self._request("create", "POST", self._path(user_id), json=clean)
        try:
            task_id = resp.json()["name"]
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError("create returned an unexpected response") from e
        logger.info("Task created user=%s id=%s", user_id, task_id)
        return str(task_id)

    async def write(self, user_id: str, task_id: str, value: dict[str, Any]) -> None:
        clean = check_value(value)
        await self._request("write", "PUT", self._path(user_id, task_id), json=clean)
        logger.info("Task written user=%s id=%s completed=%s", user_id, task_id, clean["completed"])

    async def delete(self, user_id: str, task_id: str) -> None:
        await self._request("delete", "DELETE", self._path(user_id, task_id))
        logger.info("Task deleted user=%s id=%s", user_id, task_id)

    def subscribe(self, user_id: str) -> QueueSubscription:
        url = self._path(user_id)

        async def pump(sub: QueueSubscription) -> None:
            tree: Any = {}
            try:
                async with self._client.stream(
                    "GET",
                    url,
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                    timeout=self._stream_timeout,
                ) as resp:
                    if resp.status_code in (401, 403):
                        raise StoreError("subscription was denied (permission denied)")
                    if resp.is_error:
                        raise StoreError(f"subscription failed (HTTP {resp.status_code})")
                    logger.info("Subscribed user=%s", user_id)

                    event, data_lines = "", []
                    async for line in resp.aiter_lines():
                        if line.startswith("event:"):
                            event = line[6:].strip()
                        elif line.startswith("data:"):
                            data_lines.append(line[5:].strip())
                        elif line == "":
                            if event:
                                tree = self._dispatch(sub, tree, event, "\n".join(data_lines))
                            event, data_lines = "", []
            except httpx.HTTPError as e:
                raise StoreError(f"subscription lost (network error: {e.__class__.__name__})") from e

        sub = QueueSubscription(user_id, pump=pump, on_close=self._subs.discard)
        self._subs.add(sub)
        return sub

    def _dispatch(self, sub: QueueSubscription, tree: Any, event: str, raw: str) -> Any:
        if event == "keep-alive":
            return tree
        if event == "cancel":
            raise StoreError("subscription cancelled by the server (permission denied)")
        if event == "auth_revoked":
            raise StoreError("subscription ended: credentials expired, sign in again")
        if event not in ("put", "patch"):
            logger.debug("Ignoring stream event %s", event)
            return tree
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"malformed {event} event") from e
        tree = apply_event(tree, event, payload)
        sub.publish_tree(tree)
        return tree

    async def aclose(self) -> None:
        for sub in list(self._subs):
            await sub.aclose()
        await self._client.aclose()
