# src/taskmaster/auth/base.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from ..core.models import User
from ..errors import AuthError

logger = logging.getLogger(__name__)


def check_credentials(email: str, password: str) -> tuple[str, str]:
    email = (email or "").strip()
    if not email or "@" not in email:
        raise AuthError("a valid email address is required")
    if not password:
        raise AuthError("a password is required")
    return email, password


class UserStateMixin:
    """
    Current-user holder plus a change stream.

    Each watch() iterator gets its own queue; it first yields the current
    user, then every change (None after sign-out).
    """

    def __init__(self) -> None:
        self._user: User | None = None
        self._watchers: set[asyncio.Queue[User | None]] = set()

    @property
    def current_user(self) -> User | None:
        return self._user

    def _set_user(self, user: User | None) -> None:
        self._user = user
        logger.info("Auth state: %s", user.display_name if user else "signed out")
        for q in list(self._watchers):
            q.put_nowait(user)

    async def watch(self) -> AsyncIterator[User | None]:
        q: asyncio.Queue[User | None] = asyncio.Queue()
        q.put_nowait(self._user)
        self._watchers.add(q)
        try:
            while True:
                yield await q.get()
        finally:
            self._watchers.discard(q)

    async def sign_out(self) -> None:
        if self._user is None:
            raise AuthError("not signed in")
        self._set_user(None)

    def id_token(self) -> str | None:
        return self._user.id_token if self._user else None
