# src/taskmaster/auth/local.py

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
import sqlite3
from pathlib import Path

from ..core.models import User
from ..errors import AuthError
from .base import UserStateMixin, check_credentials

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _hash(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000)


class LocalIdentityProvider(UserStateMixin):
    """
    Offline identity provider for the local backend.

    Accounts are kept in an `accounts` table next to the local tasks, with
    salted PBKDF2 password hashes. Anonymous users get a fresh random uid per
    sign-in, so their tasks are not reachable after sign-out.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        super().__init__()
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    email TEXT PRIMARY KEY,
                    uid TEXT NOT NULL UNIQUE,
                    salt BLOB NOT NULL,
                    password_hash BLOB NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _get_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), timeout=30.0)

    def _insert_account(self, email: str, uid: str, password: str) -> bool:
        salt = secrets.token_bytes(16)
        pw_hash = _hash(password, salt)
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO accounts (email, uid, salt, password_hash) VALUES (?, ?, ?, ?)",
                (email.lower(), uid, salt, pw_hash),
            )
            conn.commit()
            return True
        except sqlite3.IntegrityError:
            return False
        finally:
            conn.close()

    def _verify_account(self, email: str, password: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT uid, salt, password_hash FROM accounts WHERE email = ?", (email.lower(),)
            ).fetchone()
        finally:
            conn.close()
        if row is None or not hmac.compare_digest(row[2], _hash(password, row[1])):
            return None
        return row[0]

    async def sign_in_anonymously(self) -> User:
        user = User(uid="anon-" + secrets.token_hex(12), anonymous=True)
        self._set_user(user)
        return user

    async def register(self, email: str, password: str) -> User:
        email, password = check_credentials(email, password)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"password should be at least {MIN_PASSWORD_LENGTH} characters")
        uid = "local-" + secrets.token_hex(12)
        try:
            created = await asyncio.to_thread(self._insert_account, email, uid, password)
        except sqlite3.Error as e:
            logger.exception("Local account insert failed")
            raise AuthError("could not create the account") from e
        if not created:
            raise AuthError("an account with this email already exists")
        user = User(uid=uid, email=email)
        self._set_user(user)
        return user

    async def sign_in_with_password(self, email: str, password: str) -> User:
        email, password = check_credentials(email, password)
        try:
            uid = await asyncio.to_thread(self._verify_account, email, password)
        except sqlite3.Error as e:
            logger.exception("Local account lookup failed")
            raise AuthError("could not read the account") from e
        if uid is None:
            raise AuthError("invalid email or password")
        user = User(uid=uid, email=email)
        self._set_user(user)
        return user

    async def aclose(self) -> None:
        return
