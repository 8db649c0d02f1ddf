# src/taskmaster/auth/identity_toolkit.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.models import User
from ..errors import AuthError
from .base import UserStateMixin, check_credentials

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Provider error codes -> what we tell the user.
_ERROR_MESSAGES = {
    "EMAIL_EXISTS": "an account with this email already exists",
    "EMAIL_NOT_FOUND": "invalid email or password",
    "INVALID_PASSWORD": "invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "invalid email or password",
    "USER_DISABLED": "this account has been disabled",
    "INVALID_EMAIL": "the email address is badly formatted",
    "WEAK_PASSWORD": "password should be at least 6 characters",
    "OPERATION_NOT_ALLOWED": "this sign-in method is disabled for the project",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "too many attempts, try again later",
    "ADMIN_ONLY_OPERATION": "this sign-in method is disabled for the project",
}


def _friendly_provider_error(resp: httpx.Response) -> str:
    try:
        code = str(resp.json()["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return f"identity service error (HTTP {resp.status_code})"
    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    key = code.split(":", 1)[0].strip()
    return _ERROR_MESSAGES.get(key, key.lower().replace("_", " "))


class IdentityToolkitProvider(UserStateMixin):
    """Hosted identity service (REST): anonymous and email/password accounts."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 15.0,
        base_url: str = IDENTITY_TOOLKIT_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def _call(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(f"/accounts:{endpoint}", params={"key": self._api_key}, json=body)
        except httpx.HTTPError as e:
            logger.warning("Identity %s failed: %s", endpoint, e.__class__.__name__)
            raise AuthError("identity service is unreachable") from e
        if resp.is_error:
            msg = _friendly_provider_error(resp)
            logger.info("Identity %s rejected: %s", endpoint, msg)
            raise AuthError(msg)
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError("identity service returned an unexpected response") from e
        if not isinstance(data, dict) or not data.get("localId") or not data.get("idToken"):
            raise AuthError("identity service returned an unexpected response")
        return data

    @staticmethod
    def _user_from_response(data: dict[str, Any], *, anonymous: bool) -> User:
        return User(
            uid=str(data["localId"]),
            email=data.get("email") or None,
            anonymous=anonymous,
            id_token=str(data["idToken"]),
            refresh_token=data.get("refreshToken"),
        )

    async def sign_in_anonymously(self) -> User:
        data = await self._call("signUp", {"returnSecureToken": True})
        user = self._user_from_response(data, anonymous=True)
        self._set_user(user)
        return user

    async def sign_in_with_password(self, email: str, password: str) -> User:
        email, password = check_credentials(email, password)
        data = await self._call(
            "signInWithPassword", {"email": email, "password": password, "returnSecureToken": True}
        )
        user = self._user_from_response(data, anonymous=False)
        self._set_user(user)
        return user

    async def register(self, email: str, password: str) -> User:
        email, password = check_credentials(email, password)
        data = await self._call("signUp", {"email": email, "password": password, "returnSecureToken": True})
        user = self._user_from_response(data, anonymous=False)
        self._set_user(user)
        return user

    async def aclose(self) -> None:
        await self._client.aclose()
