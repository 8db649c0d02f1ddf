# src/taskmaster/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import ChatMessage
from ..errors import ConfigError, PrioritizationError

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    # APITimeoutError is a subclass of APIConnectionError.
    return isinstance(exc, (openai.APIConnectionError, httpx.TransportError))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def _make_timeout_obj(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_s,
        read=read_s,
        write=10.0,
        pool=connect_s,
    )


class OpenRouterLLMClient:
    """
    OpenAI-compatible chat completion client (OpenRouter by default).

    IMPORTANT:
    - Automatic SDK retries are disabled: a failed call is reported, never retried.
    - One model per client; there is no fallback chain.
    """

    def __init__(self, settings: Any, *, http_client: httpx.AsyncClient | None = None) -> None:
        api_key = getattr(settings, "llm_api_key", None)
        base_url = getattr(settings, "llm_base_url", "") or ""
        model = (getattr(settings, "llm_model", "") or "").strip()

        if not api_key or not str(api_key).strip():
            raise ConfigError("LLM API key is not set. Set TASKMASTER_LLM_API_KEY in your .env.")
        if not base_url.strip():
            raise ConfigError("LLM base URL is not set. Set TASKMASTER_LLM_BASE_URL in your .env.")
        if not model:
            raise ConfigError("LLM model is not set. Set TASKMASTER_LLM_MODEL in your .env.")

        read_s = float(getattr(settings, "prioritize_timeout_seconds", 20.0))
        self.model = model
        self._headers: Dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._client = AsyncOpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=_make_timeout_obj(connect_s=5.0, read_s=read_s),
            max_retries=0,
            http_client=http_client,
        )

    async def complete(self, messages: List[ChatMessage], system_prompt: str) -> str:
        """
        Run one non-streaming chat completion and return the text content.

        Every failure is raised as PrioritizationError with a short message;
        the SDK exception is chained for the log.
        """
        logger.info("LLM: request model=%s messages=%d", self.model, len(messages) + 1)
        t0 = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                extra_headers=self._headers or None,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=0,
            )
        except Exception as e:
            if _is_auth_error(e):
                raise PrioritizationError(
                    "LLM authentication failed. Check your API key (TASKMASTER_LLM_API_KEY)"
                ) from e
            if _is_not_found_error(e):
                raise PrioritizationError(f"LLM model not available: {self.model}") from e
            if _is_rate_limit_error(e):
                raise PrioritizationError("LLM is rate-limited. Try again later") from e
            if _is_connection_error(e):
                raise PrioritizationError("LLM network/timeout error. Try again later") from e
            if isinstance(e, openai.OpenAIError):
                raise PrioritizationError(f"LLM error ({e.__class__.__name__})") from e
            raise

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None

        logger.info("LLM: response from model=%s (%.2fs)", self.model, time.monotonic() - t0)
        if not content:
            raise PrioritizationError(f"Model returned no content: {self.model}")
        return content

    async def aclose(self) -> None:
        await self._client.close()
