"""Thin wrapper around LLM providers (OpenAI / Azure / local-compatible).

Exposes a single ``generate`` capability.  Retrying is the orchestrator's job,
so the SDK's own retries are turned off and every call is exactly one request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import openai
from openai import AsyncOpenAI, AsyncAzureOpenAI

from config import settings
from engine.prompt_builder import PromptPayload

logger = logging.getLogger("fairtext.llm")


# ── Errors ─────────────────────────────────────────────────────────────

class LLMError(Exception):
    """Raised when the LLM call fails."""


class LLMTransientError(LLMError):
    """Timeout, connection failure, rate limit or server-side error.  Retryable."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind  # "timeout" | "unavailable" | "rate_limited"


class LLMFatalError(LLMError):
    """Provider rejected the request (auth, permissions, bad request).  Not retried."""


# ── Client ─────────────────────────────────────────────────────────────

def _build_client() -> tuple[AsyncOpenAI, str]:
    """Return (async_client, model_name) based on the configured provider."""
    provider = settings.llm_provider.lower()

    if provider == "azure":
        client = AsyncAzureOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            api_version="2024-12-01-preview",
            max_retries=0,
        )
        model = settings.azure_openai_deployment
    elif provider == "local":
        client = AsyncOpenAI(
            base_url=settings.local_llm_base_url,
            api_key="not-needed",
            max_retries=0,
        )
        model = settings.local_llm_model
    else:  # default: openai
        client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
        model = settings.openai_model

    return client, model


_client: AsyncOpenAI | None = None
_model: str = ""


def init_client() -> None:
    """Create the shared client.  Called once at startup; idempotent."""
    global _client, _model
    if _client is None:
        _client, _model = _build_client()
        logger.info("LLM client ready — provider=%s model=%s", settings.llm_provider, _model)


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def _translate(exc: Exception) -> LLMError:
    """Map SDK / asyncio exceptions onto the retryable vs. fatal split.

    Only timeouts and ``openai.OpenAIError`` reach this; anything else is a
    bug and propagates from ``generate`` untouched.
    """
    if isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError)):
        return LLMTransientError("timeout", "LLM call timed out.")
    if isinstance(exc, openai.RateLimitError):
        return LLMTransientError("rate_limited", f"LLM rate limited: {exc}")
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError,
                        openai.BadRequestError, openai.NotFoundError)):
        return LLMFatalError(f"LLM request rejected: {exc}")
    if isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        return LLMTransientError("unavailable", f"LLM unavailable: {exc}")
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code >= 500 or exc.status_code in (408, 409):
            return LLMTransientError("unavailable", f"LLM unavailable: {exc}")
        return LLMFatalError(f"LLM request rejected: {exc}")
    return LLMTransientError("unavailable", f"LLM call failed: {exc}")


async def generate(
    prompt: PromptPayload,
    *,
    timeout: float | None = None,
    temperature: float | None = None,
) -> str:
    """Send one JSON-mode chat-completion request and return the raw reply text.

    Parameters
    ----------
    prompt : PromptPayload
        System instruction and user message.
    timeout : float, optional
        Seconds before the call is abandoned; defaults to ``settings.llm_timeout_seconds``.
    temperature : float, optional
        Sampling temperature; defaults to ``settings.analysis_temperature``.

    Returns
    -------
    str
        Raw text content of the assistant reply (``""`` if the provider sent none).

    Raises
    ------
    LLMTransientError
        Timeout, connection failure, rate limit or 5xx.
    LLMFatalError
        The provider rejected the request outright.
    """
    init_client()
    if _client is None:
        raise LLMError("LLM client is not initialised.")

    limit = timeout if timeout is not None else settings.llm_timeout_seconds
    temp = temperature if temperature is not None else settings.analysis_temperature

    kwargs: dict[str, Any] = {
        "model": _model,
        "temperature": temp,
        "messages": [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ],
        "response_format": {"type": "json_object"},
        "timeout": limit,
    }

    try:
        response = await asyncio.wait_for(_client.chat.completions.create(**kwargs), timeout=limit)
    except (asyncio.TimeoutError, openai.OpenAIError) as exc:
        err = _translate(exc)
        logger.warning("LLM call failed (%s): %s", type(err).__name__, err)
        raise err from exc

    if not response.choices:
        return ""
    content = response.choices[0].message.content
    return (content or "").strip()
