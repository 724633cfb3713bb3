"""Analysis orchestrator — chains prompt, LLM call, validation and scoring.

One ``analyze`` call makes between one and three sequential LLM requests and
has no other side effects; persisting the report is the caller's job.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from engine.aggregator import aggregate
from engine.classifier import classify
from engine.errors import (
    ContentEmpty,
    ContentTooLong,
    ExternalServiceMalformed,
    ExternalServiceUnavailable,
)
from engine.prompt_builder import PromptPayload, build_prompt
from engine.validator import MalformedResponseError, validate_response
from schemas.response import BiasIndicator, BiasReport, ContentItem
from services.llm_service import LLMFatalError, LLMTransientError, generate

logger = logging.getLogger("fairtext.engine.orchestrator")

MAX_ATTEMPTS = 3
MAX_CONTENT_LENGTH = 10_000


def check_content(content: ContentItem) -> None:
    """Raise ``ContentEmpty`` / ``ContentTooLong`` before any LLM call is made."""
    if not content.text.strip():
        raise ContentEmpty()
    if len(content.text) > MAX_CONTENT_LENGTH:
        raise ContentTooLong(
            f"Content is {len(content.text)} characters; the maximum is {MAX_CONTENT_LENGTH}."
        )


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Attempt %d/%d failed (%s: %s); retrying.",
        state.attempt_number,
        MAX_ATTEMPTS,
        type(exc).__name__,
        exc,
    )


async def _attempt(prompt: PromptPayload, text: str) -> list[BiasIndicator]:
    raw = await generate(prompt, timeout=settings.llm_timeout_seconds)
    return validate_response(raw, text)


async def analyze(content: ContentItem) -> BiasReport:
    """Run the full analysis for *content*.

    Parameters
    ----------
    content : ContentItem
        The submitted text.

    Returns
    -------
    BiasReport
        Indicators in the order the LLM reported them, plus the risk assessment.

    Raises
    ------
    ContentEmpty, ContentTooLong
        Precondition failures; the LLM is not called.
    ExternalServiceUnavailable
        Every attempt failed in transport (timeout, connection, rate limit), or
        the provider rejected the request outright.
    ExternalServiceMalformed
        The last attempt returned output the validator could not use.
    """
    check_content(content)

    t0 = time.perf_counter()
    prompt = build_prompt(content.text)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=settings.retry_backoff_seconds, max=10),
        retry=retry_if_exception_type((LLMTransientError, MalformedResponseError)),
        before_sleep=_log_retry,
        reraise=True,
    )

    attempts = 0
    try:
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                indicators = await _attempt(prompt, content.text)
    except LLMFatalError as exc:
        logger.error("LLM rejected the request on attempt %d: %s", attempts, exc)
        raise ExternalServiceUnavailable() from exc
    except LLMTransientError as exc:
        logger.error("LLM unavailable after %d attempt(s) (%s).", attempts, exc.kind)
        raise ExternalServiceUnavailable() from exc
    except MalformedResponseError as exc:
        logger.error("LLM output unusable after %d attempt(s): %s", attempts, exc)
        raise ExternalServiceMalformed() from exc

    category_scores = aggregate(indicators)
    risk = classify(category_scores)

    report = BiasReport(
        content=content,
        indicators=tuple(indicators),
        risk=risk,
        generated_at=datetime.now(timezone.utc),
    )

    elapsed = time.perf_counter() - t0
    logger.info(
        "Analysis complete in %.2fs after %d attempt(s) — %d indicator(s), overall %d → %s",
        elapsed,
        attempts,
        len(indicators),
        risk.overall,
        risk.level.value,
    )
    return report
