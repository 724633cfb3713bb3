"""Step 2 — Response validation.

The generation service's JSON is untrusted: every field is checked for type,
range and shape before a ``BiasIndicator`` is built from it.  Bad entries are
dropped one by one; only a response that is unusable as a whole raises.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from schemas.response import BiasCategory, BiasIndicator

logger = logging.getLogger("fairtext.engine.validator")

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.S)

_CATEGORIES: dict[str, BiasCategory] = {c.value: c for c in BiasCategory}

CONFIDENCE_TOLERANCE = 0.01


class MalformedResponseError(Exception):
    """The raw output cannot be used at all; the orchestrator should retry."""


# ── Field checks ───────────────────────────────────────────────────────

def _strip_fence(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def _parse_category(val: Any) -> BiasCategory | None:
    if not isinstance(val, str):
        return None
    return _CATEGORIES.get(val.strip().lower())


def _parse_confidence(val: Any) -> float | None:
    """Clamp rounding noise into [0, 1]; ``None`` for non-numeric or out-of-range values.

    Values like ``85`` (a percentage) are rejected rather than clamped to 1.0.
    """
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return None
    f = float(val)
    if math.isnan(f) or math.isinf(f):
        return None
    if not (-CONFIDENCE_TOLERANCE <= f <= 1.0 + CONFIDENCE_TOLERANCE):
        return None
    return max(0.0, min(1.0, f))


def _parse_offset(val: Any) -> int | None:
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, float) and val.is_integer():
        return int(val)
    return None


def _parse_suggestions(val: Any) -> tuple[str, ...]:
    if not isinstance(val, list):
        return ()
    return tuple(s.strip() for s in val if isinstance(s, str) and s.strip())


def _relocate_span(content: str, quoted: str, start: int, end: int) -> tuple[int, int]:
    """Move the span onto *quoted* when the offsets point elsewhere.

    LLM offsets are often off by a few characters while the quoted text is
    exact.  The occurrence nearest the reported start wins.
    """
    if not quoted or content[start:end] == quoted:
        return start, end

    best: int | None = None
    idx = content.find(quoted)
    while idx != -1:
        if best is None or abs(idx - start) < abs(best - start):
            best = idx
        idx = content.find(quoted, idx + 1)

    if best is None:
        return start, end
    return best, best + len(quoted)


# ── Public API ─────────────────────────────────────────────────────────

def validate_entry(item: Any, content: str) -> BiasIndicator | None:
    """Build a ``BiasIndicator`` from one raw entry, or ``None`` if it must be dropped."""
    if not isinstance(item, dict):
        logger.debug("Dropping non-object entry: %r", item)
        return None

    category = _parse_category(item.get("category"))
    if category is None:
        logger.debug("Dropping entry with unrecognised category: %r", item.get("category"))
        return None

    confidence = _parse_confidence(item.get("confidence"))
    if confidence is None:
        logger.debug("Dropping entry with invalid confidence: %r", item.get("confidence"))
        return None

    start = _parse_offset(item.get("start_pos"))
    end = _parse_offset(item.get("end_pos"))
    if start is None or end is None or not (0 <= start < end <= len(content)):
        logger.debug("Dropping entry with invalid span: %r-%r", item.get("start_pos"), item.get("end_pos"))
        return None

    quoted = item.get("text")
    if isinstance(quoted, str):
        start, end = _relocate_span(content, quoted, start, end)

    explanation = item.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        logger.debug("Dropping entry without explanation.")
        return None

    suggestions = _parse_suggestions(item.get("suggestions"))
    if not suggestions:
        logger.debug("Dropping entry without suggestions.")
        return None

    return BiasIndicator(
        text=content[start:end],
        category=category,
        confidence=confidence,
        start_pos=start,
        end_pos=end,
        explanation=explanation.strip(),
        suggestions=suggestions,
    )


def validate_response(raw: str, content: str) -> list[BiasIndicator]:
    """Parse the generation service's reply into validated indicators.

    Parameters
    ----------
    raw : str
        Reply text, expected to be ``{"bias_indicators": [...]}`` (optionally
        wrapped in a Markdown code fence).
    content : str
        The analysed text; spans are checked against its bounds.

    Returns
    -------
    list[BiasIndicator]
        Surviving indicators in the order the service listed them.  Empty for
        a well-formed "no bias found" reply.

    Raises
    ------
    MalformedResponseError
        The reply is not decodable, does not have the expected shape, or
        listed indicators of which none survived.
    """
    if not isinstance(raw, str):
        raise MalformedResponseError(f"Expected text, got {type(raw).__name__}.")

    try:
        data = json.loads(_strip_fence(raw))
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse LLM JSON: %s\nRaw: %s", exc, raw[:500])
        raise MalformedResponseError(f"LLM returned invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedResponseError("Top-level JSON value is not an object.")

    entries = data.get("bias_indicators")
    if not isinstance(entries, list):
        raise MalformedResponseError("'bias_indicators' is missing or not a list.")

    indicators: list[BiasIndicator] = []
    for item in entries:
        indicator = validate_entry(item, content)
        if indicator is not None:
            indicators.append(indicator)

    dropped = len(entries) - len(indicators)
    if entries and not indicators:
        raise MalformedResponseError(f"All {len(entries)} indicator(s) failed validation.")
    if dropped:
        logger.info("Dropped %d of %d indicator(s) during validation.", dropped, len(entries))

    return indicators
