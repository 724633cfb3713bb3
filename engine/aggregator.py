"""Step 3 — Category aggregation.

Deterministic — no LLM call required.
"""

from __future__ import annotations

from statistics import mean
from typing import Iterable

from schemas.response import BiasCategory, BiasIndicator


def aggregate(indicators: Iterable[BiasIndicator]) -> dict[BiasCategory, int]:
    """Reduce indicators to a 0-100 score per category.

    score = round(mean(confidences) * 100)

    Only categories with at least one indicator appear in the result; a
    missing key means nothing was detected, which is not the same as a score
    near 0.  Keys follow the order in which categories first appear.
    """
    grouped: dict[BiasCategory, list[float]] = {}
    for ind in indicators:
        grouped.setdefault(ind.category, []).append(ind.confidence)

    return {
        category: max(0, min(100, round(mean(confidences) * 100)))
        for category, confidences in grouped.items()
    }
