"""Step 4 — Risk classification."""

from __future__ import annotations

from statistics import mean

from schemas.response import BiasCategory, RiskAssessment, RiskLevel

LOW_MAX = 30
MEDIUM_MAX = 70


def risk_level(overall: int) -> RiskLevel:
    """Map an overall score to a risk level.

     0–30  → low
    31–70  → medium
    71–100 → high
    """
    if overall <= LOW_MAX:
        return RiskLevel.LOW
    elif overall <= MEDIUM_MAX:
        return RiskLevel.MEDIUM
    else:
        return RiskLevel.HIGH


def classify(category_scores: dict[BiasCategory, int]) -> RiskAssessment:
    """Combine category scores into the overall assessment.

    The overall score is the plain mean of the category scores, so every
    detected category counts equally regardless of how many indicators it had.
    """
    if not category_scores:
        return RiskAssessment(overall=0, level=RiskLevel.LOW, category_scores={})

    overall = max(0, min(100, round(mean(category_scores.values()))))
    return RiskAssessment(
        overall=overall,
        level=risk_level(overall),
        category_scores=dict(category_scores),
    )
