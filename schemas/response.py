"""Response schemas and core data model for the Fairtext API."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ──────────────────────────────────────────────────────────────

class BiasCategory(str, Enum):
    POLITICAL = "political"
    GENDER = "gender"
    RELIGIOUS = "religious"
    IDEOLOGICAL = "ideological"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Input ──────────────────────────────────────────────────────────────

class ContentItem(BaseModel):
    """Text submitted for analysis.

    Length is checked by the orchestrator (``ContentEmpty`` /
    ``ContentTooLong``), not by the model, so oversize input still reaches it.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    submitted_at: datetime = Field(default_factory=_utcnow)


# ── Sub-models ─────────────────────────────────────────────────────────

class BiasIndicator(BaseModel):
    """One detected span of biased text. Built only by the response validator."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Source text covered by the span.")
    category: BiasCategory
    confidence: float = Field(ge=0.0, le=1.0)
    start_pos: int = Field(ge=0, description="Inclusive start offset into the content.")
    end_pos: int = Field(ge=1, description="Exclusive end offset into the content.")
    explanation: str = Field(min_length=1)
    suggestions: tuple[str, ...] = Field(min_length=1, description="Alternative phrasings, most preferred first.")


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall: int = Field(ge=0, le=100)
    level: RiskLevel
    category_scores: dict[BiasCategory, int] = Field(
        default_factory=dict,
        description="Per-category score 0-100. Categories without indicators are absent.",
    )


# ── Top-level response ─────────────────────────────────────────────────

class BiasReport(BaseModel):
    """Full analysis output handed to the caller and then to persistence."""

    model_config = ConfigDict(frozen=True)

    report_id: str = Field(default_factory=lambda: uuid4().hex)
    content: ContentItem
    indicators: tuple[BiasIndicator, ...] = Field(
        default_factory=tuple,
        description="In the order the generation service reported them.",
    )
    risk: RiskAssessment
    generated_at: datetime = Field(default_factory=_utcnow)


class ReportHistoryResponse(BaseModel):
    user_id: str
    reports: list[BiasReport] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
