"""Request schemas for the Fairtext API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Payload sent by the Node.js server or dashboard."""

    text: str = Field(
        ...,
        description="English text to analyse for implicit bias (1-10,000 characters). "
        "Length is enforced by the analysis engine so the caller gets a specific error code.",
    )
    request_id: str | None = Field(
        default=None,
        alias="requestId",
        description="Caller's request ID for tracing.",
    )

    model_config = {"populate_by_name": True}
