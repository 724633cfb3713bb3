"""Terminal error kinds raised by the analysis engine.

Exactly one of these is raised when ``analyze`` cannot produce a full report;
there is no partial result.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for terminal analysis failures."""

    code: str = "analysis_error"
    message: str = "Analysis failed."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class ContentEmpty(AnalysisError):
    code = "content_empty"
    message = "Content is empty."


class ContentTooLong(AnalysisError):
    code = "content_too_long"
    message = "Content exceeds the maximum length."


class ExternalServiceUnavailable(AnalysisError):
    code = "external_service_unavailable"
    message = "Analysis temporarily unavailable."


class ExternalServiceMalformed(AnalysisError):
    code = "external_service_malformed"
    message = "Analysis failed, please retry."
