"""Fairtext — Implicit Bias Analysis Engine.

FastAPI application entry-point.
Designed to run as an internal service consumed by the Node.js Express backend.
"""

from __future__ import annotations

import logging
import secrets
import sys
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from engine.errors import (
    AnalysisError,
    ContentEmpty,
    ContentTooLong,
    ExternalServiceMalformed,
    ExternalServiceUnavailable,
)
from engine.orchestrator import analyze
from schemas.request import AnalyzeRequest
from schemas.response import BiasReport, ContentItem, ErrorResponse, ReportHistoryResponse
from services import llm_service
from services.report_store import ReportStore, persist_report, report_store

VERSION = "0.1.0"

# ── Logging ────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(name)-32s | %(levelname)-7s | %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("fairtext")

_STATUS_BY_ERROR: dict[type[AnalysisError], int] = {
    ContentEmpty: 422,
    ContentTooLong: 422,
    ExternalServiceUnavailable: 503,
    ExternalServiceMalformed: 502,
}


# ── Dependencies ───────────────────────────────────────────────────────

async def verify_internal_token(
    x_internal_token: str | None = Header(default=None),
) -> None:
    """Reject requests that don't carry the shared internal token.

    Skipped when ``INTERNAL_TOKEN`` is not configured (dev mode).
    """
    expected = settings.internal_token
    if not expected:
        return  # no token configured → open access (dev only)
    if not x_internal_token or not secrets.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing internal token.")


async def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Opaque user identifier forwarded by the Node server (sessions live there)."""
    return (x_user_id or "").strip() or "anonymous"


def get_report_store() -> ReportStore:
    return report_store


# ── Lifespan ───────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    logger.info(
        "Fairtext engine starting — provider=%s auth=%s",
        settings.llm_provider,
        "enabled" if settings.internal_token else "disabled (dev)",
    )
    llm_service.init_client()
    yield
    await llm_service.close_client()
    logger.info("Fairtext engine shutting down.")


# ── App ────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Fairtext",
    description="Implicit bias analysis engine — internal service for the Node.js backend.",
    version=VERSION,
    lifespan=lifespan,
)

# Parse allowed_origins (comma-separated string → list)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError) -> JSONResponse:  # noqa: ARG001
    status = _STATUS_BY_ERROR.get(type(exc), 500)
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=exc.code, detail=exc.detail).model_dump(),
    )


# ── Routes ─────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "engine": "fairtext",
        "version": VERSION,
        "provider": settings.llm_provider,
    }


@app.post(
    "/analyze",
    response_model=BiasReport,
    responses={
        401: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Analyse text for implicit bias",
    description="Detects political, gender, religious and ideological bias, explains each "
    "finding, suggests rewrites and returns a 0-100 risk assessment.",
    dependencies=[Depends(verify_internal_token)],
)
async def analyze_text(
    payload: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(current_user_id),
    store: ReportStore = Depends(get_report_store),
) -> BiasReport:
    logger.info("Analyze request %s from user %s (%d chars)", payload.request_id or "-", user_id, len(payload.text))
    try:
        report = await analyze(ContentItem(text=payload.text))
    except AnalysisError:
        raise
    except Exception as exc:
        logger.exception("Analysis failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    background_tasks.add_task(persist_report, store, report, user_id)
    return report


@app.get(
    "/reports",
    response_model=ReportHistoryResponse,
    summary="List the caller's past reports, newest first",
    dependencies=[Depends(verify_internal_token)],
)
async def list_reports(
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    store: ReportStore = Depends(get_report_store),
) -> ReportHistoryResponse:
    return ReportHistoryResponse(user_id=user_id, reports=store.list_for_user(user_id, limit=limit))


@app.get(
    "/reports/{report_id}",
    response_model=BiasReport,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(verify_internal_token)],
)
async def get_report(
    report_id: str,
    user_id: str = Depends(current_user_id),
    store: ReportStore = Depends(get_report_store),
) -> BiasReport:
    report = store.get(report_id, user_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found.")
    return report


# ── Dev runner ─────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=True,
    )
