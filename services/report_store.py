"""Report persistence collaborator.

The engine hands finished reports to a ``ReportStore`` and never waits on the
outcome.  The default store is in-memory; data is lost on restart.  A
database-backed store only has to implement the same three methods.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from schemas.response import BiasReport

logger = logging.getLogger("fairtext.store")


class ReportStore(Protocol):
    def save(self, report: BiasReport, user_id: str) -> None: ...

    def list_for_user(self, user_id: str, limit: int = 20) -> list[BiasReport]: ...

    def get(self, report_id: str, user_id: str) -> BiasReport | None: ...


class InMemoryReportStore:
    """Thread-safe dict-backed store keyed by user id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_user: dict[str, list[BiasReport]] = {}

    def save(self, report: BiasReport, user_id: str) -> None:
        with self._lock:
            self._by_user.setdefault(user_id, []).append(report)
        logger.info("Stored report %s for user %s", report.report_id, user_id)

    def list_for_user(self, user_id: str, limit: int = 20) -> list[BiasReport]:
        """Newest first (reverse save order)."""
        with self._lock:
            reports = self._by_user.get(user_id, [])[::-1]
        return reports[:limit]

    def get(self, report_id: str, user_id: str) -> BiasReport | None:
        with self._lock:
            for report in self._by_user.get(user_id, []):
                if report.report_id == report_id:
                    return report
        return None

    def count(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._by_user.values())

    def clear(self) -> None:
        with self._lock:
            self._by_user.clear()


report_store: ReportStore = InMemoryReportStore()


def persist_report(store: ReportStore, report: BiasReport, user_id: str) -> None:
    """Fire-and-forget save: failures are logged, never raised."""
    try:
        store.save(report, user_id)
    except Exception:
        logger.exception("Failed to persist report %s", report.report_id)
