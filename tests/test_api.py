"""Tests for the FastAPI routes (mocked LLM)."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

# Ensure auth is disabled for tests (no INTERNAL_TOKEN set)
import os
os.environ.pop("INTERNAL_TOKEN", None)

from config import settings
from main import app
from services.report_store import report_store


client = TestClient(app)

SCENARIO = (
    '{"bias_indicators":[{"category":"Gender","confidence":0.9,"start_pos":0,'
    '"end_pos":5,"explanation":"x","suggestions":["y"]}]}'
)


def _mock_generate(prompt, **kw):  # noqa: ARG001
    """Return a canned reply depending on the submitted text."""
    if "no bias here" in prompt.user:
        return json.dumps({"bias_indicators": []})
    if "garbage" in prompt.user:
        return "<html>502 Bad Gateway</html>"
    return SCENARIO


@pytest.fixture(autouse=True)
def _patch_llm():
    original = settings.retry_backoff_seconds
    settings.retry_backoff_seconds = 0
    report_store.clear()
    with patch("engine.orchestrator.generate", new_callable=AsyncMock, side_effect=_mock_generate) as gen:
        yield gen
    settings.retry_backoff_seconds = original
    report_store.clear()


class TestHealthEndpoint:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["engine"] == "fairtext"


class TestAnalyzeEndpoint:
    def test_scenario_report(self):
        resp = client.post("/analyze", json={"text": "Girls are bad at maths."})
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["indicators"]) == 1
        ind = data["indicators"][0]
        assert ind["category"] == "gender"
        assert ind["text"] == "Girls"
        assert ind["suggestions"] == ["y"]
        assert data["risk"] == {"overall": 90, "level": "high", "category_scores": {"gender": 90}}
        assert data["content"]["text"] == "Girls are bad at maths."
        assert data["report_id"]
        assert data["generated_at"]

    def test_clean_text(self):
        resp = client.post("/analyze", json={"text": "There is no bias here."})
        assert resp.status_code == 200
        data = resp.json()
        assert data["indicators"] == []
        assert data["risk"] == {"overall": 0, "level": "low", "category_scores": {}}

    def test_empty_content_rejected(self, _patch_llm):
        resp = client.post("/analyze", json={"text": "   "})
        assert resp.status_code == 422
        assert resp.json()["error"] == "content_empty"
        assert _patch_llm.await_count == 0

    def test_too_long_rejected_without_llm_call(self, _patch_llm):
        resp = client.post("/analyze", json={"text": "a" * 10_001})
        assert resp.status_code == 422
        assert resp.json()["error"] == "content_too_long"
        assert _patch_llm.await_count == 0
        assert report_store.count() == 0

    def test_missing_text_is_validation_error(self):
        resp = client.post("/analyze", json={})
        assert resp.status_code == 422

    def test_malformed_after_three_attempts(self, _patch_llm):
        resp = client.post("/analyze", json={"text": "garbage in"})
        assert resp.status_code == 502
        assert resp.json() == {"error": "external_service_malformed", "detail": "Analysis failed, please retry."}
        assert _patch_llm.await_count == 3
        assert report_store.count() == 0

    def test_unavailable_maps_to_503(self, _patch_llm):
        from services.llm_service import LLMTransientError

        _patch_llm.side_effect = LLMTransientError("timeout", "timed out")
        resp = client.post("/analyze", json={"text": "Some text."})
        assert resp.status_code == 503
        assert resp.json()["error"] == "external_service_unavailable"
        assert report_store.count() == 0

    def test_camel_case_request_id_accepted(self):
        resp = client.post("/analyze", json={"text": "Some text.", "requestId": "req-abc-123"})
        assert resp.status_code == 200


class TestPersistence:
    def test_report_saved_for_user(self):
        resp = client.post("/analyze", json={"text": "Girls are bad at maths."}, headers={"X-User-Id": "u-1"})
        assert resp.status_code == 200
        report_id = resp.json()["report_id"]

        history = client.get("/reports", headers={"X-User-Id": "u-1"}).json()
        assert history["user_id"] == "u-1"
        assert [r["report_id"] for r in history["reports"]] == [report_id]

        one = client.get(f"/reports/{report_id}", headers={"X-User-Id": "u-1"})
        assert one.status_code == 200
        assert one.json()["risk"]["overall"] == 90

    def test_reports_isolated_per_user(self):
        resp = client.post("/analyze", json={"text": "Girls are bad at maths."}, headers={"X-User-Id": "u-1"})
        report_id = resp.json()["report_id"]

        assert client.get("/reports", headers={"X-User-Id": "u-2"}).json()["reports"] == []
        assert client.get(f"/reports/{report_id}", headers={"X-User-Id": "u-2"}).status_code == 404

    def test_history_newest_first_and_limited(self):
        ids = [
            client.post("/analyze", json={"text": f"text {i}"}, headers={"X-User-Id": "u-3"}).json()["report_id"]
            for i in range(3)
        ]
        history = client.get("/reports", params={"limit": 2}, headers={"X-User-Id": "u-3"}).json()
        assert [r["report_id"] for r in history["reports"]] == ids[::-1][:2]

    def test_persistence_failure_does_not_affect_response(self):
        with patch.object(report_store, "save", side_effect=RuntimeError("disk full")):
            resp = client.post("/analyze", json={"text": "Girls are bad at maths."})
        assert resp.status_code == 200
        assert resp.json()["risk"]["level"] == "high"


class TestInternalAuth:
    def test_no_auth_when_token_not_configured(self):
        """With empty INTERNAL_TOKEN, all requests should pass."""
        resp = client.post("/analyze", json={"text": "Test content."})
        assert resp.status_code == 200

    def test_auth_rejects_bad_token_when_configured(self):
        """When INTERNAL_TOKEN is set, wrong token → 401."""
        original = settings.internal_token
        try:
            settings.internal_token = "super-secret-token"
            resp = client.post(
                "/analyze",
                json={"text": "Test content."},
                headers={"X-Internal-Token": "wrong-token"},
            )
            assert resp.status_code == 401
        finally:
            settings.internal_token = original

    def test_auth_accepts_correct_token_when_configured(self):
        original = settings.internal_token
        try:
            settings.internal_token = "super-secret-token"
            resp = client.post(
                "/analyze",
                json={"text": "Test content."},
                headers={"X-Internal-Token": "super-secret-token"},
            )
            assert resp.status_code == 200
        finally:
            settings.internal_token = original

    def test_auth_rejects_missing_token_when_configured(self):
        original = settings.internal_token
        try:
            settings.internal_token = "super-secret-token"
            resp = client.get("/reports")
            assert resp.status_code == 401
        finally:
            settings.internal_token = original


class TestLifespan:
    def test_startup_log_names_provider_only(self, caplog):
        with patch("main.llm_service.init_client"), \
                patch("main.llm_service.close_client", new_callable=AsyncMock):
            with caplog.at_level(logging.INFO, logger="fairtext"):
                with TestClient(app):
                    pass
        started = [r.getMessage() for r in caplog.records if "engine starting" in r.getMessage()]
        assert len(started) == 1
        assert f"provider={settings.llm_provider}" in started[0]
        assert "model=" not in started[0]
