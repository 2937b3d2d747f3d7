"""
Tests for the triage HTTP API

The app is exercised without its lifespan; module globals are patched with
test doubles so no configuration or network is needed.
"""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from triage.analysis import server
from triage.analysis.pipeline import ConversationReport, ScanSummary
from triage.analysis.sentiment import LexicalSentimentScorer
from triage.common.errors import TransientUpstreamError, UpstreamAuthError


@pytest.fixture
def client():
    return TestClient(server.app)


@pytest.fixture
def fake_pipeline():
    pipeline = Mock()
    pipeline.scorer.name = "lexical"
    pipeline.usage.summary.return_value = {"calls": 0, "input_tokens": 0, "output_tokens": 0, "cost": 0.0}
    return pipeline


class TestHealth:
    def test_health_without_pipeline(self, client):
        with patch.object(server, "pipeline", None), patch.object(server, "config", None):
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["scorer"] is None

    def test_health_reports_scorer(self, client, fake_pipeline):
        with patch.object(server, "pipeline", fake_pipeline):
            assert client.get("/health").json()["scorer"] == "lexical"


class TestAnalyze:
    def test_scores_text(self, client):
        with patch.object(server, "lexical_scorer", LexicalSentimentScorer()):
            response = client.post("/analyze", json={"text": "I want a refund now!!!!"})
        data = response.json()
        assert response.status_code == 200
        assert data["result"]["anger_score"] == 40
        assert data["result"]["confidence"] == "medium"
        assert data["is_angry"] is True
        assert "refund" in data["explanation"].lower()

    def test_not_initialized(self, client):
        with patch.object(server, "lexical_scorer", None):
            assert client.post("/analyze", json={"text": "x"}).status_code == 503


class TestScan:
    def test_runs_scan_and_stores_summary(self, client, fake_pipeline):
        summary = ScanSummary(dry_run=True)
        summary.record(ConversationReport(5, anger_score=50, is_angry=True))
        fake_pipeline.scan.return_value = summary

        with patch.object(server, "pipeline", fake_pipeline), \
             patch.object(server, "last_summary", None):
            response = client.post("/scan", json={"dry_run": True, "limit": 5})
            stats = client.get("/stats").json()

        assert response.status_code == 200
        assert response.json()["angry"] == [5]
        options = fake_pipeline.scan.call_args.args[0]
        assert options.dry_run is True and options.limit == 5
        assert stats["last_scan"]["scanned"] == 1
        assert "reports" not in stats["last_scan"]
        assert stats["usage"]["calls"] == 0

    def test_auth_failure_maps_to_502(self, client, fake_pipeline):
        fake_pipeline.scan.side_effect = UpstreamAuthError("bad secret", 401)
        with patch.object(server, "pipeline", fake_pipeline):
            assert client.post("/scan", json={}).status_code == 502

    def test_outage_maps_to_503(self, client, fake_pipeline):
        fake_pipeline.scan.side_effect = TransientUpstreamError("down", 503)
        with patch.object(server, "pipeline", fake_pipeline):
            assert client.post("/scan", json={}).status_code == 503

    def test_invalid_limit(self, client, fake_pipeline):
        with patch.object(server, "pipeline", fake_pipeline):
            assert client.post("/scan", json={"limit": 0}).status_code == 422

    def test_not_initialized(self, client):
        with patch.object(server, "pipeline", None):
            assert client.post("/scan", json={}).status_code == 503

    def test_concurrent_scan_is_rejected(self, client, fake_pipeline):
        import threading

        held = threading.Lock()
        held.acquire()
        with patch.object(server, "pipeline", fake_pipeline), \
             patch.object(server, "scan_lock", held):
            response = client.post("/scan", json={})

        assert response.status_code == 409
        fake_pipeline.scan.assert_not_called()

    def test_lock_released_after_scan(self, client, fake_pipeline):
        fake_pipeline.scan.return_value = ScanSummary(dry_run=True)
        with patch.object(server, "pipeline", fake_pipeline):
            assert client.post("/scan", json={}).status_code == 200
            assert not server.scan_lock.locked()

    def test_lock_released_after_failure(self, client, fake_pipeline):
        fake_pipeline.scan.side_effect = TransientUpstreamError("down", 503)
        with patch.object(server, "pipeline", fake_pipeline):
            client.post("/scan", json={})
        assert not server.scan_lock.locked()
