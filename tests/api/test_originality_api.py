"""Tests for the originality HTTP endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from originality.core.database import db_client
from originality.core.exceptions import ProviderFatalError
from originality.dependencies import get_draft_comparison_service, get_scan_orchestrator
from originality.main import app
from originality.services.originality.draft_comparison import DraftComparisonService
from originality.services.originality.fingerprint import FingerprintIndexer
from originality.services.originality.normalizer import ContentNormalizer

COPIED = "Photosynthesis converts light energy into chemical energy stored in glucose molecules within plant cells."
ORIGINAL = "The village market opens every Saturday morning beside the old stone bridge."
SCANS_URL = "/api/v1/originality/scans"


class FatalGateway:
    async def search(self, text):
        raise ProviderFatalError("copyscape: insufficient credit")


class TestScanEndpoints:
    """Scan creation and retrieval."""

    @pytest.fixture(autouse=True)
    def _setup(self, make_orchestrator, make_gateway, make_candidate):
        self.gateway = make_gateway({"Photosynthesis": [make_candidate(COPIED)]})
        self.orchestrator = make_orchestrator(self.gateway)
        app.dependency_overrides[get_scan_orchestrator] = lambda: self.orchestrator
        self.make_orchestrator = make_orchestrator

    def _start(self, client: TestClient, content: str = f"{COPIED} {ORIGINAL}", owner_id: str = "owner-1"):
        return client.post(SCANS_URL, json={"subject_id": "doc-1", "owner_id": owner_id, "content": content})

    def test_start_scan(self, test_client: TestClient):
        response = self._start(test_client)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] is True
        assert body["message"] == "Scan completed"
        scan = body["data"]["scan"]
        assert scan["status"] == "completed"
        assert scan["classification"] == "action_required"
        assert len(scan["matches"]) == 1
        assert scan["matches"][0]["classification"] == "needs_citation"
        assert body["data"]["cached"] is False
        assert body["data"]["detailed_analysis"]["web_sources_match"] == 100
        assert "request_id" in body["meta"]

    def test_repeat_scan_served_from_cache(self, test_client: TestClient):
        first = self._start(test_client).json()

        second = self._start(test_client).json()

        assert second["message"] == "Scan retrieved from cache"
        assert second["data"]["cached"] is True
        assert second["data"]["scan"]["id"] == first["data"]["scan"]["id"]
        assert len(self.gateway.calls) == 2

    def test_content_too_large(self, test_client: TestClient):
        orchestrator = self.make_orchestrator(self.gateway, max_scan_characters=10)
        app.dependency_overrides[get_scan_orchestrator] = lambda: orchestrator

        response = self._start(test_client)

        assert response.status_code == 413

    def test_failed_scan_returned_with_bad_gateway(self, test_client: TestClient):
        orchestrator = self.make_orchestrator(FatalGateway())
        app.dependency_overrides[get_scan_orchestrator] = lambda: orchestrator

        response = self._start(test_client)

        assert response.status_code == 502
        body = response.json()
        assert body["status"] is False
        assert body["data"]["scan"]["status"] == "failed"
        assert body["data"]["scan"]["overall_score"] == -1
        assert body["data"]["scan"]["matches"] == []

    def test_missing_fields(self, test_client: TestClient):
        response = test_client.post(SCANS_URL, json={"subject_id": "doc-1"})

        assert response.status_code == 422

    def test_get_scan(self, test_client: TestClient):
        scan_id = self._start(test_client).json()["data"]["scan"]["id"]

        response = test_client.get(f"{SCANS_URL}/{scan_id}", params={"owner_id": "owner-1"})

        assert response.status_code == 200
        assert response.json()["data"]["scan"]["id"] == scan_id
        assert response.json()["data"]["reality_check"] is not None

    def test_get_scan_of_other_owner(self, test_client: TestClient):
        scan_id = self._start(test_client).json()["data"]["scan"]["id"]

        response = test_client.get(f"{SCANS_URL}/{scan_id}", params={"owner_id": "owner-2"})

        assert response.status_code == 404

    def test_get_scan_requires_owner(self, test_client: TestClient):
        response = test_client.get(f"{SCANS_URL}/some-id")

        assert response.status_code == 422

    def test_list_subject_scans(self, test_client: TestClient):
        self._start(test_client)
        self._start(test_client, content=ORIGINAL)

        response = test_client.get("/api/v1/originality/subjects/doc-1/scans", params={"owner_id": "owner-1"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Retrieved 2 scans"
        assert len(body["data"]["items"]) == 2


class TestCompareEndpoint:
    """Draft comparison."""

    @pytest.fixture(autouse=True)
    def _setup(self):
        service = DraftComparisonService(ContentNormalizer(), FingerprintIndexer())
        app.dependency_overrides[get_draft_comparison_service] = lambda: service

    def test_compare_identical_drafts(self, test_client: TestClient):
        draft = f"{COPIED} {ORIGINAL}"

        response = test_client.post(
            "/api/v1/originality/compare", json={"current_draft": draft, "previous_draft": draft}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_self_reuse"] is True
        assert data["similarity_score"] == 100.0
        assert len(data["matched_segments"]) == 2

    def test_blank_draft(self, test_client: TestClient):
        response = test_client.post(
            "/api/v1/originality/compare", json={"current_draft": "   ", "previous_draft": ORIGINAL}
        )

        assert response.status_code == 400

    def test_empty_draft_fails_validation(self, test_client: TestClient):
        response = test_client.post(
            "/api/v1/originality/compare", json={"current_draft": "", "previous_draft": ORIGINAL}
        )

        assert response.status_code == 422


class TestServiceEndpoints:
    """Health and root."""

    def test_health(self, test_client: TestClient, monkeypatch):
        monkeypatch.setattr(db_client, "health_check", AsyncMock(return_value={"status": "healthy"}))

        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_degraded(self, test_client: TestClient, monkeypatch):
        monkeypatch.setattr(db_client, "health_check", AsyncMock(return_value={"status": "unhealthy"}))

        response = test_client.get("/health")

        assert response.json()["status"] == "degraded"

    def test_root(self, test_client: TestClient):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"
