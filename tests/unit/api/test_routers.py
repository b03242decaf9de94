"""Tests for the HTTP API.

Hey future me - these run the REAL app (lifespan, in-memory SQLite, all wiring)
through TestClient. Only the parts that would talk to Genius or need precise
timing are patched on the live components.
"""

import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tunecatalog.config import Settings
from tunecatalog.domain.entities import BatchResult, TriggerReason
from tunecatalog.domain.exceptions import (
    PermissionDeniedError,
    ScanInProgressError,
    TransientIOError,
)
from tunecatalog.main import create_app


def _client(settings: Settings) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    with _client(settings) as test_client:
        yield test_client


def _wait_for_scan(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/library/scan/status").json()
        if not body["running"] and body["finished_at"]:
            return body
        time.sleep(0.02)
    raise AssertionError("scan did not finish")


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestLibraryRoutes:
    def test_scan_is_accepted_and_finishes(
        self, client: TestClient, settings: Settings
    ) -> None:
        Path(settings.storage.music_path).mkdir(parents=True)

        response = client.post("/api/library/scan", json={"force_full": True})

        assert response.status_code == 202
        assert response.json() == {"message": "Library scan started", "force_full": True}
        status = _wait_for_scan(client)
        assert status["last_error"] is None
        assert status["last_result"]["new"] == 0

    def test_scan_without_body(self, client: TestClient, mocker) -> None:
        worker = client.app.state.components.scan_worker
        start = mocker.patch.object(worker, "start_scan")

        response = client.post("/api/library/scan")

        assert response.status_code == 202
        start.assert_called_once_with(force_full=False)

    def test_concurrent_scan_is_409(self, client: TestClient, mocker) -> None:
        worker = client.app.state.components.scan_worker
        mocker.patch.object(worker, "start_scan", side_effect=ScanInProgressError())

        response = client.post("/api/library/scan")

        assert response.status_code == 409
        assert response.json()["detail"] == "A library scan is already running"

    def test_status_before_any_scan(self, client: TestClient) -> None:
        body = client.get("/api/library/scan/status").json()
        assert body["running"] is False
        assert body["last_result"] is None


class TestEnrichmentRoutes:
    def test_status_reports_every_state(self, client: TestClient) -> None:
        response = client.get("/api/enrichment/status")

        assert response.status_code == 200
        body = response.json()
        assert body["counts"] == {
            "pending": 0,
            "resolving": 0,
            "enriched": 0,
            "partial": 0,
            "failed": 0,
            "exhausted": 0,
        }
        assert body["running"] is False

    def test_manual_run_on_empty_catalog(self, client: TestClient) -> None:
        response = client.post("/api/enrichment/run", json={"batch_size": 5})

        assert response.status_code == 200
        assert response.json()["total"] == 0

    def test_run_passes_trigger_and_size(self, client: TestClient, mocker) -> None:
        worker = client.app.state.components.enrichment_worker
        run = mocker.patch.object(worker, "run", return_value=BatchResult(enriched=3, total=3))

        response = client.post(
            "/api/enrichment/run", json={"batch_size": 10, "trigger_reason": "periodic"}
        )

        assert response.json()["enriched"] == 3
        run.assert_awaited_once_with(TriggerReason.PERIODIC, batch_size=10)

    def test_invalid_batch_size_is_422(self, client: TestClient) -> None:
        response = client.post("/api/enrichment/run", json={"batch_size": 0})
        assert response.status_code == 422

    def test_missing_token_is_503(self, settings: Settings) -> None:
        no_token = settings.model_copy(
            update={"genius": settings.genius.model_copy(update={"access_token": ""})}
        )
        with _client(no_token) as client:
            response = client.post("/api/enrichment/run")

        assert response.status_code == 503
        assert "token" in response.json()["detail"]

    def test_busy_storage_is_503_with_retry_after(self, client: TestClient, mocker) -> None:
        worker = client.app.state.components.enrichment_worker
        mocker.patch.object(
            worker, "run", side_effect=TransientIOError("Database locked", retry_after=30.0)
        )

        response = client.post("/api/enrichment/run")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "30"

    def test_permission_denied_is_403(self, client: TestClient, mocker) -> None:
        worker = client.app.state.components.enrichment_worker
        mocker.patch.object(worker, "run", side_effect=PermissionDeniedError("read-only"))
        assert client.post("/api/enrichment/run").status_code == 403

    def test_reset_unknown_track_is_404(self, client: TestClient) -> None:
        response = client.post("/api/enrichment/tracks/nope/reset")
        assert response.status_code == 404
        assert response.json()["detail"] == "Track with id nope not found"
