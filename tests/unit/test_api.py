"""FastAPI tests for the entry, sync and health endpoints."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.helpers.fakes import FakeCoach, FakeTranscriber, FakeVision, FlakyBackend, build_gateway
from wgw.api.dependencies import (
    USER_ID_HEADER,
    get_entry_orchestrator,
    get_persistence_gateway,
    get_settings,
)
from wgw.api.routers import entries, health, sync
from wgw.config import Settings
from wgw.domain.analysis import EntryOrchestrator
from wgw.domain.errors import ErrorKind, PipelineError
from wgw.infra.metrics import InMemoryMetricsClient

pytestmark = [pytest.mark.api]

HEADERS = {USER_ID_HEADER: "user-1"}
RECORDING = {"audio_ref": "https://cdn.example.test/rec.m4a", "category": "Gratitude"}


def _build_client(*, online: bool = True, backend=None):
    gateway, oracle, backend, _ = build_gateway(online=online, backend=backend)
    orchestrator = EntryOrchestrator(
        FakeTranscriber("quiet morning coffee"),
        FakeVision(),
        FakeCoach(),
        gateway,
        metrics=InMemoryMetricsClient(),
    )
    app = FastAPI()
    for router in (entries.router, sync.router, health.router):
        app.include_router(router)
    app.dependency_overrides[get_entry_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_persistence_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: Settings()
    return TestClient(app), gateway, oracle


def test_recording_online_returns_201_synced():
    client, _, _ = _build_client()

    response = client.post("/api/entries/recording", json=RECORDING, headers=HEADERS)

    assert response.status_code == 201
    body = response.json()
    assert body["sync_state"] == "synced"
    assert body["transcription"] == "quiet morning coffee"
    assert body["ai_response"] == "What a lovely moment to notice."
    assert body["user_id"] == "user-1"


def test_recording_offline_returns_202_with_local_id():
    client, gateway, _ = _build_client(online=False)

    response = client.post("/api/entries/recording", json=RECORDING, headers=HEADERS)

    assert response.status_code == 202
    body = response.json()
    assert body["sync_state"] == "queued"
    assert body["id"].startswith("temp_")
    assert [a.local_id for a in gateway.pending()] == [body["id"]]


def test_missing_user_header_is_401():
    client, _, _ = _build_client()

    response = client.post("/api/entries/recording", json=RECORDING)

    assert response.status_code == 401
    assert response.json()["detail"]["error_code"] == "WGW-AUTH-REQUIRED"


def test_invalid_image_ref_is_400_and_nothing_saved():
    client, gateway, _ = _build_client()

    response = client.post(
        "/api/entries/image",
        json={"image_ref": "not-a-url", "category": "Simple Pleasures"},
        headers=HEADERS,
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error_code"] == "WGW-INVALID-REQUEST"
    assert detail["details"]["kind"] == "validation"
    assert detail["details"]["code"] == "image_ref_invalid"
    assert gateway.pending() == []


def test_backend_auth_failure_is_401():
    backend = FlakyBackend([PipelineError("JWT expired", kind=ErrorKind.AUTH)])
    client, _, _ = _build_client(backend=backend)

    response = client.post("/api/entries/recording", json=RECORDING, headers=HEADERS)

    assert response.status_code == 401
    assert response.json()["detail"]["error_code"] == "WGW-AUTH-FAILED"


def test_image_entry_created():
    client, _, _ = _build_client()

    response = client.post(
        "/api/entries/image",
        json={
            "image_ref": "https://cdn.example.test/dog.jpg",
            "caption": "my dog",
            "category": "Family",
        },
        headers=HEADERS,
    )

    assert response.status_code == 201
    assert response.json()["image_url"] == "https://cdn.example.test/dog.jpg"


def test_flush_reconciles_queued_entries():
    client, gateway, oracle = _build_client(online=False)
    local_id = client.post(
        "/api/entries/recording", json=RECORDING, headers=HEADERS
    ).json()["id"]

    oracle.set_online(True)
    response = client.post("/api/sync/flush", headers=HEADERS)

    assert response.status_code == 200
    synced = response.json()["synced"]
    assert [item["local_id"] for item in synced] == [local_id]
    assert not synced[0]["entry_id"].startswith("temp_")
    assert gateway.pending() == []


def test_pending_list_is_scoped_to_caller():
    client, _, _ = _build_client(online=False)
    client.post("/api/entries/recording", json=RECORDING, headers=HEADERS)
    client.post(
        "/api/entries/recording", json=RECORDING, headers={USER_ID_HEADER: "user-2"}
    )

    items = client.get("/api/sync/pending", headers=HEADERS).json()["items"]

    assert len(items) == 1
    assert items[0]["user_id"] == "user-1"
    assert items[0]["status"] == "pending"


def test_discard_pending_entry():
    client, gateway, _ = _build_client(online=False)
    local_id = client.post(
        "/api/entries/recording", json=RECORDING, headers=HEADERS
    ).json()["id"]

    other = client.delete(
        f"/api/sync/pending/{local_id}", headers={USER_ID_HEADER: "user-2"}
    )
    assert other.status_code == 404
    assert other.json()["detail"]["error_code"] == "WGW-NOT-FOUND"

    response = client.delete(f"/api/sync/pending/{local_id}", headers=HEADERS)
    assert response.status_code == 204
    assert gateway.pending() == []


def test_healthz_reports_queue_state():
    client, _, _ = _build_client(online=False)
    client.post("/api/entries/recording", json=RECORDING, headers=HEADERS)

    body = client.get("/api/healthz").json()

    assert body["status"] == "ok"
    assert body["online"] is False
    assert body["pendingCount"] == 1
    assert body["failedCount"] == 0


def test_create_app_registers_routes(monkeypatch, tmp_path):
    from wgw.main import create_app

    monkeypatch.setenv("WGW_CONFIG_DIR", str(tmp_path))
    app = create_app()

    paths = set(app.openapi()["paths"])
    assert {"/api/healthz", "/api/entries/recording", "/api/sync/flush"} <= paths


def test_healthz_includes_metrics_snapshot():
    client, _, _ = _build_client()

    body = client.get("/api/healthz").json()

    assert set(body["metrics"]) == {"counters", "gauges"}


def test_negative_streak_is_rejected():
    client, gateway, _ = _build_client()

    response = client.post(
        "/api/entries/recording", json={**RECORDING, "streak": -1}, headers=HEADERS
    )

    assert response.status_code == 422
    assert gateway.pending() == []
