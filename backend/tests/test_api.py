"""
Tests for the dashboard API: health probes, token guard and the security
endpoints.
"""

import tomllib
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from loginguard import __version__
from loginguard.db.repositories import add_login_activity, add_security_event
from loginguard.main import create_app
from loginguard.services import build_services

TOKEN = "test-admin-token"
AUTH = {"X-Admin-Token": TOKEN}


@pytest.fixture
def services(settings, engine, identity_provider, clock):
    return build_services(
        settings,
        engine=engine,
        identity_provider=identity_provider,
        clock=clock,
        ip_transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client


@pytest.fixture
def seeded(services, clock):
    with services.session_factory() as db:
        for event_type, severity in [
            ("brute_force", "high"),
            ("new_device", "medium"),
            ("permission_denied", "medium"),
        ]:
            add_security_event(
                db,
                type=event_type,
                severity=severity,
                timestamp=clock(),
                email="admin@example.com",
                details={"source": "test"},
            )
            clock.advance(minutes=1)
        for status in ("failed", "success"):
            add_login_activity(
                db,
                email="admin@example.com",
                status=status,
                login_time=clock(),
                admin_id="uid-1" if status == "success" else None,
            )
            clock.advance(minutes=1)


class TestHealth:
    """Tests for the liveness and readiness probes."""

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["environment"] == "development"

    def test_readyz(self, client):
        response = client.get("/readyz")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"database": True}}

    def test_readyz_store_down(self, client, monkeypatch):
        monkeypatch.setattr(
            "loginguard.api.health.verify_database_connection", lambda engine: False
        )
        response = client.get("/readyz")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_request_id_round_trip(self, client):
        response = client.get("/healthz", headers={"X-Request-ID": "req-abc"})
        assert response.headers["X-Request-ID"] == "req-abc"

    def test_request_id_generated(self, client):
        response = client.get("/healthz")
        assert response.headers["X-Request-ID"]


class TestAdminToken:
    """Tests for the dashboard token guard."""

    def test_missing_token(self, client):
        response = client.get("/security/events")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E2000"

    def test_wrong_token(self, client):
        response = client.get("/security/events", headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_dashboard_disabled_without_configured_token(self, client, services):
        services.settings = services.settings.model_copy(update={"admin_api_token": ""})
        response = client.get("/security/events", headers=AUTH)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E3000"

    def test_error_envelope_carries_request_id(self, client):
        response = client.get("/security/metrics", headers={"X-Request-ID": "req-401"})
        assert response.json()["error"]["request_id"] == "req-401"
        assert response.headers["X-Request-ID"] == "req-401"


class TestSecurityEndpoints:
    """Tests for the read-only security endpoints."""

    def test_events_newest_first(self, client, seeded):
        response = client.get("/security/events", headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert [e["type"] for e in data["events"]] == [
            "permission_denied",
            "new_device",
            "brute_force",
        ]
        assert data["events"][0]["details"] == {"source": "test"}
        assert data["events"][0]["timestamp"].endswith("Z")

    def test_events_filtered(self, client, seeded):
        response = client.get("/security/events", params={"severity": "medium"}, headers=AUTH)
        assert response.json()["count"] == 2

        response = client.get("/security/events", params={"type": "brute_force"}, headers=AUTH)
        assert response.json()["count"] == 1

    def test_events_limit_clamped(self, client, seeded):
        response = client.get("/security/events", params={"limit": 0}, headers=AUTH)
        assert response.json()["count"] == 1

    @pytest.mark.parametrize(
        "params",
        [{"severity": "extreme"}, {"type": "alien_invasion"}],
    )
    def test_events_unknown_filter(self, client, params):
        response = client.get("/security/events", params=params, headers=AUTH)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E1001"

    def test_metrics(self, client, seeded, services):
        services.metrics.increment("login_success_total")

        response = client.get("/security/metrics", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["events"]["total_events"] == 3
        assert data["events"]["high_severity_events"] == 1
        assert data["events"]["events_by_type"]["new_device"] == 1
        assert data["runtime"]["counters"]["login_success_total"] == 1
        assert "armed_session_timers" in data["runtime"]["gauges"]

    def test_metrics_window_validated(self, client):
        response = client.get("/security/metrics", params={"window_hours": 0}, headers=AUTH)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "E1001"

    def test_login_activity(self, client, seeded):
        response = client.get("/security/login-activity", params={"limit": 5}, headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [a["status"] for a in data["activities"]] == ["success", "failed"]
        assert data["activities"][0]["admin_id"] == "uid-1"


class TestServing:
    """Tests for the documented ``uvicorn loginguard.main:app`` entry point."""

    def test_server_extra_declares_uvicorn(self):
        pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with pyproject.open("rb") as fh:
            extras = tomllib.load(fh)["project"]["optional-dependencies"]
        assert any(dep.startswith("uvicorn") for dep in extras["server"])

    def test_module_exposes_app(self):
        from loginguard import main

        assert isinstance(main.app, FastAPI)
