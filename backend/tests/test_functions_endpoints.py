from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from fakes import FakeBackend
from functions.bump import bump_property
from main import create_app
from rpc.errors import RemoteCallError, ValidationError


def _client(backend=None, service_backend=None):
    app = create_app()
    app.state.backend = backend or FakeBackend()
    app.state.service_backend = service_backend or FakeBackend()
    return TestClient(app)


def test_bump_requires_property_id():
    with pytest.raises(ValidationError):
        asyncio.run(bump_property(FakeBackend(), "  "))


def test_bump_property_forwards_caller_jwt():
    backend = FakeBackend(
        {
            "bump_property": {
                "success": True,
                "bumps_used": 1,
                "bumps_limit": 5,
                "bumps_remaining": 4,
                "next_reset": "2026-11-01T00:00:00Z",
            }
        }
    )
    client = _client(backend)
    resp = client.post(
        "/functions/v1/bump-property",
        json={"propertyId": "p1"},
        headers={"Authorization": "Bearer agent-jwt"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "bumps_used": 1,
        "bumps_limit": 5,
        "bumps_remaining": 4,
        "next_reset": "2026-11-01T00:00:00Z",
    }
    assert backend.authorization == "Bearer agent-jwt"
    assert backend.calls_to("bump_property") == [{"property_id": "p1"}]


def test_bump_property_without_auth_is_401():
    backend = FakeBackend()
    resp = _client(backend).post("/functions/v1/bump-property", json={"propertyId": "p1"})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Unauthorized"}
    assert backend.calls == []


def test_bump_property_without_id_is_400():
    resp = _client().post(
        "/functions/v1/bump-property", json={}, headers={"Authorization": "Bearer x"}
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "propertyId is required"


def test_bump_property_refused_by_backend_is_400():
    backend = FakeBackend({"bump_property": {"success": False, "error": "Bump limit reached"}})
    resp = _client(backend).post(
        "/functions/v1/bump-property",
        json={"propertyId": "p1"},
        headers={"Authorization": "Bearer x"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Bump limit reached"}


def test_bump_property_backend_failure_is_500():
    backend = FakeBackend({"bump_property": RemoteCallError("permission denied for table")})
    resp = _client(backend).post(
        "/functions/v1/bump-property",
        json={"propertyId": "p1"},
        headers={"Authorization": "Bearer x"},
    )
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "permission denied for table"}


def test_cleanup_tile_cache_reports_deleted_count():
    service = FakeBackend({"cleanup_expired_tiles": 12})
    resp = _client(service_backend=service).post("/functions/v1/cleanup-tile-cache")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["deletedCount"] == 12


def test_cleanup_tile_cache_failure():
    service = FakeBackend({"cleanup_expired_tiles": RemoteCallError("timeout")})
    resp = _client(service_backend=service).post("/functions/v1/cleanup-tile-cache")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "timeout", "deletedCount": 0}


def test_refresh_properties_monthly():
    service = FakeBackend({"refresh_all_active_properties": {"refreshed": 40}})
    resp = _client(service_backend=service).post("/functions/v1/refresh-properties-monthly")
    assert resp.status_code == 200
    assert resp.json() == {
        "refreshed": 40,
        "success": True,
        "message": "Monthly refresh completed",
    }


def test_refresh_stats_views_falls_back_to_plain_refresh():
    def exec_sql(params):
        if "CONCURRENTLY" in params["sql"]:
            raise RemoteCallError("cannot refresh concurrently")
        return None

    service = FakeBackend({"exec_sql": exec_sql})
    resp = _client(service_backend=service).post("/functions/v1/refresh-stats-views")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    sqls = [p["sql"] for p in service.calls_to("exec_sql")]
    assert sqls == [
        "REFRESH MATERIALIZED VIEW CONCURRENTLY property_stats_by_municipality",
        "REFRESH MATERIALIZED VIEW property_stats_by_municipality",
        "REFRESH MATERIALIZED VIEW CONCURRENTLY property_stats_by_state",
        "REFRESH MATERIALIZED VIEW property_stats_by_state",
    ]


def test_refresh_stats_views_failure_names_the_view():
    service = FakeBackend({"exec_sql": RemoteCallError("relation does not exist")})
    resp = _client(service_backend=service).post("/functions/v1/refresh-stats-views")
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Error refreshing municipality stats: relation does not exist"
    assert "timestamp" in body


def test_public_config_returns_key(monkeypatch):
    monkeypatch.setenv("KENTRA_GOOGLE_MAPS_API_KEY", "maps-key")
    backend = FakeBackend(user={"id": "u1"})
    client = _client(backend)

    anon = client.get("/functions/v1/public-config")
    assert anon.status_code == 200
    assert anon.json() == {"googleMapsApiKey": "maps-key", "authenticated": False}

    signed_in = client.get(
        "/functions/v1/public-config", headers={"Authorization": "Bearer user-jwt"}
    )
    assert signed_in.json() == {"googleMapsApiKey": "maps-key", "authenticated": True}


def test_public_config_without_key_is_500(monkeypatch):
    monkeypatch.delenv("KENTRA_GOOGLE_MAPS_API_KEY", raising=False)
    resp = _client().get("/functions/v1/public-config")
    assert resp.status_code == 500
    assert resp.json() == {"error": "GOOGLE_MAPS_API_KEY_NOT_CONFIGURED"}


def test_cors_preflight_allows_any_origin():
    resp = _client().options(
        "/functions/v1/bump-property",
        headers={
            "Origin": "https://app.test",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
