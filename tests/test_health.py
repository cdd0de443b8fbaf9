"""
tests/test_health.py -- Integration tests for GET /api/v1/health and the
storage-failure error path.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'error' and status 'degraded' when ping fails
  - No authentication required
  - A StoreError raised during request handling becomes 503 store_unavailable
"""

from __future__ import annotations

from vault.models import StoreError


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_client.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_health_degraded_when_database_unreachable(api_client, monkeypatch):
    monkeypatch.setattr(api_client.store, "ping", lambda: False)
    data = api_client.client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"


def test_store_error_maps_to_503(api_client, monkeypatch):
    """A point lookup failing mid-request surfaces as 503, not 500 or 401."""

    def broken_lookup(user_id):
        raise StoreError("get_by_id failed")

    monkeypatch.setattr(api_client.store, "get_by_id", broken_lookup)
    resp = api_client.client.get("/api/v1/auth/me", headers=api_client.auth(api_client.owner_token))
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "store_unavailable"
