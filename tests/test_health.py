"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status "ok" and an ISO-8601 UTC timestamp
  - No authentication required
  - Hardening headers present on public responses too
"""

from __future__ import annotations

from datetime import datetime


def test_health_returns_ok_with_timestamp(api):
    resp = api.client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    parsed = datetime.fromisoformat(data["timestamp"])
    assert parsed.utcoffset() is not None
    assert parsed.utcoffset().total_seconds() == 0


def test_health_no_auth_required(api):
    """Health endpoint is accessible without any authentication headers."""
    resp = api.client.get("/health", headers={})
    assert resp.status_code == 200


def test_health_ignores_garbage_token(api):
    """A public route never inspects the Authorization header."""
    resp = api.client.get("/health", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 200


def test_health_has_security_headers(api):
    resp = api.client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
