"""Tests for health check endpoint."""

import pytest
from http.server import BaseHTTPRequestHandler
from api.health import handler
from tests.utils.helpers import call_handler


@pytest.mark.unit
def test_health_handler_class():
    """Test that handler is a BaseHTTPRequestHandler subclass."""
    assert issubclass(handler, BaseHTTPRequestHandler)


@pytest.mark.unit
def test_health_get_request():
    status, body = call_handler(handler, "GET", "/api/health")

    assert status == 200
    assert body["status"] == "ok"
    assert body["service"] == "estate-marketplace-backend"
    assert body["checks"] == {"supabase": True}
    assert body["paymentCurrency"] == "eur"


@pytest.mark.unit
def test_health_post_request():
    status, body = call_handler(handler, "POST", "/api/health")

    assert status == 200
    assert body["status"] == "ok"


@pytest.mark.unit
def test_health_degraded_without_supabase(monkeypatch):
    """Test a missing store configuration is reported, not hidden."""
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

    status, body = call_handler(handler, "GET", "/api/health")

    assert status == 503
    assert body["status"] == "degraded"
    assert body["checks"]["supabase"] is False
