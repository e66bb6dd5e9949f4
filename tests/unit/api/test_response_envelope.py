"""Tests for the response envelopes, trace ids and security headers."""

from unittest.mock import AsyncMock, Mock

from src.identity_broker.api.http.deps import get_item_cache_service
from src.identity_broker.core.services import ItemCacheService


class TestTraceId:
    def test_incoming_trace_id_is_echoed(self, client):
        response = client.get("/api/test/items", headers={"X-Trace-Id": "trace-abc"})

        assert response.headers["X-Trace-Id"] == "trace-abc"
        assert response.json()["trace_id"] == "trace-abc"

    def test_trace_id_is_generated(self, client):
        response = client.get("/api/test/items")

        trace_id = response.headers["X-Trace-Id"]
        assert len(trace_id) == 16
        assert response.json()["trace_id"] == trace_id

    def test_error_carries_trace_id(self, client):
        response = client.get("/api/test/items/404", headers={"X-Trace-Id": "trace-404"})

        assert response.headers["X-Trace-Id"] == "trace-404"
        assert response.json()["trace_id"] == "trace-404"


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "NOT_FOUND"
        assert body["path"] == "/api/nowhere"
        assert body["timestamp"]

    def test_method_not_allowed(self, client):
        response = client.patch("/api/test/items")

        assert response.status_code == 405
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"

    def test_unhandled_error_is_hidden(self, client, api_app):
        broken = Mock(spec=ItemCacheService)
        broken.get_all = AsyncMock(side_effect=RuntimeError("connection string leaked"))
        api_app.dependency_overrides[get_item_cache_service] = lambda: broken

        response = client.get("/api/test/items", headers={"X-Trace-Id": "trace-500"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert body["message"] == "An unexpected error occurred"
        assert body["trace_id"] == "trace-500"
        assert "leaked" not in response.text


class TestSecurityHeaders:
    def test_present_on_success(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
