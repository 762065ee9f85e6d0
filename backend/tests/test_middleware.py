"""Tests for request ID middleware, logging formatters and global exception handlers."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import logging

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.core.logger import ConsoleFormatter, JSONFormatter
from app.middleware import request_id_var


@pytest.fixture()
def client():
    return TestClient(app)


class TestRequestIdMiddleware:
    """Tests for X-Request-ID generation and propagation."""

    def test_health_response_has_request_id_header(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert "X-Request-ID" in resp.headers
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_each_request_gets_unique_id(self, client):
        r1 = client.get("/api/health")
        r2 = client.get("/api/health")
        assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]

    def test_client_supplied_id_is_reused(self, client):
        resp = client.get("/api/health", headers={"X-Request-ID": "trace-abc_123"})
        assert resp.headers["X-Request-ID"] == "trace-abc_123"

    def test_unsafe_client_id_is_replaced(self, client):
        resp = client.get("/api/health", headers={"X-Request-ID": "bad id with spaces!"})
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_error_response_includes_request_id_in_body(self, client):
        """404 error should include request_id in the JSON body."""
        resp = client.get("/api/nonexistent")
        assert resp.status_code == 404
        body = resp.json()
        assert "request_id" in body
        assert len(body["request_id"]) == 8

    def test_request_id_matches_header_and_body(self, client):
        """For error responses, header and body request_id should match."""
        resp = client.get("/api/nonexistent")
        assert resp.headers["X-Request-ID"] == resp.json()["request_id"]

    def test_app_error_body_carries_code_and_request_id(self, client):
        resp = client.post(
            "/api/process-cv",
            data={"name": "Jane", "position": "Engineer", "location": "Berlin"},
            files={"cv_file": ("cv.exe", b"MZ" + b"x" * 200, "application/octet-stream")},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "FILE_INVALID_TYPE"
        assert body["request_id"] == resp.headers["X-Request-ID"]


class TestFormatters:

    def _record(self, **extra):
        record = logging.LogRecord("cv-profile", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_request_id_and_extras(self):
        token = request_id_var.set("abcd1234")
        try:
            line = JSONFormatter().format(self._record(status=201, duration_ms=12))
        finally:
            request_id_var.reset(token)
        entry = json.loads(line)
        assert entry["message"] == "hello world"
        assert entry["request_id"] == "abcd1234"
        assert entry["status"] == 201
        assert entry["duration_ms"] == 12
        assert "method" not in entry

    def test_console_formatter_includes_request_id(self):
        token = request_id_var.set("abcd1234")
        try:
            line = ConsoleFormatter().format(self._record())
        finally:
            request_id_var.reset(token)
        assert "[abcd1234]: hello world" in line
