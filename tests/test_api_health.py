"""
Tests for payrelay/api/health.py - liveness and readiness endpoints.
"""
import os
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from payrelay.api.health import VERSION, _check_log_directory, health_check, readiness_check


# ---------------------------------------------------------------------------
# GET /health - basic liveness
# ---------------------------------------------------------------------------


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_returns_healthy(self):
        """Liveness check always returns healthy with timestamp and version."""
        result = await health_check()
        assert result["status"] == "healthy"
        assert result["version"] == VERSION
        assert "timestamp" in result

    @pytest.mark.asyncio
    async def test_timestamp_is_utc_iso(self):
        result = await health_check()
        parsed = datetime.fromisoformat(result["timestamp"])
        assert parsed.tzinfo is not None


# ---------------------------------------------------------------------------
# GET /health/ready - log directory + writer
# ---------------------------------------------------------------------------


def _service(log_dir, running=True, pending=0):
    service = MagicMock()
    service.log_writer.log_dir = log_dir
    service.log_writer.running = running
    service.log_writer.pending = pending
    return service


class TestReadinessCheck:
    @pytest.mark.asyncio
    async def test_all_healthy_returns_ready(self, log_dir):
        log_dir.mkdir()
        result = await readiness_check(service=_service(log_dir))

        assert result["status"] == "ready"
        assert result["checks"] == {"log_directory": True, "log_writer": True}
        assert result["pending_log_entries"] == 0

    @pytest.mark.asyncio
    async def test_missing_directory_is_degraded(self, log_dir):
        result = await readiness_check(service=_service(log_dir))

        assert result["status"] == "degraded"
        assert result["checks"]["log_directory"] is False

    @pytest.mark.asyncio
    async def test_stopped_writer_is_degraded(self, log_dir):
        log_dir.mkdir()
        result = await readiness_check(service=_service(log_dir, running=False, pending=3))

        assert result["status"] == "degraded"
        assert result["checks"]["log_writer"] is False
        assert result["pending_log_entries"] == 3

    def test_ready_through_app_lifespan(self, make_app):
        """With the app started, the writer is running and the directory exists."""
        app = make_app()
        with TestClient(app) as client:
            result = client.get("/health/ready").json()
        assert result["status"] == "ready"

    def test_not_writable_directory(self, log_dir):
        log_dir.mkdir()
        with patch("payrelay.api.health.os.access", return_value=False):
            assert _check_log_directory(log_dir) is False

    def test_writable_directory(self, log_dir):
        log_dir.mkdir()
        assert _check_log_directory(log_dir) is os.access(log_dir, os.W_OK)
