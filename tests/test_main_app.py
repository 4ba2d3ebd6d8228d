"""
Tests for payrelay/main.py - FastAPI app creation, middleware, lifespan, and CORS.
"""
import logging

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from payrelay.main import (
    CorrelationIdMiddleware,
    build_ingestion_service,
    create_app,
    lifespan,
)
from payrelay.services.ingestion import WebhookIngestionService
from payrelay.utils.logging import ACCESS_LOGGER_NAME


# ---------------------------------------------------------------------------
# create_app - application factory
# ---------------------------------------------------------------------------


class TestCreateApp:
    def test_returns_fastapi_instance(self, make_app):
        assert isinstance(make_app(), FastAPI)

    def test_app_metadata(self, make_app):
        app = make_app()
        assert app.title == "PayRelay"
        assert app.version == "1.0.0"

    def test_configures_structured_logging(self, make_settings):
        """create_app calls configure_structured_logging with the config log level."""
        with (
            patch("payrelay.main.get_settings", return_value=make_settings(log_level="DEBUG")),
            patch("payrelay.main.configure_structured_logging") as mock_log,
        ):
            create_app()

        mock_log.assert_called_once_with("DEBUG")

    def test_includes_routes(self, make_app):
        route_paths = [route.path for route in make_app().routes]
        for path in ("/webhook", "/webhook/stats", "/config", "/health", "/health/ready"):
            assert path in route_paths

    def test_each_app_owns_its_service(self, make_app):
        """Buffers are per-instance, not module globals."""
        first, second = make_app(), make_app()
        assert isinstance(first.state.ingestion, WebhookIngestionService)
        assert first.state.ingestion is not second.state.ingestion
        assert first.state.ingestion.buffer is not second.state.ingestion.buffer


class TestBuildIngestionService:
    def test_wires_settings(self, make_settings, log_dir):
        settings = make_settings(
            stripe_webhook_secret="whsec_x",
            allow_unsigned_webhooks=False,
            webhook_buffer_size=7,
            webhook_log_max_bytes=1234,
            stripe_webhook_tolerance_seconds=60,
        )

        service = build_ingestion_service(settings)

        assert service.webhook_secret == "whsec_x"
        assert service.allow_unsigned is False
        assert service.tolerance == 60
        assert service.buffer.capacity == 7
        assert service.log_writer.max_bytes == 1234
        assert service.log_writer.log_dir == log_dir


# ---------------------------------------------------------------------------
# CorrelationIdMiddleware
# ---------------------------------------------------------------------------


class TestCorrelationIdMiddleware:
    def test_generates_correlation_id_when_missing(self, make_app):
        client = TestClient(make_app(), raise_server_exceptions=False)
        response = client.get("/health")

        cid = response.headers["x-correlation-id"]
        assert len(cid) == 32  # UUID4 hex is 32 chars

    def test_uses_existing_correlation_id(self, make_app):
        client = TestClient(make_app(), raise_server_exceptions=False)
        custom_cid = "abc123def456789012345678abcdef00"
        response = client.get("/health", headers={"X-Correlation-ID": custom_cid})

        assert response.headers["x-correlation-id"] == custom_cid

    def test_writes_access_line_per_request(self, make_app, caplog):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER_NAME)
        client = TestClient(make_app(), raise_server_exceptions=False)
        client.get("/health")

        access = [r for r in caplog.records if r.name == ACCESS_LOGGER_NAME]
        assert len(access) == 1
        assert access[0].http_method == "GET"
        assert access[0].http_path == "/health"
        assert access[0].http_status == 200
        assert access[0].duration_ms >= 0

    def test_rejected_webhook_access_line_is_warning(self, make_app, caplog):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER_NAME)
        with TestClient(make_app()) as client:
            client.post("/webhook", content=b"{oops", headers={"Content-Type": "application/json"})

        access = [r for r in caplog.records if r.name == ACCESS_LOGGER_NAME]
        assert access[-1].http_status == 400
        assert access[-1].levelno == logging.WARNING

    def test_middleware_class_is_installed(self, make_app):
        app = make_app()
        assert any(m.cls is CorrelationIdMiddleware for m in app.user_middleware)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------


class TestCorsMiddleware:
    def test_allows_localhost_origins(self, make_app):
        client = TestClient(make_app(), raise_server_exceptions=False)
        response = client.options(
            "/health",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert "access-control-allow-origin" in response.headers

    def test_allows_configured_origin(self, make_app):
        app = make_app(allowed_origins="https://shop.example.com")
        client = TestClient(app, raise_server_exceptions=False)
        response = client.options(
            "/config",
            headers={
                "Origin": "https://shop.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.headers["access-control-allow-origin"] == "https://shop.example.com"


# ---------------------------------------------------------------------------
# lifespan - startup and shutdown
# ---------------------------------------------------------------------------


def _mock_app():
    app = MagicMock()
    app.state.ingestion.log_writer.pending = 0
    app.state.ingestion.log_writer.stop = AsyncMock()
    return app


class TestLifespan:
    @pytest.mark.asyncio
    async def test_starts_and_stops_log_writer(self, make_settings):
        app = _mock_app()
        writer = app.state.ingestion.log_writer

        with patch("payrelay.main.get_settings", return_value=make_settings()):
            async with lifespan(app):
                writer.start.assert_called_once()
                writer.stop.assert_not_called()

        writer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_warns_when_webhook_secret_missing(self, make_settings):
        with (
            patch("payrelay.main.get_settings", return_value=make_settings(stripe_webhook_secret="")),
            patch("payrelay.main.logger") as mock_logger,
        ):
            async with lifespan(_mock_app()):
                pass

        warning_calls = [
            c for c in mock_logger.warning.call_args_list
            if "STRIPE_WEBHOOK_SECRET" in str(c)
        ]
        assert len(warning_calls) == 1

    @pytest.mark.asyncio
    async def test_warns_on_unsigned_in_production(self, make_settings):
        settings = make_settings(
            app_env="production", stripe_webhook_secret="whsec_x", allow_unsigned_webhooks=True,
        )
        with (
            patch("payrelay.main.get_settings", return_value=settings),
            patch("payrelay.main.logger") as mock_logger,
        ):
            async with lifespan(_mock_app()):
                pass

        assert any("ALLOW_UNSIGNED_WEBHOOKS" in str(c) for c in mock_logger.warning.call_args_list)

    @pytest.mark.asyncio
    async def test_sentry_failure_does_not_block_startup(self, make_settings):
        settings = make_settings(sentry_dsn="https://key@sentry.invalid/1")
        with (
            patch("payrelay.main.get_settings", return_value=settings),
            patch("sentry_sdk.init", side_effect=Exception("bad dsn")),
            patch("payrelay.main.logger") as mock_logger,
        ):
            async with lifespan(_mock_app()):
                pass

        assert any("Sentry initialization failed" in str(c) for c in mock_logger.warning.call_args_list)
