"""
PayRelay - Stripe webhook relay with a durable event log.
Main FastAPI application entry point.
"""
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from payrelay.config import Settings, get_settings
from payrelay.api.router import api_router
from payrelay.api.health import VERSION
from payrelay.services.event_buffer import RecentEventBuffer
from payrelay.services.ingestion import WebhookIngestionService
from payrelay.workers.webhook_log_writer import WebhookLogWriter
from payrelay.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    log_request,
    set_correlation_id,
)

logger = logging.getLogger("payrelay")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Per-request correlation ID (echoed in X-Correlation-ID) plus one access log line."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log_request(request.method, request.url.path, 500, _elapsed_ms(started))
            raise
        log_request(request.method, request.url.path, response.status_code, _elapsed_ms(started))
        response.headers["X-Correlation-ID"] = cid
        return response


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def build_ingestion_service(settings: Settings) -> WebhookIngestionService:
    """Wire the buffer and log writer from configuration."""
    writer = WebhookLogWriter(
        log_dir=Path(settings.webhook_log_dir),
        max_bytes=settings.webhook_log_max_bytes,
        queue_size=settings.webhook_log_queue_size,
    )
    return WebhookIngestionService(
        buffer=RecentEventBuffer(settings.webhook_buffer_size),
        log_writer=writer,
        webhook_secret=settings.stripe_webhook_secret,
        allow_unsigned=settings.allow_unsigned_webhooks,
        tolerance=settings.stripe_webhook_tolerance_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("PayRelay starting up (env=%s)", settings.app_env)

    if not settings.stripe_webhook_secret:
        logger.warning(
            "STRIPE_WEBHOOK_SECRET not set - webhooks will be accepted without "
            "signature verification. Configure the secret for production."
        )
    elif settings.allow_unsigned_webhooks and settings.app_env == "production":
        logger.warning(
            "ALLOW_UNSIGNED_WEBHOOKS=true in production - deliveries without a "
            "Stripe-Signature header will be accepted unverified."
        )

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    writer = app.state.ingestion.log_writer
    writer.start()

    yield

    logger.info("PayRelay shutting down - flushing webhook log (%d pending)", writer.pending)
    await writer.stop()
    logger.info("PayRelay shutdown complete")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="PayRelay",
        description="Stripe webhook relay with a durable event log",
        version=VERSION,
        lifespan=lifespan,
    )
    application.state.ingestion = build_ingestion_service(settings)

    # CORS for browser clients; /webhook reads its raw body and is unaffected
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type", "X-Correlation-ID", "Stripe-Signature",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "payrelay.main:app",
        host=settings.app_host,
        port=settings.app_port,
    )
