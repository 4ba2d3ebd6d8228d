"""
Health check endpoints - used by load balancers, Docker healthcheck, and monitoring.

- GET /health       - basic liveness (always 200 if app running)
- GET /health/ready - readiness check (log directory writable + log writer running)
"""
import logging
import os
from datetime import datetime, timezone
from fastapi import APIRouter, Depends

from payrelay.api.deps import get_ingestion_service
from payrelay.services.ingestion import WebhookIngestionService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }


@router.get("/health/ready")
async def readiness_check(
    service: WebhookIngestionService = Depends(get_ingestion_service),
):
    """
    Readiness check - the webhook log can be written and its writer task is alive.
    Webhooks are still acknowledged when degraded; only the durable log is affected.
    """
    writer = service.log_writer
    checks = {
        "log_directory": _check_log_directory(writer.log_dir),
        "log_writer": writer.running,
    }

    all_healthy = all(checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "checks": checks,
        "pending_log_entries": writer.pending,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _check_log_directory(log_dir) -> bool:
    """Directory exists and is writable."""
    try:
        return os.path.isdir(log_dir) and os.access(log_dir, os.W_OK)
    except OSError as e:
        logger.error("Log directory health check failed: %s", str(e))
        return False
