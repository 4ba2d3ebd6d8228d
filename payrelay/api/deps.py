"""
Request-scoped accessors for per-application services.
"""
from fastapi import HTTPException, Request

from payrelay.services.ingestion import WebhookIngestionService


def get_ingestion_service(request: Request) -> WebhookIngestionService:
    """The ingestion service built by the application lifespan."""
    service = getattr(request.app.state, "ingestion", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Webhook ingestion not initialized")
    return service
