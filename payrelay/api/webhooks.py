"""
Stripe webhook endpoints.

- POST /webhook        - receive a delivery (Stripe signature verification, no other auth)
- GET  /webhook        - recent deliveries held in memory
- GET  /webhook/stats  - per-category dispatch counters

The POST handler reads the raw body itself: signature verification needs
the exact bytes Stripe signed, so no JSON body model is declared here.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from payrelay.api.deps import get_ingestion_service
from payrelay.schemas.webhook_events import WebhookAck, WebhookSnapshot, WebhookStats
from payrelay.services.ingestion import WebhookIngestionService
from payrelay.utils.errors import WebhookVerificationError
from payrelay.utils.webhook_signatures import SIGNATURE_HEADER

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.post("", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    service: WebhookIngestionService = Depends(get_ingestion_service),
):
    """Verify, buffer and acknowledge a Stripe event. Logging happens in the background."""
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        service.ingest(payload, signature)
    except WebhookVerificationError as e:
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)

    return WebhookAck(received=True)


@router.get("", response_model=WebhookSnapshot)
async def list_webhooks(
    service: WebhookIngestionService = Depends(get_ingestion_service),
):
    """Most recent deliveries, oldest first."""
    return service.snapshot()


@router.get("/stats", response_model=WebhookStats)
async def webhook_stats(
    service: WebhookIngestionService = Depends(get_ingestion_service),
):
    return service.stats()
