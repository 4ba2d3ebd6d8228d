"""
Webhook ingestion - verify, buffer, log, dispatch, acknowledge.

Per-request flow:
    Received -> Verifying -> Rejected | Verified -> Buffered
             -> (log append submitted, not awaited) -> Dispatched -> Acknowledged

Only verification can fail a request. Everything after "verified" is
best-effort and invisible to the caller.
"""
import logging
from collections import Counter
from typing import Any, Optional

from payrelay.schemas.webhook_events import BufferedEventRecord, VerifiedEvent
from payrelay.services.event_buffer import RecentEventBuffer
from payrelay.utils.errors import SignatureMismatch, WebhookVerificationError
from payrelay.utils.webhook_signatures import (
    DEFAULT_TOLERANCE_SECONDS,
    TrustMode,
    resolve_trust_mode,
    verify_event,
)
from payrelay.workers.webhook_log_writer import WebhookLogWriter

logger = logging.getLogger(__name__)

UNHANDLED_CATEGORY = "unhandled"

KNOWN_EVENT_TYPES = (
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "checkout.session.completed",
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.payment_succeeded",
)


def _field(data: Any, *keys: str) -> Any:
    """Walk nested dict keys, returning None on any miss."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class WebhookIngestionService:
    """Owns the recent-event buffer and the log writer for one application instance."""

    def __init__(
        self,
        buffer: RecentEventBuffer,
        log_writer: WebhookLogWriter,
        webhook_secret: Optional[str] = None,
        allow_unsigned: bool = True,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self.buffer = buffer
        self.log_writer = log_writer
        self.webhook_secret = webhook_secret or None
        self.allow_unsigned = allow_unsigned
        self.tolerance = tolerance
        self.category_counts: Counter[str] = Counter()

    def ingest(self, raw_body: bytes, signature: Optional[str]) -> VerifiedEvent:
        """
        Run one delivery through the pipeline.

        Raises WebhookVerificationError (SignatureMismatch / MalformedPayload)
        before any state is touched; the caller maps it to a 400.
        """
        trust_mode = resolve_trust_mode(self.webhook_secret, signature)
        if trust_mode is TrustMode.UNVERIFIED and not self.allow_unsigned:
            logger.warning(
                "Rejecting unsigned webhook (ALLOW_UNSIGNED_WEBHOOKS=false)",
                extra={"trust_mode": trust_mode.value},
            )
            raise SignatureMismatch("Unsigned webhooks are not accepted")

        try:
            event = verify_event(
                raw_body, signature, self.webhook_secret, trust_mode, self.tolerance,
            )
        except WebhookVerificationError as e:
            logger.warning(
                "Webhook verification failed: %s", str(e),
                extra={"trust_mode": trust_mode.value},
            )
            raise

        if trust_mode is TrustMode.VERIFIED:
            logger.info(
                "Verified event from Stripe: %s", event.type,
                extra={"event_id": event.id, "event_type": event.type, "trust_mode": trust_mode.value},
            )
        else:
            logger.warning(
                "No signature verification (manual/local test): %s", event.type,
                extra={"event_id": event.id, "event_type": event.type, "trust_mode": trust_mode.value},
            )

        record = BufferedEventRecord.from_verified(event)
        self.buffer.push(record)
        self.log_writer.submit(event, received_at=record.created)
        self.dispatch(event)
        return event

    def dispatch(self, event: VerifiedEvent) -> str:
        """Record which category the event type falls into. Returns the category."""
        event_type = event.type
        data = event.data
        category = event_type if event_type in KNOWN_EVENT_TYPES else UNHANDLED_CATEGORY
        extra = {"event_id": event.id, "event_type": event_type, "category": category}

        if event_type == "payment_intent.succeeded":
            logger.info("Payment succeeded: %s", _field(data, "id"), extra=extra)
        elif event_type == "payment_intent.payment_failed":
            logger.warning(
                "Payment failed: %s", _field(data, "last_payment_error", "message"), extra=extra,
            )
        elif event_type == "checkout.session.completed":
            logger.info("Checkout session completed: %s", _field(data, "id"), extra=extra)
        elif event_type == "customer.subscription.created":
            logger.info("Subscription created: %s", _field(data, "id"), extra=extra)
        elif event_type == "customer.subscription.updated":
            logger.info("Subscription updated: %s", _field(data, "id"), extra=extra)
        elif event_type == "customer.subscription.deleted":
            logger.info("Subscription canceled: %s", _field(data, "id"), extra=extra)
        elif event_type == "invoice.payment_succeeded":
            logger.info("Payment succeeded for customer %s", _field(data, "customer"), extra=extra)
        else:
            logger.info("Unhandled event type: %s", event_type, extra=extra)

        self.category_counts[category] += 1
        return category

    def snapshot(self) -> dict:
        return self.buffer.snapshot()

    def stats(self) -> dict:
        categories = {
            name: self.category_counts.get(name, 0)
            for name in KNOWN_EVENT_TYPES + (UNHANDLED_CATEGORY,)
        }
        return {"categories": categories, "buffered": len(self.buffer)}
