"""
Webhook event schemas - the verified event and the shapes derived from it.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from payrelay.utils.timestamps import utc_iso


class VerifiedEvent(BaseModel):
    """A Stripe event that passed verification (or was accepted unsigned)."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    type: Optional[str] = None
    data: Any = None  # data.object from the event
    has_data: bool = False
    raw: dict = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event: dict) -> "VerifiedEvent":
        envelope = event.get("data")
        has_data = isinstance(envelope, dict)
        event_id = event.get("id")
        event_type = event.get("type")
        return cls(
            id=event_id if isinstance(event_id, str) and event_id else None,
            type=event_type if isinstance(event_type, str) and event_type else None,
            data=envelope.get("object") if has_data else None,
            has_data=has_data,
            raw=event,
        )

    def log_payload(self) -> Any:
        """Payload persisted to the log: data.object, or the whole event when data is absent."""
        return self.data if self.has_data else self.raw


class BufferedEventRecord(BaseModel):
    """Snapshot of a received event kept in the recent-events buffer."""
    id: Optional[str] = None
    type: Optional[str] = None
    created: str = Field(default_factory=utc_iso)
    data: Any = None

    @classmethod
    def from_verified(cls, event: VerifiedEvent) -> "BufferedEventRecord":
        return cls(id=event.id, type=event.type, data=event.data)


class LogEntry(BaseModel):
    """One line of the NDJSON webhook log."""
    receivedAt: str = Field(default_factory=utc_iso)
    id: Optional[str] = None
    type: Optional[str] = None
    payload: Any = None

    @classmethod
    def from_verified(cls, event: VerifiedEvent, received_at: Optional[str] = None) -> "LogEntry":
        fields = {"id": event.id, "type": event.type, "payload": event.log_payload()}
        if received_at is not None:
            fields["receivedAt"] = received_at
        return cls(**fields)


class WebhookAck(BaseModel):
    received: bool = True


class WebhookSnapshot(BaseModel):
    total: int
    events: list[BufferedEventRecord]


class WebhookStats(BaseModel):
    categories: dict[str, int]
    buffered: int
