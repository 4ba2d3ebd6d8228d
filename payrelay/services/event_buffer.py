"""
Bounded in-memory buffer of recently received webhook events.

Keeps the last N events in arrival order for inspection via GET /webhook.
Repeated deliveries of the same event id are stored separately - Stripe
delivers at-least-once and nothing here collapses duplicates.
"""
import threading
from collections import deque

from payrelay.schemas.webhook_events import BufferedEventRecord

DEFAULT_CAPACITY = 100


class RecentEventBuffer:
    """FIFO ring buffer; the oldest record is evicted once capacity is exceeded."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: deque[BufferedEventRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def push(self, record: BufferedEventRecord) -> None:
        with self._lock:
            self._events.append(record)

    def snapshot(self) -> dict:
        """Return {"total": n, "events": [...]} without mutating the buffer."""
        with self._lock:
            events = list(self._events)
        return {"total": len(events), "events": events}

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
