"""
Webhook log writer - the single task that owns every log file mutation.

Request handlers call submit() and return immediately; this worker drains
the queue one entry at a time and runs rotate + append in a worker thread,
so rotation can never race with a concurrent append.
"""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from payrelay.schemas.webhook_events import VerifiedEvent
from payrelay.services import webhook_log

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 5.0


class WebhookLogWriter:
    """Queue-fed background writer for the NDJSON webhook log."""

    def __init__(
        self,
        log_dir: Path,
        max_bytes: int = webhook_log.DEFAULT_MAX_LOG_BYTES,
        queue_size: int = 1000,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.max_bytes = max_bytes
        self._queue: asyncio.Queue[tuple[VerifiedEvent, Optional[str]]] = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self.written = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the writer task on the running loop. Idempotent."""
        if self.running:
            return
        webhook_log.ensure_log_directory(self.log_dir)
        self._task = asyncio.create_task(self._run(), name="webhook-log-writer")
        self._task.add_done_callback(self._on_done)
        logger.info("Webhook log writer started (dir=%s)", self.log_dir)

    def submit(self, event: VerifiedEvent, received_at: Optional[str] = None) -> bool:
        """
        Queue event for logging without waiting. Returns False if the queue is full.

        received_at is carried through the queue so the log line records when
        the request arrived, not when the writer got to it.
        """
        try:
            self._queue.put_nowait((event, received_at))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Webhook log queue full - dropping log entry",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return False

    async def drain(self) -> None:
        """Wait until every queued entry has been processed."""
        await self._queue.join()

    async def stop(self, timeout: float = SHUTDOWN_DRAIN_SECONDS) -> None:
        """Flush outstanding entries (bounded wait), then cancel the task."""
        if self._task is None:
            return
        if self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Webhook log writer stopping with %d entries unwritten", self._queue.qsize(),
                )
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info(
            "Webhook log writer stopped (written=%d failed=%d dropped=%d)",
            self.written, self.failed, self.dropped,
        )

    async def _run(self) -> None:
        while True:
            event, received_at = await self._queue.get()
            try:
                ok = await asyncio.to_thread(
                    webhook_log.append_log, event, self.log_dir, self.max_bytes, received_at,
                )
                if ok:
                    self.written += 1
                else:
                    self.failed += 1
            except Exception as e:
                self.failed += 1
                logger.error("Webhook log writer error: %s", str(e), exc_info=True)
            finally:
                self._queue.task_done()

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Webhook log writer exited unexpectedly: %s", str(exc))
