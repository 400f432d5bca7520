"""Offline write queue with drain-to-remote synchronization."""

import asyncio
import logging
import threading
import uuid
from collections import Counter
from datetime import timedelta
from typing import Any, Optional

from ..models.queue import QueueItem, QueueStats, SyncError, SyncResult, utcnow
from .storage import QueueStorage
from .transport import RemoteTransport

logger = logging.getLogger(__name__)


class SyncQueue:
    """Durable local buffer for writes that could not reach the remote store.

    Items stay in storage until the transport acknowledges them. A drain
    pass (process_pending_items) sends the backlog oldest first, one item
    at a time, and never stops at the first failure. Only one drain pass
    runs at a time; a second caller gets an ``in_progress`` result back
    immediately.

    Storage failures propagate as QueueStorageError. Transport failures
    are recorded per item in the SyncResult and never raised.
    """

    def __init__(
        self,
        storage: QueueStorage,
        transport: Optional[RemoteTransport] = None,
        *,
        send_timeout: float = 10.0,
        max_attempts: Optional[int] = None,
        dead_letter_storage: Optional[QueueStorage] = None,
    ):
        """Initialize the queue.

        Args:
            storage: Durable storage for pending items
            transport: Remote transport used by drain passes
            send_timeout: Per-item send timeout in seconds
            max_attempts: Failed attempts before an item is dead-lettered
                (None retries forever)
            dead_letter_storage: Where exhausted items are moved; required
                when max_attempts is set
        """
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        if max_attempts is not None:
            if max_attempts < 1:
                raise ValueError("max_attempts must be at least 1")
            if dead_letter_storage is None:
                raise ValueError("max_attempts requires a dead_letter_storage")

        self.storage = storage
        self.transport = transport
        self.send_timeout = send_timeout
        self.max_attempts = max_attempts
        self.dead_letter_storage = dead_letter_storage

        self._lock = asyncio.Lock()
        # Guards multi-step storage updates that run in worker threads
        self._storage_lock = threading.Lock()
        self._stop_requested = False
        self._last_created = None
        self._last_result: Optional[SyncResult] = None

    @property
    def is_syncing(self) -> bool:
        """Check if a drain pass is active."""
        return self._lock.locked()

    @property
    def last_result(self) -> Optional[SyncResult]:
        """Result of the most recent completed drain pass."""
        return self._last_result

    def set_transport(self, transport: Optional[RemoteTransport]) -> None:
        """Replace the remote transport (e.g. after reconnecting)."""
        self.transport = transport

    def _next_created_at(self):
        # Strictly increasing timestamps keep FIFO order within a process
        now = utcnow()
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    def enqueue(
        self,
        item_type: str,
        payload: dict[str, Any],
        item_id: Optional[str] = None,
    ) -> str:
        """Durably add a write to the queue.

        Never touches the network. Enqueueing an id that is already
        pending is a no-op.

        Args:
            item_type: Record type (e.g. "chemical_test")
            payload: Serializable record data
            item_id: Idempotency key; generated when omitted

        Returns:
            The item id
        """
        if item_id is None:
            item_id = f"{item_type}_{uuid.uuid4().hex}"
        elif self.storage.get(item_id) is not None:
            logger.info(f"Item {item_id} already queued, not adding again")
            return item_id

        item = QueueItem(
            id=item_id,
            type=item_type,
            payload=payload,
            created_at=self._next_created_at(),
        )
        self.storage.append(item)
        logger.info(f"Item added to queue: {item_id} ({item_type})")
        return item_id

    def get_pending_items(self) -> list[QueueItem]:
        """Get all pending items in drain order (oldest first)."""
        return sorted(self.storage.list_items(), key=lambda item: item.sort_key)

    def get_queue_stats(self) -> QueueStats:
        """Compute statistics from the persisted queue state."""
        items = self.storage.list_items()
        by_type = Counter(item.type for item in items)
        dead_letters = (
            len(self.dead_letter_storage.list_items())
            if self.dead_letter_storage is not None
            else 0
        )
        return QueueStats(total=len(items), by_type=dict(by_type), dead_letters=dead_letters)

    def clear_queue(self) -> None:
        """Remove every pending item. Irreversible."""
        with self._storage_lock:
            self.storage.clear()
        logger.warning("Queue cleared")

    def request_stop(self) -> None:
        """Stop sending further items in the active drain pass.

        Items not yet attempted stay pending for the next pass.
        """
        if self.is_syncing:
            logger.info("Stop requested for active sync")
            self._stop_requested = True

    def get_dead_letters(self) -> list[QueueItem]:
        """Get items that exhausted their attempts."""
        if self.dead_letter_storage is None:
            return []
        return sorted(self.dead_letter_storage.list_items(), key=lambda item: item.sort_key)

    def requeue_dead_letters(self) -> int:
        """Move every dead-lettered item back to the pending queue.

        Requeued items start again with zero attempts.

        Returns:
            Number of items requeued
        """
        count = 0
        with self._storage_lock:
            for item in self.get_dead_letters():
                revived = item.model_copy(update={"attempts": 0})
                if self.storage.get(item.id) is None:
                    self.storage.append(revived)
                self.dead_letter_storage.delete(item.id)
                count += 1

        if count:
            logger.info(f"Requeued {count} dead-lettered items")
        return count

    async def process_pending_items(self) -> SyncResult:
        """Drain the queue against the remote transport.

        Sends a snapshot of the pending items taken at the start of the
        pass. Items enqueued meanwhile wait for the next pass.

        Returns:
            SyncResult for this pass; ``in_progress`` is set when another
            pass was already running
        """
        if self._lock.locked():
            logger.info("Sync already in progress")
            return SyncResult.already_running()

        async with self._lock:
            self._stop_requested = False
            result = await self._drain()
            self._last_result = result
            return result

    async def _drain(self) -> SyncResult:
        result = SyncResult()
        # Snapshot on the loop thread so later enqueues wait for the next pass
        pending = self.get_pending_items()

        if not pending:
            logger.debug("No pending items to sync")
            return result

        logger.info(f"Starting sync of {len(pending)} items")

        for item in pending:
            if self._stop_requested:
                logger.info("Sync stopped, remaining items left pending")
                result.aborted = True
                break

            error = await self._send(item)

            if error is None:
                await asyncio.to_thread(self.storage.delete, item.id)
                result.synced_items += 1
                logger.info(f"Synced item: {item.id}")
                continue

            result.failed_items += 1
            result.errors.append(SyncError(id=item.id, error=error))
            if await asyncio.to_thread(self._record_failure, item.id, error):
                result.dead_lettered_items += 1

        result.success = result.failed_items == 0

        logger.info(
            f"Sync complete: {result.synced_items} synced, "
            f"{result.failed_items} failed"
        )
        return result

    async def _send(self, item: QueueItem) -> Optional[str]:
        """Attempt one send; return None on acknowledgement, else an error."""
        if self.transport is None:
            return "No remote transport available"

        try:
            acked = await asyncio.wait_for(
                self.transport.send(item.type, item.payload, item.id),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending item {item.id}")
            return f"Timed out after {self.send_timeout}s"
        except Exception as e:
            logger.error(f"Failed to sync item {item.id}: {e}")
            return str(e) or type(e).__name__

        if not acked:
            logger.warning(f"Remote rejected item {item.id}")
            return "Rejected by remote"
        return None

    def _record_failure(self, item_id: str, error: str) -> bool:
        """Persist a failed attempt.

        Runs in a worker thread so file storage does not block the loop.

        Returns:
            True if the item was moved to the dead-letter store
        """
        with self._storage_lock:
            return self._record_failure_locked(item_id, error)

    def _record_failure_locked(self, item_id: str, error: str) -> bool:
        # Re-read: the queue may have been cleared while the send was in flight
        current = self.storage.get(item_id)
        if current is None:
            logger.info(f"Item {item_id} removed during sync, not recording failure")
            return False

        updated = current.model_copy(
            update={
                "attempts": current.attempts + 1,
                "last_error": error,
                "last_attempt_at": utcnow(),
            }
        )

        if self.max_attempts is not None and updated.attempts >= self.max_attempts:
            # Copy to the dead-letter store before deleting so a crash
            # in between duplicates the item instead of losing it
            if self.dead_letter_storage.get(item_id) is None:
                self.dead_letter_storage.append(updated)
            else:
                self.dead_letter_storage.update(updated)
            self.storage.delete(item_id)
            logger.warning(
                f"Item {item_id} dead-lettered after {updated.attempts} attempts: {error}"
            )
            return True

        self.storage.update(updated)
        return False
