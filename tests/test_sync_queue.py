"""Tests for the offline sync queue."""

import asyncio
import threading

import pytest
from poolguard.exceptions import QueueStorageError
from poolguard.models.queue import QueueItem
from poolguard.sync.queue import SyncQueue
from poolguard.sync.storage import MemoryQueueStorage

from conftest import FakeTransport


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


class BrokenStorage(MemoryQueueStorage):
    """Storage whose deletes always fail."""

    def delete(self, item_id):
        raise QueueStorageError("disk full")


class ThreadRecordingStorage(MemoryQueueStorage):
    """Storage that records which thread each write ran on."""

    def __init__(self):
        super().__init__()
        self.write_threads = []

    def update(self, item):
        self.write_threads.append(threading.get_ident())
        super().update(item)

    def delete(self, item_id):
        self.write_threads.append(threading.get_ident())
        super().delete(item_id)


class TestEnqueue:
    """Tests for adding items."""

    def test_enqueue_persists_item(self, queue, storage):
        """Test enqueued items are stored with zero attempts."""
        item_id = queue.enqueue("chemical_test", {"ph": 7.4})

        stored = storage.get(item_id)
        assert stored is not None
        assert stored.type == "chemical_test"
        assert stored.payload == {"ph": 7.4}
        assert stored.attempts == 0
        assert stored.last_error is None

    def test_generated_id(self, queue):
        """Test generated ids carry the type prefix and are unique."""
        first = queue.enqueue("chemical_test", {})
        second = queue.enqueue("chemical_test", {})

        assert first.startswith("chemical_test_")
        assert first != second

    def test_caller_supplied_id_is_idempotent(self, queue):
        """Test enqueueing the same id twice keeps one item."""
        assert queue.enqueue("chemical_test", {"a": 1}, item_id="test-1") == "test-1"
        assert queue.enqueue("chemical_test", {"a": 2}, item_id="test-1") == "test-1"

        stats = queue.get_queue_stats()
        assert stats.total == 1
        assert queue.get_pending_items()[0].payload == {"a": 1}

    def test_enqueue_does_not_send(self, queue, transport):
        """Test enqueue never touches the transport."""
        queue.enqueue("chemical_test", {})
        assert transport.sent == []

    def test_fifo_order(self, queue):
        """Test pending items come back oldest first."""
        ids = [queue.enqueue("chemical_test", {"n": n}) for n in range(5)]
        assert [item.id for item in queue.get_pending_items()] == ids


class TestQueueStats:
    """Tests for statistics and clearing."""

    def test_stats_by_type(self, queue):
        """Test counts per type."""
        queue.enqueue("chemical_test", {})
        queue.enqueue("chemical_test", {})
        queue.enqueue("delete_test", {"id": "x"})

        stats = queue.get_queue_stats()
        assert stats.total == 3
        assert stats.by_type == {"chemical_test": 2, "delete_test": 1}
        assert stats.dead_letters == 0

    def test_stats_empty(self, queue):
        """Test stats for an empty queue."""
        stats = queue.get_queue_stats()
        assert stats.total == 0
        assert stats.by_type == {}

    def test_clear_queue(self, queue):
        """Test clearing removes every item."""
        queue.enqueue("chemical_test", {})
        queue.enqueue("update_test", {})

        queue.clear_queue()

        assert queue.get_queue_stats().total == 0


class TestProcessPendingItems:
    """Tests for drain passes."""

    def test_empty_queue(self, queue):
        """Test draining an empty queue is a successful no-op."""
        result = run(queue.process_pending_items())

        assert result.success
        assert result.synced_items == 0
        assert result.failed_items == 0
        assert result.errors == []

    def test_all_items_synced(self, queue, transport):
        """Test acknowledged items are removed."""
        ids = [queue.enqueue("chemical_test", {"n": n}) for n in range(3)]

        result = run(queue.process_pending_items())

        assert result.success
        assert result.synced_items == 3
        assert result.failed_items == 0
        assert transport.sent_ids == ids
        assert queue.get_queue_stats().total == 0

    def test_idempotency_key_is_item_id(self, queue, transport):
        """Test the item id is passed as idempotency key with type and payload."""
        item_id = queue.enqueue("chemical_test", {"ph": 7.4})

        run(queue.process_pending_items())

        assert transport.sent == [("chemical_test", {"ph": 7.4}, item_id)]

    def test_repeated_drains(self, storage):
        """Test pass one syncs all, later passes are no-ops."""
        transport = FakeTransport(fail={"a"})
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="a")
        queue.enqueue("chemical_test", {}, item_id="b")

        offline = run(queue.process_pending_items())
        assert offline.failed_items == 1

        # Remote now accepts everything
        transport.fail.clear()
        first = run(queue.process_pending_items())
        assert first.failed_items == 0
        assert first.synced_items == 1
        assert queue.get_queue_stats().total == 0

        second = run(queue.process_pending_items())
        assert second.synced_items == 0
        assert second.failed_items == 0
        assert second.success

    def test_partial_failure(self, storage):
        """Test a rejected middle item does not block the others."""
        transport = FakeTransport(reject={"item-2"})
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        for item_id in ("item-1", "item-2", "item-3"):
            queue.enqueue("chemical_test", {}, item_id=item_id)

        result = run(queue.process_pending_items())

        assert not result.success
        assert result.synced_items == 2
        assert result.failed_items == 1
        assert [e.id for e in result.errors] == ["item-2"]
        assert transport.sent_ids == ["item-1", "item-2", "item-3"]

        stats = queue.get_queue_stats()
        assert stats.total == 1
        remaining = queue.get_pending_items()[0]
        assert remaining.id == "item-2"
        assert remaining.attempts == 1
        assert remaining.last_error == "Rejected by remote"
        assert remaining.last_attempt_at is not None

    def test_exception_recorded(self, storage):
        """Test transport exceptions become item errors."""
        transport = FakeTransport(fail={"x"})
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="x")

        result = run(queue.process_pending_items())

        assert result.errors[0].error == "network down for x"
        assert storage.get("x").last_error == "network down for x"

    def test_total_outage_reported_not_raised(self, storage):
        """Test every item failing still returns a well-formed result."""
        transport = FakeTransport(fail={"a", "b", "c"})
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        for item_id in ("a", "b", "c"):
            queue.enqueue("chemical_test", {}, item_id=item_id)

        result = run(queue.process_pending_items())

        assert result.failed_items == 3
        assert result.synced_items == 0
        assert queue.get_queue_stats().total == 3

    def test_attempts_accumulate(self, storage):
        """Test each failed pass increments attempts."""
        transport = FakeTransport(reject={"a"})
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="a")

        for _ in range(3):
            run(queue.process_pending_items())

        assert storage.get("a").attempts == 3

    def test_timeout_counts_as_failure(self, storage):
        """Test a hanging send times out and the pass continues."""
        transport = FakeTransport(hang={"slow"})
        queue = SyncQueue(storage, transport, send_timeout=0.05)
        queue.enqueue("chemical_test", {}, item_id="slow")
        queue.enqueue("chemical_test", {}, item_id="fast")

        result = run(queue.process_pending_items())

        assert result.synced_items == 1
        assert result.failed_items == 1
        assert "Timed out" in result.errors[0].error
        assert storage.get("slow").attempts == 1

    def test_no_transport(self, storage):
        """Test draining without a transport fails every item."""
        queue = SyncQueue(storage)
        queue.enqueue("chemical_test", {}, item_id="a")

        result = run(queue.process_pending_items())

        assert result.failed_items == 1
        assert storage.get("a").attempts == 1

    def test_storage_failure_propagates(self):
        """Test persistence errors are raised, not reported."""
        storage = BrokenStorage()
        queue = SyncQueue(storage, FakeTransport(), send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="a")

        with pytest.raises(QueueStorageError):
            run(queue.process_pending_items())

        assert not queue.is_syncing

    def test_last_result(self, queue):
        """Test the last completed result is kept."""
        queue.enqueue("chemical_test", {})
        result = run(queue.process_pending_items())

        assert queue.last_result == result


class TestConcurrency:
    """Tests for mutual exclusion and snapshot semantics."""

    def test_second_drain_rejected(self, storage):
        """Test a concurrent drain returns immediately without sending."""
        transport = FakeTransport(delay=0.05)
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        for item_id in ("a", "b"):
            queue.enqueue("chemical_test", {}, item_id=item_id)

        async def scenario():
            first = asyncio.create_task(queue.process_pending_items())
            await asyncio.sleep(0)
            assert queue.is_syncing
            second = await queue.process_pending_items()
            return await first, second

        first, second = run(scenario())

        assert second.in_progress
        assert not second.success
        assert second.synced_items == 0
        assert first.synced_items == 2
        assert transport.sent_ids == ["a", "b"]

    def test_enqueue_during_drain_waits_for_next_pass(self, storage):
        """Test items added mid-drain are not part of the running pass."""
        transport = FakeTransport(delay=0.02)
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="early")

        async def scenario():
            task = asyncio.create_task(queue.process_pending_items())
            await asyncio.sleep(0)
            queue.enqueue("chemical_test", {}, item_id="late")
            return await task

        result = run(scenario())

        assert result.synced_items == 1
        assert [item.id for item in queue.get_pending_items()] == ["late"]

        follow_up = run(queue.process_pending_items())
        assert follow_up.synced_items == 1

    def test_request_stop_leaves_items_pending(self, storage):
        """Test stopping mid-drain leaves untouched items pending."""
        transport = FakeTransport(delay=0.02)
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        for item_id in ("a", "b", "c"):
            queue.enqueue("chemical_test", {}, item_id=item_id)

        async def scenario():
            task = asyncio.create_task(queue.process_pending_items())
            await asyncio.sleep(0)
            queue.request_stop()
            return await task

        result = run(scenario())

        assert result.aborted
        assert result.synced_items == 1
        assert result.failed_items == 0
        remaining = queue.get_pending_items()
        assert [item.id for item in remaining] == ["b", "c"]
        assert all(item.attempts == 0 for item in remaining)

    def test_drain_writes_run_off_the_event_loop(self):
        """Test storage writes during a drain do not run on the loop thread."""
        storage = ThreadRecordingStorage()
        queue = SyncQueue(storage, FakeTransport(reject={"b"}), send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="a")
        queue.enqueue("chemical_test", {}, item_id="b")

        async def scenario():
            await queue.process_pending_items()
            return threading.get_ident()

        loop_thread = asyncio.run(scenario())

        assert len(storage.write_threads) == 2
        assert loop_thread not in storage.write_threads
        assert storage.get("b").attempts == 1

    def test_clear_during_drain(self, storage):
        """Test clearing while a failing send is in flight loses nothing else."""
        transport = FakeTransport(reject={"a"}, delay=0.02)
        queue = SyncQueue(storage, transport, send_timeout=1.0)
        queue.enqueue("chemical_test", {}, item_id="a")

        async def scenario():
            task = asyncio.create_task(queue.process_pending_items())
            await asyncio.sleep(0)
            queue.clear_queue()
            return await task

        result = run(scenario())

        assert result.failed_items == 1
        assert queue.get_queue_stats().total == 0


class TestDeadLetters:
    """Tests for the max-attempts policy."""

    def test_max_attempts_requires_dead_letter_storage(self, storage):
        """Test exhausted items always have somewhere to go."""
        with pytest.raises(ValueError):
            SyncQueue(storage, FakeTransport(), max_attempts=3)

    def test_invalid_settings(self, storage):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            SyncQueue(storage, send_timeout=0)

        with pytest.raises(ValueError):
            SyncQueue(storage, max_attempts=0, dead_letter_storage=MemoryQueueStorage())

    def test_item_dead_lettered_after_max_attempts(self, storage):
        """Test an item moves to the dead-letter store on its last attempt."""
        dead = MemoryQueueStorage()
        transport = FakeTransport(reject={"a"})
        queue = SyncQueue(
            storage, transport, send_timeout=1.0, max_attempts=2, dead_letter_storage=dead
        )
        queue.enqueue("chemical_test", {}, item_id="a")

        first = run(queue.process_pending_items())
        assert first.dead_lettered_items == 0
        assert queue.get_queue_stats().total == 1

        second = run(queue.process_pending_items())
        assert second.failed_items == 1
        assert second.dead_lettered_items == 1

        stats = queue.get_queue_stats()
        assert stats.total == 0
        assert stats.dead_letters == 1
        assert queue.get_dead_letters()[0].attempts == 2

    def test_requeue_dead_letters(self, storage):
        """Test dead-lettered items can be retried."""
        dead = MemoryQueueStorage()
        transport = FakeTransport(reject={"a"})
        queue = SyncQueue(
            storage, transport, send_timeout=1.0, max_attempts=1, dead_letter_storage=dead
        )
        queue.enqueue("chemical_test", {"ph": 7.0}, item_id="a")
        run(queue.process_pending_items())

        assert queue.requeue_dead_letters() == 1

        assert queue.get_dead_letters() == []
        item = queue.get_pending_items()[0]
        assert item.id == "a"
        assert item.attempts == 0
        assert item.payload == {"ph": 7.0}

        transport.reject.clear()
        result = run(queue.process_pending_items())
        assert result.synced_items == 1

    def test_no_dead_letters_without_policy(self, queue):
        """Test queues without max_attempts report no dead letters."""
        assert queue.get_dead_letters() == []
        assert queue.requeue_dead_letters() == 0


class TestQueueItem:
    """Tests for the QueueItem model."""

    def test_defaults(self):
        """Test default values."""
        item = QueueItem(id="a", type="chemical_test")

        assert item.attempts == 0
        assert item.payload == {}
        assert item.created_at.tzinfo is not None

    def test_validation(self):
        """Test empty ids and negative attempts are rejected."""
        with pytest.raises(ValueError):
            QueueItem(id="", type="chemical_test")

        with pytest.raises(ValueError):
            QueueItem(id="a", type="chemical_test", attempts=-1)
