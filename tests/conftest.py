"""Shared test fixtures."""

import asyncio

import pytest
from poolguard.sync.queue import SyncQueue
from poolguard.sync.storage import MemoryQueueStorage


class FakeTransport:
    """Records sends and answers according to per-id rules."""

    def __init__(self, reject=(), fail=(), hang=(), delay=0.0):
        self.reject = set(reject)
        self.fail = set(fail)
        self.hang = set(hang)
        self.delay = delay
        self.sent = []

    async def send(self, item_type, payload, idempotency_key):
        self.sent.append((item_type, payload, idempotency_key))
        if self.delay:
            await asyncio.sleep(self.delay)
        if idempotency_key in self.hang:
            await asyncio.sleep(3600)
        if idempotency_key in self.fail:
            raise ConnectionError(f"network down for {idempotency_key}")
        return idempotency_key not in self.reject

    @property
    def sent_ids(self):
        return [key for _, _, key in self.sent]


@pytest.fixture
def storage():
    """Empty in-memory queue storage."""
    return MemoryQueueStorage()


@pytest.fixture
def transport():
    """Transport that acknowledges everything."""
    return FakeTransport()


@pytest.fixture
def queue(storage, transport):
    """SyncQueue over in-memory storage and an accepting transport."""
    return SyncQueue(storage, transport, send_timeout=1.0)
