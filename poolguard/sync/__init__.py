"""Offline write queue and synchronization."""

from .storage import QueueStorage, MemoryQueueStorage, JsonFileQueueStorage
from .transport import RemoteTransport
from .queue import SyncQueue

__all__ = [
    "QueueStorage",
    "MemoryQueueStorage",
    "JsonFileQueueStorage",
    "RemoteTransport",
    "SyncQueue",
]
