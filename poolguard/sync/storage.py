"""Persistence backends for queued writes.

The queue talks to storage only through the QueueStorage protocol, so
any durable key-value or list store can back it. Two backends ship
here: an in-memory store for tests and a JSON file store.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import ValidationError

from ..exceptions import QueueStorageError
from ..models.queue import QueueItem

logger = logging.getLogger(__name__)


class QueueStorage(Protocol):
    """Durable storage for queue items.

    Every mutating method must be durable by the time it returns.
    Implementations raise QueueStorageError when the store itself
    cannot be read or written.
    """

    def append(self, item: QueueItem) -> None:
        ...

    def get(self, item_id: str) -> Optional[QueueItem]:
        ...

    def list_items(self) -> list[QueueItem]:
        ...

    def update(self, item: QueueItem) -> None:
        ...

    def delete(self, item_id: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryQueueStorage:
    """In-memory queue storage.

    Not durable across restarts; intended for tests and for running
    without a writable filesystem.
    """

    def __init__(self):
        self._items: dict[str, QueueItem] = {}
        self._lock = threading.Lock()

    def append(self, item: QueueItem) -> None:
        with self._lock:
            if item.id in self._items:
                raise QueueStorageError(f"Duplicate queue item id: {item.id}")
            self._items[item.id] = item.model_copy(deep=True)

    def get(self, item_id: str) -> Optional[QueueItem]:
        with self._lock:
            item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    def list_items(self) -> list[QueueItem]:
        with self._lock:
            items = list(self._items.values())
        return [item.model_copy(deep=True) for item in items]

    def update(self, item: QueueItem) -> None:
        with self._lock:
            if item.id not in self._items:
                raise QueueStorageError(f"Queue item not found: {item.id}")
            self._items[item.id] = item.model_copy(deep=True)

    def delete(self, item_id: str) -> None:
        with self._lock:
            self._items.pop(item_id, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class JsonFileQueueStorage:
    """Queue storage backed by a single JSON file.

    File layout:
        {"version": 1, "items": [<QueueItem>, ...]}

    Each write goes to a temporary file in the same directory, is
    fsynced and then atomically replaces the original, so a crash
    leaves either the old or the new contents, never a partial file.
    """

    FORMAT_VERSION = 1

    def __init__(self, path: Union[str, Path]):
        """Initialize the store.

        Args:
            path: JSON file path (created on first write)
        """
        self.path = Path(path)
        # Serializes read-modify-write cycles across the loop and worker threads
        self._lock = threading.RLock()

    def _read(self) -> dict[str, QueueItem]:
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise QueueStorageError(f"Cannot read queue file {self.path}: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("items"), list):
            raise QueueStorageError(f"Malformed queue file {self.path}")

        try:
            items = [QueueItem.model_validate(entry) for entry in raw["items"]]
        except ValidationError as e:
            raise QueueStorageError(f"Invalid queue item in {self.path}: {e}") from e

        return {item.id: item for item in items}

    def _write(self, items: dict[str, QueueItem]) -> None:
        data = {
            "version": self.FORMAT_VERSION,
            "items": [item.model_dump(mode="json") for item in items.values()],
        }

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise QueueStorageError(f"Cannot write queue file {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(f"Wrote {len(items)} queue items to {self.path}")

    def append(self, item: QueueItem) -> None:
        with self._lock:
            items = self._read()
            if item.id in items:
                raise QueueStorageError(f"Duplicate queue item id: {item.id}")
            items[item.id] = item
            self._write(items)

    def get(self, item_id: str) -> Optional[QueueItem]:
        with self._lock:
            return self._read().get(item_id)

    def list_items(self) -> list[QueueItem]:
        with self._lock:
            return list(self._read().values())

    def update(self, item: QueueItem) -> None:
        with self._lock:
            items = self._read()
            if item.id not in items:
                raise QueueStorageError(f"Queue item not found: {item.id}")
            items[item.id] = item
            self._write(items)

    def delete(self, item_id: str) -> None:
        with self._lock:
            items = self._read()
            if items.pop(item_id, None) is not None:
                self._write(items)

    def clear(self) -> None:
        with self._lock:
            self._write({})
