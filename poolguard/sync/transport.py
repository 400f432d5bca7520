"""Remote transport interface used by the sync queue."""

from typing import Any, Protocol


class RemoteTransport(Protocol):
    """Delivers a queued write to the remote store.

    The remote side must treat ``idempotency_key`` as a deduplication
    key: the queue delivers at least once, so the same key can arrive
    more than once.

    Returns True when the remote acknowledges the write as durably
    applied and False when it rejects it. Any raised exception counts
    as a failed attempt.
    """

    async def send(
        self,
        item_type: str,
        payload: dict[str, Any],
        idempotency_key: str,
    ) -> bool:
        ...
