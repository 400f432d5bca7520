"""Pydantic data models for the offline write queue."""

from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class QueueItem(BaseModel):
    """A write buffered locally until the remote store acknowledges it."""

    id: str = Field(
        ...,
        min_length=1,
        description="Idempotency key, stable across retries"
    )
    type: str = Field(
        ...,
        min_length=1,
        description="Record type (e.g. chemical_test)"
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque serializable record data"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the item was enqueued"
    )
    attempts: int = Field(
        default=0,
        ge=0,
        description="Number of failed send attempts"
    )
    last_error: Optional[str] = Field(
        default=None,
        description="Error from the most recent failed attempt"
    )
    last_attempt_at: Optional[datetime] = Field(
        default=None,
        description="When the most recent failed attempt happened"
    )

    @property
    def sort_key(self) -> tuple:
        """FIFO order: creation time, then id."""
        return (self.created_at, self.id)


class QueueStats(BaseModel):
    """Read-only projection of the pending queue."""

    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    dead_letters: int = 0


class SyncError(BaseModel):
    """A single item failure within a drain pass."""

    id: str
    error: str


class SyncResult(BaseModel):
    """Outcome of one drain pass."""

    success: bool = True
    synced_items: int = 0
    failed_items: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    dead_lettered_items: int = Field(
        default=0,
        description="Failed items moved to the dead-letter store this pass"
    )
    in_progress: bool = Field(
        default=False,
        description="True if the pass was refused because another was active"
    )
    aborted: bool = Field(
        default=False,
        description="True if the pass stopped early on request"
    )
    offline: bool = Field(
        default=False,
        description="True if no pass ran because the remote store was unreachable"
    )

    @classmethod
    def already_running(cls) -> "SyncResult":
        """Result returned when a drain is refused."""
        return cls(success=False, in_progress=True)

    @classmethod
    def not_connected(cls) -> "SyncResult":
        """Result returned when the remote store is unreachable."""
        return cls(success=False, offline=True)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return self.model_dump(mode="json")
