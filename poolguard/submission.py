"""Chemical test submission with offline fallback.

Validates a set of readings, stamps the record with its compliance
status, and delivers it to the remote store. When the remote cannot
take it, the record is handed to the sync queue under the same id so
a later drain delivers it exactly once from the caller's view.
"""

import asyncio
import logging
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from .compliance import generate_compliance_report, resolve_chemical, should_close_pool
from .compliance.engine import Readings
from .models.compliance import ClosureDecision, ComplianceReport, ComplianceStatus
from .models.queue import utcnow
from .sync.queue import SyncQueue
from .sync.transport import RemoteTransport

logger = logging.getLogger(__name__)

CHEMICAL_TEST = "chemical_test"


class SubmissionOutcome(BaseModel):
    """Result of submitting one chemical test."""

    record_id: str = Field(..., description="Record id, also the idempotency key")
    status: ComplianceStatus = Field(..., description="Compliance status stamped on the record")
    delivered: bool = Field(default=False, description="Remote store acknowledged the record")
    queued: bool = Field(default=False, description="Record was buffered in the offline queue")
    error: Optional[str] = Field(default=None, description="Why direct delivery failed")
    report: ComplianceReport
    closure: ClosureDecision

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return self.model_dump(mode="json")


class ChemicalTestSubmitter:
    """Record chemical tests, falling back to the offline queue."""

    def __init__(self, queue: SyncQueue, transport: Optional[RemoteTransport] = None):
        """Initialize the submitter.

        Args:
            queue: Offline queue used when delivery fails
            transport: Remote transport for direct delivery (None = always queue)
        """
        self.queue = queue
        self.transport = transport

    def build_record(
        self,
        readings: Readings,
        pool_id: str,
        technician: Optional[str] = None,
        notes: Optional[str] = None,
        report: Optional[ComplianceReport] = None,
    ) -> dict:
        """Build the record payload for a set of readings.

        Args:
            readings: Mapping of chemical type to measured value
            pool_id: Pool the test was taken at
            technician: Who took the test (optional)
            notes: Free-form notes (optional)
            report: Precomputed compliance report for the readings

        Returns:
            Serializable record dictionary
        """
        if report is None:
            report = generate_compliance_report(readings)

        normalized = {
            resolve_chemical(key).value: value
            for key, value in readings.items()
            if value is not None
        }

        return {
            "id": f"{CHEMICAL_TEST}_{uuid.uuid4().hex}",
            "pool_id": pool_id,
            "readings": normalized,
            "status": report.overall.value,
            "requires_closure": report.overall == ComplianceStatus.EMERGENCY,
            "required_actions": list(report.required_actions),
            "technician": technician,
            "notes": notes,
            "recorded_at": utcnow().isoformat(),
        }

    async def submit(
        self,
        readings: Readings,
        pool_id: str,
        technician: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SubmissionOutcome:
        """Validate and record a chemical test.

        Args:
            readings: Mapping of chemical type to measured value
            pool_id: Pool the test was taken at
            technician: Who took the test (optional)
            notes: Free-form notes (optional)

        Returns:
            SubmissionOutcome describing where the record went
        """
        report = generate_compliance_report(readings)
        closure = should_close_pool(readings)
        record = self.build_record(readings, pool_id, technician, notes, report=report)
        record_id = record["id"]

        if closure.should_close:
            logger.warning(f"Pool {pool_id} must be closed: {'; '.join(closure.reasons)}")

        error = None
        if self.transport is None:
            error = "No remote transport available"
        else:
            try:
                acked = await asyncio.wait_for(
                    self.transport.send(CHEMICAL_TEST, record, record_id),
                    timeout=self.queue.send_timeout,
                )
                if acked:
                    logger.info(f"Delivered chemical test {record_id} ({report.overall})")
                    return SubmissionOutcome(
                        record_id=record_id,
                        status=report.overall,
                        delivered=True,
                        report=report,
                        closure=closure,
                    )
                error = "Rejected by remote"
            except Exception as e:
                error = str(e) or type(e).__name__

        logger.info(f"Queueing chemical test {record_id} for later sync: {error}")
        self.queue.enqueue(CHEMICAL_TEST, record, item_id=record_id)

        return SubmissionOutcome(
            record_id=record_id,
            status=report.overall,
            queued=True,
            error=error,
            report=report,
            closure=closure,
        )
