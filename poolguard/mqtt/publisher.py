"""Status publisher for MQTT."""

import logging
from typing import Optional

from ..config import MQTTConfig
from ..models.compliance import ClosureDecision, ComplianceReport
from ..models.queue import QueueStats, SyncResult
from .client import MQTTClient

logger = logging.getLogger(__name__)


class StatusPublisher:
    """Publisher for compliance and sync status to MQTT.

    Publishes both individual values and complete JSON objects for
    dashboards and connectivity indicators to consume.
    """

    def __init__(self, mqtt_client: MQTTClient, config: MQTTConfig):
        """Initialize the status publisher.

        Args:
            mqtt_client: Connected MQTT client
            config: MQTT configuration
        """
        self.client = mqtt_client
        self.config = config
        self._last_sync_result: Optional[SyncResult] = None

    def _topic(self, *path: str) -> str:
        """Build a status topic.

        Args:
            path: Topic path components

        Returns:
            Full topic string
        """
        return f"{self.config.topic_prefix}/{'/'.join(path)}"

    async def publish_compliance(
        self,
        pool_id: str,
        report: ComplianceReport,
        closure: ClosureDecision,
    ) -> None:
        """Publish the latest compliance verdict for a pool.

        Args:
            pool_id: Pool identifier
            report: Compliance report for the latest readings
            closure: Closure decision for the same readings
        """
        await self.client.publish_json(
            self._topic("pools", pool_id, "compliance"),
            report.to_dict(),
        )
        await self.client.publish(self._topic("pools", pool_id, "overall"), str(report.overall))
        await self.client.publish(self._topic("pools", pool_id, "closed"), closure.should_close)

        for detail in report.details:
            await self.client.publish(
                self._topic("pools", pool_id, "chemicals", str(detail.chemical), "status"),
                str(detail.status),
            )

        if closure.should_close:
            logger.warning(f"Pool {pool_id} requires closure: {'; '.join(closure.reasons)}")

    async def publish_sync_result(self, result: SyncResult) -> None:
        """Publish the outcome of a drain pass."""
        await self.client.publish_json(self._topic("queue", "last_sync"), result.to_dict())
        self._last_sync_result = result
        logger.debug("Published sync result")

    async def publish_queue_stats(self, stats: QueueStats) -> None:
        """Publish pending queue statistics."""
        await self.client.publish_json(self._topic("queue", "stats"), stats.model_dump())
        await self.client.publish(self._topic("queue", "pending"), stats.total)

    @property
    def last_sync_result(self) -> Optional[SyncResult]:
        """Get the last published sync result."""
        return self._last_sync_result
