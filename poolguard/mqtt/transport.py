"""MQTT-backed remote transport for queued writes."""

import logging
from typing import Any, Callable, Optional

import aiomqtt

from ..exceptions import TransportError
from ..models.queue import utcnow
from .client import MQTTClient

logger = logging.getLogger(__name__)


class MQTTTransport:
    """Deliver records to the remote store over MQTT.

    Each record is published as a JSON envelope to
    ``{prefix}/sync/{type}``:

        {"id": ..., "type": ..., "payload": {...}, "sent_at": ...}

    The client publishes at QoS 1 or 2, so a returned publish means the
    broker acknowledged it. Consumers deduplicate on ``id``.
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        on_connection_lost: Optional[Callable[[], None]] = None,
    ):
        """Initialize the transport.

        Args:
            mqtt_client: MQTT client (connected before sends are attempted)
            on_connection_lost: Called when a publish fails with an MQTT error
        """
        self.client = mqtt_client
        self._on_connection_lost = on_connection_lost

    def record_topic(self, item_type: str) -> str:
        """Topic a record type is published to."""
        return self.client.topic("sync", item_type)

    async def send(
        self,
        item_type: str,
        payload: dict[str, Any],
        idempotency_key: str,
    ) -> bool:
        """Publish one record.

        Returns:
            True once the broker acknowledged the publish

        Raises:
            TransportError: If the client is not connected
            MqttError: If the publish fails
        """
        if not self.client.connected:
            raise TransportError("Not connected to MQTT broker")

        envelope = {
            "id": idempotency_key,
            "type": item_type,
            "payload": payload,
            "sent_at": utcnow().isoformat(),
        }
        try:
            await self.client.publish_json(self.record_topic(item_type), envelope, retain=False)
        except aiomqtt.MqttError:
            logger.error("MQTT connection lost while delivering records")
            if self._on_connection_lost:
                self._on_connection_lost()
            raise
        logger.debug(f"Delivered {item_type} record {idempotency_key}")
        return True
