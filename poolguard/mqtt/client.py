"""Async MQTT client wrapper."""

import asyncio
import json
import logging
from typing import Optional, Any

import aiomqtt

from ..config import MQTTConfig

logger = logging.getLogger(__name__)


class MQTTClient:
    """Async MQTT client for the remote record store.

    Wraps aiomqtt with connection management, reconnection,
    and helper methods for JSON publishing. The ``connected`` flag is
    the connectivity signal the application uses to decide when to
    drain the offline queue.
    """

    def __init__(self, config: MQTTConfig):
        """Initialize the MQTT client.

        Args:
            config: MQTT configuration
        """
        self.config = config
        self._client: Optional[aiomqtt.Client] = None
        self._connected = False
        self._reconnect_interval = 5.0

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    @property
    def availability_topic(self) -> str:
        """Get the availability topic."""
        return self.topic("availability")

    async def connect(self) -> None:
        """Connect to the MQTT broker.

        Raises:
            MqttError: If connection fails
        """
        logger.info(f"Connecting to MQTT broker at {self.config.host}:{self.config.port}")

        try:
            self._client = aiomqtt.Client(
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.username,
                password=self.config.password,
                identifier=self.config.client_id,
                # Last Will and Testament for availability
                will=aiomqtt.Will(
                    topic=self.availability_topic,
                    payload="offline",
                    qos=self.config.qos,
                    retain=True,
                ),
            )
            await self._client.__aenter__()
            self._connected = True
            logger.info("Connected to MQTT broker")

        except Exception as e:
            self._client = None
            self._connected = False
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    async def disconnect(self) -> None:
        """Disconnect from the MQTT broker."""
        if self._client:
            if self._connected:
                try:
                    await self.publish(self.availability_topic, "offline", retain=True)
                except Exception as e:
                    logger.debug(f"Could not publish offline status: {e}")

            try:
                await self._client.__aexit__(None, None, None)
            except Exception as e:
                logger.debug(f"Error closing MQTT connection: {e}")

            self._client = None
            self._connected = False
            logger.info("Disconnected from MQTT broker")

    async def reconnect(self) -> None:
        """Drop the current connection and connect again.

        Raises:
            MqttError: If the new connection fails
        """
        await self.disconnect()
        await asyncio.sleep(self._reconnect_interval)
        await self.connect()

    async def publish(
        self,
        topic: str,
        payload: Any,
        retain: Optional[bool] = None,
        qos: Optional[int] = None,
    ) -> None:
        """Publish a message to a topic.

        With QoS 1 or 2 this returns once the broker has acknowledged
        the message.

        Args:
            topic: MQTT topic
            payload: Message payload (will be JSON-encoded if dict/list)
            retain: Whether to retain the message (default from config)
            qos: QoS level (default from config)

        Raises:
            ConnectionError: If not connected
            MqttError: If the publish fails; the client is marked disconnected
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        if retain is None:
            retain = self.config.retain
        if qos is None:
            qos = self.config.qos

        if isinstance(payload, (dict, list)):
            payload_str = json.dumps(payload)
        elif isinstance(payload, bool):
            payload_str = "true" if payload else "false"
        elif payload is None:
            payload_str = ""
        else:
            payload_str = str(payload)

        try:
            await self._client.publish(
                topic,
                payload=payload_str,
                qos=qos,
                retain=retain,
            )
        except aiomqtt.MqttError:
            self._connected = False
            raise
        logger.debug(f"Published to {topic}: {payload_str[:100]}")

    async def publish_json(
        self,
        topic: str,
        data: dict,
        retain: Optional[bool] = None,
    ) -> None:
        """Publish a JSON message.

        Args:
            topic: MQTT topic
            data: Dictionary to publish as JSON
            retain: Whether to retain the message
        """
        await self.publish(topic, data, retain=retain)

    async def publish_availability(self, status: str) -> None:
        """Publish availability status.

        Args:
            status: "online" or "offline"
        """
        await self.publish(
            self.availability_topic,
            status,
            retain=True,
        )
        logger.info(f"Published availability: {status}")

    def topic(self, *parts: str) -> str:
        """Build a topic with the configured prefix.

        Args:
            parts: Topic path components

        Returns:
            Full topic string
        """
        return "/".join([self.config.topic_prefix, *parts])
