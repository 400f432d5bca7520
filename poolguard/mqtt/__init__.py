"""MQTT remote transport and status publishing."""

from .client import MQTTClient
from .publisher import StatusPublisher
from .transport import MQTTTransport

__all__ = ["MQTTClient", "StatusPublisher", "MQTTTransport"]
