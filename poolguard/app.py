"""Main application orchestrator for PoolGuard."""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Optional, Union

import aiomqtt

from .config import AppConfig, get_config
from .compliance.engine import Readings
from .models.queue import SyncResult
from .mqtt.client import MQTTClient
from .mqtt.publisher import StatusPublisher
from .mqtt.transport import MQTTTransport
from .submission import ChemicalTestSubmitter, SubmissionOutcome
from .sync.queue import SyncQueue
from .sync.storage import JsonFileQueueStorage
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_queue(config: AppConfig) -> SyncQueue:
    """Build a SyncQueue from configuration (without a transport).

    When max_attempts is set and no dead-letter path is configured,
    exhausted items go to ``<queue file>.dead.json`` next to the queue.
    """
    storage = JsonFileQueueStorage(config.storage.queue_path)

    dead_letter_storage = None
    if config.sync.max_attempts is not None or config.storage.dead_letter_path:
        dead_letter_path = config.storage.dead_letter_path or (
            config.storage.queue_path.with_suffix(".dead.json")
        )
        dead_letter_storage = JsonFileQueueStorage(dead_letter_path)

    return SyncQueue(
        storage,
        send_timeout=config.sync.send_timeout,
        max_attempts=config.sync.max_attempts,
        dead_letter_storage=dead_letter_storage,
    )


def _resolve_config(config: Union[AppConfig, str, None]) -> AppConfig:
    if isinstance(config, AppConfig):
        return config
    return get_config(config)


class PoolGuard:
    """Main application class.

    Keeps the MQTT connection to the remote store alive and drains the
    offline queue on a timer, and immediately whenever connectivity is
    restored.
    """

    def __init__(self, config: Union[AppConfig, str, None] = None):
        """Initialize the application.

        Args:
            config: AppConfig instance, path to YAML config file, or None for env/defaults
        """
        self.config = _resolve_config(config)

        self.running = False
        self._shutdown_event = asyncio.Event()

        self.queue = create_queue(self.config)
        self.mqtt: Optional[MQTTClient] = None
        self.publisher: Optional[StatusPublisher] = None
        self.transport: Optional[MQTTTransport] = None
        self.submitter = ChemicalTestSubmitter(self.queue)

        self._stats = {
            "sync_passes": 0,
            "synced_items": 0,
            "failed_items": 0,
            "reconnects": 0,
            "last_sync": None,
            "start_time": None,
        }

    @property
    def online(self) -> bool:
        """Check if the remote store is reachable."""
        return self.mqtt is not None and self.mqtt.connected

    async def start(self) -> None:
        """Start the application.

        Connects to the MQTT broker (if configured) and runs the sync
        loop until shutdown.
        """
        setup_logging(
            level=self.config.logging.level,
            log_file=self.config.logging.file,
            format_string=self.config.logging.format,
        )

        logger.info("Starting PoolGuard")
        self._stats["start_time"] = datetime.now()
        self.running = True

        self._setup_signal_handlers()

        if not self.config.mqtt.enabled:
            logger.info("MQTT not configured - running in OFFLINE-ONLY mode")
            logger.info("Set MQTT_HOST environment variable to enable syncing")

        try:
            if self.config.mqtt.enabled:
                await self.connect()
            await self._sync_loop()
        except asyncio.CancelledError:
            logger.info("Application cancelled")
        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.stop()

    async def connect(self) -> bool:
        """Connect to the remote store.

        Returns:
            True if connected
        """
        self.mqtt = MQTTClient(self.config.mqtt)
        self.publisher = StatusPublisher(self.mqtt, self.config.mqtt)
        self.transport = MQTTTransport(self.mqtt, on_connection_lost=self.queue.request_stop)
        self.queue.set_transport(self.transport)
        self.submitter.transport = self.transport

        try:
            await self.mqtt.connect()
            await self.mqtt.publish_availability("online")
            return True
        except (aiomqtt.MqttError, OSError) as e:
            logger.warning(f"Remote store unreachable, working offline: {e}")
            return False

    async def _sync_loop(self) -> None:
        """Main sync loop.

        Periodically drains the offline queue while connected and tries
        to reconnect while offline.
        """
        interval = self.config.sync.interval
        logger.info(f"Starting sync loop (interval={interval}s)")

        while self.running and not self._shutdown_event.is_set():
            if self.mqtt is not None and not self.mqtt.connected:
                try:
                    logger.info("Attempting MQTT reconnection...")
                    await self.mqtt.reconnect()
                    await self.mqtt.publish_availability("online")
                    self._stats["reconnects"] += 1
                    logger.info("Connection restored, starting sync")
                except Exception as reconnect_error:
                    logger.error(f"MQTT reconnection failed: {reconnect_error}")

            if self.online:
                await self.sync()

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=interval,
                )
                break
            except asyncio.TimeoutError:
                continue

    async def sync(self) -> SyncResult:
        """Run one drain pass and publish its outcome."""
        result = await self.queue.process_pending_items()
        if result.in_progress:
            return result

        self._stats["sync_passes"] += 1
        self._stats["synced_items"] += result.synced_items
        self._stats["failed_items"] += result.failed_items
        self._stats["last_sync"] = datetime.now()

        if self.publisher and self.online:
            try:
                await self.publisher.publish_sync_result(result)
                await self.publisher.publish_queue_stats(self.queue.get_queue_stats())
            except (aiomqtt.MqttError, ConnectionError) as e:
                logger.error(f"Failed to publish sync status: {e}")

        return result

    async def submit(
        self,
        readings: Readings,
        pool_id: Optional[str] = None,
        technician: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SubmissionOutcome:
        """Record a chemical test, queueing it if the remote is unreachable."""
        pool_id = pool_id or self.config.facility.pool_id
        outcome = await self.submitter.submit(readings, pool_id, technician, notes)

        if self.publisher and self.online:
            try:
                await self.publisher.publish_compliance(pool_id, outcome.report, outcome.closure)
            except (aiomqtt.MqttError, ConnectionError) as e:
                logger.error(f"Failed to publish compliance status: {e}")

        return outcome

    async def stop(self) -> None:
        """Stop the application gracefully."""
        logger.info("Stopping PoolGuard")
        self.running = False
        self._shutdown_event.set()
        self.queue.request_stop()

        if self.mqtt:
            try:
                await self.mqtt.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting MQTT: {e}")
            self.mqtt = None

        logger.info(
            f"Statistics: passes={self._stats['sync_passes']}, "
            f"synced={self._stats['synced_items']}, "
            f"failed={self._stats['failed_items']}"
        )
        logger.info("PoolGuard stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown")
            self._shutdown_event.set()
            self.queue.request_stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

    @property
    def stats(self) -> dict:
        """Get application statistics."""
        return {
            **self._stats,
            "uptime": (
                str(datetime.now() - self._stats["start_time"])
                if self._stats["start_time"]
                else None
            ),
            "online": self.online,
            "queue": self.queue.get_queue_stats().model_dump(),
        }


async def run_app(config: Union[AppConfig, str, None] = None) -> None:
    """Run the application.

    Args:
        config: AppConfig instance, path to config file, or None for env/defaults
    """
    app = PoolGuard(config)
    await app.start()


async def sync_once(config: Union[AppConfig, str, None] = None) -> SyncResult:
    """Connect, run a single drain pass and disconnect.

    Nothing is drained while the remote store is unreachable, so queued
    items keep their attempt counts.
    """
    app = PoolGuard(config)
    try:
        if app.config.mqtt.enabled:
            await app.connect()
        if not app.online:
            logger.warning("Remote store unreachable, leaving queue untouched")
            return SyncResult.not_connected()
        return await app.sync()
    finally:
        await app.stop()


async def submit_once(
    readings: Readings,
    config: Union[AppConfig, str, None] = None,
    pool_id: Optional[str] = None,
    technician: Optional[str] = None,
    notes: Optional[str] = None,
) -> SubmissionOutcome:
    """Connect, submit one chemical test and disconnect."""
    app = PoolGuard(config)
    try:
        if app.config.mqtt.enabled:
            await app.connect()
        return await app.submit(readings, pool_id, technician, notes)
    finally:
        await app.stop()
