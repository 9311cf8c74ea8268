# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main server for the FM last-heard processing layer.

Orchestrates database initialization, the MQTT bridge, the stream consumer,
the stats scheduler, and graceful shutdown.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

import redis

from ..capture.config import Config
from ..capture.mqtt_bridge import MqttBridge
from .consumer import TalkerStreamConsumer, create_consumer
from .database.schema import create_schema
from .database.sqlite_client import SQLiteClient
from .ingest.service import TalkerService
from .stats.publisher import StatsPublisher
from .stats.scheduler import StatsScheduler

logger = logging.getLogger(__name__)

# How often the stats loop asks the scheduler whether a run is due
SCHEDULER_POLL_SECONDS = 5.0


class TalkerServer:
    """
    Main server for talker processing.

    Manages:
    - SQLite database initialization
    - Redis connection
    - MQTT bridge (optional)
    - Stream consumer
    - Stats scheduler loop
    - Graceful shutdown
    """

    def __init__(self, config: Optional[Config] = None, with_bridge: bool = True):
        """
        Initialize the server.

        Args:
            config: Configuration instance (creates default if not provided)
            with_bridge: Run the MQTT bridge in-process
        """
        self.config = config or Config()
        self.with_bridge = with_bridge

        self.sqlite_client: Optional[SQLiteClient] = None
        self.redis_client: Optional[redis.Redis] = None
        self.service: Optional[TalkerService] = None
        self.consumer: Optional[TalkerStreamConsumer] = None
        self.scheduler: Optional[StatsScheduler] = None
        self.bridge: Optional[MqttBridge] = None
        self.stats_task: Optional[asyncio.Task] = None
        self.running = False

    def _initialize_database(self) -> None:
        """Initialize SQLite database and schema."""
        logger.info(f"Initializing database: {self.config.db_path}")

        self.sqlite_client = SQLiteClient(str(self.config.db_path), timeout=self.config.db_timeout)
        self.sqlite_client.initialize_database()
        create_schema(self.sqlite_client)

        logger.info("Database initialized successfully")

    def _initialize_redis(self) -> None:
        """Initialize Redis connection."""
        logger.info("Initializing Redis connection")

        self.redis_client = redis.Redis(
            host=self.config.redis_host,
            port=self.config.redis_port,
            db=self.config.redis_db,
            socket_timeout=self.config.redis_socket_timeout,
            decode_responses=False,  # payloads stay raw bytes
        )

        try:
            self.redis_client.ping()
            logger.info("Redis connection established")
        except redis.ConnectionError as e:
            raise RuntimeError(f"Failed to connect to Redis: {e}") from e

    def _initialize_processing(self) -> None:
        """Create the talker service, the consumer and the stats scheduler."""
        self.service = TalkerService.from_config(self.sqlite_client, self.config)
        self.consumer = create_consumer(self.redis_client, self.service, self.config)
        self.scheduler = StatsScheduler.from_config(
            self.service.event_log,
            StatsPublisher(self.sqlite_client),
            self.config,
        )
        logger.info("Processing components initialized")

    def _initialize_bridge(self) -> None:
        if not self.with_bridge:
            logger.info("MQTT bridge disabled, consuming existing stream only")
            return
        self.bridge = MqttBridge(self.config, self.redis_client)

    async def _stats_loop(self) -> None:
        """Background task ticking the stats scheduler."""
        logger.info(
            f"Starting stats loop ({self.config.stats_interval_seconds} second interval)"
        )

        while self.running:
            await asyncio.to_thread(self.scheduler.tick)
            await asyncio.to_thread(self.service.sweep_presence)
            await asyncio.sleep(SCHEDULER_POLL_SECONDS)

        logger.info("Stats loop stopped")

    async def start(self) -> None:
        """Start the server."""
        if self.running:
            logger.warning("Server already running")
            return

        logger.info("Starting FM last-heard server...")

        if not self.config.validate():
            raise RuntimeError("Invalid configuration")

        try:
            self._initialize_database()
            self._initialize_redis()
            self._initialize_processing()
            self._initialize_bridge()

            self.running = True

            self.stats_task = asyncio.create_task(self._stats_loop())

            if self.bridge:
                self.bridge.start()

            # Runs until stop()
            await self.consumer.start()

        except Exception as e:
            logger.error(f"Failed to start server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self.running:
            return

        logger.info("Stopping server...")
        self.running = False

        if self.bridge:
            self.bridge.stop()

        if self.consumer:
            self.consumer.stop()

        if self.stats_task:
            self.stats_task.cancel()
            try:
                await self.stats_task
            except asyncio.CancelledError:
                logger.info("Stats loop cancelled")

        if self.redis_client:
            self.redis_client.close()

        if self.sqlite_client:
            self.sqlite_client.close()

        logger.info("Server stopped")

    async def run(self) -> None:
        """Run the server (alias for start)."""
        await self.start()


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


async def main(config: Optional[Config] = None, with_bridge: bool = True) -> None:
    """Main entry point."""
    config = config or Config()
    setup_logging(config.log_level)

    server = TalkerServer(config, with_bridge=with_bridge)

    shutdown_tasks = set()

    def request_shutdown() -> None:
        task = asyncio.create_task(server.stop())
        shutdown_tasks.add(task)
        task.add_done_callback(shutdown_tasks.discard)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown)

    try:
        await server.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)
    finally:
        await server.stop()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
