# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Stream consumer feeding relay messages into the talker service.

Reads the message queue with a consumer group, dispatches each message by
its MQTT topic, and acknowledges every message. Delivery is at-most-once
per message: payloads that cannot be decoded or validated are copied to
the DLQ, and store failures are logged and skipped.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import redis

from ..capture.streams import CONSUMER_GROUP, DLQ_STREAM, MESSAGE_QUEUE_STREAM, classify_topic
from .ingest.service import IngestResult, TalkerService

logger = logging.getLogger(__name__)


class TalkerStreamConsumer:
    """
    Consumes relay messages from a Redis Stream.

    Each stream entry carries:
    - topic: MQTT topic the message arrived on
    - payload: raw MQTT payload
    - received_at: bridge receive time (unix seconds)
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        service: TalkerService,
        stream_name: str = MESSAGE_QUEUE_STREAM,
        consumer_group: str = CONSUMER_GROUP,
        consumer_name: str = "processor-1",
        dlq_stream: str = DLQ_STREAM,
        block_ms: int = 1000,
        count: int = 100,
    ):
        """
        Initialize consumer.

        Args:
            redis_client: Redis client instance
            service: Talker service the messages are applied to
            stream_name: Name of the stream to consume from
            consumer_group: Consumer group name
            consumer_name: Unique consumer name
            dlq_stream: Stream receiving rejected payloads
            block_ms: Milliseconds to block when waiting for messages
            count: Number of messages to read per batch
        """
        self.redis_client = redis_client
        self.service = service
        self.stream_name = stream_name
        self.consumer_group = consumer_group
        self.consumer_name = consumer_name
        self.dlq_stream = dlq_stream
        self.block_ms = block_ms
        self.count = count

        self.running = False
        self.stats = {
            'processed': 0,
            'talker': 0,
            'nodes': 0,
            'ignored': 0,
            'dead_lettered': 0,
            'failed': 0,
        }

    def _ensure_consumer_group(self) -> None:
        """Ensure the consumer group exists, create if not."""
        try:
            self.redis_client.xgroup_create(
                name=self.stream_name,
                groupname=self.consumer_group,
                id='0',
                mkstream=True,
            )
            logger.info(f"Created consumer group: {self.consumer_group}")
        except redis.exceptions.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug(f"Consumer group {self.consumer_group} already exists")
            else:
                raise

    async def start(self) -> None:
        """Create the consumer group and run until stopped."""
        if self.running:
            logger.warning(f"{self.consumer_name} already running")
            return

        logger.info(f"Starting consumer: {self.consumer_name}")
        self._ensure_consumer_group()
        self.running = True
        await self.run()

    def stop(self) -> None:
        """Ask the main loop to exit after the current batch."""
        if self.running:
            logger.info(f"Stopping consumer: {self.consumer_name}")
        self.running = False

    async def run(self) -> None:
        """Main consumer loop."""
        logger.info(f"Consumer {self.consumer_name} entering main loop")

        while self.running:
            try:
                messages = await asyncio.to_thread(
                    self.redis_client.xreadgroup,
                    self.consumer_group,
                    self.consumer_name,
                    {self.stream_name: '>'},
                    self.count,
                    self.block_ms,
                )
            except redis.RedisError as e:
                logger.error(f"Error reading from {self.stream_name}: {e}")
                await asyncio.sleep(1)
                continue

            if not messages:
                continue

            for _stream, message_list in messages:
                for message_id, message_data in message_list:
                    await self.process_message(message_id, message_data)

        logger.info(f"Consumer {self.consumer_name} exited main loop")

    async def process_message(self, message_id: bytes, message_data: Dict[bytes, bytes]) -> None:
        """
        Dispatch one stream entry and acknowledge it.

        Args:
            message_id: Redis stream message ID
            message_data: Raw message fields
        """
        fields = self._decode_message(message_data)
        topic = fields.get('topic', '')
        payload = message_data.get(b'payload', b'')
        channel = classify_topic(topic)

        try:
            if channel == "talker":
                result: IngestResult = await asyncio.to_thread(self.service.ingest_payload, payload)
                self.stats['talker'] += 1
                if result.rejected:
                    await self._dead_letter(message_id, message_data, result.error or "rejected")
                elif not result.accepted:
                    self.stats['failed'] += 1
            elif channel == "node":
                stored = await asyncio.to_thread(self.service.register_node, payload)
                self.stats['nodes'] += 1
                if not stored:
                    self.stats['failed'] += 1
            else:
                logger.debug(f"Ignoring message on unhandled topic '{topic}'")
                self.stats['ignored'] += 1
        except Exception as e:
            logger.error(f"Failed to process message {message_id}: {e}")
            self.stats['failed'] += 1
        finally:
            await self._ack(message_id)
            self.stats['processed'] += 1

    def _decode_message(self, message_data: Dict[bytes, bytes]) -> Dict[str, str]:
        """Decode the text fields of a stream entry, leaving bad bytes replaced."""
        return {
            self._text(key): self._text(value)
            for key, value in message_data.items()
            if key != b'payload'
        }

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            return value.decode('utf-8', errors='replace')
        return str(value)

    async def _ack(self, message_id: bytes) -> None:
        try:
            await asyncio.to_thread(
                self.redis_client.xack,
                self.stream_name,
                self.consumer_group,
                message_id,
            )
        except redis.RedisError as e:
            logger.error(f"Failed to acknowledge message {message_id}: {e}")

    async def _dead_letter(self, message_id: bytes, message_data: Dict[bytes, bytes], error: str) -> None:
        """Copy a rejected message to the DLQ with the rejection reason."""
        dlq_data = dict(message_data)
        dlq_data[b'error'] = error.encode('utf-8')
        dlq_data[b'failed_at'] = str(time.time()).encode('utf-8')
        dlq_data[b'original_message_id'] = message_id

        try:
            await asyncio.to_thread(
                self.redis_client.xadd,
                self.dlq_stream,
                dlq_data,
                maxlen=1000,
                approximate=True,
            )
            logger.warning(f"Sent message {message_id} to DLQ: {error}")
            self.stats['dead_lettered'] += 1
        except redis.RedisError as e:
            logger.error(f"Failed to move message {message_id} to DLQ: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get consumer statistics."""
        return {
            'consumer': self.consumer_name,
            'running': self.running,
            **self.stats,
        }


def create_consumer(
    redis_client: redis.Redis,
    service: TalkerService,
    config: Optional[Any] = None,
) -> TalkerStreamConsumer:
    """Build a consumer from a Config (or defaults)."""
    if config is None:
        return TalkerStreamConsumer(redis_client, service)

    return TalkerStreamConsumer(
        redis_client,
        service,
        stream_name=config.stream_name,
        consumer_group=config.consumer_group,
        consumer_name=f"{config.consumer_group}-1",
        block_ms=config.block_ms,
    )
