# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
MQTT to Redis Streams bridge.

Subscribes to the relay's talker and node topics and forwards every
message, unparsed, into the message queue stream. Parsing happens on the
processing side so a malformed payload never disturbs the MQTT loop.
"""

import logging
import time
from typing import Optional

import paho.mqtt.client as mqtt
import redis

from .config import Config

logger = logging.getLogger(__name__)


class MqttBridge:
    """
    Forwards relay MQTT messages into a Redis Stream.

    The paho network loop runs in its own thread (loop_start) and handles
    reconnects with exponential backoff between 2 and 30 seconds.
    """

    def __init__(self, config: Config, redis_client: redis.Redis, client: Optional[mqtt.Client] = None):
        """
        Initialize the bridge.

        Args:
            config: Runtime configuration (broker, topics, stream)
            redis_client: Redis client the messages are written to
            client: Pre-built paho client, mainly for tests
        """
        self.config = config
        self.redis_client = redis_client
        self.connected = False
        self.stats = {
            'received': 0,
            'forwarded': 0,
            'failed': 0,
        }

        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.mqtt_client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self.client.on_message = self.on_message
        self.client.reconnect_delay_set(min_delay=2, max_delay=30)

    def on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code == 0:
            logger.info(f"MQTT connected to {self.config.mqtt_host}:{self.config.mqtt_port}")
            self.connected = True
            # Subscriptions are renewed on every (re)connect
            for topic in self.config.mqtt_topics:
                client.subscribe(topic)
                logger.debug(f"Subscribed to {topic}")
        else:
            logger.error(f"MQTT connection refused by broker: reason_code={reason_code}")
            self.connected = False

    def on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code == 0:
            logger.info("MQTT disconnected cleanly")
        else:
            logger.warning(f"MQTT lost connection (reason_code={reason_code}), reconnecting")
        self.connected = False

    def on_message(self, client, userdata, message) -> None:
        """Append the message to the stream as (topic, payload, received_at)."""
        self.stats['received'] += 1
        try:
            self.redis_client.xadd(
                self.config.stream_name,
                {
                    'topic': message.topic,
                    'payload': bytes(message.payload),
                    'received_at': str(time.time()),
                },
                maxlen=self.config.stream_max_length,
                approximate=True,
            )
            self.stats['forwarded'] += 1
        except redis.RedisError as e:
            self.stats['failed'] += 1
            logger.error(f"Failed to forward message on {message.topic}: {e}")

    def start(self) -> None:
        """Connect asynchronously and start the network loop thread."""
        logger.info(f"Starting MQTT bridge to {self.config.mqtt_host}:{self.config.mqtt_port}")
        self.client.connect_async(
            self.config.mqtt_host,
            self.config.mqtt_port,
            keepalive=self.config.mqtt_keepalive,
        )
        self.client.loop_start()

    def stop(self) -> None:
        """Disconnect and stop the network loop thread."""
        logger.info("Stopping MQTT bridge")
        self.client.disconnect()
        self.client.loop_stop()

    def get_stats(self):
        return {'connected': self.connected, **self.stats}
