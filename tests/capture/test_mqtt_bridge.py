# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the MQTT to Redis Streams bridge with mocked clients.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import redis

from fmlastheard.capture.config import Config
from fmlastheard.capture.mqtt_bridge import MqttBridge


@pytest.fixture
def config(tmp_path):
    return Config(config_path=tmp_path / "missing.yaml")


@pytest.fixture
def mqtt_client():
    return Mock()


@pytest.fixture
def redis_client():
    return Mock(spec=redis.Redis)


@pytest.fixture
def bridge(config, redis_client, mqtt_client):
    return MqttBridge(config, redis_client, client=mqtt_client)


class TestMqttBridge:
    def test_configures_reconnect_backoff(self, bridge, mqtt_client):
        mqtt_client.reconnect_delay_set.assert_called_once_with(min_delay=2, max_delay=30)
        assert mqtt_client.on_message == bridge.on_message

    def test_subscribes_on_connect(self, bridge, mqtt_client, config):
        bridge.on_connect(mqtt_client, None, None, 0, None)
        subscribed = [c.args[0] for c in mqtt_client.subscribe.call_args_list]
        assert subscribed == config.mqtt_topics
        assert bridge.connected

    def test_refused_connection(self, bridge, mqtt_client):
        bridge.on_connect(mqtt_client, None, None, 5, None)
        mqtt_client.subscribe.assert_not_called()
        assert not bridge.connected

    def test_forwards_message_to_stream(self, bridge, redis_client, config):
        message = SimpleNamespace(topic="/server/statethr/1", payload=b'{"call": "AB1C"}')
        bridge.on_message(None, None, message)

        args, kwargs = redis_client.xadd.call_args
        assert args[0] == config.stream_name
        assert args[1]['topic'] == "/server/statethr/1"
        assert args[1]['payload'] == b'{"call": "AB1C"}'
        assert kwargs == {'maxlen': config.stream_max_length, 'approximate': True}
        assert bridge.get_stats()['forwarded'] == 1

    def test_redis_failure_counted(self, bridge, redis_client):
        redis_client.xadd.side_effect = redis.ConnectionError("down")
        bridge.on_message(None, None, SimpleNamespace(topic="/server/statethr/1", payload=b'{}'))
        assert bridge.stats['failed'] == 1

    def test_start_and_stop(self, bridge, mqtt_client, config):
        bridge.start()
        mqtt_client.connect_async.assert_called_once_with(
            config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive
        )
        mqtt_client.loop_start.assert_called_once()

        bridge.stop()
        mqtt_client.disconnect.assert_called_once()
        mqtt_client.loop_stop.assert_called_once()
