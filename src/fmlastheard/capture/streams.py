# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Redis Stream and MQTT topic constants.

Centralized definitions for the stream names and relay topics used across
the capture and processing layers.
"""

# =============================================================================
# REDIS STREAMS
# =============================================================================

# Primary stream for all relay messages (talker and node metadata)
#
# Producers:
#   - MqttBridge: forwards every MQTT message as (topic, payload, received_at)
#
# Consumers:
#   - TalkerStreamConsumer: decodes messages and feeds TalkerService
MESSAGE_QUEUE_STREAM = "fm:message_queue"

# Dead Letter Queue for messages that could not be decoded or validated
DLQ_STREAM = "fm:dlq"

# Consumer group used by the processing server
CONSUMER_GROUP = "fm-processors"

# =============================================================================
# MQTT TOPICS
# =============================================================================

# Talker start/stop events
TALKER_TOPIC = "/server/statethr/1"
TALKER_TOPIC_PREFIX = "/server/statethr"

# Node metadata (one retained message per node)
NODES_TOPIC = "/server/state/nodes/#"
NODES_TOPIC_PREFIX = "/server/state/nodes/"


def classify_topic(topic: str) -> str:
    """
    Map an MQTT topic to the logical channel it belongs to.

    Returns:
        "talker", "node" or "unknown"
    """
    if topic.startswith(TALKER_TOPIC_PREFIX):
        return "talker"
    if topic.startswith(NODES_TOPIC_PREFIX):
        return "node"
    return "unknown"
