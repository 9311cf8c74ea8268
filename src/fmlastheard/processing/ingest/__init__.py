# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Ingestion of relay messages.

Provides:
- Typed decoding of talker and node payloads
- Normalization into canonical start/stop events
- The bounded talker log and the presence cache
- TalkerService, the single owner of ingestion state
"""

from .decoder import TalkerMessage, NodeMessage, decode_talker, decode_node
from .normalizer import CanonicalEvent, normalize
from .event_log import EventLog, RetentionPolicy
from .presence import PresenceCache, PresenceEntry
from .nodes import NodeRegistry
from .service import TalkerService, IngestResult

__all__ = [
    'TalkerMessage',
    'NodeMessage',
    'decode_talker',
    'decode_node',
    'CanonicalEvent',
    'normalize',
    'EventLog',
    'RetentionPolicy',
    'PresenceCache',
    'PresenceEntry',
    'NodeRegistry',
    'TalkerService',
    'IngestResult',
]
