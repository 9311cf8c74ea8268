# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Talker ingestion service.

Owns the event log, the presence cache and the node registry, and applies
each accepted event to them under the store lock:

1. Suppress a stop that directly follows a logged stop for the same station
2. Skip the log write for excluded station identifiers
3. Append to the talker log
4. Update presence (start upserts, stop removes)
5. Apply log retention
6. Sweep stale presence entries

Steps 4-6 are best-effort maintenance: their failures are logged and the
event still counts as ingested. Nothing here raises to the caller.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ...capture.config import Config
from ..database.sqlite_client import SQLiteClient
from ..errors import DecodeError, FMLastHeardError, StoreUnavailable, ValidationError
from .decoder import Payload, decode_node, decode_talker
from .event_log import EventLog, RetentionPolicy
from .nodes import NodeRegistry
from .normalizer import CanonicalEvent, normalize
from .presence import PresenceCache, PresenceEntry

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of ingesting one talker message."""

    accepted: bool
    logged: bool = False
    duplicate: bool = False
    excluded: bool = False
    presence: str = "none"
    error: Optional[str] = None
    error_kind: Optional[str] = None  # decode, validation, store
    event: Optional[CanonicalEvent] = None

    @property
    def rejected(self) -> bool:
        """True when the payload itself was bad (as opposed to a store failure)."""
        return self.error_kind in ("decode", "validation")


class TalkerService:
    """
    Single owner of the talker store state.

    Constructed once at process start and shared by the stream consumer and
    the stats scheduler.
    """

    def __init__(
        self,
        client: SQLiteClient,
        retention: Optional[RetentionPolicy] = None,
        presence_ttl_seconds: int = 180,
        exclude_patterns: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the service.

        Args:
            client: Shared SQLite client (its lock serializes all store work)
            retention: Talker log retention policy
            presence_ttl_seconds: Age after which an unrefreshed presence entry expires
            exclude_patterns: Regexes; matching stations are kept out of the log
            clock: Local wall clock, injectable for tests
        """
        self.client = client
        self.event_log = EventLog(client, retention)
        self.presence = PresenceCache(client, presence_ttl_seconds)
        self.nodes = NodeRegistry(client)
        self.exclude = [re.compile(p) for p in (exclude_patterns or [])]
        self.clock = clock
        self.stats: Dict[str, int] = {
            'accepted': 0,
            'duplicates': 0,
            'excluded': 0,
            'rejected': 0,
            'failed': 0,
            'nodes': 0,
        }

    @classmethod
    def from_config(cls, client: SQLiteClient, config: Config) -> "TalkerService":
        return cls(
            client,
            retention=RetentionPolicy(
                mode=config.retention_mode,
                max_age_days=config.retention_max_age_days,
                max_rows=config.retention_max_rows,
            ),
            presence_ttl_seconds=config.presence_ttl_seconds,
            exclude_patterns=config.exclude_patterns,
        )

    def is_excluded(self, station: str) -> bool:
        return any(p.search(station) for p in self.exclude)

    def ingest_payload(self, payload: Payload) -> IngestResult:
        """Decode, normalize and ingest a raw talker payload."""
        now = self.clock()
        try:
            event = normalize(decode_talker(payload), now)
        except DecodeError as e:
            logger.warning(f"Dropping undecodable talker payload: {e}")
            self.stats['rejected'] += 1
            return IngestResult(accepted=False, error=str(e), error_kind="decode")
        except ValidationError as e:
            logger.warning(f"Dropping invalid talker payload: {e}")
            self.stats['rejected'] += 1
            return IngestResult(accepted=False, error=str(e), error_kind="validation")

        return self.ingest(event, now)

    def ingest(self, event: CanonicalEvent, now: Optional[datetime] = None) -> IngestResult:
        """
        Apply one canonical event to the log and the presence cache.

        Args:
            event: Normalized event
            now: Ingestion clock reading (defaults to the service clock)
        """
        now = now or self.clock()

        try:
            with self.client.get_connection():
                if not event.is_start and self.event_log.last_kind(event.station) == "stop":
                    logger.debug(f"Ignoring repeated stop for {event.station}")
                    self.stats['duplicates'] += 1
                    return IngestResult(accepted=True, duplicate=True, event=event)

                excluded = self.is_excluded(event.station)
                if excluded:
                    self.stats['excluded'] += 1
                else:
                    self.event_log.append(event)

                result = IngestResult(
                    accepted=True,
                    logged=not excluded,
                    excluded=excluded,
                    event=event,
                )
                result.presence = self._maintain(event, now)
        except (FMLastHeardError, sqlite3.Error) as e:
            logger.error(f"Failed to ingest {event.kind} for {event.station}: {e}")
            self.stats['failed'] += 1
            return IngestResult(accepted=False, error=str(e), error_kind="store", event=event)

        self.stats['accepted'] += 1
        return result

    def _maintain(self, event: CanonicalEvent, now: datetime) -> str:
        presence = "none"
        try:
            presence = self.presence.apply(event, now)
        except (StoreUnavailable, sqlite3.Error) as e:
            logger.error(f"Presence update failed for {event.station}: {e}")

        try:
            self.event_log.apply_retention(now)
        except (StoreUnavailable, sqlite3.Error) as e:
            logger.error(f"Talker log retention failed: {e}")

        self.sweep_presence(now)
        return presence

    def sweep_presence(self, now: Optional[datetime] = None) -> int:
        """Expire stale presence entries; failures are logged and reported as 0."""
        try:
            return self.presence.sweep(now or self.clock())
        except (StoreUnavailable, sqlite3.Error) as e:
            logger.error(f"Presence sweep failed: {e}")
            return 0

    def register_node(self, payload: Payload) -> bool:
        """
        Decode a node metadata payload and upsert it.

        Returns:
            True if the node row was written
        """
        try:
            node = decode_node(payload)
            self.nodes.upsert(node)
        except (DecodeError, ValidationError) as e:
            logger.warning(f"Dropping node payload: {e}")
            self.stats['rejected'] += 1
            return False
        except (StoreUnavailable, sqlite3.Error) as e:
            logger.error(f"Failed to store node metadata: {e}")
            self.stats['failed'] += 1
            return False

        self.stats['nodes'] += 1
        return True

    def active_stations(self) -> List[PresenceEntry]:
        """Presence snapshot taken right after a sweep."""
        with self.client.get_connection():
            self.sweep_presence()
            return self.presence.snapshot()

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
