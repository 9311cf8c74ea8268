# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Presence cache: which stations are transmitting right now.

One row per station. A start replaces the row, a stop removes it, and rows
not refreshed within the TTL are swept so a station that vanishes without
sending a stop does not stay active forever.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List

from ..database.sqlite_client import SQLiteClient
from .normalizer import CanonicalEvent, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 180


@dataclass(frozen=True)
class PresenceEntry:
    station: str
    since: datetime
    group: int
    origin: str
    last_touched: datetime


class PresenceCache:
    """Active stations stored in the presence table."""

    def __init__(self, client: SQLiteClient, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.ttl = timedelta(seconds=ttl_seconds)

    def upsert(self, event: CanonicalEvent, now: datetime) -> None:
        """Record a start, replacing any existing entry for the station."""
        with self.client.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO presence (callsign, event_time, tg, server, last_update)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(callsign) DO UPDATE SET
                    event_time = excluded.event_time,
                    tg = excluded.tg,
                    server = excluded.server,
                    last_update = excluded.last_update
                """,
                (
                    event.station,
                    format_timestamp(event.timestamp),
                    event.group,
                    event.origin,
                    format_timestamp(now),
                ),
            )
            conn.commit()

    def remove(self, station: str) -> bool:
        """
        Remove a station's entry.

        Returns:
            True if an entry existed
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute("DELETE FROM presence WHERE callsign = ?", (station,))
            conn.commit()
            return cursor.rowcount > 0

    def apply(self, event: CanonicalEvent, now: datetime) -> str:
        """
        Apply a canonical event.

        Returns:
            "upserted", "removed" or "none"
        """
        if event.is_start:
            self.upsert(event, now)
            return "upserted"
        return "removed" if self.remove(event.station) else "none"

    def sweep(self, now: datetime) -> int:
        """
        Delete entries whose last_touched is older than the TTL.

        Returns:
            Number of expired entries
        """
        cutoff = now - self.ttl
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM presence WHERE last_update < ?",
                (format_timestamp(cutoff),),
            )
            conn.commit()
            expired = cursor.rowcount

        if expired:
            logger.info(f"Presence sweep expired {expired} stale station(s)")
        return expired

    def snapshot(self) -> List[PresenceEntry]:
        """Current entries, most recent start first."""
        with self.client.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT callsign, event_time, tg, server, last_update
                FROM presence
                ORDER BY event_time DESC, callsign ASC
                """
            ).fetchall()

        return [
            PresenceEntry(
                station=row["callsign"],
                since=parse_timestamp(row["event_time"]),
                group=row["tg"],
                origin=row["server"],
                last_touched=parse_timestamp(row["last_update"]),
            )
            for row in rows
        ]
