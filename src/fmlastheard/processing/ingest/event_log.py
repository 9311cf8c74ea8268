# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Append-only talker log with a single explicit retention policy.

Retention modes:
- age (default): drop rows whose event time is older than max_age_days
- count: keep only the newest max_rows rows (by event time, then sequence id)
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from ..database.sqlite_client import SQLiteClient
from .normalizer import CanonicalEvent, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

RETENTION_MODES = ("age", "count")


@dataclass(frozen=True)
class RetentionPolicy:
    """Which rows the log keeps after every insert."""

    mode: str = "age"
    max_age_days: int = 35
    max_rows: int = 1000

    def __post_init__(self):
        if self.mode not in RETENTION_MODES:
            raise ValueError(f"Unknown retention mode: {self.mode}")


@dataclass(frozen=True)
class LoggedEvent:
    """A CanonicalEvent as stored, with its sequence id."""

    sequence: int
    event: CanonicalEvent


class EventLog:
    """Talker history stored in the talker_log table."""

    def __init__(self, client: SQLiteClient, policy: Optional[RetentionPolicy] = None):
        self.client = client
        self.policy = policy or RetentionPolicy()

    def append(self, event: CanonicalEvent) -> int:
        """
        Append an event.

        Returns:
            Sequence id of the new row
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO talker_log (event_time, talk, callsign, tg, server)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    format_timestamp(event.timestamp),
                    event.kind,
                    event.station,
                    event.group,
                    event.origin,
                ),
            )
            conn.commit()
            return cursor.lastrowid

    def last_kind(self, station: str) -> Optional[str]:
        """Kind of the most recently logged event for a station, if any."""
        with self.client.get_connection() as conn:
            row = conn.execute(
                "SELECT talk FROM talker_log WHERE callsign = ? ORDER BY id DESC LIMIT 1",
                (station,),
            ).fetchone()
            return row["talk"] if row else None

    def apply_retention(self, now: datetime) -> int:
        """
        Delete rows outside the retention policy.

        Returns:
            Number of rows deleted
        """
        with self.client.get_connection() as conn:
            if self.policy.mode == "age":
                cutoff = now - timedelta(days=self.policy.max_age_days)
                cursor = conn.execute(
                    "DELETE FROM talker_log WHERE event_time < ?",
                    (format_timestamp(cutoff),),
                )
            else:
                cursor = conn.execute(
                    """
                    DELETE FROM talker_log WHERE id IN (
                        SELECT id FROM talker_log
                        ORDER BY event_time DESC, id DESC
                        LIMIT -1 OFFSET ?
                    )
                    """,
                    (self.policy.max_rows,),
                )
            conn.commit()
            deleted = cursor.rowcount

        if deleted:
            logger.debug(f"Retention ({self.policy.mode}) removed {deleted} talker_log rows")
        return deleted

    def window(self, since: datetime) -> List[LoggedEvent]:
        """
        Events at or after `since`, ordered by station, time, then sequence id.

        This is the ordering the session reconstruction relies on.
        """
        with self.client.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT id, event_time, talk, callsign, tg, server
                FROM talker_log
                WHERE event_time >= ?
                ORDER BY callsign ASC, event_time ASC, id ASC
                """,
                (format_timestamp(since),),
            ).fetchall()

        return [self._row_to_logged(row) for row in rows]

    def recent(self, limit: int = 50) -> List[LoggedEvent]:
        """Most recent events, newest first."""
        with self.client.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT id, event_time, talk, callsign, tg, server
                FROM talker_log
                ORDER BY event_time DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._row_to_logged(row) for row in rows]

    def count(self) -> int:
        with self.client.get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM talker_log").fetchone()[0]

    @staticmethod
    def _row_to_logged(row: sqlite3.Row) -> LoggedEvent:
        return LoggedEvent(
            sequence=row["id"],
            event=CanonicalEvent(
                timestamp=parse_timestamp(row["event_time"]),
                kind=row["talk"],
                station=row["callsign"],
                group=row["tg"],
                origin=row["server"],
            ),
        )
