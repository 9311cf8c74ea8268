# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Publication of aggregate snapshots to the stats table.

The previous snapshot is deleted and the new one written inside a single
transaction, so readers only ever see one complete snapshot.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..database.sqlite_client import SQLiteClient
from ..errors import AggregationFailure, StoreUnavailable
from ..ingest.normalizer import format_timestamp, parse_timestamp
from .aggregation import (
    METRIC_HEATMAP_WEEK,
    METRIC_TOP_CALLS_DURATION,
    METRIC_TOP_CALLS_QSO,
    METRIC_TOP_CALLS_SCORE,
    METRIC_TOP_TG_DURATION,
    AggregateSnapshot,
    GroupStats,
    StationStats,
    empty_heatmap,
)

logger = logging.getLogger(__name__)

INSERT_SQL = """
INSERT INTO stats (
    metric, rank, callsign, tg, weekday, hour,
    qso_count, total_seconds, score, value, computed_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

Row = Tuple[Any, ...]


def snapshot_rows(snapshot: AggregateSnapshot) -> List[Row]:
    """Flatten a snapshot into stats table rows."""
    computed_at = format_timestamp(snapshot.computed_at)
    rows: List[Row] = []

    station_tables = (
        (METRIC_TOP_CALLS_QSO, snapshot.top_stations_by_count, lambda s: s.qso_count),
        (METRIC_TOP_CALLS_DURATION, snapshot.top_stations_by_duration, lambda s: s.total_seconds),
        (METRIC_TOP_CALLS_SCORE, snapshot.top_stations_by_score, lambda s: s.score),
    )
    for metric, entries, value_of in station_tables:
        for rank, s in enumerate(entries, start=1):
            rows.append((
                metric, rank, s.station, None, None, None,
                s.qso_count, s.total_seconds, s.score, value_of(s), computed_at,
            ))

    for rank, g in enumerate(snapshot.top_groups_by_duration, start=1):
        rows.append((
            METRIC_TOP_TG_DURATION, rank, None, g.group, None, None,
            g.qso_count, g.total_seconds, None, g.total_seconds, computed_at,
        ))

    for weekday, hours in enumerate(snapshot.heatmap_week):
        for hour, count in enumerate(hours):
            rows.append((
                METRIC_HEATMAP_WEEK, None, None, None, weekday, hour,
                count, None, None, count, computed_at,
            ))

    return rows


class StatsPublisher:
    """Writes and reads the published snapshot."""

    def __init__(self, client: SQLiteClient):
        self.client = client

    def publish(self, snapshot: AggregateSnapshot) -> int:
        """
        Replace the published snapshot.

        Returns:
            Number of rows written

        Raises:
            AggregationFailure: If any statement fails; the previous snapshot
                is left untouched
        """
        rows = snapshot_rows(snapshot)
        try:
            with self.client.transaction() as conn:
                conn.execute("DELETE FROM stats")
                conn.executemany(INSERT_SQL, rows)
        except (StoreUnavailable, sqlite3.Error) as e:
            raise AggregationFailure(f"Publishing stats failed, previous snapshot kept: {e}") from e

        logger.info(
            f"Published stats snapshot: {snapshot.session_count} sessions, {len(rows)} rows"
        )
        return len(rows)

    def rows(self, metric: str) -> List[Dict[str, Any]]:
        """Published rows for one metric, in rank (or weekday/hour) order."""
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT metric, rank, callsign, tg, weekday, hour,
                       qso_count, total_seconds, score, value, computed_at
                FROM stats
                WHERE metric = ?
                ORDER BY rank ASC, weekday ASC, hour ASC
                """,
                (metric,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def load(self) -> Optional[AggregateSnapshot]:
        """
        Rebuild the published snapshot.

        session_count is not persisted and comes back as 0.

        Returns:
            The snapshot, or None if nothing has been published yet
        """
        with self.client.get_connection() as conn:
            row = conn.execute("SELECT MAX(computed_at) FROM stats").fetchone()
            if not row or row[0] is None:
                return None
            computed_at = parse_timestamp(row[0])

            def stations(metric: str) -> List[StationStats]:
                return [
                    StationStats(r["callsign"], r["qso_count"] or 0, r["total_seconds"] or 0.0)
                    for r in self.rows(metric)
                ]

            heatmap = empty_heatmap()
            for r in self.rows(METRIC_HEATMAP_WEEK):
                heatmap[r["weekday"]][r["hour"]] = r["qso_count"] or 0

            return AggregateSnapshot(
                computed_at=computed_at,
                top_stations_by_count=stations(METRIC_TOP_CALLS_QSO),
                top_stations_by_duration=stations(METRIC_TOP_CALLS_DURATION),
                top_stations_by_score=stations(METRIC_TOP_CALLS_SCORE),
                top_groups_by_duration=[
                    GroupStats(r["tg"], r["qso_count"] or 0, r["total_seconds"] or 0.0)
                    for r in self.rows(METRIC_TOP_TG_DURATION)
                ],
                heatmap_week=heatmap,
            )
