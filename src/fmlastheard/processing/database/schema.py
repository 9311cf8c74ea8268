# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Database schema for the talker log and its derived tables.

Tables:
- talker_log: append-only start/stop history (bounded by retention)
- presence: currently active stations, one row per callsign
- stats: last published aggregate snapshot, rows tagged by metric
- nodes: node metadata from the relay's node channel
- config: single downstream configuration row (id=1)
"""

import logging
from typing import Optional

from .sqlite_client import SQLiteClient

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

TALKER_LOG_SQL = """
CREATE TABLE IF NOT EXISTS talker_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_time TEXT NOT NULL,
    talk TEXT NOT NULL CHECK (talk IN ('start', 'stop')),
    callsign TEXT NOT NULL,
    tg INTEGER NOT NULL,
    server TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
)
"""

TALKER_LOG_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_talker_log_event_time ON talker_log(event_time)",
    "CREATE INDEX IF NOT EXISTS idx_talker_log_callsign ON talker_log(callsign, id)",
    "CREATE INDEX IF NOT EXISTS idx_talker_log_tg ON talker_log(tg)",
]

PRESENCE_SQL = """
CREATE TABLE IF NOT EXISTS presence (
    callsign TEXT PRIMARY KEY,
    event_time TEXT NOT NULL,
    tg INTEGER NOT NULL,
    server TEXT NOT NULL DEFAULT '',
    last_update TEXT NOT NULL
)
"""

PRESENCE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_presence_last_update ON presence(last_update)",
]

STATS_SQL = """
CREATE TABLE IF NOT EXISTS stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    metric TEXT NOT NULL,
    rank INTEGER,
    callsign TEXT,
    tg INTEGER,
    weekday INTEGER,
    hour INTEGER,
    qso_count INTEGER,
    total_seconds REAL,
    score REAL,
    value REAL NOT NULL,
    computed_at TEXT NOT NULL
)
"""

STATS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_stats_metric_rank ON stats(metric, rank)",
]

NODES_SQL = """
CREATE TABLE IF NOT EXISTS nodes (
    callsign TEXT PRIMARY KEY,
    location TEXT,
    locator TEXT,
    lat REAL,
    lon REAL,
    rx_freq TEXT,
    tx_freq TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
)
"""

CONFIG_SQL = """
CREATE TABLE IF NOT EXISTS config (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    callsign TEXT NOT NULL,
    dns_domain TEXT NOT NULL,
    default_tg INTEGER NOT NULL DEFAULT 0,
    monitor_tgs TEXT NOT NULL DEFAULT '',
    location TEXT,
    locator TEXT,
    sysop TEXT,
    lat TEXT,
    lon TEXT,
    tx_freq TEXT,
    rx_freq TEXT,
    website TEXT,
    node_location TEXT,
    ctcss TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
)
"""

SCHEMA_VERSION_SQL = "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"


def create_schema(client: SQLiteClient) -> None:
    """
    Create all tables and indexes if they do not exist.

    Args:
        client: SQLiteClient instance
    """
    with client.transaction() as conn:
        for sql in (TALKER_LOG_SQL, PRESENCE_SQL, STATS_SQL, NODES_SQL, CONFIG_SQL, SCHEMA_VERSION_SQL):
            conn.execute(sql)
        for sql in TALKER_LOG_INDEXES + PRESENCE_INDEXES + STATS_INDEXES:
            conn.execute(sql)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )

    logger.info(f"Database schema ready (version {SCHEMA_VERSION})")


def get_schema_version(client: SQLiteClient) -> Optional[int]:
    """
    Get the recorded schema version.

    Returns:
        Highest recorded version, or None if the schema was never created
    """
    with client.get_connection() as conn:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        ).fetchone()
        if not row:
            return None
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row and row[0] is not None else None
