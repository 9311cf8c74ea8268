# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""SQLite-backed registry of relay node metadata."""

from __future__ import annotations

from typing import Optional

from ..database.sqlite_client import SQLiteClient
from .decoder import NodeMessage


class NodeRegistry:
    """Read/write node metadata rows keyed by callsign."""

    def __init__(self, sqlite_client: SQLiteClient):
        self.client = sqlite_client

    def upsert(self, node: NodeMessage) -> None:
        """Insert or replace the metadata for a node."""
        with self.client.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO nodes (
                    callsign, location, locator, lat, lon, rx_freq, tx_freq, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, datetime('now', 'localtime'))
                ON CONFLICT(callsign) DO UPDATE SET
                    location = excluded.location,
                    locator = excluded.locator,
                    lat = excluded.lat,
                    lon = excluded.lon,
                    rx_freq = excluded.rx_freq,
                    tx_freq = excluded.tx_freq,
                    updated_at = excluded.updated_at
                """,
                (
                    node.call,
                    node.location,
                    node.locator,
                    node.lat,
                    node.lon,
                    node.rx_freq,
                    node.tx_freq,
                ),
            )
            conn.commit()

    def get(self, callsign: str) -> Optional[dict]:
        """
        Load the metadata for a node.

        Returns:
            Dict of the stored columns, or None if the node is unknown
        """
        with self.client.get_connection() as conn:
            row = conn.execute(
                """
                SELECT callsign, location, locator, lat, lon, rx_freq, tx_freq, updated_at
                FROM nodes
                WHERE callsign = ?
                """,
                (callsign,),
            ).fetchone()
            return dict(row) if row else None

    def count(self) -> int:
        with self.client.get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
