# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for stats snapshot publication.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from fmlastheard.processing.errors import AggregationFailure
from fmlastheard.processing.stats import publisher as publisher_module
from fmlastheard.processing.stats.aggregation import AggregationEngine
from fmlastheard.processing.stats.publisher import StatsPublisher, snapshot_rows
from fmlastheard.processing.stats.sessions import Session

NOW = datetime(2025, 3, 10, 12, 0, 0)


def snapshot_for(*stations):
    sessions = [
        Session(station=s, group=262, started_at=NOW - timedelta(hours=2), duration_seconds=30.0)
        for s in stations
    ]
    return AggregationEngine().aggregate(sessions, NOW)


class TestSnapshotRows:
    def test_row_layout(self):
        rows = snapshot_rows(snapshot_for("AB1C"))
        metrics = [r[0] for r in rows]
        assert metrics.count("top_calls_qso") == 1
        assert metrics.count("top_tg_duration") == 1
        assert metrics.count("heatmap_week") == 7 * 24


class TestStatsPublisher:
    """Test atomic replace and read-back."""

    def test_publish_and_load(self, client):
        publisher = StatsPublisher(client)
        publisher.publish(snapshot_for("AB1C", "AB1C", "XY2Z"))

        loaded = publisher.load()
        assert loaded.computed_at == NOW
        assert [s.station for s in loaded.top_stations_by_count] == ["AB1C", "XY2Z"]
        assert loaded.top_stations_by_count[0].qso_count == 2
        assert loaded.top_groups_by_duration[0].group == 262
        assert loaded.heatmap_week[0][10] == 3

    def test_publish_replaces_previous_snapshot(self, client):
        publisher = StatsPublisher(client)
        publisher.publish(snapshot_for("AB1C"))
        publisher.publish(snapshot_for("XY2Z"))

        rows = publisher.rows("top_calls_qso")
        assert [r["callsign"] for r in rows] == ["XY2Z"]

    def test_load_before_first_publish(self, client):
        assert StatsPublisher(client).load() is None

    def test_failed_publish_keeps_previous_snapshot(self, client):
        publisher = StatsPublisher(client)
        publisher.publish(snapshot_for("AB1C"))

        bad_sql = "INSERT INTO stats (metric) VALUES (?)"  # violates NOT NULL on value
        with patch.object(publisher_module, "INSERT_SQL", bad_sql):
            with patch.object(publisher_module, "snapshot_rows", return_value=[("top_calls_qso",)]):
                with pytest.raises(AggregationFailure):
                    publisher.publish(snapshot_for("XY2Z"))

        rows = publisher.rows("top_calls_qso")
        assert [r["callsign"] for r in rows] == ["AB1C"]
        assert len(publisher.rows("heatmap_week")) == 7 * 24
