# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the read-side report queries.
"""

from datetime import datetime, timedelta

import pytest

from fmlastheard.processing import reports
from fmlastheard.processing.ingest.normalizer import CanonicalEvent
from fmlastheard.processing.stats.publisher import StatsPublisher
from fmlastheard.processing.stats.scheduler import StatsScheduler

NOW = datetime(2025, 3, 10, 12, 0, 0)


def event(kind, station, seconds_ago, group=262, origin="fm1"):
    return CanonicalEvent(
        timestamp=NOW - timedelta(seconds=seconds_ago),
        kind=kind,
        station=station,
        group=group,
        origin=origin,
    )


class TestPrefixToCountry:
    @pytest.mark.parametrize("callsign,expected", [
        ("DL1ABC", "DE"),
        ("db0xyz", "DE"),
        ("OH0XX", "AX"),
        ("OH2ABC", "FI"),
        ("EA8AB", "ES"),
        ("HB9XYZ", "CH"),
        ("G4ABC", "GB"),
        ("W1AW", "US"),
        ("QQ1Q", None),
        ("", None),
        (None, None),
    ])
    def test_longest_prefix(self, callsign, expected):
        assert reports.prefix_to_country(callsign) == expected


class TestLastHeard:
    """Test the stop-event list with durations."""

    def test_duration_back_to_latest_start(self, service, client):
        service.ingest(event("start", "DL1ABC", 100))
        service.ingest(event("stop", "DL1ABC", 90))
        service.ingest(event("start", "DL1ABC", 60))
        service.ingest(event("stop", "DL1ABC", 15))
        service.register_node('{"call": "DL1ABC", "location": "Hamburg"}')

        rows = reports.last_heard(client)
        assert [r["duration_s"] for r in rows] == [45, 10]
        assert rows[0]["location"] == "Hamburg"
        assert rows[0]["country_code"] == "DE"
        assert rows[0]["event_time"] == "2025-03-10 11:59:45"

    def test_stop_without_start_has_no_duration(self, service, client):
        service.ingest(event("stop", "DL1ABC", 10))
        assert reports.last_heard(client)[0]["duration_s"] is None

    def test_modes_filter_by_group(self, service, client):
        for station, group in (("AA1A", 262), ("BB1B", 91), ("CC1C", 9)):
            service.ingest(event("start", station, 60, group=group))
            service.ingest(event("stop", station, 30, group=group))

        assert len(reports.last_heard(client, mode="all")) == 3
        assert [r["callsign"] for r in reports.last_heard(client, mode="local", tg=91)] == ["BB1B"]
        monitored = reports.last_heard(client, mode="monitored", tgs=[262, 9, 0])
        assert {r["callsign"] for r in monitored} == {"AA1A", "CC1C"}
        # A local query without a group is unfiltered
        assert len(reports.last_heard(client, mode="local")) == 3

    def test_limit(self, service, client):
        for i in range(60):
            service.ingest(event("stop", f"ST{i:02d}", 1000 - i))
        assert len(reports.last_heard(client)) == 50

    def test_unknown_mode(self, client):
        with pytest.raises(ValueError):
            reports.last_heard(client, mode="everything")


class TestPublishedReports:
    """Test reads of the published snapshot."""

    def test_rankings_and_heatmap(self, service, client):
        service.ingest(event("start", "DL1ABC", 600))
        service.ingest(event("stop", "DL1ABC", 540))
        service.ingest(event("start", "G4ABC", 300))
        service.ingest(event("stop", "G4ABC", 280))
        StatsScheduler(service.event_log, StatsPublisher(client), clock=lambda: NOW).recompute()

        by_count = reports.top_calls_by_count(client)
        assert [r["callsign"] for r in by_count] == ["DL1ABC", "G4ABC"]
        assert by_count[1]["country_code"] == "GB"

        by_duration = reports.top_calls_by_duration(client)
        assert by_duration[0]["total_seconds"] == 60.0

        fame = reports.hall_of_fame(client)
        assert fame[0]["avg_seconds"] == 60.0

        groups = reports.top_talkgroups(client)
        assert groups == [{
            "rank": 1, "tg": 262, "qso_count": 2, "total_seconds": 80.0, "avg_seconds": 40.0,
        }]

        grid = reports.heatmap(client)
        assert grid[0][11] == 2

    def test_empty_before_first_run(self, client):
        assert reports.top_calls_by_count(client) == []
        assert sum(map(sum, reports.heatmap(client))) == 0

    def test_active_stations(self, service, client):
        service.ingest(event("start", "DL1ABC", 5))
        rows = reports.active_stations(client)
        assert [r["callsign"] for r in rows] == ["DL1ABC"]
        assert rows[0]["country_code"] == "DE"
