# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the talker ingestion service.
"""

import json
import sqlite3
import threading
from datetime import datetime, timedelta
from unittest.mock import patch

from fmlastheard.processing.errors import StoreUnavailable
from fmlastheard.processing.ingest.event_log import RetentionPolicy
from fmlastheard.processing.ingest.normalizer import CanonicalEvent
from fmlastheard.processing.ingest.service import TalkerService
from fmlastheard.processing.stats.publisher import StatsPublisher
from fmlastheard.processing.stats.scheduler import StatsScheduler
from fmlastheard.processing.stats.sessions import reconstruct_sessions

NOW = datetime(2025, 3, 10, 12, 0, 0)


def event(kind, station, ts=NOW, group=262):
    return CanonicalEvent(timestamp=ts, kind=kind, station=station, group=group, origin="fm1")


def payload(talk, call, time="12:00:00", tg="262"):
    return json.dumps({"time": time, "talk": talk, "call": call, "tg": tg, "server": "fm1"})


class TestIngestPayload:
    """Test the decode -> normalize -> ingest path."""

    def test_valid_start(self, service):
        result = service.ingest_payload(payload("start", "AB1C"))
        assert result.accepted
        assert result.logged
        assert result.presence == "upserted"
        assert result.event.timestamp == datetime(2025, 3, 10, 12, 0, 0)
        assert service.event_log.count() == 1

    def test_malformed_payload_rejected(self, service):
        result = service.ingest_payload("not json")
        assert not result.accepted
        assert result.rejected
        assert result.error_kind == "decode"
        assert service.event_log.count() == 0

    def test_missing_field_rejected(self, service):
        result = service.ingest_payload('{"time": "12:00:00", "talk": "start", "tg": "262"}')
        assert result.error_kind == "validation"
        assert service.get_stats()['rejected'] == 1

    def test_oversized_group_maps_to_zero(self, service):
        result = service.ingest_payload(payload("start", "AB1C", tg="99999999999999999999"))
        assert result.accepted
        assert result.event.group == 0
        assert service.event_log.count() == 1

    def test_out_of_range_date_rejected(self, service):
        result = service.ingest_payload(payload("start", "AB1C", time="9999-12-31T23:59:59-12:00"))
        assert not result.accepted
        assert result.error_kind == "validation"
        assert service.event_log.count() == 0


class TestIngest:
    """Test the ingestion steps against the store."""

    def test_repeated_stop_is_ignored(self, service):
        service.ingest(event("start", "AB1C"))
        service.ingest(event("stop", "AB1C", NOW + timedelta(seconds=30)))
        result = service.ingest(event("stop", "AB1C", NOW + timedelta(seconds=31)))

        assert result.accepted
        assert result.duplicate
        assert not result.logged
        assert [e.event.kind for e in service.event_log.window(NOW - timedelta(days=1))] == ["start", "stop"]

    def test_repeated_stop_removes_presence_once(self, service):
        service.ingest(event("start", "AB1C"))
        first = service.ingest(event("stop", "AB1C", NOW + timedelta(seconds=30)))
        assert first.presence == "removed"

        service.ingest(event("start", "XY9Z", NOW + timedelta(seconds=31)))
        second = service.ingest(event("stop", "AB1C", NOW + timedelta(seconds=32)))
        assert second.duplicate
        assert second.presence == "none"
        assert [p.station for p in service.presence.snapshot()] == ["XY9Z"]

    def test_first_stop_without_history_is_logged(self, service):
        result = service.ingest(event("stop", "AB1C"))
        assert result.logged
        assert not result.duplicate

    def test_excluded_station_not_logged_but_present(self, service):
        result = service.ingest(event("start", "TG262"))
        assert result.excluded
        assert not result.logged
        assert service.event_log.count() == 0
        assert [p.station for p in service.presence.snapshot()] == ["TG262"]

        service.ingest(event("start", "*ECHO*"))
        assert service.event_log.count() == 0

    def test_presence_follows_start_and_stop(self, service):
        service.ingest(event("start", "AB1C"))
        service.ingest(event("start", "AB1C", group=91))
        assert len(service.active_stations()) == 1
        assert service.active_stations()[0].group == 91

        service.ingest(event("stop", "AB1C", NOW + timedelta(seconds=30)))
        assert service.active_stations() == []

    def test_stale_presence_swept_on_next_event(self, service, clock):
        service.ingest(event("start", "GONE"))
        clock.now = NOW + timedelta(seconds=181)
        service.ingest(event("start", "AB1C", clock.now))
        assert [p.station for p in service.presence.snapshot()] == ["AB1C"]

    def test_retention_applied_after_insert(self, client, clock):
        service = TalkerService(client, retention=RetentionPolicy(mode="count", max_rows=2), clock=clock)
        for i in range(4):
            service.ingest(event("start", f"ST{i}", NOW + timedelta(seconds=i)))
        assert service.event_log.count() == 2

    def test_presence_failure_does_not_fail_ingest(self, service):
        with patch.object(service.presence, "apply", side_effect=StoreUnavailable("locked")):
            result = service.ingest(event("start", "AB1C"))
        assert result.accepted
        assert result.logged
        assert result.presence == "none"

    def test_store_failure_reported(self, service):
        with patch.object(service.event_log, "append", side_effect=sqlite3.OperationalError("disk I/O error")):
            result = service.ingest(event("start", "AB1C"))
        assert not result.accepted
        assert result.error_kind == "store"
        assert not result.rejected
        assert service.get_stats()['failed'] == 1


class TestNodes:
    """Test node metadata registration."""

    def test_register_and_update(self, service):
        assert service.register_node('{"call": "DB0XYZ", "location": "Berlin", "lat": "52.5"}')
        assert service.register_node('{"call": "DB0XYZ", "location": "Potsdam"}')
        node = service.nodes.get("DB0XYZ")
        assert node["location"] == "Potsdam"
        assert node["lat"] is None
        assert service.nodes.count() == 1

    def test_bad_node_payload(self, service):
        assert not service.register_node('{"location": "nowhere"}')
        assert service.nodes.count() == 0


class TestIngestToStats:
    """Test ingestion feeding the recompute cycle."""

    def test_second_start_wins(self, service, client):
        first_start = NOW - timedelta(hours=2)
        second_start = NOW - timedelta(minutes=30)
        service.ingest(event("start", "AB1C", first_start))
        service.ingest(event("start", "AB1C", second_start))
        service.ingest(event("stop", "AB1C", second_start + timedelta(seconds=60)))

        sessions = reconstruct_sessions(service.event_log.window(NOW - timedelta(days=30)))
        assert [s.started_at for s in sessions] == [second_start]

        scheduler = StatsScheduler(service.event_log, StatsPublisher(client))
        snapshot = scheduler.recompute(NOW)
        assert snapshot.session_count == 1
        assert snapshot.top_stations_by_duration[0].total_seconds == 60.0
        # Monday: the session starts in hour 11, the superseded start was in hour 10
        assert snapshot.heatmap_week[0][11] == 1
        assert snapshot.heatmap_week[0][10] == 0

    def test_ingest_and_recompute_on_separate_threads(self, service, client):
        scheduler = StatsScheduler(service.event_log, StatsPublisher(client))
        errors = []

        def feed():
            try:
                for i in range(50):
                    start = NOW - timedelta(minutes=30) + timedelta(seconds=i)
                    service.ingest(event("start", f"ST{i}", start))
                    service.ingest(event("stop", f"ST{i}", start + timedelta(seconds=10)))
            except Exception as e:
                errors.append(e)

        feeder = threading.Thread(target=feed)
        feeder.start()
        while feeder.is_alive():
            scheduler.recompute(NOW)
        feeder.join()

        assert errors == []
        assert scheduler.failures == 0
        assert service.get_stats()['failed'] == 0
        assert service.event_log.count() == 100
        assert scheduler.recompute(NOW).session_count == 50
