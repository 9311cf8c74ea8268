# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
End-to-end tests for the fmlh command group using click's CliRunner.
"""

import json
from datetime import datetime, timedelta

import pytest
from click.testing import CliRunner

from fmlastheard.cli.main import cli

SVXLINK_CONF = """\
[GLOBAL]
LOGICS=RepeaterLogic,ReflectorLogic

[RepeaterLogic]
TYPE=Repeater
CALLSIGN=DB0XYZ

[ReflectorLogic]
TYPE=Reflector
DNS_DOMAIN=fm-funknetz.de
DEFAULT_TG=262
MONITOR_TGS=9,262++,91
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    base = [
        "--config", str(tmp_path / "config.yaml"),
        "--db", str(tmp_path / "lastheard.db"),
        "--format", "json",
    ]

    def _invoke(*args):
        return runner.invoke(cli, base + list(args), catch_exceptions=False)

    return _invoke


def talker_lines(*events):
    return "\n".join(
        json.dumps({"time": ts.strftime("%Y-%m-%d %H:%M:%S"), "talk": talk, "call": call, "tg": tg, "server": "fm1"})
        for talk, call, tg, ts in events
    ) + "\n"


@pytest.fixture
def capture_file(tmp_path):
    start = datetime.now().replace(microsecond=0) - timedelta(minutes=10)
    path = tmp_path / "capture.jsonl"
    path.write_text(talker_lines(
        ("start", "DL1ABC", "262", start),
        ("stop", "DL1ABC", "262", start + timedelta(seconds=60)),
        ("start", "G4XYZ", "91", start + timedelta(seconds=120)),
        ("stop", "G4XYZ", "91", start + timedelta(seconds=140)),
    ))
    return path


class TestStoreCommands:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "fmlh version" in result.output

    def test_missing_database(self, invoke):
        result = invoke("lastheard")
        assert result.exit_code == 1
        assert "fmlh init-db" in result.output

    def test_init_db(self, invoke, tmp_path):
        result = invoke("init-db")
        assert result.exit_code == 0
        assert (tmp_path / "lastheard.db").exists()

    def test_ingest_and_recompute(self, invoke, capture_file):
        result = invoke("ingest-file", str(capture_file), "--recompute")
        assert result.exit_code == 0
        assert "Published statistics from 2 sessions" in result.output


class TestReportCommands:
    """Reports read back what ingest-file stored."""

    @pytest.fixture(autouse=True)
    def populated(self, invoke, capture_file):
        assert invoke("ingest-file", str(capture_file), "--recompute").exit_code == 0

    def test_lastheard(self, invoke):
        result = invoke("lastheard")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["count"] == 2
        assert [row["callsign"] for row in data["last_heard"]] == ["G4XYZ", "DL1ABC"]
        assert [row["duration_s"] for row in data["last_heard"]] == [20, 60]
        assert data["last_heard"][1]["country_code"] == "DE"

    def test_lastheard_local_group(self, invoke):
        data = json.loads(invoke("lastheard", "--mode", "local", "--tg", "91").output)
        assert [row["callsign"] for row in data["last_heard"]] == ["G4XYZ"]

    def test_lastheard_monitored_groups(self, invoke):
        data = json.loads(invoke("lastheard", "--mode", "monitored", "--tgs", "262,9").output)
        assert [row["callsign"] for row in data["last_heard"]] == ["DL1ABC"]

    def test_stats_single_metric(self, invoke):
        result = invoke("stats", "--metric", "duration")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["rows"][0]["callsign"] == "DL1ABC"
        assert data["rows"][0]["total_seconds"] == 60.0

    def test_heatmap(self, invoke):
        data = json.loads(invoke("heatmap").output)
        assert list(data) == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        assert sum(sum(hours) for hours in data.values()) == 2

    def test_active_is_empty_after_stops(self, invoke):
        data = json.loads(invoke("active").output)
        assert data == {"active": [], "count": 0}


class TestNodeConfigCommands:
    def test_seed_and_show(self, invoke, tmp_path):
        conf = tmp_path / "svxlink.conf"
        conf.write_text(SVXLINK_CONF)

        result = invoke("seed-config", str(conf))
        assert result.exit_code == 0
        assert "Config row created" in result.output

        data = json.loads(invoke("show-config").output)
        assert data["callsign"] == "DB0XYZ"
        assert data["default_tg"] == 262
        assert data["monitor_tgs"] == "9,262++,91"

    def test_lastheard_falls_back_to_node_default_tg(self, invoke, tmp_path, capture_file):
        conf = tmp_path / "svxlink.conf"
        conf.write_text(SVXLINK_CONF)
        invoke("seed-config", str(conf))
        invoke("ingest-file", str(capture_file))

        data = json.loads(invoke("lastheard", "--mode", "local").output)
        assert [row["tg"] for row in data["last_heard"]] == [262]

    def test_seed_from_invalid_file(self, invoke, tmp_path):
        conf = tmp_path / "svxlink.conf"
        conf.write_text("[RepeaterLogic]\nTYPE=Repeater\n")

        result = invoke("seed-config", str(conf))
        assert result.exit_code == 1
        assert "CALLSIGN" in result.output

    def test_show_runtime_settings(self, invoke, tmp_path):
        data = json.loads(invoke("show-config", "--runtime").output)
        assert data["db_path"] == str(tmp_path / "lastheard.db")
        assert data["retention_mode"] == "age"
