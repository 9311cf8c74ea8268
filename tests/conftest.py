# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Shared fixtures: a fresh SQLite store per test and a service on a fixed clock.
"""

from datetime import datetime

import pytest

from fmlastheard.processing.database.schema import create_schema
from fmlastheard.processing.database.sqlite_client import SQLiteClient
from fmlastheard.processing.ingest.service import TalkerService

# A Monday
NOW = datetime(2025, 3, 10, 12, 0, 0)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def client(tmp_path):
    client = SQLiteClient(str(tmp_path / "lastheard.db"))
    client.initialize_database()
    create_schema(client)
    yield client
    client.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def service(client, clock):
    return TalkerService(
        client,
        presence_ttl_seconds=180,
        exclude_patterns=[r"^TG\d*$", r"^\*"],
        clock=clock,
    )
