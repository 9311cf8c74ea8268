# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Throttled statistics recomputation.

Each recompute is a stateless read -> reconstruct -> aggregate -> publish
cycle over the talker log. tick() runs it at most once per interval; a
failed cycle is logged and the next due tick simply tries again.
"""

import logging
import sqlite3
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from ...capture.config import Config
from ..errors import FMLastHeardError
from ..ingest.event_log import EventLog
from .aggregation import AggregateSnapshot, AggregationEngine
from .publisher import StatsPublisher
from .sessions import MIN_SESSION_SECONDS, reconstruct_sessions

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 600
DEFAULT_WINDOW_DAYS = 30


class StatsScheduler:
    """
    Runs the stats cycle at most once per interval.

    The throttle uses a monotonic clock; the stats windows use the local
    wall clock, matching the timestamps stored in the talker log.
    """

    def __init__(
        self,
        event_log: EventLog,
        publisher: StatsPublisher,
        engine: Optional[AggregationEngine] = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        window_days: int = DEFAULT_WINDOW_DAYS,
        min_session_seconds: float = MIN_SESSION_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.event_log = event_log
        self.publisher = publisher
        self.engine = engine or AggregationEngine()
        self.interval_seconds = interval_seconds
        self.window_days = window_days
        self.min_session_seconds = min_session_seconds
        self.clock = clock
        self.monotonic = monotonic

        self._last_run: Optional[float] = None
        self.last_snapshot: Optional[AggregateSnapshot] = None
        self.last_error: Optional[str] = None
        self.runs = 0
        self.failures = 0

    @classmethod
    def from_config(cls, event_log: EventLog, publisher: StatsPublisher, config: Config) -> "StatsScheduler":
        return cls(
            event_log,
            publisher,
            engine=AggregationEngine(top_n=config.top_n, heatmap_days=config.heatmap_days),
            interval_seconds=config.stats_interval_seconds,
            window_days=config.stats_window_days,
            min_session_seconds=config.min_session_seconds,
        )

    def is_due(self) -> bool:
        if self._last_run is None:
            return True
        return self.monotonic() - self._last_run >= self.interval_seconds

    def tick(self) -> Optional[AggregateSnapshot]:
        """
        Recompute if the interval has elapsed, otherwise do nothing.

        Returns:
            The published snapshot, or None when throttled or failed
        """
        if not self.is_due():
            return None

        self._last_run = self.monotonic()
        return self.recompute()

    def recompute(self, now: Optional[datetime] = None) -> Optional[AggregateSnapshot]:
        """
        Run one full stats cycle, bypassing the throttle.

        Returns:
            The published snapshot, or None if reading or publishing failed
        """
        now = now or self.clock()
        since = now - timedelta(days=self.window_days)
        self.runs += 1

        try:
            events = self.event_log.window(since)
            sessions = reconstruct_sessions(events, self.min_session_seconds)
            snapshot = self.engine.aggregate(sessions, now)
            self.publisher.publish(snapshot)
        except (FMLastHeardError, sqlite3.Error) as e:
            self.failures += 1
            self.last_error = str(e)
            logger.error(f"Stats recompute failed, keeping previous snapshot: {e}")
            return None

        logger.debug(f"Stats recomputed from {len(events)} events into {len(sessions)} sessions")
        self.last_error = None
        self.last_snapshot = snapshot
        return snapshot
