# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Aggregation of reconstructed sessions into ranked usage statistics.

Produces:
- Top stations by session count, by total talk time, and by score
  (score = sessions * total seconds / 100)
- Top talk groups by total talk time
- A weekday x hour heatmap of session starts (Monday = 0)

The ranking tables cover whatever sessions they are given (the scheduler
feeds the 30-day window); the heatmap additionally restricts itself to
sessions that started within the last heatmap_days days.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .sessions import Session

T = TypeVar("T")

TOP_N = 10
HEATMAP_DAYS = 7
WEEKDAYS = 7
HOURS = 24

METRIC_TOP_CALLS_QSO = "top_calls_qso"
METRIC_TOP_CALLS_DURATION = "top_calls_duration"
METRIC_TOP_CALLS_SCORE = "top_calls_score"
METRIC_TOP_TG_DURATION = "top_tg_duration"
METRIC_HEATMAP_WEEK = "heatmap_week"

METRICS = (
    METRIC_TOP_CALLS_QSO,
    METRIC_TOP_CALLS_DURATION,
    METRIC_TOP_CALLS_SCORE,
    METRIC_TOP_TG_DURATION,
    METRIC_HEATMAP_WEEK,
)


@dataclass
class StationStats:
    station: str
    qso_count: int = 0
    total_seconds: float = 0.0

    @property
    def score(self) -> float:
        return self.qso_count * self.total_seconds / 100


@dataclass
class GroupStats:
    group: int
    qso_count: int = 0
    total_seconds: float = 0.0


def empty_heatmap() -> List[List[int]]:
    return [[0] * HOURS for _ in range(WEEKDAYS)]


@dataclass
class AggregateSnapshot:
    """One complete, publishable set of statistics."""

    computed_at: datetime
    top_stations_by_count: List[StationStats] = field(default_factory=list)
    top_stations_by_duration: List[StationStats] = field(default_factory=list)
    top_stations_by_score: List[StationStats] = field(default_factory=list)
    top_groups_by_duration: List[GroupStats] = field(default_factory=list)
    heatmap_week: List[List[int]] = field(default_factory=empty_heatmap)
    session_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        def station_row(s: StationStats) -> Dict[str, Any]:
            return {
                'station': s.station,
                'qso_count': s.qso_count,
                'total_seconds': s.total_seconds,
                'score': s.score,
            }

        return {
            'computed_at': self.computed_at.isoformat(sep=' '),
            'session_count': self.session_count,
            METRIC_TOP_CALLS_QSO: [station_row(s) for s in self.top_stations_by_count],
            METRIC_TOP_CALLS_DURATION: [station_row(s) for s in self.top_stations_by_duration],
            METRIC_TOP_CALLS_SCORE: [station_row(s) for s in self.top_stations_by_score],
            METRIC_TOP_TG_DURATION: [
                {'group': g.group, 'qso_count': g.qso_count, 'total_seconds': g.total_seconds}
                for g in self.top_groups_by_duration
            ],
            METRIC_HEATMAP_WEEK: [list(row) for row in self.heatmap_week],
        }


def top_n(items: Iterable[T], key: Callable[[T], float], n: int = TOP_N) -> List[T]:
    """
    Sort descending by key and keep the first n.

    sorted() is stable, so equal keys keep their encounter order.
    """
    return sorted(items, key=key, reverse=True)[:n]


class AggregationEngine:
    """Derives an AggregateSnapshot from a set of sessions."""

    def __init__(self, top_n: int = TOP_N, heatmap_days: int = HEATMAP_DAYS):
        self.top_n = top_n
        self.heatmap_days = heatmap_days

    def aggregate(self, sessions: Iterable[Session], now: Optional[datetime] = None) -> AggregateSnapshot:
        """
        Aggregate sessions.

        Args:
            sessions: Sessions to rank
            now: Reference time for the heatmap window

        Returns:
            Fully populated snapshot
        """
        now = now or datetime.now()
        heatmap_since = now - timedelta(days=self.heatmap_days)

        stations: Dict[str, StationStats] = {}
        groups: Dict[int, GroupStats] = {}
        heatmap = empty_heatmap()
        count = 0

        for session in sessions:
            count += 1

            station = stations.setdefault(session.station, StationStats(session.station))
            station.qso_count += 1
            station.total_seconds += session.duration_seconds

            group = groups.setdefault(session.group, GroupStats(session.group))
            group.qso_count += 1
            group.total_seconds += session.duration_seconds

            if heatmap_since <= session.started_at <= now:
                heatmap[session.started_at.weekday()][session.started_at.hour] += 1

        return AggregateSnapshot(
            computed_at=now,
            top_stations_by_count=top_n(stations.values(), lambda s: s.qso_count, self.top_n),
            top_stations_by_duration=top_n(stations.values(), lambda s: s.total_seconds, self.top_n),
            top_stations_by_score=top_n(stations.values(), lambda s: s.score, self.top_n),
            top_groups_by_duration=top_n(groups.values(), lambda g: g.total_seconds, self.top_n),
            heatmap_week=heatmap,
            session_count=count,
        )
