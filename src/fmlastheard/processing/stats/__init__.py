# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Usage statistics derived from the talker log.

Provides:
- Session reconstruction from start/stop pairs
- Ranked aggregates and the weekly heatmap
- Atomic publication of snapshots to the stats table
- A throttled scheduler driving the cycle
"""

from .sessions import Session, reconstruct_sessions
from .aggregation import AggregationEngine, AggregateSnapshot, StationStats, GroupStats
from .publisher import StatsPublisher
from .scheduler import StatsScheduler

__all__ = [
    'Session',
    'reconstruct_sessions',
    'AggregationEngine',
    'AggregateSnapshot',
    'StationStats',
    'GroupStats',
    'StatsPublisher',
    'StatsScheduler',
]
