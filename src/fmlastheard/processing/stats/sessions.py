# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Reconstruction of talk sessions from the start/stop log.

Rules, per station:
- A start always replaces any open start (last start wins); the replaced
  start is dropped without producing a session.
- A stop with no open start is ignored.
- A stop closing a start less than min_duration seconds earlier is treated
  as noise: no session, and the open start stays open.
- Otherwise the stop emits a session and closes the start.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from ..ingest.event_log import LoggedEvent
from ..ingest.normalizer import CanonicalEvent

logger = logging.getLogger(__name__)

MIN_SESSION_SECONDS = 5.0


@dataclass(frozen=True)
class Session:
    station: str
    group: int
    started_at: datetime
    duration_seconds: float


@dataclass
class _OpenStart:
    started_at: datetime
    group: int


def reconstruct_sessions(
    events: Iterable[Union[CanonicalEvent, LoggedEvent]],
    min_duration: float = MIN_SESSION_SECONDS,
) -> List[Session]:
    """
    Pair starts and stops into sessions.

    Args:
        events: Events ordered by station, then time, then sequence id
            (EventLog.window() returns them in this order)
        min_duration: Shortest duration, in seconds, that counts as a session

    Returns:
        Sessions in the order their stops were encountered
    """
    open_starts: Dict[str, Optional[_OpenStart]] = {}
    sessions: List[Session] = []
    noise = 0

    for item in events:
        event = item.event if isinstance(item, LoggedEvent) else item
        state = open_starts.setdefault(event.station, None)

        if event.is_start:
            open_starts[event.station] = _OpenStart(event.timestamp, event.group)
            continue

        if state is None:
            continue

        duration = (event.timestamp - state.started_at).total_seconds()
        if duration < min_duration:
            noise += 1
            continue

        sessions.append(Session(
            station=event.station,
            group=state.group,
            started_at=state.started_at,
            duration_seconds=duration,
        ))
        open_starts[event.station] = None

    if noise:
        logger.debug(f"Discarded {noise} stop(s) closing sessions shorter than {min_duration}s")
    return sessions
