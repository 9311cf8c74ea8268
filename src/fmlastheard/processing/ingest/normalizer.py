# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Normalization of decoded talker messages into canonical events.
"""

import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional

from ..errors import ValidationError
from .decoder import TalkerMessage

# Storage format for all date-times (naive, local clock)
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

KINDS = ("start", "stop")

_TIME_OF_DAY = re.compile(r"^\d{1,2}:\d{2}:\d{2}$")
_LEADING_INT = re.compile(r"^[+-]?\d+")
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})[.,]\d+")

# Talk group ids are 32-bit signed integers on the relay
GROUP_MIN = -(2 ** 31)
GROUP_MAX = 2 ** 31 - 1


@dataclass(frozen=True)
class CanonicalEvent:
    """A validated start/stop event for one station."""

    timestamp: datetime
    kind: str
    station: str
    group: int
    origin: str = ""

    @property
    def is_start(self) -> bool:
        return self.kind == "start"


def format_timestamp(value: datetime) -> str:
    return value.strftime(DATETIME_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """
    Parse a stored or full date-time string (space or ISO 'T' separator).

    Fractional seconds are dropped and a trailing "Z" is read as UTC.
    """
    value = _FRACTION.sub(r"\1", value.strip())
    if value[-1:] in ("Z", "z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def resolve_time(value: str, now: Optional[datetime] = None) -> datetime:
    """
    Resolve a talker time field into a full date-time.

    A bare HH:MM:SS is combined with the current local calendar date; a
    value that already carries a date is used as-is.

    Raises:
        ValidationError: If the value is empty or cannot be parsed
    """
    value = (value or "").strip()
    if not value:
        raise ValidationError("time is empty", field="time")

    if _TIME_OF_DAY.match(value):
        try:
            tod = time.fromisoformat(value.zfill(8))
        except ValueError as e:
            raise ValidationError(f"invalid time of day '{value}'", field="time") from e
        today = (now or datetime.now()).date()
        return datetime.combine(today, tod)

    try:
        parsed = parse_timestamp(value)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"invalid date-time '{value}'", field="time") from e
    return parsed


def parse_group(value: str) -> int:
    """
    Parse a talk group id.

    Leading digits are honoured ("262 " -> 262, "91abc" -> 91); anything
    without a leading integer, or outside the 32-bit range, becomes 0.
    """
    match = _LEADING_INT.match((value or "").strip())
    if not match:
        return 0
    group = int(match.group(0))
    return group if GROUP_MIN <= group <= GROUP_MAX else 0


def normalize(message: TalkerMessage, now: Optional[datetime] = None) -> CanonicalEvent:
    """
    Turn a decoded talker message into a CanonicalEvent.

    Args:
        message: Decoded talker message
        now: Clock reading used to complete bare time-of-day values

    Raises:
        ValidationError: If time, kind, station or group is empty or invalid
    """
    kind = (message.talk or "").strip().lower()
    if kind not in KINDS:
        raise ValidationError(f"talk must be one of {KINDS}, got '{message.talk}'", field="talk")

    station = (message.call or "").strip()
    if not station:
        raise ValidationError("call is empty", field="call")

    if not (message.tg or "").strip():
        raise ValidationError("tg is empty", field="tg")

    return CanonicalEvent(
        timestamp=resolve_time(message.time, now),
        kind=kind,
        station=station,
        group=parse_group(message.tg),
        origin=(message.server or "").strip(),
    )
