# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Read-side queries used by the dashboard and the CLI.

Everything here only reads: the last-heard list straight from the talker
log, the active stations from the presence table, and the ranked lists and
heatmap from the published stats snapshot.
"""

from typing import Any, Dict, Iterable, List, Optional

from .database.sqlite_client import SQLiteClient
from .stats.aggregation import (
    METRIC_HEATMAP_WEEK,
    METRIC_TOP_CALLS_DURATION,
    METRIC_TOP_CALLS_QSO,
    METRIC_TOP_CALLS_SCORE,
    METRIC_TOP_TG_DURATION,
    empty_heatmap,
)

LAST_HEARD_LIMIT = 50
LAST_HEARD_MODES = ("all", "local", "monitored")

# Callsign prefix -> ISO 3166 country code. Lookups use the longest
# matching prefix, so "OH0" beats "OH" and "EA8" beats "EA".
PREFIX_COUNTRY = {
    # Europe
    'DA': 'DE', 'DB': 'DE', 'DC': 'DE', 'DD': 'DE', 'DE': 'DE', 'DF': 'DE', 'DG': 'DE',
    'DH': 'DE', 'DJ': 'DE', 'DK': 'DE', 'DL': 'DE', 'DM': 'DE', 'DN': 'DE', 'DO': 'DE',
    'DP1': 'AQ',
    'OE': 'AT', 'OK': 'CZ', 'OM': 'SK', 'HA': 'HU', 'SP': 'PL', 'S5': 'SI', '9A': 'HR',
    'YU': 'RS', 'YT': 'RS', 'YL': 'LV', 'ES': 'EE', 'LY': 'LT',
    'OH': 'FI', 'OF': 'FI', 'OG': 'FI', 'OJ': 'FI', 'OH0': 'AX',
    'SM': 'SE', 'SA': 'SE', '7S': 'SE', 'SB': 'SE', 'SL': 'SE',
    'LA': 'NO', 'LB': 'NO', 'LC': 'NO', 'LD': 'NO', 'LG': 'NO',
    'OZ': 'DK', 'OV': 'DK', '5P': 'DK', '5Q': 'DK', 'OY': 'FO', 'OX': 'GL',
    'TF': 'IS', 'EI': 'IE', 'PA': 'NL', 'PD': 'NL', 'PE': 'NL', 'ON': 'BE', 'LX': 'LU',
    'HB9': 'CH', 'HB3': 'CH', 'HB0': 'LI',
    'F': 'FR', 'TM': 'FR', 'TK': 'FR',
    'EA': 'ES', 'EB': 'ES', 'EC': 'ES', 'ED': 'ES', 'EE': 'ES', 'EF': 'ES', 'EG': 'ES',
    'EH': 'ES', 'AM': 'ES', 'AN': 'ES', 'AO': 'ES', 'EA8': 'ES',
    'CT': 'PT', 'CU': 'PT', 'CT9': 'PT',
    'I': 'IT', 'IZ': 'IT', 'IW': 'IT', 'IV': 'IT', 'IS0': 'IT',
    'SV': 'GR', 'SW': 'GR', 'SX': 'GR', 'SY': 'GR',
    'YO': 'RO', 'YR': 'RO', 'LZ': 'BG', 'E7': 'BA', 'Z3': 'MK', '9H': 'MT', 'ER': 'MD',
    'R': 'RU', 'UA': 'RU', 'UB': 'RU', 'UC': 'RU', 'UD': 'RU', 'UE': 'RU', 'UF': 'RU',
    'UG': 'RU', 'UH': 'RU', 'UI': 'RU',
    'UR': 'UA', 'US': 'UA', 'UT': 'UA', 'UU': 'UA', 'UV': 'UA', 'UW': 'UA', 'UX': 'UA',
    'UY': 'UA', 'UZ': 'UA', 'EM': 'UA', 'EN': 'UA', 'EO': 'UA',
    'TA': 'TR', 'TC': 'TR',
    # United Kingdom
    'G': 'GB', 'M': 'GB', '2E': 'GB',
    # North America
    'K': 'US', 'N': 'US', 'W': 'US', 'AA': 'US', 'AB': 'US', 'AC': 'US', 'AD': 'US',
    'AE': 'US', 'AF': 'US', 'AG': 'US', 'AI': 'US', 'AJ': 'US', 'AK': 'US',
    'KP4': 'PR', 'NP4': 'PR', 'WP4': 'PR', 'KP2': 'VI', 'KH8': 'AS',
    'VE': 'CA', 'VA': 'CA', 'VY': 'CA', 'VO': 'CA',
    # South America
    'LU': 'AR', 'LW': 'AR', 'PY': 'BR', 'PP': 'BR', 'PU': 'BR', 'CE': 'CL', 'CX': 'UY',
    'HC': 'EC', 'OA': 'PE', 'CP': 'BO', 'HK': 'CO', 'YV': 'VE',
    # Africa and Middle East
    'ZS': 'ZA', 'ZR': 'ZA', 'ZU': 'ZA', 'CN': 'MA', 'SU': 'EG', '5Z': 'KE', '9G': 'GH',
    '4X': 'IL', '4Z': 'IL', '5B': 'CY', 'A6': 'AE', 'A7': 'QA', 'HZ': 'SA', '9K': 'KW',
    # Asia
    'JA': 'JP', 'JE': 'JP', 'JF': 'JP', 'JG': 'JP', 'JH': 'JP', 'JI': 'JP', 'JR': 'JP',
    'HL': 'KR', 'DS': 'KR', 'BV': 'TW', 'BY': 'CN', 'BG': 'CN', 'VU': 'IN', 'VR': 'HK',
    'HS': 'TH', '9M': 'MY', '9V': 'SG', 'YB': 'ID', 'DU': 'PH',
    # Oceania and Antarctica
    'VK': 'AU', 'ZL': 'NZ', 'VK0': 'AQ', 'KC4': 'AQ', 'VP8': 'FK',
}

_LONGEST_PREFIX = max(len(p) for p in PREFIX_COUNTRY)


def prefix_to_country(callsign: Optional[str]) -> Optional[str]:
    """
    Country code for a callsign, by longest matching prefix.

    Returns:
        ISO 3166 alpha-2 code, or None if no prefix matches
    """
    call = (callsign or "").strip().upper()
    for length in range(min(len(call), _LONGEST_PREFIX), 0, -1):
        code = PREFIX_COUNTRY.get(call[:length])
        if code:
            return code
    return None


def _with_country(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    result = []
    for row in rows:
        row = dict(row)
        row['country_code'] = prefix_to_country(row.get('callsign'))
        result.append(row)
    return result


def last_heard(
    client: SQLiteClient,
    mode: str = "all",
    tg: Optional[int] = None,
    tgs: Optional[Iterable[int]] = None,
    limit: int = LAST_HEARD_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Most recent stop events with their transmission length.

    The duration runs back to the latest start from the same station on the
    same group and server; it is None when no such start is logged.

    Args:
        client: SQLite client
        mode: "all", "local" (single group `tg`) or "monitored" (groups `tgs`)
        tg: Group for local mode; ignored unless positive
        tgs: Groups for monitored mode; non-positive entries are ignored
        limit: Maximum rows returned

    Raises:
        ValueError: If mode is unknown
    """
    if mode not in LAST_HEARD_MODES:
        raise ValueError(f"Unknown last-heard mode: {mode}")

    where = ""
    params: List[Any] = []
    if mode == "local" and tg and tg > 0:
        where = " AND s.tg = ?"
        params.append(tg)
    elif mode == "monitored":
        groups = [g for g in (tgs or []) if g > 0]
        if groups:
            where = f" AND s.tg IN ({','.join('?' for _ in groups)})"
            params.extend(groups)

    params.append(limit)
    sql = f"""
        SELECT
            s.callsign,
            s.tg,
            s.server,
            s.talk,
            s.event_time,
            strftime('%s', s.event_time) - strftime('%s', (
                SELECT MAX(start.event_time)
                FROM talker_log start
                WHERE start.callsign = s.callsign
                  AND start.tg = s.tg
                  AND start.server = s.server
                  AND start.talk = 'start'
                  AND start.event_time <= s.event_time
            )) AS duration_s,
            n.location
        FROM talker_log s
        LEFT JOIN nodes n ON n.callsign = s.callsign
        WHERE s.talk = 'stop'{where}
        ORDER BY s.event_time DESC, s.id DESC
        LIMIT ?
    """

    with client.get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return _with_country(rows)


def active_stations(client: SQLiteClient) -> List[Dict[str, Any]]:
    """Presence rows with node location, most recent start first."""
    with client.get_connection() as conn:
        rows = conn.execute(
            """
            SELECT p.callsign, p.tg, p.server, p.event_time, p.last_update, n.location
            FROM presence p
            LEFT JOIN nodes n ON n.callsign = p.callsign
            ORDER BY p.event_time DESC, p.callsign ASC
            """
        ).fetchall()
    return _with_country(rows)


def _metric_rows(client: SQLiteClient, metric: str, limit: int) -> List[Dict[str, Any]]:
    with client.get_connection() as conn:
        rows = conn.execute(
            """
            SELECT rank, callsign, tg,
                   COALESCE(qso_count, 0) AS qso_count,
                   COALESCE(total_seconds, 0) AS total_seconds,
                   COALESCE(score, 0) AS score
            FROM stats
            WHERE metric = ?
            ORDER BY rank ASC
            LIMIT ?
            """,
            (metric, limit),
        ).fetchall()
    return [dict(row) for row in rows]


def top_calls_by_count(client: SQLiteClient, limit: int = 10) -> List[Dict[str, Any]]:
    return _with_country(_metric_rows(client, METRIC_TOP_CALLS_QSO, limit))


def top_calls_by_duration(client: SQLiteClient, limit: int = 10) -> List[Dict[str, Any]]:
    return _with_country(_metric_rows(client, METRIC_TOP_CALLS_DURATION, limit))


def hall_of_fame(client: SQLiteClient, limit: int = 10) -> List[Dict[str, Any]]:
    """Top stations by score, with their average transmission length."""
    rows = _with_country(_metric_rows(client, METRIC_TOP_CALLS_SCORE, limit))
    for row in rows:
        qso = row['qso_count']
        row['avg_seconds'] = row['total_seconds'] / qso if qso > 0 else 0.0
    return rows


def top_talkgroups(client: SQLiteClient, limit: int = 10) -> List[Dict[str, Any]]:
    rows = _metric_rows(client, METRIC_TOP_TG_DURATION, limit)
    for row in rows:
        row.pop('callsign', None)
        row.pop('score', None)
        qso = row['qso_count']
        row['avg_seconds'] = row['total_seconds'] / qso if qso > 0 else 0.0
    return rows


def heatmap(client: SQLiteClient) -> List[List[int]]:
    """The published weekday x hour grid (Monday = 0); all zeros before the first run."""
    grid = empty_heatmap()
    with client.get_connection() as conn:
        rows = conn.execute(
            "SELECT weekday, hour, value FROM stats WHERE metric = ?",
            (METRIC_HEATMAP_WEEK,),
        ).fetchall()
    for row in rows:
        grid[row['weekday']][row['hour']] = int(row['value'])
    return grid
