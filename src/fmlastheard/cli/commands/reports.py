# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Report commands: lastheard, active, stats, heatmap.
"""

from datetime import datetime
from typing import List, Optional

import click

from ...processing import reports
from ...processing.config_store import ConfigStore, parse_monitor_tgs
from ...processing.ingest.presence import PresenceCache
from ..context import CLIContext, pass_context

RANKINGS = {
    "qso": ("Top stations by transmissions", reports.top_calls_by_count, False),
    "duration": ("Top stations by talk time", reports.top_calls_by_duration, False),
    "score": ("Hall of fame", reports.hall_of_fame, False),
    "tg": ("Top talk groups", reports.top_talkgroups, True),
}


def _parse_tgs(value: Optional[str]) -> List[int]:
    return parse_monitor_tgs(value or "")


@click.command()
@click.option(
    "--mode", "-m",
    type=click.Choice(list(reports.LAST_HEARD_MODES)),
    default="all",
    help="all, local (one talk group) or monitored (several)"
)
@click.option("--tg", type=int, help="Talk group for --mode local (default: node DEFAULT_TG)")
@click.option("--tgs", help="Comma separated groups for --mode monitored (default: node MONITOR_TGS)")
@click.option("--limit", "-n", type=int, default=reports.LAST_HEARD_LIMIT, show_default=True)
@pass_context
def lastheard(ctx: CLIContext, mode: str, tg: Optional[int], tgs: Optional[str], limit: int):
    """
    Show the most recent transmissions.

    Examples:
        fmlh lastheard
        fmlh lastheard --mode local --tg 262
        fmlh lastheard --mode monitored --tgs 9,262,91
    """
    client = ctx.open_store()

    groups = _parse_tgs(tgs)
    if (mode == "local" and tg is None) or (mode == "monitored" and not groups):
        node = ConfigStore(client).get() or {}
        if tg is None:
            tg = node.get("default_tg")
        if not groups:
            groups = _parse_tgs(node.get("monitor_tgs"))

    rows = reports.last_heard(client, mode=mode, tg=tg, tgs=groups, limit=limit)
    ctx.formatter.format_last_heard(rows)


@click.command()
@pass_context
def active(ctx: CLIContext):
    """Show stations that are transmitting right now."""
    client = ctx.open_store()
    PresenceCache(client, ctx.config.presence_ttl_seconds).sweep(datetime.now())
    ctx.formatter.format_active(reports.active_stations(client))


@click.command()
@click.option(
    "--metric",
    type=click.Choice(list(RANKINGS) + ["all"]),
    default="all",
    help="Which ranking to show"
)
@click.option("--limit", "-n", type=int, default=10, show_default=True)
@pass_context
def stats(ctx: CLIContext, metric: str, limit: int):
    """Show the published rankings."""
    client = ctx.open_store()
    selected = RANKINGS if metric == "all" else {metric: RANKINGS[metric]}

    for title, query, by_group in selected.values():
        ctx.formatter.format_ranking(title, query(client, limit), by_group=by_group)


@click.command()
@pass_context
def heatmap(ctx: CLIContext):
    """Show the published weekday x hour heatmap."""
    ctx.formatter.format_heatmap(reports.heatmap(ctx.open_store()))
