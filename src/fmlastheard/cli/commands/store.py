# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Store maintenance commands: init-db, ingest-file, recompute.
"""

import click
from rich.console import Console

from ...processing.database.schema import get_schema_version
from ...processing.ingest.service import TalkerService
from ...processing.stats.publisher import StatsPublisher
from ...processing.stats.scheduler import StatsScheduler
from ..context import CLIContext, pass_context

console = Console()


@click.command("init-db")
@pass_context
def init_db(ctx: CLIContext):
    """Create the database and all tables."""
    client = ctx.open_store(create=True)
    version = get_schema_version(client)
    ctx.formatter.format_success(f"Database ready at {ctx.config.db_path} (schema v{version})")


@click.command("ingest-file")
@click.argument("path", type=click.File("r", encoding="utf-8"))
@click.option(
    "--channel",
    type=click.Choice(["talker", "node"]),
    default="talker",
    help="Payload type of every line"
)
@click.option(
    "--recompute/--no-recompute",
    default=False,
    help="Recompute statistics after the replay"
)
@pass_context
def ingest_file(ctx: CLIContext, path, channel: str, recompute: bool):
    """
    Replay JSON payloads, one per line, into the store.

    Examples:
        fmlh ingest-file capture.jsonl
        fmlh ingest-file nodes.jsonl --channel node
    """
    client = ctx.open_store(create=True)
    service = TalkerService.from_config(client, ctx.config)

    lines = 0
    stored = 0
    with console.status(f"Replaying {path.name}..."):
        for line in path:
            line = line.strip()
            if not line:
                continue
            lines += 1
            if channel == "talker":
                result = service.ingest_payload(line)
                stored += int(result.logged)
            else:
                stored += int(service.register_node(line))

    summary = {"lines": lines, "stored": stored, **service.get_stats()}
    ctx.formatter.format_mapping("Replay summary", summary)

    if recompute:
        _recompute(ctx)


@click.command()
@pass_context
def recompute(ctx: CLIContext):
    """Recompute and publish statistics now, ignoring the interval."""
    _recompute(ctx)


def _recompute(ctx: CLIContext) -> None:
    client = ctx.open_store()
    service = TalkerService.from_config(client, ctx.config)
    scheduler = StatsScheduler.from_config(service.event_log, StatsPublisher(client), ctx.config)

    snapshot = scheduler.recompute()
    if snapshot is None:
        ctx.formatter.format_error(f"Recompute failed: {scheduler.last_error}")
        raise click.Abort()

    ctx.formatter.format_success(
        f"Published statistics from {snapshot.session_count} sessions "
        f"at {snapshot.computed_at:%Y-%m-%d %H:%M:%S}"
    )
