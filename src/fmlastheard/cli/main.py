# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main CLI entry point for the FM last-heard store.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from . import __version__
from ..capture.config import Config
from ..processing import server
from .commands import node_config, reports, store
from .context import CLIContext, pass_context

console = Console()


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit"
)
@click.option(
    "--config", "config_path",
    envvar="FMLH_CONFIG",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.fmlastheard/config.yaml)"
)
@click.option(
    "--db", "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database file, overrides the config"
)
@click.option(
    "--format",
    envvar="FMLH_FORMAT",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format"
)
@click.option(
    "--debug",
    envvar="FMLH_DEBUG",
    is_flag=True,
    help="Enable debug logging"
)
@click.pass_context
def cli(ctx, version: bool, config_path: Optional[Path], db_path: Optional[Path], format: str, debug: bool):
    """
    FM last-heard: talker log, on-air list and usage statistics.

    Examples:
        fmlh init-db
        fmlh serve
        fmlh lastheard --mode local --tg 262
        fmlh stats --metric score
    """
    if version:
        click.echo(f"fmlh version {__version__}")
        ctx.exit()

    config = Config(config_path=config_path)
    if db_path is not None:
        config.db_path = db_path.expanduser()

    server.setup_logging("DEBUG" if debug else config.log_level)
    if not debug:
        # Keep report output clean; the server sets its own level
        logging.getLogger("fmlastheard").setLevel(logging.WARNING)

    ctx.obj = CLIContext(config=config, output_format=format, debug=debug)
    ctx.call_on_close(ctx.obj.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(store.init_db)
cli.add_command(store.ingest_file)
cli.add_command(store.recompute)
cli.add_command(reports.lastheard)
cli.add_command(reports.active)
cli.add_command(reports.stats)
cli.add_command(reports.heatmap)
cli.add_command(node_config.seed_config)
cli.add_command(node_config.show_config)


@cli.command()
@click.option(
    "--no-bridge",
    is_flag=True,
    help="Only consume the stream; do not connect to the MQTT broker"
)
@pass_context
def serve(ctx: CLIContext, no_bridge: bool):
    """Run the ingestion server (MQTT bridge, consumer and stats loop)."""
    logging.getLogger("fmlastheard").setLevel(logging.NOTSET)
    asyncio.run(server.main(ctx.config, with_bridge=not no_bridge))


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("FMLH_DEBUG"):
            console.print_exception()
        else:
            console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
