# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Node configuration commands: seed-config, show-config.
"""

import click

from ...processing.config_store import DEFAULT_SVXLINK_CONF, ConfigStore
from ...processing.errors import ValidationError
from ..context import CLIContext, pass_context


@click.command("seed-config")
@click.argument(
    "path",
    type=click.Path(dir_okay=False),
    default=str(DEFAULT_SVXLINK_CONF),
)
@pass_context
def seed_config(ctx: CLIContext, path: str):
    """
    Seed the node config row from svxlink.conf.

    An existing row is never overwritten.
    """
    store = ConfigStore(ctx.open_store(create=True))
    try:
        created = store.seed_from_file(path)
    except ValidationError as e:
        ctx.formatter.format_error(str(e))
        raise click.Abort()

    if created:
        ctx.formatter.format_success(f"Config row created from {path}")
    else:
        ctx.formatter.format_warning("Config row already exists, left unchanged")


@click.command("show-config")
@click.option(
    "--runtime",
    is_flag=True,
    help="Show the runtime settings instead of the stored node config"
)
@pass_context
def show_config(ctx: CLIContext, runtime: bool):
    """Show the stored node config row (or the runtime settings)."""
    if runtime:
        ctx.formatter.format_mapping("Runtime settings", ctx.config.to_dict())
        return

    ctx.formatter.format_mapping("Node config", ConfigStore(ctx.open_store()).get())
