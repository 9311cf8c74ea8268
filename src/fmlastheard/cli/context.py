# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Shared state handed to every CLI command.
"""

from dataclasses import dataclass, field
from typing import Optional

import click

from ..capture.config import Config
from ..processing.database.schema import create_schema
from ..processing.database.sqlite_client import SQLiteClient
from .formatters import BaseFormatter, get_formatter


@dataclass
class CLIContext:
    """Runtime configuration plus output settings."""

    config: Config
    output_format: str = "table"
    debug: bool = False
    _client: Optional[SQLiteClient] = field(default=None, repr=False)

    @property
    def formatter(self) -> BaseFormatter:
        return get_formatter(self.output_format)

    def open_store(self, create: bool = False) -> SQLiteClient:
        """
        Open the configured database, creating missing tables.

        Args:
            create: Create the database file if it does not exist yet

        Raises:
            click.ClickException: If the database is missing and create is False
        """
        if self._client is not None:
            return self._client

        client = SQLiteClient(str(self.config.db_path), timeout=self.config.db_timeout)
        if not client.exists() and not create:
            raise click.ClickException(
                f"Database not found at {self.config.db_path}, run 'fmlh init-db' first"
            )

        client.initialize_database()
        create_schema(client)
        self._client = client
        return client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


pass_context = click.make_pass_decorator(CLIContext)
