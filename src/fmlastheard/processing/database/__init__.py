# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""SQLite storage for the talker log, presence, stats, nodes and config."""

from .sqlite_client import SQLiteClient
from .schema import create_schema, SCHEMA_VERSION

__all__ = [
    'SQLiteClient',
    'create_schema',
    'SCHEMA_VERSION',
]
