#!/usr/bin/env python3
# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Database initialization script for the FM last-heard store.

Creates the SQLite database with its schema and, when an svxlink.conf is
present, seeds the node config row.
"""

import sys
import logging
from pathlib import Path

# Add src to path for running from a checkout
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from fmlastheard.capture.config import Config
from fmlastheard.processing.config_store import DEFAULT_SVXLINK_CONF, ConfigStore
from fmlastheard.processing.database.sqlite_client import SQLiteClient
from fmlastheard.processing.database.schema import create_schema, get_schema_version, SCHEMA_VERSION
from fmlastheard.processing.errors import FMLastHeardError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Initialize database."""
    config = Config()
    db_path = config.db_path
    svxlink_conf = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SVXLINK_CONF

    logger.info(f"Initializing database: {db_path}")

    client = SQLiteClient(str(db_path), timeout=config.db_timeout)

    try:
        client.initialize_database()
    except (OSError, FMLastHeardError) as e:
        logger.error(f"Failed to initialize database: {e}")
        return 1

    current_version = get_schema_version(client)
    if current_version is None:
        logger.info("Creating database schema...")
        create_schema(client)
    elif current_version < SCHEMA_VERSION:
        logger.error(
            f"Schema version {current_version} is older than {SCHEMA_VERSION}; "
            "recreate the database"
        )
        return 1
    else:
        logger.info(f"Database schema is up to date (version {current_version})")

    if svxlink_conf.exists():
        try:
            ConfigStore(client).seed_from_file(svxlink_conf)
        except FMLastHeardError as e:
            logger.warning(f"Config row not seeded: {e}")
    else:
        logger.info(f"No {svxlink_conf}, skipping config row")

    if client.exists():
        logger.info("Database initialized successfully")
        return 0
    else:
        logger.error("Database file was not created")
        return 1


if __name__ == "__main__":
    sys.exit(main())
