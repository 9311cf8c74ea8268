# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Single-row node configuration table.

The row is seeded once from the node's svxlink.conf and afterwards owned by
the dashboard: seeding never overwrites an existing row.
"""

import configparser
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .database.sqlite_client import SQLiteClient
from .errors import ValidationError
from .ingest.normalizer import parse_group

logger = logging.getLogger(__name__)

DEFAULT_SVXLINK_CONF = Path("/etc/svxlink/svxlink.conf")


@dataclass(frozen=True)
class NodeConfig:
    """Values taken from svxlink.conf."""

    callsign: str
    dns_domain: str
    default_tg: int = 0
    monitor_tgs: str = ""


def parse_svxlink_conf(path: Union[str, Path]) -> NodeConfig:
    """
    Read the node identity from an svxlink.conf file.

    Reads [RepeaterLogic] CALLSIGN and [ReflectorLogic] DNS_DOMAIN,
    DEFAULT_TG and MONITOR_TGS. DEFAULT_TG falls back to 0 when it is not a
    number.

    Raises:
        ValidationError: If the file cannot be read or CALLSIGN/DNS_DOMAIN is missing
    """
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # keys are upper case in svxlink.conf

    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            parser.read_file(f)
    except configparser.ParsingError as e:
        # Lines that are not key=value are skipped; everything else is kept
        logger.warning(f"Skipped unparseable lines in {path}: {e}")
    except (OSError, configparser.Error) as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e

    callsign = parser.get("RepeaterLogic", "CALLSIGN", fallback="").strip()
    if not callsign:
        raise ValidationError("CALLSIGN not found in [RepeaterLogic]", field="callsign")

    dns_domain = parser.get("ReflectorLogic", "DNS_DOMAIN", fallback="").strip()
    if not dns_domain:
        raise ValidationError("DNS_DOMAIN not found in [ReflectorLogic]", field="dns_domain")

    return NodeConfig(
        callsign=callsign,
        dns_domain=dns_domain,
        default_tg=parse_group(parser.get("ReflectorLogic", "DEFAULT_TG", fallback="")),
        monitor_tgs=parser.get("ReflectorLogic", "MONITOR_TGS", fallback="").strip(),
    )


def parse_monitor_tgs(value: str) -> List[int]:
    """
    Split a MONITOR_TGS list into talk group ids.

    svxlink allows priority suffixes ("262++,91+"); those are ignored, as
    are entries without a number.
    """
    groups = []
    for item in (value or "").split(","):
        if item.strip() and parse_group(item):
            groups.append(parse_group(item))
    return groups


class ConfigStore:
    """Access to the config row (id = 1)."""

    def __init__(self, client: SQLiteClient):
        self.client = client

    def seed(self, node: NodeConfig) -> bool:
        """
        Insert the config row if none exists yet.

        Returns:
            True if the row was created, False if one already existed
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO config (id, callsign, dns_domain, default_tg, monitor_tgs, updated_at)
                VALUES (1, ?, ?, ?, ?, datetime('now', 'localtime'))
                """,
                (node.callsign, node.dns_domain, node.default_tg, node.monitor_tgs),
            )
            conn.commit()
            created = cursor.rowcount > 0

        if created:
            logger.info(f"Seeded config row for {node.callsign}")
        else:
            logger.info("Config row already present, leaving it unchanged")
        return created

    def seed_from_file(self, path: Union[str, Path] = DEFAULT_SVXLINK_CONF) -> bool:
        return self.seed(parse_svxlink_conf(path))

    def get(self) -> Optional[Dict[str, Any]]:
        """The config row as a dict, or None if it was never seeded."""
        with self.client.get_connection() as conn:
            row = conn.execute("SELECT * FROM config WHERE id = 1").fetchone()
            return dict(row) if row else None
