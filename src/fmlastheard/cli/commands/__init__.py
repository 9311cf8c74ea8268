# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""CLI command implementations."""

from . import node_config, reports, store

__all__ = ["node_config", "reports", "store"]
