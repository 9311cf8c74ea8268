# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
JSON formatter for structured output.
"""

import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.syntax import Syntax

from .base import BaseFormatter, WEEKDAY_NAMES

console = Console()


class JSONFormatter(BaseFormatter):
    """Format output as JSON for scripting and automation."""

    def __init__(self, pretty: bool = True, colored: bool = False):
        """Initialize JSON formatter.

        Args:
            pretty: Whether to pretty-print JSON
            colored: Whether to use syntax highlighting
        """
        self.pretty = pretty
        self.colored = colored

    def format_last_heard(self, rows: List[Dict[str, Any]]):
        self._print_json({"last_heard": rows, "count": len(rows)})

    def format_active(self, rows: List[Dict[str, Any]]):
        self._print_json({"active": rows, "count": len(rows)})

    def format_ranking(self, title: str, rows: List[Dict[str, Any]], by_group: bool = False):
        self._print_json({"title": title, "rows": rows})

    def format_heatmap(self, grid: List[List[int]]):
        self._print_json({day: hours for day, hours in zip(WEEKDAY_NAMES, grid)})

    def format_mapping(self, title: str, data: Optional[Dict[str, Any]]):
        self._print_json(data or {})

    def format_error(self, error: str):
        """Format error message as JSON."""
        self._print_json({"error": error, "success": False})

    def _print_json(self, data: Any):
        """Print JSON with optional formatting and coloring."""
        if self.pretty:
            json_str = json.dumps(data, indent=2, sort_keys=False, default=str)
        else:
            json_str = json.dumps(data, default=str)

        if self.colored:
            console.print(Syntax(json_str, "json", theme="monokai"))
        else:
            print(json_str)
