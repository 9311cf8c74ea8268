# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Table formatter using Rich for terminal output.
"""

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .base import BaseFormatter, WEEKDAY_NAMES

console = Console()


class TableFormatter(BaseFormatter):
    """Format output as tables using Rich."""

    def format_last_heard(self, rows: List[Dict[str, Any]]):
        """Format the last-heard list as a table."""
        if not rows:
            console.print("[yellow]No transmissions logged yet[/yellow]")
            return

        table = Table(title="Last Heard", show_header=True, header_style="bold magenta")
        table.add_column("Time", style="dim", no_wrap=True)
        table.add_column("Callsign", style="cyan", no_wrap=True)
        table.add_column("Country", justify="center")
        table.add_column("TG", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Location")

        for row in rows:
            table.add_row(
                row.get("event_time", ""),
                row.get("callsign", ""),
                row.get("country_code") or "-",
                str(row.get("tg", "")),
                self._format_duration(row.get("duration_s")),
                row.get("location") or "",
            )

        console.print(table)

    def format_active(self, rows: List[Dict[str, Any]]):
        """Format the active stations as a table."""
        if not rows:
            console.print("[yellow]Nobody is transmitting[/yellow]")
            return

        table = Table(title="On Air", show_header=True, header_style="bold magenta")
        table.add_column("Since", style="dim", no_wrap=True)
        table.add_column("Callsign", style="green", no_wrap=True)
        table.add_column("TG", justify="right")
        table.add_column("Server")
        table.add_column("Location")

        for row in rows:
            table.add_row(
                row.get("event_time", ""),
                row.get("callsign", ""),
                str(row.get("tg", "")),
                row.get("server") or "",
                row.get("location") or "",
            )

        console.print(table)

    def format_ranking(self, title: str, rows: List[Dict[str, Any]], by_group: bool = False):
        """Format a ranked stats list."""
        if not rows:
            console.print(f"[yellow]{title}: no statistics published yet[/yellow]")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right", style="dim")
        table.add_column("TG" if by_group else "Callsign", style="cyan", no_wrap=True)
        table.add_column("QSOs", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Avg", justify="right")
        if not by_group:
            table.add_column("Score", justify="right")

        for row in rows:
            qso = row.get("qso_count", 0)
            total = row.get("total_seconds", 0.0)
            cells = [
                str(row.get("rank", "")),
                str(row.get("tg")) if by_group else row.get("callsign", ""),
                self._format_number(qso),
                self._format_duration(total),
                self._format_duration(total / qso if qso else 0.0),
            ]
            if not by_group:
                cells.append(self._format_number(row.get("score", 0.0), decimals=1))
            table.add_row(*cells)

        console.print(table)

    def format_heatmap(self, grid: List[List[int]]):
        """Format the weekday x hour heatmap with shaded cells."""
        peak = max((max(hours) for hours in grid), default=0)

        table = Table(title="Sessions per hour (last 7 days)", show_header=True, header_style="bold")
        table.add_column("", style="cyan")
        for hour in range(24):
            table.add_column(f"{hour:02d}", justify="right")

        for day, hours in zip(WEEKDAY_NAMES, grid):
            table.add_row(day, *(self._shade(count, peak) for count in hours))

        console.print(table)

    def format_mapping(self, title: str, data: Optional[Dict[str, Any]]):
        if not data:
            console.print(f"[yellow]{title}: nothing stored[/yellow]")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            table.add_row(str(key), "" if value is None else str(value))

        console.print(table)

    def format_error(self, error: str):
        """Format error message."""
        console.print(f"[bold red]Error:[/bold red] {error}")

    @staticmethod
    def _shade(count: int, peak: int) -> str:
        if count == 0:
            return "[dim]·[/dim]"
        ratio = count / peak if peak else 0
        if ratio > 0.66:
            color = "red"
        elif ratio > 0.33:
            color = "yellow"
        else:
            color = "green"
        return f"[{color}]{count}[/{color}]"
