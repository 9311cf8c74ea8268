# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Base formatter class for output formatting.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from rich.console import Console

console = Console()

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class BaseFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format_last_heard(self, rows: List[Dict[str, Any]]):
        """Format the last-heard list."""
        pass

    @abstractmethod
    def format_active(self, rows: List[Dict[str, Any]]):
        """Format the currently active stations."""
        pass

    @abstractmethod
    def format_ranking(self, title: str, rows: List[Dict[str, Any]], by_group: bool = False):
        """Format one ranked stats list."""
        pass

    @abstractmethod
    def format_heatmap(self, grid: List[List[int]]):
        """Format the weekday x hour heatmap."""
        pass

    @abstractmethod
    def format_mapping(self, title: str, data: Optional[Dict[str, Any]]):
        """Format a flat key/value mapping (config rows, run summaries)."""
        pass

    @abstractmethod
    def format_error(self, error: str):
        """Format error message for output."""
        pass

    def format_success(self, message: str):
        """Format success message for output."""
        console.print(f"[green]✓[/green] {message}")

    def format_warning(self, message: str):
        """Format warning message for output."""
        console.print(f"[yellow]⚠[/yellow] {message}")

    def _format_number(self, value: float, decimals: int = 0) -> str:
        """Format a number with optional decimal places."""
        if decimals == 0:
            return f"{int(value):,}"
        return f"{value:,.{decimals}f}"

    def _format_duration(self, seconds: Optional[float]) -> str:
        """Format duration in human-readable format."""
        if seconds is None:
            return "-"
        if seconds < 60:
            return f"{seconds:.0f}s"
        elif seconds < 3600:
            return f"{int(seconds // 60)}m {int(seconds % 60):02d}s"
        else:
            hours = seconds / 3600
            return f"{hours:.1f}h"
