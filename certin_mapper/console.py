"""Rich console utilities for certin-mapper."""

import os
from typing import Any, Dict, List, Tuple

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from ._enrichment import DocumentResolution

IS_GITHUB_ACTIONS = os.getenv("GITHUB_ACTIONS") == "true"

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
    }
)

# Shared console instance
console = Console(
    theme=custom_theme,
    force_terminal=IS_GITHUB_ACTIONS or None,
    color_system="auto",
)

# Labels for resolution path counters
PATH_LABELS = {
    "result_cache": "From component cache",
    "dependency_cache": "Rebuilt from cached sources",
    "fetched": "Fetched",
    "degraded": "Degraded (placeholder properties)",
    "failed": "Failed",
}


def print_summary_table(title: str, data: List[Tuple[str, Any]], show_if_empty: bool = False) -> None:
    """
    Print a summary table.

    Args:
        title: Table title
        data: List of (label, value) tuples
        show_if_empty: Whether to show the table if all values are 0/empty
    """
    if not show_if_empty:
        data = [(label, value) for label, value in data if value]

    if not data:
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for label, value in data:
        table.add_row(label, str(value))

    console.print(table)


def print_resolution_summary(resolution: DocumentResolution) -> None:
    """Print how the components of a document were resolved."""
    total = len(resolution.components)
    if resolution.from_cache:
        console.print(f"[success]Reused cached result for all {total} components[/success]")
        return

    data: List[Tuple[str, Any]] = [("Components", total)]
    data.extend((PATH_LABELS.get(path, path), count) for path, count in sorted(resolution.path_counts.items()))
    data.append(("Components with source errors", len(resolution.errors)))
    print_summary_table("CERT-In Enrichment Summary", data)


def print_cache_stats(info: Dict[str, Any], checksums: Dict[str, Any]) -> None:
    """Print the result cache diagnostics."""
    data = [
        ("Storage key", info.get("storage_key")),
        ("Persistent", "yes" if info.get("is_persistent") else "no"),
        ("Entries", info.get("entry_count", 0)),
        ("Component results", checksums.get("total_component_results", 0)),
        ("Document results", checksums.get("total_file_results", 0)),
        ("Max snapshot age (h)", round(info.get("max_age_ms", 0) / 3_600_000, 2)),
    ]
    print_summary_table("Result Cache", data, show_if_empty=True)
