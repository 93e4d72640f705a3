"""
CLI utility helpers — input reading and output formatting.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def read_items(path: str) -> list[str]:
    """Non-blank, stripped lines from *path* (``-`` reads stdin)."""
    text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


def output_summary(summary: dict[str, Any], *, as_json: bool = False) -> None:
    """Render a run summary: totals plus one row per failed item."""
    if as_json:
        print(json.dumps(summary, default=str))
        return

    table = Table(title="jobq run", show_lines=False, pad_edge=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for key in ("status", "processed", "errors", "concurrency_limit", "duration_seconds"):
        table.add_row(key, str(summary.get(key, "")))
    console.print(table)

    failures = summary.get("failures") or []
    if failures:
        err_console.print(f"[bold red]{len(failures)} job(s) failed[/bold red]")
        for failure in failures:
            err_console.print(f"  [red]✗[/red] {failure['message']}")
