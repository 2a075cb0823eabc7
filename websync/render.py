"""
Rendering functions for websync output.

Services yield progress messages and finish with an OperationSummary;
this module turns both into plain text, JSONL or rich tables.
"""

import json
import sys
from typing import Iterator, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from .domain.outcome import OperationStatus, OperationSummary

OUTCOME_STYLES = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.SKIPPED: "yellow",
    OperationStatus.FAILED: "red",
}


def drain(progress_iter: Iterator[str], on_message) -> Optional[OperationSummary]:
    """Feed every progress message to on_message and return the generator's result."""
    while True:
        try:
            on_message(next(progress_iter))
        except StopIteration as stop:
            return stop.value


def output_simple(progress_iter: Iterator[str], op_label: str = "Complete") -> Optional[OperationSummary]:
    """Simple text output: progress and summary on stderr."""
    result = drain(progress_iter, lambda message: print(message, file=sys.stderr, flush=True))

    if result:
        print(f"\n{op_label}:", file=sys.stderr)
        print(f"  Successful: {result.successful}", file=sys.stderr)
        if result.skipped > 0:
            print(f"  Unchanged: {result.skipped}", file=sys.stderr)
        if result.failed > 0:
            print(f"  Failed: {result.failed}", file=sys.stderr)
            for error in result.errors:
                print(f"    - {error}", file=sys.stderr)
    return result


def output_json(progress_iter: Iterator[str]) -> Optional[OperationSummary]:
    """JSONL output: one object per progress line, per detail and a final summary."""
    result = drain(progress_iter, lambda message: print(json.dumps({'progress': message}), flush=True))

    if result:
        for detail in result.details:
            print(json.dumps(detail.to_dict()), flush=True)
        print(json.dumps(result.to_dict()), flush=True)
    return result


def output_pretty(
    progress_iter: Iterator[str],
    title: str,
    extra_headers: Optional[List[Tuple[str, str]]] = None,
    console: Optional[Console] = None,
) -> Optional[OperationSummary]:
    """Rich formatted output: progress lines, a per-repository table and a summary table."""
    console = console or Console(stderr=True)

    console.print(f"\n[bold]{title}[/bold]")
    for label, value in extra_headers or []:
        console.print(f"[bold]{label}:[/bold] {value}")
    console.print()

    result = drain(progress_iter, lambda message: console.print(message, highlight=False))
    if not result:
        console.print(f"[red]{title} failed - no result[/red]")
        return None

    if result.details:
        table = Table(title=f"{title} Results", box=box.ROUNDED, show_header=True,
                      header_style="bold magenta")
        table.add_column("Repository", style="cyan")
        table.add_column("Outcome")
        table.add_column("Details", style="dim")
        for detail in result.details:
            style = OUTCOME_STYLES[detail.status]
            table.add_row(
                detail.repo_name,
                f"[{style}]{detail.outcome.value}[/{style}]",
                detail.error or detail.message or detail.metadata.get('pr_url', ''),
            )
        console.print(table)

    summary = Table(title=f"{title} Summary", show_header=True)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Successful", f"[green]{result.successful}[/green]")
    if result.skipped > 0:
        summary.add_row("Unchanged", f"[yellow]{result.skipped}[/yellow]")
    if result.failed > 0:
        summary.add_row("Failed", f"[red]{result.failed}[/red]")
    console.print(summary)

    if result.errors:
        console.print(f"\n[red]Errors ({len(result.errors)}):[/red]")
        for error in result.errors:
            console.print(f"  [red]•[/red] {error}")
    return result
