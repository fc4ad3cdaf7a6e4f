"""
Rendering functions for bbsync output.

Core functions return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import Optional

from .domain.outcome import OutcomeStatus, SyncSummary

console = Console()

STATUS_STYLES = {
    OutcomeStatus.CLONED: "green",
    OutcomeStatus.ALREADY_UP_TO_DATE: "cyan",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.FAILED: "red",
}


def render_summary(summary: SyncSummary, out: Optional[Console] = None) -> None:
    """
    Render the outcome of a sync run as a table followed by the totals.

    Args:
        summary: Result of SyncService.sync_project / sync_repos
        out: Console to print to (module console by default)
    """
    out = out or console

    if not summary.outcomes:
        out.print(f"[yellow]No repositories found in {summary.project}.[/yellow]")
        return

    table = Table(
        title=f"{summary.project} sync" if summary.project else "Sync",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("Repository", style="cyan")
    table.add_column("Status")
    table.add_column("Branch", style="green")
    table.add_column("Detail", style="dim")

    for outcome in summary.outcomes:
        status = outcome.status.value if outcome.status else "-"
        style = STATUS_STYLES.get(outcome.status, "white")
        detail = outcome.reason or ""
        if outcome.stage:
            detail = f"{outcome.stage.value}: {detail}"
        table.add_row(
            outcome.slug,
            f"[{style}]{status}[/{style}]",
            outcome.branch or "",
            detail,
        )

    out.print(table)
    out.print(
        f"Total: {summary.total}  "
        f"[green]cloned: {summary.cloned}[/green]  "
        f"[cyan]up to date: {summary.up_to_date}[/cyan]  "
        f"[yellow]skipped: {summary.skipped}[/yellow]  "
        f"[red]failed: {summary.failed}[/red]"
    )
