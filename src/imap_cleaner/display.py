"""Rich-based display functions for IMAP Cleaner."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import (
    BackupSummary,
    DeleteOutcome,
    DeletionReport,
    Group,
    PageView,
    RestoreSummary,
    Skipped,
)

console = Console()
err_console = Console(stderr=True)

_ADVISORIES = {
    "modern": "[green]✅  Modern TLS[/green]",
    "legacy": "[yellow]⚠️  Legacy TLS[/yellow]",
    "plaintext": "[bold red]⚠️  Plain IMAP[/bold red]",
}

_OUTCOME_COLORS = {
    DeleteOutcome.SUCCEEDED: "green",
    DeleteOutcome.PARTIAL: "yellow",
    DeleteOutcome.FAILED: "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Route library logging to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
        force=True,
    )
    if not verbose:
        logging.getLogger("imapclient").setLevel(logging.WARNING)


def megabytes(n: int) -> str:
    return f"{n / (1024 * 1024):.1f}"


def print_tier_advisory(tier: str) -> None:
    """One line naming the transport tier in use, so downgrades are noticed."""
    console.print(_ADVISORIES.get(tier, tier))


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar; the task description is updated live."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def display_group_page(
    view: PageView,
    group_field: str,
    size_accounting: bool = False,
    notice: str | None = None,
) -> None:
    """Show one page of ranked groups, numbered from 1 within the page."""
    from .classifier import display_key

    if notice:
        console.print(f"[red]{notice}[/red]")

    heading = group_field.upper()
    table = Table(title=f"{heading} {view.start + 1}-{view.end} / {view.total}")
    table.add_column("#", justify="right", style="dim")
    table.add_column(heading, min_width=40)
    table.add_column("MSGS", justify="right")
    if size_accounting:
        table.add_column("MB", justify="right")

    for idx, group in enumerate(view.groups, start=1):
        row = [str(idx), escape(display_key(group.key)), str(group.count)]
        if size_accounting:
            row.append(megabytes(group.total_bytes))
        table.add_row(*row)

    console.print(table)
    if view.page_count > 1:
        console.print(f"[dim]Page {view.page_index + 1} of {view.page_count}[/dim]")


def display_match_summary(target: Group, match: str, group_field: str) -> None:
    """List the folders holding matches, then the total count and size."""
    lines = [f'[bold]Matches for "{escape(match)}" ({group_field})[/bold]', ""]
    for folder, ids in target.messages_by_folder.items():
        lines.append(f"  {escape(folder):<35} {len(ids):>6}")
    lines.append("")
    lines.append(f"[bold]Total: {target.count} msgs  {megabytes(target.total_bytes)} MB[/bold]")
    console.print(Panel("\n".join(lines), title="Match"))


def display_deletion_report(report: DeletionReport) -> None:
    """Show per-folder deletion outcomes."""
    if not report.failed:
        console.print(f"[bold green]✓ deleted {report.deleted} messages[/bold green]")
        return

    table = Table(title="Deletion")
    table.add_column("Folder")
    table.add_column("Requested", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Outcome")
    table.add_column("Reason")
    for item in report.folders:
        color = _OUTCOME_COLORS[item.outcome]
        table.add_row(
            escape(item.folder),
            str(item.requested),
            str(item.deleted),
            f"[{color}]{item.outcome.value}[/{color}]",
            escape(item.reason),
        )
    console.print(table)
    console.print(f"[bold]Deleted {report.deleted} messages[/bold]")


def display_skipped(skipped: list[Skipped]) -> None:
    """Summarize folders that could not be read."""
    if not skipped:
        return
    lines = [f"  - {escape(s.folder)}: {escape(s.reason)}" for s in skipped]
    console.print(
        Panel(
            "\n".join(lines),
            title=f"[yellow]{len(skipped)} folder(s) skipped[/yellow]",
        )
    )


def display_backup_summary(path: str, summary: BackupSummary) -> None:
    console.print(
        f"[green]✓ backup done[/green]: {summary.messages} messages "
        f"from {summary.folders} folders → {path}"
    )
    if summary.missing:
        console.print(f"[yellow]{summary.missing} message(s) had no body and were not archived[/yellow]")
    display_skipped(summary.skipped)


def display_restore_summary(path: str, summary: RestoreSummary) -> None:
    console.print(f"[green]✓ restore done[/green]: {summary.restored} messages from {path}")
    if summary.folders_created:
        console.print(f"[dim]Created folders: {', '.join(summary.folders_created)}[/dim]")
    if summary.failed:
        console.print(f"[red]{summary.failed} message(s) could not be appended[/red]")
