"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from asmr_dl.models.stats import DownloadStats, ReconcileReport
from asmr_dl.storage.ledger import LedgerEntry
from asmr_dl.utils.formatting import format_duration, format_size, mosaic


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file (asmr-dl --show-config).",
            "• Run `asmr-dl init --force` to write a fresh configuration.",
        ],
        "LedgerIOError": [
            "• Check that the failed-download ledger and its directory are writable.",
            "• Remove a leftover '.tmp' snapshot next to the ledger, then run"
            " `asmr-dl fix` again.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, masking the webhook URL."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if key == "webhook_url" and value:
            value = mosaic(str(value))
        content += f"{key} = {escape(str(value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_ledger_table(entries: list[LedgerEntry], malformed: int = 0):
    """Lists the downloads that are waiting in the failed-download ledger."""
    console = Console()
    if not entries and not malformed:
        console.print("[green]✓ No failed downloads are pending.[/green]")
        return

    table = Table(title=f"Pending Failed Downloads ({len(entries)})", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Failed At", style="yellow", no_wrap=True)
    table.add_column("Destination", style="cyan")
    table.add_column("URL", style="dim", overflow="fold")
    for i, entry in enumerate(entries, 1):
        table.add_row(
            str(i),
            entry.timestamp,
            escape(entry.store_path),
            escape(entry.source_url),
        )
    console.print(table)
    if malformed:
        console.print(
            f"[yellow]⚠ {malformed} unreadable line(s) will be skipped by the next"
            " retry pass.[/yellow]"
        )


def print_summary_panel(
    stats: DownloadStats, duration_s: float, progress_stats: dict | None = None
):
    """Displays the final summary of the bulk download pass."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Downloaded:", f"[bold green]{stats.downloaded}[/bold green]")
    if stats.skipped_exists > 0:
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{stats.skipped_exists} (exists)[/yellow]"
        )
    if stats.blocked > 0:
        stats_table.add_row(
            "⚠ Blocked (1015):", f"[yellow]{stats.blocked}[/yellow]"
        )
    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    avg_speed = stats.total_size_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if progress_stats and progress_stats.get("total"):
        stats_table.add_row("", "")
        stats_table.add_row("Files Queued:", str(progress_stats["total"]))

    failures = stats.failed + stats.blocked
    console.print()
    console.print(
        Panel(
            stats_table,
            title="📥 [bold]Download Complete![/bold]",
            border_style="yellow" if failures else "green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    if failures:
        console.print(
            f"[yellow]{failures} failed download(s) were recorded in the ledger."
            " Run [cyan]asmr-dl fix[/cyan] to retry them.[/yellow]"
        )
    console.print()


def print_reconcile_summary(report: ReconcileReport, ledger_path: Path):
    """Displays the outcome of a retry pass."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right", width=20)
    table.add_column(style="white")

    table.add_row("Entries:", str(report.total))
    table.add_row("✓ Resolved:", f"[bold green]{report.resolved}[/bold green]")
    if report.already_present:
        table.add_row("  of which present:", f"[dim]{report.already_present}[/dim]")
    table.add_row(
        "✗ Still Failing:",
        f"[bold red]{report.still_failing}[/bold red]"
        if report.still_failing
        else "0",
    )
    if report.duplicates:
        table.add_row("Duplicates Merged:", str(report.duplicates))
    if report.malformed:
        table.add_row("Unreadable Lines:", f"[yellow]{report.malformed}[/yellow]")
    table.add_row("Attempts:", str(report.attempts))
    table.add_row("Ledger:", f"[dim]{escape(str(ledger_path))}[/dim]")

    console.print(
        Panel(
            table,
            title="🔁 [bold]Retry Pass Finished[/bold]",
            border_style="green" if report.clean else "yellow",
            expand=False,
            padding=(1, 2),
        )
    )
