"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from asmr_dl import __version__
from asmr_dl.core.download_manager import DownloadManager, expand_sources
from asmr_dl.core.fetcher import FileFetcher
from asmr_dl.core.reconciler import RetryReconciler
from asmr_dl.exceptions import AsmrDlError
from asmr_dl.media import ContentValidator, Downloader
from asmr_dl.media.downloader import close_connection_pool
from asmr_dl.models.config import AppConfig
from asmr_dl.notify import WebhookNotifier
from asmr_dl.storage.config_manager import ConfigManager
from asmr_dl.storage.ledger import FailedDownloadLedger

from .formatters import (
    print_config,
    print_ledger_table,
    print_reconcile_summary,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("asmr_dl")

app = typer.Typer(
    name="asmr-dl",
    help=(
        "A concurrent bulk media downloader that remembers failed downloads and"
        " retries them later. Use 'asmr-dl <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "asmr-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> AppConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(
            {k: v for k, v in (cli_options or {}).items() if v is not None}
        )
    except AsmrDlError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


def _open_ledger(config: AppConfig) -> FailedDownloadLedger:
    try:
        return FailedDownloadLedger(config.ledger_path)
    except AsmrDlError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


def _build_fetcher(config: AppConfig) -> FileFetcher:
    downloader = Downloader(
        user_agent=config.user_agent,
        max_workers=config.max_workers,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )
    notifier = WebhookNotifier(config.webhook_url, config.webhook_username)
    return FileFetcher(
        downloader,
        ContentValidator(verify_audio=config.verify_audio),
        notifier,
        backoff_seconds=config.backoff_seconds,
    )


async def _run_fix(
    config: AppConfig, ledger: FailedDownloadLedger, fetcher: FileFetcher
) -> None:
    if not ledger.has_pending_entries():
        console.print("[green]✓ No failed downloads to retry.[/green]")
        return
    reconciler = RetryReconciler(ledger, fetcher, max_retry=config.max_retry)
    report = await reconciler.reconcile()
    print_reconcile_summary(report, ledger.path)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """ASMR Downloader CLI"""
    if version:
        console.print(f"[bold]asmr-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("asmr_dl").setLevel(log_level)

    if show_config:
        config = _load_config()
        print_config(
            CONFIG_FILE,
            config.model_dump(include=AppConfig.get_ini_keys()),
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    webhook: str = typer.Option(
        "", "--webhook", help="Discord webhook URL for failure notifications."
    ),
    output_dir: str = typer.Option(
        "downloads", "--output", "-o", help="Directory to store downloads in."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config(
            {"webhook_url": webhook, "output_dir": output_dir}
        )
    except AsmrDlError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]asmr-dl download <URL>[/cyan]")


def _read_urls_from_stdin() -> list[str]:
    """Reads URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        raise typer.Exit(code=1)

    urls = [
        line.strip()
        for line in sys.stdin
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not urls:
        console.print("[yellow]⚠️  No valid URLs found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(urls)} URLs from stdin.[/green]")
    return urls


@app.command(name="download")
def download_command(
    sources: list[str] | None = typer.Argument(  # noqa: B008
        None,
        help="URLs, or files with one 'URL [relative/path]' per line.",
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory to store downloads in."
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of simultaneous downloads (default 8, override default in config).",
    ),
    fix: bool | None = typer.Option(
        None,
        "--fix/--no-fix",
        help="Retry failed downloads from the ledger after the download pass.",
    ),
    max_retry: int | None = typer.Option(
        None, "--max-retry", help="Retries per failed download in the retry pass."
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read sources from standard input, one per line."
    ),
):
    """Download files and record failures for later retry."""
    if stdin:
        sources = _read_urls_from_stdin()
    elif not sources:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]asmr-dl download <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    config = _load_config(
        {
            "source_urls": sources,
            "output_dir": output_dir,
            "max_workers": workers,
            "fix_after_download": fix,
            "max_retry": max_retry,
        }
    )
    ledger = _open_ledger(config)
    items = expand_sources(config.source_urls, Path(config.output_dir))
    if not items:
        console.print("[yellow]No valid download sources. Exiting.[/yellow]")
        raise typer.Exit(code=1)

    async def _download_async():
        fetcher = _build_fetcher(config)
        manager = None
        duration = 0.0
        progress_stats = None
        try:
            async with ProgressManager(console=console) as progress_manager:
                manager = DownloadManager(config, fetcher, ledger, progress_manager)
                console.print(
                    f"[bold cyan]📥 Downloading {len(items)} file(s)...[/bold cyan]"
                )
                start_time = time.monotonic()
                await manager.execute_downloads(items)
                duration = time.monotonic() - start_time
                progress_stats = progress_manager.get_statistics()

            print_summary_panel(manager.stats, duration, progress_stats)

            if config.fix_after_download:
                await _run_fix(config, ledger, fetcher)
        except AsmrDlError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            raise typer.Exit(code=1) from e
        finally:
            await close_connection_pool()

    asyncio.run(_download_async())


@app.command()
def fix(
    max_retry: int | None = typer.Option(
        None, "--max-retry", "-r", help="Retries per failed download."
    ),
    backoff: float | None = typer.Option(
        None,
        "--backoff",
        help="Seconds to wait after the provider blocks a download.",
    ),
):
    """Retry the downloads recorded in the failed-download ledger."""
    config = _load_config({"max_retry": max_retry, "backoff_seconds": backoff})
    ledger = _open_ledger(config)

    async def _fix_async():
        try:
            await _run_fix(config, ledger, _build_fetcher(config))
        except AsmrDlError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            raise typer.Exit(code=1) from e
        finally:
            await close_connection_pool()

    asyncio.run(_fix_async())


@app.command()
def status():
    """Show the downloads waiting in the failed-download ledger."""
    config = _load_config()
    ledger = _open_ledger(config)
    try:
        entries, malformed = ledger.read_entries()
    except AsmrDlError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    print_ledger_table(entries, len(malformed))


@app.command(name="clear-ledger")
def clear_ledger(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Bypass the confirmation prompt.",
    ),
):
    """Forget all recorded failed downloads."""
    if not force and not typer.confirm(
        "Are you sure you want to clear the failed-download ledger? "
        "Recorded failures will not be retried."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    config = _load_config()
    ledger = _open_ledger(config)
    try:
        asyncio.run(ledger.truncate())
    except AsmrDlError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[green]✓ Failed-download ledger cleared.[/green]")


@app.command(name="notify-test")
def notify_test():
    """Send a test message to the configured webhook."""
    config = _load_config()
    notifier = WebhookNotifier(config.webhook_url, config.webhook_username)
    if not notifier.enabled:
        console.print("[yellow]No webhook_url is configured.[/yellow]")
        raise typer.Exit(code=1)

    if asyncio.run(notifier.send("asmr-dl webhook test message.")):
        console.print("[green]✓ Test message sent.[/green]")
    else:
        console.print("[red]✗ Could not deliver the test message.[/red]")
        raise typer.Exit(code=1)
