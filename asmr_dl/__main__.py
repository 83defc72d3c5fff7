"""
Entry point for ``asmr-dl`` and ``python -m asmr_dl``.

Errors escaping the command layer are shown as a panel with suggestions.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from asmr_dl.cli.app import CONFIG_FILE, app
from asmr_dl.cli.formatters import format_error_with_suggestions
from asmr_dl.exceptions import AsmrDlError, ConfigurationError, LedgerError

log = logging.getLogger("asmr_dl")


def _error_context(error: AsmrDlError) -> dict | None:
    if isinstance(error, ConfigurationError):
        return {"config": str(CONFIG_FILE)}
    if isinstance(error, LedgerError):
        return {"hint": "the ledger was not modified"}
    return None


def main() -> None:
    if os.name == "nt":
        # Rich prints symbols the legacy Windows code pages cannot encode.
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console()
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⚠️  Interrupted. Failed downloads recorded so far are kept;"
            " run [cyan]asmr-dl fix[/cyan] to retry them.[/yellow]"
        )
        sys.exit(0)
    except AsmrDlError as e:
        console.print()
        console.print(format_error_with_suggestions(e, _error_context(e)))
        sys.exit(1)
    except Exception as e:
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
