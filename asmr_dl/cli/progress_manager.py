"""
Manages a Rich progress display for the bulk download pass.
"""

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


class ProgressManager:
    """Shows overall progress and keeps running success/failure counts."""

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            "•",
            TextColumn("[green]{task.fields[ok]} ok[/green]"),
            TextColumn("[red]{task.fields[failed]} failed[/red]"),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._stats = {"total": 0, "completed": 0, "failed": 0}

    def initialize_session(self, total: int) -> None:
        self._stats["total"] = total
        if self.enabled:
            self._task_id = self.progress.add_task(
                "Downloading", total=total, ok=0, failed=0
            )

    def advance(self, success: bool = True) -> None:
        key = "completed" if success else "failed"
        self._stats[key] += 1
        if self._task_id is not None:
            self.progress.update(
                self._task_id,
                advance=1,
                ok=self._stats["completed"],
                failed=self._stats["failed"],
            )

    def get_statistics(self) -> dict:
        return self._stats.copy()

    async def __aenter__(self):
        if self.enabled:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.enabled:
            self.progress.stop()
