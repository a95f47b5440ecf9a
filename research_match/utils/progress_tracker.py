"""
Progress Tracker Module

Wraps the rich library to show backfill progress on the console.

Example Usage:
    from research_match.utils.progress_tracker import BackfillProgress

    progress = BackfillProgress(enabled=True)
    progress.start("summary", total=42)
    progress.advance(succeeded=True)
    progress.finish()
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


class BackfillProgress:
    """Progress bar for one backfill run. A disabled tracker does nothing."""

    def __init__(self, enabled: bool = False, console: Optional[Console] = None) -> None:
        self.enabled = enabled
        self.console = console or Console(stderr=True)
        self.progress: Optional[Progress] = None
        self.task_id: Optional[TaskID] = None
        self.kind: str = ""
        self.succeeded: int = 0
        self.failed: int = 0

    def start(self, kind: str, total: int) -> None:
        """
        Start the bar for a run.

        Args:
            kind: Backfill kind shown as the description
            total: Number of selected candidates
        """
        self.kind = kind
        self.succeeded = 0
        self.failed = 0
        if not self.enabled or total == 0:
            return

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("({task.completed}/{task.total})"),
            TextColumn("[red]{task.fields[failed]} failed"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(
            description=f"Backfill {kind}", total=total, failed=0
        )

    def advance(self, succeeded: bool) -> None:
        """Record one processed candidate."""
        if succeeded:
            self.succeeded += 1
        else:
            self.failed += 1

        if self.progress is None or self.task_id is None:
            return
        self.progress.update(self.task_id, advance=1, failed=self.failed)

    def finish(self) -> None:
        """Stop the bar and print a one-line summary."""
        if self.progress is None or self.task_id is None:
            return

        self.progress.stop()
        self.console.print(
            f"[bold green]Backfill {self.kind} complete:[/bold green] "
            f"{self.succeeded} succeeded, {self.failed} failed"
        )
        self.progress = None
        self.task_id = None

    def is_active(self) -> bool:
        return self.progress is not None and self.task_id is not None
