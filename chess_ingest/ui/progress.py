"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class ProgressState:
    total: int
    pages: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    current_page: str | None = None


class ProgressReporter:
    """Render per-page progress and keep counters for CLI feedback."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # Non-interactive output: stay silent instead of printing every refresh
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[page]:<8}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            TextColumn("[green]+{task.fields[imported]:>4}", justify="right"),
            TextColumn("[yellow]={task.fields[skipped]:>4}", justify="right"),
            TextColumn("[red]x{task.fields[failed]:>3}", justify="right"),
            console=self._console,
            transient=True,
            refresh_per_second=8,
            expand=True,
        )
        try:
            self._progress.start()
        except LiveError:
            # Another live display owns the console
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "ingest", total=total, page="…", imported=0, skipped=0, failed=0
        )

    def advance(
        self,
        page: str,
        imported: int = 0,
        skipped: int = 0,
        failed: int = 0,
    ) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        self.state.pages += 1
        self.state.current_page = page
        self.state.imported += imported
        self.state.skipped += skipped
        self.state.failed += failed
        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                advance=1,
                page=page,
                imported=self.state.imported,
                skipped=self.state.skipped,
                failed=self.state.failed,
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"pages": 0, "imported": 0, "skipped": 0, "failed": 0}
        return {
            "pages": self.state.pages,
            "imported": self.state.imported,
            "skipped": self.state.skipped,
            "failed": self.state.failed,
        }


__all__ = ["ProgressReporter", "ProgressState"]
