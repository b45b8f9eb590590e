"""Console rendering and progress helpers for the ipfs-upload CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

# stdout is reserved for the content identifier.
console = Console(stderr=True)


def format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.3f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m{rest:.3f}s"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]ipfs-upload[/bold green]",
        border_style="blue",
    )
    console.print(panel)


def render_elapsed(seconds: float) -> None:
    console.print(format_elapsed(seconds), highlight=False)


def render_error(message: str) -> None:
    console.print(f"[red]ERROR:[/red] {message}", highlight=False)


class UploadProgressDisplay:
    """
    Progress reporter for one upload.

    Implements IProgressReporter: one "Added <name>" line per resolved item
    and a transient transfer bar per file while bytes are flowing.
    """

    def __init__(self, root: Path, out: Optional[Console] = None):
        self._console = out or console
        self._base = Path(root).resolve().parent
        self._tasks: Dict[str, TaskID] = {}
        self._added = 0
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=36),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self._console,
            transient=True,
            expand=False,
        )
        self._started = False

    @property
    def added(self) -> int:
        return self._added

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        if self._started:
            return
        self._progress.start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._progress.stop()
        self._started = False

    def _file_size(self, name: str) -> Optional[int]:
        try:
            return (self._base / name).stat().st_size
        except OSError:
            return None

    def on_tick(self, name: str, processed: int) -> None:
        if not name:
            return
        task_id = self._tasks.get(name)
        if task_id is None:
            task_id = self._progress.add_task("add", label=name[-60:], total=self._file_size(name))
            self._tasks[name] = task_id
        self._progress.update(task_id, completed=processed)

    def on_added(self, name: str, ref: str) -> None:
        task_id = self._tasks.pop(name, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        self._added += 1
        self._progress.console.print(f"Added {name}", highlight=False, markup=False)
