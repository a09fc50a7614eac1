"""Console rendering and progress helpers for the report uploader CLI."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import time

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table
from rich.tree import Tree

from .folders.classifier import OccupancyIndex
from .folders.tree import FolderTree
from .models import UploadItem, UploadStatus, readable_size


console = Console()

STATUS_STYLES = {
    UploadStatus.READY: ("Ready", "white"),
    UploadStatus.UPLOADING: ("Uploading", "cyan"),
    UploadStatus.DONE: ("Done", "green"),
    UploadStatus.ERROR: ("Error", "red"),
    UploadStatus.CANCELED: ("Canceled", "yellow"),
}


def _echo(message: str) -> None:
    console.print(message)


def status_label(status: UploadStatus) -> str:
    return STATUS_STYLES[status][0]


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
        title="[bold green]report-up[/bold green]",
        subtitle="[dim]photo report uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def build_folder_tree(
    tree: FolderTree,
    base_id: str,
    occupancy: Optional[OccupancyIndex] = None,
    selected_id: Optional[str] = None,
) -> Tree:
    """Rich tree of the folder schema with per-node file counts."""

    def label(name: str, count: int, node_id: Optional[str], leaf: bool) -> str:
        badge = f" [dim]({count})[/dim]" if count else ""
        marker = "[bold yellow]>[/bold yellow] " if node_id == selected_id else ""
        style = "green" if leaf else "bold"
        return f"{marker}[{style}]{name}[/{style}]{badge}"

    root_count = occupancy.root_count if occupancy else 0
    root = Tree(label(base_id, root_count, None, not tree.has_structure))

    def add(branch: Tree, node_id: Optional[str]) -> None:
        for node in tree.children(node_id):
            count = occupancy.count_for(node.id) if occupancy else 0
            child = branch.add(label(node.name, count, node.id, tree.is_leaf(node.id)))
            add(child, node.id)

    add(root, None)
    return root


def render_folder_tree(
    tree: FolderTree,
    base_id: str,
    occupancy: Optional[OccupancyIndex] = None,
    selected_id: Optional[str] = None,
) -> None:
    console.print(build_folder_tree(tree, base_id, occupancy, selected_id))
    if occupancy is not None and occupancy.unmatched:
        _echo(f"[dim]{occupancy.unmatched} file(s) in folders outside the current structure[/dim]")


def render_file_list(urls: List[str], title: str) -> None:
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("URL", overflow="fold")
    for index, url in enumerate(urls, 1):
        table.add_row(str(index), url)
    console.print(table)


class BatchUploadProgressDisplay:
    """Event-based console display for a batched upload run."""

    def __init__(self, items: List[UploadItem]):
        self._items = list(items)
        self._tasks: Dict[str, TaskID] = {}
        self._batch_total = 0
        self._batch_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("{task.completed}/{task.total}"),
            expand=False,
            console=console,
        )
        self._file_progress = Progress(
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[status]}"),
            expand=False,
            console=console,
        )
        self._batch_task: Optional[TaskID] = None
        self._live: Optional[Live] = None

    def start(self, batch_total: int) -> None:
        if self._live is not None:
            return
        self._batch_total = batch_total
        self._batch_task = self._batch_progress.add_task(
            "batches", label="Batches", total=max(batch_total, 1), completed=0
        )
        for item in self._items:
            self._tasks[item.id] = self._file_progress.add_task(
                "file",
                label=item.name[:50],
                total=100,
                completed=item.progress,
                status=status_label(item.status),
            )
        self._live = Live(
            Group(self._batch_progress, self._file_progress),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def on_item_progress(self, item: UploadItem) -> None:
        task_id = self._tasks.get(item.id)
        if task_id is not None:
            self._file_progress.update(task_id, completed=item.progress)

    def on_item_status(self, item: UploadItem) -> None:
        task_id = self._tasks.get(item.id)
        if task_id is not None:
            self._file_progress.update(
                task_id, completed=item.progress, status=status_label(item.status)
            )

    def on_batch_complete(self, index: int, result: Any) -> None:
        if self._batch_task is not None:
            self._batch_progress.update(self._batch_task, completed=index + 1)
        stamp = time.strftime("%H:%M:%S")
        if getattr(result, "ok", False):
            self._emit(f"[dim]{stamp}[/dim] [green]DONE[/green] batch {index + 1}/{self._batch_total}")
        else:
            error = getattr(result, "error", None)
            self._emit(f"[dim]{stamp}[/dim] [red]FAIL[/red] batch {index + 1}/{self._batch_total} cause={error}")

    def on_finish(self, run: Any) -> None:
        self.stop()
        items = getattr(run, "items", self._items)
        done = sum(1 for item in items if item.status == UploadStatus.DONE)
        failed = sum(1 for item in items if item.status == UploadStatus.ERROR)
        canceled = sum(1 for item in items if item.status == UploadStatus.CANCELED)
        total_bytes = sum(item.size for item in items)
        _echo(
            f"[bold]Finished[/bold] done={done} failed={failed} canceled={canceled} "
            f"total={len(items)} ({readable_size(total_bytes)})"
        )

    def _emit(self, message: str) -> None:
        if self._live is not None:
            self._live.console.print(message)
        else:
            _echo(message)
