"""CLI progress display for update runs.

This module provides a Rich-based progress display that receives the
per-item progress callbacks of ``run_update_items``.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync.items import DeleteUpdateItem, UpdateItem


class UpdateProgressDisplay:
    """Rich-based progress display for update items.

    Shows one bar for the overall run (bytes of all downloads) and one for
    the item currently being processed.
    """

    def __init__(self, total_bytes: int, total_items: int) -> None:
        self.total_bytes = total_bytes
        self.total_items = total_items
        self._progress: Optional[Progress] = None
        self._overall: Optional[TaskID] = None
        self._current: Optional[TaskID] = None
        self._current_item: Optional[UpdateItem] = None
        self._finished_bytes = 0
        self._items_seen = 0

    def _start_item(self, item: UpdateItem) -> None:
        if self._progress is None or self._current is None:
            return
        if self._current_item is not None:
            self._finished_bytes += self._current_item.size
        self._current_item = item
        self._items_seen += 1
        verb = "Deleting" if isinstance(item, DeleteUpdateItem) else "Downloading"
        self._progress.update(
            self._current,
            description=f"{verb} {item.target_path.name}",
            total=item.size or None,
            completed=0,
        )
        self._progress.update(
            self._overall,
            description=f"Item {self._items_seen}/{self.total_items}",
            completed=self._finished_bytes,
        )

    def handle_progress(self, item: UpdateItem, done: int, total: int) -> None:
        """Progress callback for run_update_items."""
        if self._progress is None:
            return
        if item is not self._current_item:
            self._start_item(item)
        self._progress.update(self._current, completed=done, total=total or item.size or None)
        self._progress.update(self._overall, completed=self._finished_bytes + done)

    def item_started(self, item: UpdateItem) -> None:
        """Item callback for run_update_items."""
        if item is not self._current_item:
            self._start_item(item)

    def __enter__(self) -> "UpdateProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._overall = self._progress.add_task("Updating...", total=self.total_bytes or None)
        self._current = self._progress.add_task("Preparing...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._overall is not None and exc_type is None:
                self._progress.update(
                    self._overall, description="Update complete", completed=self.total_bytes
                )
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._overall = None
            self._current = None
