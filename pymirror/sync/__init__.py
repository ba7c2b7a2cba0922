"""Reconciliation engine - computes and runs the updates for manifest rules."""

from .comparator import (
    VersionComparator,
    date_is_current,
    get_version_comparator,
    size_is_current,
)
from .engine import build_update_task, collect_tasks, process_directory
from .items import (
    DeleteUpdateItem,
    DownloadUpdateItem,
    ProgressCallback,
    UpdateItem,
    UpdateTask,
)
from .manager import (
    RunStats,
    SourceResult,
    collect_updates,
    pick_tasks,
    run_update_items,
)

__all__ = [
    "VersionComparator",
    "get_version_comparator",
    "size_is_current",
    "date_is_current",
    "process_directory",
    "build_update_task",
    "collect_tasks",
    "UpdateItem",
    "DownloadUpdateItem",
    "DeleteUpdateItem",
    "UpdateTask",
    "ProgressCallback",
    "collect_updates",
    "pick_tasks",
    "run_update_items",
    "SourceResult",
    "RunStats",
]
