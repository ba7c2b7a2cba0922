"""Executable update items and the per-rule task that groups them."""

import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from ..cancellation import CancellationToken
from ..models import RemoteNode, UpdateRule

if TYPE_CHECKING:
    from ..sources.base import UpdateSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
"""progress_callback(bytes_done, bytes_total)"""


class UpdateItem(ABC):
    """One operation needed to bring a local tree up to date."""

    target_path: Path
    """Local filesystem entry the operation writes or removes"""

    @property
    @abstractmethod
    def size(self) -> int:
        """Declared size in bytes (0 for deletions)."""

    @property
    def modified(self) -> Optional[datetime]:
        """Remote modification time, if any."""
        return None

    @abstractmethod
    async def update(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """Execute the operation."""


class DownloadUpdateItem(UpdateItem):
    """Replace ``target_path`` with the content of a remote file."""

    def __init__(self, node: RemoteNode, source: "UpdateSource", target_path: Path):
        self.node = node
        self.source = source
        self.target_path = target_path

    @property
    def size(self) -> int:
        return self.node.size

    @property
    def modified(self) -> Optional[datetime]:
        return self.node.timestamp

    async def update(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        await self.source.connect()
        await self.source.download(
            self.node,
            self.target_path,
            progress_callback=progress_callback,
            cancel_token=cancel_token,
        )

    def __repr__(self) -> str:
        return f"DownloadUpdateItem({self.node.name!r} -> {str(self.target_path)!r})"


class DeleteUpdateItem(UpdateItem):
    """Remove a local file or directory that has no remote counterpart."""

    def __init__(self, target_path: Path):
        self.target_path = target_path

    @property
    def size(self) -> int:
        return 0

    async def update(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        path = self.target_path
        if path.is_dir() and not path.is_symlink():
            logger.info(f"Deleting directory {path}")
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            logger.info(f"Deleting {path}")
            path.unlink()
        else:
            logger.debug(f"Already gone: {path}")

    def __repr__(self) -> str:
        return f"DeleteUpdateItem({str(self.target_path)!r})"


def paths_to_delete_items(paths: list[Path]) -> list[UpdateItem]:
    """Wrap leftover local entries into delete items."""
    return [DeleteUpdateItem(path) for path in paths]


@dataclass
class UpdateTask:
    """Update items produced for one rule."""

    name: str
    """Display name of the rule (or name of its remote directory)"""

    items: list[UpdateItem]
    """Operations in traversal order"""

    rule: UpdateRule
    """Rule the items were produced from"""

    modified: Optional[datetime] = None
    """Latest timestamp of any remote file visited for this rule"""

    @property
    def total_size(self) -> int:
        """Bytes that would be downloaded."""
        return sum(item.size for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def downloads(self) -> list[DownloadUpdateItem]:
        return [i for i in self.items if isinstance(i, DownloadUpdateItem)]

    @property
    def deletions(self) -> list[DeleteUpdateItem]:
        return [i for i in self.items if isinstance(i, DeleteUpdateItem)]
