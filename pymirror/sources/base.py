"""Common behaviour of all update sources."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..cancellation import CancellationToken, raise_if_cancelled
from ..config import config
from ..exceptions import ManifestNotFoundError
from ..manifest import parse_update_manifest
from ..models import RemoteNode, UpdateRule
from ..retry import retry_on_exception_async
from ..sync.engine import collect_tasks
from ..sync.items import ProgressCallback, UpdateTask
from ..tree import RemoteTree
from ..utils import MANIFEST_FILE_NAME

logger = logging.getLogger(__name__)


@contextmanager
def partial_download(destination: Path) -> Iterator[Path]:
    """Guard a file that is about to be (re)written by a transfer.

    Any existing file is removed first so an update is always a full
    replace. If the block exits with an exception, including cancellation,
    the partially written file is removed before the exception propagates.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.unlink(missing_ok=True)
    try:
        yield destination
    except BaseException:
        try:
            destination.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove partial download {destination}: {e}")
        raise


class UpdateSource(ABC):
    """A remote endpoint that update tasks are computed against.

    One instance owns one connection/session and one tree snapshot. Calls on
    the same instance must not overlap.
    """

    manifest_priority: int = 0
    """Priority attached to rules parsed from this source's manifest"""

    def __init__(self, uri: str, client_root: Optional[Path] = None):
        self.uri = uri
        self.client_root = client_root
        self.tree: Optional[RemoteTree] = None
        self.connect_attempts = config.connect_attempts
        self.connect_delay = config.connect_delay
        self.list_attempts = config.list_attempts
        self.list_delay = config.list_delay

    # =========================
    # Backend Hooks
    # =========================

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a usable session exists."""

    @abstractmethod
    async def _connect_once(self) -> None:
        """Establish a session: reuse a token, else log in, else go anonymous."""

    @abstractmethod
    async def _list_tree_once(self) -> RemoteTree:
        """Fetch a full recursive snapshot of the remote tree."""

    @abstractmethod
    async def _transfer(
        self,
        node: RemoteNode,
        destination: Path,
        progress_callback: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> None:
        """Stream ``node`` into ``destination`` (already guarded)."""

    @abstractmethod
    async def read_file(self, node: RemoteNode) -> bytes:
        """Return the full content of a small remote file."""

    @abstractmethod
    async def close(self) -> None:
        """Release the session; errors are logged, not raised."""

    # =========================
    # Public API
    # =========================

    async def connect(self) -> None:
        """Connect if not connected yet, retrying transient failures."""
        if self.is_connected:
            return

        async def connect() -> None:
            if not self.is_connected:
                await self._connect_once()

        await retry_on_exception_async(
            connect, self.connect_attempts, self.connect_delay
        )

    async def list_tree(
        self, cancel_token: Optional[CancellationToken] = None
    ) -> RemoteTree:
        """Fetch and memoize a fresh snapshot of the remote tree."""
        await self.connect()

        async def list_tree() -> RemoteTree:
            return await self._list_tree_once()

        self.tree = await retry_on_exception_async(
            list_tree, self.list_attempts, self.list_delay, cancel_token
        )
        logger.info(f"Listed {len(self.tree)} node(s) from {self.uri}")
        return self.tree

    async def download(
        self,
        node: RemoteNode,
        destination: Path,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """Replace ``destination`` with the content of ``node``.

        Raises:
            MirrorTransferError: If the transfer fails; no file is left behind
            MirrorCancelledError: If cancelled; no file is left behind
        """
        raise_if_cancelled(cancel_token)
        await self.connect()
        logger.debug(f"Downloading {node.name} -> {destination}")
        with partial_download(destination):
            await self._transfer(node, destination, progress_callback, cancel_token)

    async def read_manifest(
        self, tree: RemoteTree, cancel_token: Optional[CancellationToken] = None
    ) -> list[UpdateRule]:
        """Fetch and parse the manifest stored in the tree root."""
        manifest_node = tree.find_file(MANIFEST_FILE_NAME)
        if manifest_node is None:
            raise ManifestNotFoundError(
                f"Failed to get the update list - {MANIFEST_FILE_NAME} "
                f"is missing in {self.uri}"
            )
        raise_if_cancelled(cancel_token)
        data = await self.read_file(manifest_node)
        return parse_update_manifest(
            data,
            origin=self.uri,
            priority=self.manifest_priority,
            client_root=self.client_root,
        )

    async def fetch_rules(
        self, cancel_token: Optional[CancellationToken] = None
    ) -> tuple[RemoteTree, list[UpdateRule]]:
        """Refresh the tree snapshot and read the manifest rules from it."""
        raise_if_cancelled(cancel_token)
        self.tree = None
        tree = await self.list_tree(cancel_token)
        rules = await self.read_manifest(tree, cancel_token)
        return tree, rules

    async def get_update_tasks(
        self, cancel_token: Optional[CancellationToken] = None
    ) -> list[UpdateTask]:
        """Compute one UpdateTask per manifest rule.

        The tree snapshot is refreshed on every call. The first failing rule
        aborts the call; collect_updates isolates rules from each other.
        """
        tree, rules = await self.fetch_rules(cancel_token)
        return collect_tasks(self, tree, rules, cancel_token)

    async def __aenter__(self) -> "UpdateSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.uri!r})"
