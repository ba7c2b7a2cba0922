"""Object-tree update source backed by a drive service API."""

import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from ..api import DriveApiClient
from ..cancellation import CancellationToken
from ..config import config
from ..exceptions import MirrorConfigError, MirrorError
from ..models import NodeKind, RemoteNode
from ..sync.items import ProgressCallback
from ..tree import ParentIndexedTree
from ..utils import parse_iso_timestamp
from .base import UpdateSource
from .credentials import Credentials

logger = logging.getLogger(__name__)


def entry_to_node(entry: dict, parent_id: Optional[str]) -> RemoteNode:
    """Convert a raw API file entry into a RemoteNode."""
    is_folder = entry.get("type") == "folder"
    return RemoteNode(
        name=str(entry.get("name") or ""),
        kind=NodeKind.DIRECTORY if is_folder else NodeKind.FILE,
        size=0 if is_folder else int(entry.get("file_size") or 0),
        modified=parse_iso_timestamp(entry.get("updated_at")),
        created=parse_iso_timestamp(entry.get("created_at")),
        node_id=str(entry.get("id")),
        parent_id=parent_id,
        ref=entry.get("hash"),
    )


class DriveSource(UpdateSource):
    """Update source for a shared drive folder.

    The URI must use https and the configured drive host, e.g.
    ``https://app.drime.cloud/drive/folders/<hash>``. Without a folder hash
    the whole drive of the logged-in user is used.
    """

    manifest_priority = 10

    def __init__(
        self,
        uri: str,
        credentials: Optional[Credentials] = None,
        client: Optional[DriveApiClient] = None,
        client_root: Optional[Path] = None,
    ):
        super().__init__(uri, client_root)
        parts = urlsplit(uri)
        expected_host = config.drive_host
        if parts.scheme.lower() != "https" or (parts.hostname or "").lower() != expected_host:
            raise MirrorConfigError(
                f"The link doesn't point to {expected_host} - {uri}"
            )

        segments = [s for s in parts.path.split("/") if s]
        self.folder_hash: Optional[str] = None
        if segments:
            if len(segments) != 3 or segments[:2] != ["drive", "folders"]:
                raise MirrorConfigError(f"Not a drive folder link: {uri}")
            self.folder_hash = segments[2]

        self.credentials = credentials
        self.client = client or DriveApiClient()
        self._session_token: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.client.is_logged_in

    async def _connect_once(self) -> None:
        if self._session_token is not None:
            try:
                await self.client.resume_session(self._session_token)
                return
            except MirrorError as e:
                logger.info(f"Stored session for {self.uri} rejected ({e}), logging in again")
                self._session_token = None

        if self.credentials is not None:
            self._session_token = await self.client.login(
                self.credentials.username, self.credentials.password
            )
            logger.info(f"Logged in to {self.uri} as {self.credentials.username}")
        else:
            await self.client.login_anonymous()
            logger.info(f"Connected anonymously to {self.uri}")

    async def _list_tree_once(self) -> ParentIndexedTree:
        root_entry, entries = await self.client.get_nodes(self.folder_hash)
        root_id = str(root_entry.get("id"))

        nodes = [entry_to_node(root_entry, None)]
        for entry in entries:
            parent = entry.get("parent_id")
            # Top-level entries of the drive root have no parent id
            parent_id = root_id if parent is None else str(parent)
            nodes.append(entry_to_node(entry, parent_id))
        return ParentIndexedTree(nodes, origin=self.uri)

    async def read_file(self, node: RemoteNode) -> bytes:
        await self.connect()
        return await self.client.get_file_content(self._hash(node))

    async def _transfer(
        self,
        node: RemoteNode,
        destination: Path,
        progress_callback: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> None:
        with destination.open("wb") as f:
            await self.client.download(
                self._hash(node),
                f,
                progress_callback=progress_callback,
                cancel_token=cancel_token,
            )

    @staticmethod
    def _hash(node: RemoteNode) -> Any:
        if not node.ref:
            raise MirrorConfigError(f"Remote node {node.name!r} has no download hash")
        return node.ref

    async def close(self) -> None:
        self.tree = None
        try:
            await self.client.logout()
        except Exception as e:
            logger.warning(f"Failed to close session for {self.uri}: {e}")
