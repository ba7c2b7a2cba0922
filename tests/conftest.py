"""Shared fixtures and helpers for pymirror tests."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from pymirror.models import NodeKind, RemoteNode
from pymirror.sources.base import UpdateSource
from pymirror.tree import ParentIndexedTree, RemoteTree
from pymirror.utils import MANIFEST_FILE_NAME


def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


def set_mtime(path: Path, when: datetime) -> None:
    """Set the modification time of a local file."""
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))


class TreeBuilder:
    """Builds a parent-indexed remote tree with file contents."""

    def __init__(self) -> None:
        self._next_id = 1
        self.root = RemoteNode(name="", kind=NodeKind.DIRECTORY, node_id="0")
        self.nodes: list[RemoteNode] = [self.root]
        self.contents: dict[str, bytes] = {}

    def _new_id(self) -> str:
        node_id = str(self._next_id)
        self._next_id += 1
        return node_id

    def directory(self, name: str, parent: Optional[RemoteNode] = None) -> RemoteNode:
        node = RemoteNode(
            name=name,
            kind=NodeKind.DIRECTORY,
            node_id=self._new_id(),
            parent_id=(parent or self.root).node_id,
        )
        self.nodes.append(node)
        return node

    def file(
        self,
        name: str,
        content: bytes = b"data",
        parent: Optional[RemoteNode] = None,
        modified: Optional[datetime] = None,
        created: Optional[datetime] = None,
        size: Optional[int] = None,
    ) -> RemoteNode:
        node_id = self._new_id()
        node = RemoteNode(
            name=name,
            kind=NodeKind.FILE,
            size=len(content) if size is None else size,
            modified=modified,
            created=created,
            node_id=node_id,
            parent_id=(parent or self.root).node_id,
            ref=node_id,
        )
        self.nodes.append(node)
        self.contents[node_id] = content
        return node

    def manifest(self, records: list[dict]) -> RemoteNode:
        return self.file(MANIFEST_FILE_NAME, json.dumps({"updates": records}).encode())

    def build(self) -> ParentIndexedTree:
        return ParentIndexedTree(self.nodes, origin="memory")


class FakeSource(UpdateSource):
    """In-memory update source used to exercise the engine and items."""

    manifest_priority = 5

    def __init__(self, builder: TreeBuilder, uri: str = "memory://test") -> None:
        super().__init__(uri)
        self.builder = builder
        self.connect_delay = 0.0
        self.list_delay = 0.0
        self.connected = False
        self.connect_calls = 0
        self.list_calls = 0
        self.fail_transfer_after: Optional[int] = None
        self.closed = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def _connect_once(self) -> None:
        self.connect_calls += 1
        self.connected = True

    async def _list_tree_once(self) -> RemoteTree:
        self.list_calls += 1
        return self.builder.build()

    async def read_file(self, node: RemoteNode) -> bytes:
        return self.builder.contents[node.ref]

    async def _transfer(self, node, destination, progress_callback, cancel_token):
        content = self.builder.contents[node.ref]
        with destination.open("wb") as f:
            for offset in range(0, len(content), 2):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if self.fail_transfer_after is not None and offset >= self.fail_transfer_after:
                    raise OSError("connection reset")
                f.write(content[offset : offset + 2])
                if progress_callback:
                    progress_callback(min(offset + 2, len(content)), len(content))

    async def close(self) -> None:
        self.closed = True
        self.connected = False


@pytest.fixture
def builder() -> TreeBuilder:
    return TreeBuilder()


@pytest.fixture
def source(builder: TreeBuilder) -> FakeSource:
    return FakeSource(builder)
