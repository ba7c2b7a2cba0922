"""Snapshots of a remote tree.

Two shapes are supported: object-tree listings where every node names its
parent by id, and hierarchical listings where every node carries its full
path. Both expose the same ``children``/``resolve_directory`` interface so the
reconciliation engine is written only once.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Iterable, Optional

from .exceptions import MirrorConfigError, ServerPathNotFoundError
from .models import NodeKind, RemoteNode
from .utils import split_server_path

logger = logging.getLogger(__name__)


class RemoteTree(ABC):
    """Base class for remote tree snapshots."""

    def __init__(self, root: RemoteNode, origin: str = "remote"):
        if not root.is_directory:
            raise MirrorConfigError(f"Tree root must be a directory: {root.name!r}")
        self.root = root
        self.origin = origin

    @property
    @abstractmethod
    def nodes(self) -> list[RemoteNode]:
        """Every node of the snapshot, root included."""

    @abstractmethod
    def children(self, node: RemoteNode) -> list[RemoteNode]:
        """Return the immediate children of a directory node."""

    def find_file(self, name: str, parent: Optional[RemoteNode] = None) -> Optional[RemoteNode]:
        """Find a file by exact name among the children of ``parent`` (root by default)."""
        for child in self.children(parent or self.root):
            if child.is_file and child.name == name:
                return child
        return None

    def find_directory(self, parent: RemoteNode, name: str) -> Optional[RemoteNode]:
        """Find a child directory by case-insensitive name."""
        folded = name.casefold()
        for child in self.children(parent):
            if child.is_directory and child.name.casefold() == folded:
                return child
        return None

    def resolve_directory(self, server_path: str) -> RemoteNode:
        """Descend from the root one path segment at a time.

        Args:
            server_path: Slash-separated path; empty or "/" is the root

        Returns:
            The directory node at ``server_path``

        Raises:
            ServerPathNotFoundError: If any segment has no matching directory
        """
        node = self.root
        for segment in split_server_path(server_path):
            child = self.find_directory(node, segment)
            if child is None:
                raise ServerPathNotFoundError(
                    f"Could not find server path {server_path!r} in {self.origin}"
                    f" (no directory named {segment!r})"
                )
            node = child
        return node

    def __len__(self) -> int:
        return len(self.nodes)


class ParentIndexedTree(RemoteTree):
    """Flat node arena plus a parent-id to child-positions index."""

    def __init__(self, nodes: Iterable[RemoteNode], origin: str = "remote"):
        self._nodes = list(nodes)
        self._children: dict[Optional[str], list[int]] = defaultdict(list)

        roots = []
        for position, node in enumerate(self._nodes):
            if node.parent_id is None:
                roots.append(node)
            else:
                self._children[node.parent_id].append(position)

        if len(roots) != 1:
            raise MirrorConfigError(
                f"Expected exactly one root node in {origin}, found {len(roots)}"
            )
        super().__init__(roots[0], origin)
        logger.debug(f"Indexed {len(self._nodes)} node(s) from {origin}")

    @property
    def nodes(self) -> list[RemoteNode]:
        return list(self._nodes)

    def children(self, node: RemoteNode) -> list[RemoteNode]:
        if node.node_id is None:
            return []
        return [self._nodes[i] for i in self._children.get(node.node_id, ())]


def normalize_path(path: str) -> str:
    """Normalize a server path for comparisons: "/A/b/" -> "/a/b"."""
    return "/" + "/".join(split_server_path(path)).casefold()


class PathIndexedTree(RemoteTree):
    """Hierarchical listing where each node carries its full path."""

    def __init__(self, nodes: Iterable[RemoteNode], root_path: str = "/", origin: str = "remote"):
        root_key = normalize_path(root_path)
        self._nodes: list[RemoteNode] = []
        self._children: dict[str, list[RemoteNode]] = defaultdict(list)

        root: Optional[RemoteNode] = None
        for node in nodes:
            if node.path is None:
                raise MirrorConfigError(f"Node {node.name!r} from {origin} has no path")
            key = normalize_path(node.path)
            if key == root_key:
                root = node
                continue
            parent_key = key.rsplit("/", 1)[0] or "/"
            self._nodes.append(node)
            self._children[parent_key].append(node)

        if root is None:
            segments = split_server_path(root_path)
            root = RemoteNode(
                name=segments[-1] if segments else "",
                kind=NodeKind.DIRECTORY,
                path="/" + "/".join(segments),
            )
        self._nodes.insert(0, root)
        super().__init__(root, origin)
        logger.debug(f"Indexed {len(self._nodes)} node(s) from {origin}")

    @property
    def nodes(self) -> list[RemoteNode]:
        return list(self._nodes)

    def children(self, node: RemoteNode) -> list[RemoteNode]:
        if node.path is None:
            return []
        return list(self._children.get(normalize_path(node.path), ()))
