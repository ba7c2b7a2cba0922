"""Data models shared by sources, the manifest parser and the engine."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .exceptions import MirrorConfigError


class NodeKind(str, Enum):
    """Kind of a remote entry."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RemoteNode:
    """One entry of a remote tree snapshot, independent of the backend.

    Object-tree backends fill ``node_id``/``parent_id``; hierarchical
    backends fill ``path`` (slash-separated, absolute on the server).
    """

    name: str
    """Entry name (last path segment)"""

    kind: NodeKind
    """File or directory"""

    size: int = 0
    """Size in bytes (files only)"""

    modified: Optional[datetime] = None
    """Last modification time (UTC) if the backend reports it"""

    created: Optional[datetime] = None
    """Creation time (UTC) if the backend reports it"""

    node_id: Optional[str] = None
    """Identifier in object-tree backends"""

    parent_id: Optional[str] = None
    """Identifier of the parent node; None for the root"""

    path: Optional[str] = None
    """Full server path in hierarchical backends"""

    ref: Any = None
    """Backend-native handle needed to transfer the content"""

    @property
    def is_file(self) -> bool:
        return self.kind == NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIRECTORY

    @property
    def timestamp(self) -> Optional[datetime]:
        """Modification time, falling back to the creation time."""
        return self.modified if self.modified is not None else self.created


class VersioningMode(str, Enum):
    """How a rule decides whether a local file is current."""

    SIZE = "size"
    """Current iff the local length equals the remote size"""

    DATE = "date"
    """Current iff the remote timestamp is not after the local write time"""

    @classmethod
    def parse(cls, value: Any) -> "VersioningMode":
        """Parse a versioning mode, case-insensitively.

        Raises:
            MirrorConfigError: If the value is not a known mode
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            valid = ", ".join(m.value for m in cls)
            raise MirrorConfigError(
                f"Unknown versioning mode {value!r} (expected one of: {valid})"
            ) from e


@dataclass(frozen=True)
class UpdateRule:
    """One manifest record: which remote directory mirrors which local one."""

    server_path: str
    """Slash-separated remote directory, matched case-insensitively"""

    client_path: Path
    """Absolute local directory"""

    recursive: bool = True
    """Whether subdirectories are mirrored too"""

    remove_extraneous: bool = False
    """Whether local entries without a remote counterpart are deleted"""

    versioning: VersioningMode = VersioningMode.SIZE
    """Policy deciding whether a local file is current"""

    name: Optional[str] = None
    """Optional display name"""

    origin: str = ""
    """URI of the source whose manifest declared this rule"""

    priority: int = 0
    """Priority of the originating source; higher wins between sources"""
