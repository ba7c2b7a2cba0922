"""Versioning comparators deciding whether a local file is current."""

from pathlib import Path
from typing import Callable

from ..exceptions import MirrorConfigError
from ..models import RemoteNode, VersioningMode
from ..utils import timestamp_to_datetime

VersionComparator = Callable[[RemoteNode, Path], bool]
"""(remote node, existing local file) -> True if the local file is current"""


def size_is_current(remote: RemoteNode, local_file: Path) -> bool:
    """Current iff the local length equals the remote size exactly."""
    return remote.size == local_file.stat().st_size


def date_is_current(remote: RemoteNode, local_file: Path) -> bool:
    """Current iff the remote timestamp is at or before the local write time.

    Only a remote file stamped strictly after the local file is stale, so
    re-touching a local file never makes it outdated. A remote node without
    any timestamp cannot be newer and counts as current.
    """
    remote_time = remote.timestamp
    if remote_time is None:
        return True
    local_time = timestamp_to_datetime(local_file.stat().st_mtime)
    return remote_time <= local_time


def get_version_comparator(mode: VersioningMode) -> VersionComparator:
    """Return the comparator for a versioning mode.

    Args:
        mode: Versioning mode of the rule being processed

    Returns:
        Comparator callable; it must only be called for existing local files

    Raises:
        MirrorConfigError: If the mode is unknown
    """
    if mode == VersioningMode.SIZE:
        return size_is_current
    if mode == VersioningMode.DATE:
        return date_is_current
    raise MirrorConfigError(f"Unknown versioning mode: {mode!r}")
