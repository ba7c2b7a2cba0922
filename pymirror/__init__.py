"""pymirror - keep local directories in step with remote update sources."""

from .cancellation import CancellationToken
from .exceptions import (
    ErrorKind,
    ManifestError,
    ManifestNotFoundError,
    MirrorAuthenticationError,
    MirrorCancelledError,
    MirrorConfigError,
    MirrorError,
    MirrorNetworkError,
    MirrorNotFoundError,
    MirrorPermissionError,
    MirrorResolutionError,
    MirrorTransferError,
    ServerPathNotFoundError,
)
from .manifest import load_update_manifest, parse_update_manifest
from .models import NodeKind, RemoteNode, UpdateRule, VersioningMode
from .retry import retry_on_exception_async
from .sources import Credentials, DriveSource, FtpSource, UpdateSource, create_source
from .sync import (
    DeleteUpdateItem,
    DownloadUpdateItem,
    UpdateItem,
    UpdateTask,
    collect_updates,
    run_update_items,
)
from .tree import ParentIndexedTree, PathIndexedTree, RemoteTree

__version__ = "0.3.0"

__all__ = [
    "CancellationToken",
    "Credentials",
    "DeleteUpdateItem",
    "DownloadUpdateItem",
    "DriveSource",
    "ErrorKind",
    "FtpSource",
    "ManifestError",
    "ManifestNotFoundError",
    "MirrorAuthenticationError",
    "MirrorCancelledError",
    "MirrorConfigError",
    "MirrorError",
    "MirrorNetworkError",
    "MirrorNotFoundError",
    "MirrorPermissionError",
    "MirrorResolutionError",
    "MirrorTransferError",
    "NodeKind",
    "ParentIndexedTree",
    "PathIndexedTree",
    "RemoteNode",
    "RemoteTree",
    "ServerPathNotFoundError",
    "UpdateItem",
    "UpdateRule",
    "UpdateSource",
    "UpdateTask",
    "VersioningMode",
    "collect_updates",
    "create_source",
    "load_update_manifest",
    "parse_update_manifest",
    "retry_on_exception_async",
    "run_update_items",
]
