"""Exceptions raised by pymirror."""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a failure, used by callers to pick retry/skip/abort policy."""

    CONFIGURATION = "configuration"
    """Bad endpoint, unknown versioning mode, malformed manifest"""

    RESOLUTION = "resolution"
    """Manifest missing or server path not found"""

    TRANSIENT_IO = "transient_io"
    """Connect/list failures that may succeed on a later attempt"""

    TRANSFER = "transfer"
    """Download failed mid-stream"""

    CANCELLED = "cancelled"
    """Operation was cancelled by the caller"""


class MirrorError(Exception):
    """Base exception for all pymirror errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT_IO


class MirrorConfigError(MirrorError):
    """Invalid configuration (endpoint, credentials, versioning mode)."""

    kind = ErrorKind.CONFIGURATION


class ManifestError(MirrorConfigError):
    """The update manifest could not be parsed."""


class MirrorResolutionError(MirrorError):
    """Something the manifest refers to does not exist on the remote."""

    kind = ErrorKind.RESOLUTION


class ManifestNotFoundError(MirrorResolutionError):
    """The update manifest is missing from the remote root."""


class ServerPathNotFoundError(MirrorResolutionError):
    """A rule's server path could not be resolved in the remote tree."""


class MirrorNetworkError(MirrorError):
    """Connection or listing failure."""

    kind = ErrorKind.TRANSIENT_IO


class MirrorAuthenticationError(MirrorNetworkError):
    """Login was rejected by the remote."""


class MirrorPermissionError(MirrorNetworkError):
    """The session has no access to the requested resource."""


class MirrorNotFoundError(MirrorNetworkError):
    """The remote resource does not exist."""


class MirrorTransferError(MirrorError):
    """A download failed while streaming content."""

    kind = ErrorKind.TRANSFER


class MirrorCancelledError(MirrorError):
    """The operation was cancelled through a CancellationToken."""

    kind = ErrorKind.CANCELLED
