"""Update sources: remote endpoints that hold a manifest and the files it lists."""

from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from ..config import config
from ..exceptions import MirrorConfigError
from .base import UpdateSource, partial_download
from .credentials import Credentials
from .drive import DriveSource
from .ftp import FtpSource


def create_source(
    uri: str,
    credentials: Optional[Credentials] = None,
    client_root: Optional[Path] = None,
) -> UpdateSource:
    """Create the update source matching a URI.

    Args:
        uri: ``ftp://``/``ftps://`` URI or a drive folder link
        credentials: Optional credentials; anonymous access is used otherwise
        client_root: Base for relative client paths in the manifest

    Returns:
        An unconnected UpdateSource

    Raises:
        MirrorConfigError: If no backend handles the URI
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()
    if scheme in ("ftp", "ftps"):
        return FtpSource(uri, credentials, client_root=client_root)
    if scheme == "https" and (parts.hostname or "").lower() == config.drive_host:
        return DriveSource(uri, credentials, client_root=client_root)
    raise MirrorConfigError(f"Unsupported update source: {uri}")


__all__ = [
    "Credentials",
    "DriveSource",
    "FtpSource",
    "UpdateSource",
    "create_source",
    "partial_download",
]
