"""Hierarchical update source backed by an FTP server."""

import asyncio
import ftplib
import io
import logging
import posixpath
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Optional
from urllib.parse import unquote, urlsplit

from ..cancellation import CancellationToken, raise_if_cancelled
from ..config import config
from ..exceptions import (
    MirrorAuthenticationError,
    MirrorCancelledError,
    MirrorConfigError,
    MirrorNetworkError,
    MirrorNotFoundError,
    MirrorTransferError,
)
from ..models import NodeKind, RemoteNode
from ..sync.items import ProgressCallback
from ..tree import PathIndexedTree
from ..utils import parse_mlsd_timestamp
from .base import UpdateSource
from .credentials import Credentials

logger = logging.getLogger(__name__)

MLSD_FACTS = ["type", "size", "modify", "create"]


def _close_quietly(ftp: ftplib.FTP) -> None:
    try:
        ftp.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing FTP connection: {e}")


def walk_mlsd(ftp: ftplib.FTP, path: str) -> list[RemoteNode]:
    """Recursively list ``path`` with MLSD and return every node below it."""
    nodes: list[RemoteNode] = []
    # Materialize the listing: a nested MLSD cannot start while one is streaming
    entries = list(ftp.mlsd(path, facts=MLSD_FACTS))

    for name, facts in entries:
        kind = facts.get("type", "").lower()
        if kind in ("cdir", "pdir") or name in (".", ".."):
            continue

        full_path = posixpath.join(path, name)
        modified = parse_mlsd_timestamp(facts.get("modify"))
        created = parse_mlsd_timestamp(facts.get("create"))

        if kind == "dir":
            nodes.append(
                RemoteNode(
                    name=name,
                    kind=NodeKind.DIRECTORY,
                    modified=modified,
                    created=created,
                    path=full_path,
                    ref=full_path,
                )
            )
            nodes.extend(walk_mlsd(ftp, full_path))
        elif kind == "file":
            nodes.append(
                RemoteNode(
                    name=name,
                    kind=NodeKind.FILE,
                    size=int(facts.get("size") or 0),
                    modified=modified,
                    created=created,
                    path=full_path,
                    ref=full_path,
                )
            )
        else:
            logger.debug(f"Skipping {full_path} of type {kind!r}")

    return nodes


class FtpSource(UpdateSource):
    """Update source for an ``ftp://`` or ``ftps://`` URI.

    Credentials are taken from the argument, then from the URI user-info;
    without either the source logs in anonymously. The URI path is the
    remote root that holds the manifest.

    ftplib is blocking, so every operation runs in a worker thread; a lock
    keeps operations on the single control connection from overlapping.
    """

    manifest_priority = 1

    def __init__(
        self,
        uri: str,
        credentials: Optional[Credentials] = None,
        client_root: Optional[Path] = None,
        ftp_factory: Optional[Callable[[], ftplib.FTP]] = None,
    ):
        super().__init__(uri, client_root)
        parts = urlsplit(uri)
        scheme = parts.scheme.lower()
        if scheme not in ("ftp", "ftps"):
            raise MirrorConfigError(f"The link is not an FTP link - {uri}")
        if not parts.hostname:
            raise MirrorConfigError(f"The link has no host - {uri}")

        self.host = parts.hostname
        try:
            self.port = parts.port or 21
        except ValueError as e:
            raise MirrorConfigError(f"Invalid port in {uri}") from e
        self.root_path = posixpath.normpath(unquote(parts.path) or "/")
        self.use_tls = scheme == "ftps"

        if credentials is None and parts.username:
            credentials = Credentials(unquote(parts.username), unquote(parts.password or ""))
        self.credentials = credentials

        if ftp_factory is None:
            ftp_factory = ftplib.FTP_TLS if self.use_tls else ftplib.FTP
        self._ftp_factory = ftp_factory
        self._ftp: Optional[ftplib.FTP] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._ftp is not None

    def _open(self) -> ftplib.FTP:
        ftp = self._ftp_factory()
        try:
            ftp.connect(self.host, self.port, timeout=config.timeout)
            if self.credentials is not None:
                ftp.login(self.credentials.username, self.credentials.password)
            else:
                ftp.login()
            if self.use_tls and isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
        except BaseException:
            _close_quietly(ftp)
            raise
        return ftp

    def _drop(self) -> None:
        if self._ftp is not None:
            _close_quietly(self._ftp)
            self._ftp = None

    async def connect(self) -> None:
        """Connect, replacing a control connection that no longer answers NOOP."""
        async with self._lock:
            if self._ftp is not None:
                try:
                    await asyncio.to_thread(self._ftp.voidcmd, "NOOP")
                except ftplib.all_errors as e:
                    logger.info(f"Connection to {self.host} lost ({e}), reconnecting")
                    self._drop()
        await super().connect()

    async def _connect_once(self) -> None:
        async with self._lock:
            who = self.credentials.username if self.credentials else "anonymous"
            logger.info(f"Connecting to {self.host}:{self.port} as {who}")
            try:
                self._ftp = await asyncio.to_thread(self._open)
            except ftplib.error_perm as e:
                raise MirrorAuthenticationError(f"FTP login to {self.host} failed: {e}") from e
            except ftplib.all_errors as e:
                raise MirrorNetworkError(f"Failed to connect to {self.host}: {e}") from e

    async def _list_tree_once(self) -> PathIndexedTree:
        await self.connect()
        async with self._lock:
            ftp = self._require_connection()
            try:
                nodes = await asyncio.to_thread(walk_mlsd, ftp, self.root_path)
            except ftplib.error_perm as e:
                raise MirrorNotFoundError(f"Cannot list {self.root_path} on {self.host}: {e}") from e
            except ftplib.all_errors as e:
                self._drop()
                raise MirrorNetworkError(f"Listing {self.host} failed: {e}") from e
        return PathIndexedTree(nodes, root_path=self.root_path, origin=self.uri)

    async def read_file(self, node: RemoteNode) -> bytes:
        await self.connect()
        buffer = io.BytesIO()
        async with self._lock:
            ftp = self._require_connection()
            try:
                await asyncio.to_thread(ftp.retrbinary, f"RETR {node.path}", buffer.write)
            except ftplib.error_perm as e:
                raise MirrorNotFoundError(f"Cannot read {node.path} on {self.host}: {e}") from e
            except ftplib.all_errors as e:
                self._drop()
                raise MirrorNetworkError(f"Reading {node.path} failed: {e}") from e
        return buffer.getvalue()

    async def _transfer(
        self,
        node: RemoteNode,
        destination: Path,
        progress_callback: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> None:
        abort = threading.Event()

        def retrieve(ftp: ftplib.FTP, f: BinaryIO) -> None:
            done = 0

            def write(chunk: bytes) -> None:
                nonlocal done
                if abort.is_set():
                    raise MirrorCancelledError("Download aborted")
                raise_if_cancelled(cancel_token)
                f.write(chunk)
                done += len(chunk)
                if progress_callback:
                    progress_callback(done, node.size)

            try:
                ftp.retrbinary(f"RETR {node.path}", write, blocksize=config.chunk_size)
            except BaseException:
                # The data channel is in an unknown state after an aborted transfer
                _close_quietly(ftp)
                raise

        async with self._lock:
            ftp = self._require_connection()
            # Closed before partial_download removes it, even if the worker still runs
            with destination.open("wb") as f:
                try:
                    await asyncio.to_thread(retrieve, ftp, f)
                except asyncio.CancelledError:
                    abort.set()
                    self._ftp = None
                    raise
                except MirrorCancelledError:
                    self._ftp = None
                    raise
                except ftplib.all_errors as e:
                    self._ftp = None
                    raise MirrorTransferError(f"Download of {node.path} failed: {e}") from e

    def _require_connection(self) -> ftplib.FTP:
        if self._ftp is None:
            raise MirrorNetworkError(f"Not connected to {self.host}")
        return self._ftp

    async def close(self) -> None:
        self.tree = None
        async with self._lock:
            ftp, self._ftp = self._ftp, None
            if ftp is None:
                return
            try:
                await asyncio.to_thread(ftp.quit)
            except ftplib.all_errors as e:
                logger.debug(f"QUIT failed on {self.host}: {e}")
                _close_quietly(ftp)
