"""Async API client for object-tree drive services (Drime-style REST API)."""

from __future__ import annotations

import logging
from typing import IO, Any, Callable

import httpx

from .cancellation import CancellationToken, raise_if_cancelled
from .config import config
from .exceptions import (
    MirrorAuthenticationError,
    MirrorError,
    MirrorNetworkError,
    MirrorNotFoundError,
    MirrorPermissionError,
    MirrorTransferError,
)

logger = logging.getLogger(__name__)


class DriveApiClient:
    """Client for a drive service that lists folders as flat, parent-linked entries.

    The client keeps one ``httpx.AsyncClient``. A session is either
    authenticated with a bearer token (from ``login`` or ``resume_session``)
    or anonymous, which is enough to read shared folders.
    """

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        per_page: int = 500,
    ):
        """Initialize the API client.

        Args:
            api_url: Base URL of the API (uses config if not provided)
            timeout: Request timeout in seconds (uses config if not provided)
            transport: Optional httpx transport (used by tests)
            per_page: Page size for listings
        """
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.timeout
        self.per_page = per_page
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token: str | None = None
        self._logged_in = False

    @property
    def is_logged_in(self) -> bool:
        return self._logged_in and self._client is not None and not self._client.is_closed

    @property
    def is_anonymous(self) -> bool:
        return self.is_logged_in and self._token is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    def _map_status_error(self, e: httpx.HTTPStatusError) -> MirrorError:
        """Translate an HTTP error status into a pymirror exception."""
        status_code = e.response.status_code

        if status_code == 401:
            return MirrorAuthenticationError("Invalid credentials or expired session")
        if status_code == 403:
            return MirrorPermissionError("Access forbidden - check your permissions")
        if status_code == 404:
            return MirrorNotFoundError(f"Resource not found: {e.request.url}")
        if status_code == 429:
            return MirrorNetworkError("Rate limit exceeded - please try again later")

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("message") or error_data.get("error")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass
        return MirrorNetworkError(error_msg)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request and return the decoded JSON body.

        Retrying is left to the caller; every transient failure surfaces as
        MirrorNetworkError.
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        headers = {**self._headers(), **kwargs.pop("headers", {})}

        try:
            response = await client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e) from e
        except httpx.RequestError as e:
            raise MirrorNetworkError(f"Network error: {e}") from e

        if not response.content:
            return {}
        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise MirrorNetworkError(f"Unexpected response type: {content_type}")
        try:
            return response.json()
        except ValueError as e:
            raise MirrorNetworkError("Invalid JSON response from server") from e

    # =========================
    # Session Operations
    # =========================

    async def login(self, email: str, password: str, device_name: str = "pymirror") -> str:
        """Log in with credentials and return the session token.

        Raises:
            MirrorAuthenticationError: If the credentials are rejected
        """
        self._token = None
        data = await self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password, "device_name": device_name},
        )
        user = data.get("user") if isinstance(data, dict) else None
        token = user.get("access_token") if isinstance(user, dict) else None
        if not token:
            raise MirrorAuthenticationError("Login response did not contain a token")
        self._token = token
        self._logged_in = True
        logger.debug(f"Logged in to {self.api_url} as {email}")
        return token

    async def resume_session(self, token: str) -> None:
        """Reuse a token obtained by an earlier login.

        Raises:
            MirrorAuthenticationError: If the token is no longer valid
        """
        self._token = token
        try:
            data = await self._request("GET", "/cli/loggedUser")
        except MirrorError:
            self._token = None
            raise
        if not isinstance(data, dict) or not data.get("user"):
            self._token = None
            raise MirrorAuthenticationError("Session token is no longer valid")
        self._logged_in = True
        logger.debug(f"Resumed session on {self.api_url}")

    async def login_anonymous(self) -> None:
        """Use the API without credentials (shared folders only)."""
        self._token = None
        self._get_client()
        self._logged_in = True
        logger.debug(f"Using anonymous access to {self.api_url}")

    async def logout(self) -> None:
        """Close the HTTP client; the session token is kept for reuse."""
        self._logged_in = False
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # =========================
    # Listing Operations
    # =========================

    async def get_nodes(self, folder_hash: str | None = None) -> tuple[dict, list[dict]]:
        """List a folder and every entry below it in one paginated listing.

        Args:
            folder_hash: Hash of the shared folder, None for the drive root

        Returns:
            Tuple of (root folder entry, all descendant entries). Each entry
            carries ``id``, ``name``, ``type``, ``file_size``, ``parent_id``,
            ``hash``, ``created_at`` and ``updated_at``.
        """
        params: dict[str, Any] = {"perPage": self.per_page, "recursive": 1}
        if folder_hash:
            params["folderId"] = folder_hash

        root: dict = {}
        entries: list[dict] = []
        page = 1
        while True:
            params["page"] = page
            result = await self._request("GET", "/drive/file-entries", params=params)
            if not isinstance(result, dict):
                raise MirrorNetworkError("Unexpected listing response")

            if not root and isinstance(result.get("folder"), dict):
                root = result["folder"]
            entries.extend(e for e in result.get("data", []) if isinstance(e, dict))

            current = result.get("current_page")
            last = result.get("last_page")
            if current is not None and last is not None and current < last:
                page = current + 1
                continue
            break

        if not root:
            # Drive root has no entry of its own
            root = {"id": 0, "name": "", "type": "folder", "parent_id": None}
        logger.debug(f"Fetched {len(entries)} entries below {root.get('name') or '/'}")
        return root, entries

    # =========================
    # Download Operations
    # =========================

    async def download(
        self,
        hash_value: str,
        output: IO[bytes],
        progress_callback: Callable[[int, int], None] | None = None,
        cancel_token: CancellationToken | None = None,
        chunk_size: int | None = None,
    ) -> int:
        """Stream a file into an open binary file object.

        Args:
            hash_value: Hash of the file to download
            output: Writable binary file object
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)
            cancel_token: Checked between chunks
            chunk_size: Read size (uses config if not provided)

        Returns:
            Number of bytes written

        Raises:
            MirrorTransferError: If the download fails
            MirrorCancelledError: If cancelled between chunks
        """
        url = f"{self.api_url}/file-entries/download/{hash_value}"
        client = self._get_client()
        bytes_downloaded = 0

        try:
            async with client.stream("GET", url, headers=self._headers()) as response:
                if response.is_error:
                    # Error bodies are small; read them so the message can be extracted
                    await response.aread()
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                async for chunk in response.aiter_bytes(chunk_size or config.chunk_size):
                    raise_if_cancelled(cancel_token)
                    if chunk:
                        output.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(bytes_downloaded, total_size)
        except httpx.HTTPStatusError as e:
            raise MirrorTransferError(f"Download failed: {self._map_status_error(e)}") from e
        except httpx.RequestError as e:
            raise MirrorTransferError(f"Network error during download: {e}") from e
        except OSError as e:
            raise MirrorTransferError(f"Failed to write file: {e}") from e

        return bytes_downloaded

    async def get_file_content(self, hash_value: str) -> bytes:
        """Download a small file into memory."""
        url = f"{self.api_url}/file-entries/download/{hash_value}"
        client = self._get_client()
        try:
            response = await client.get(url, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e) from e
        except httpx.RequestError as e:
            raise MirrorNetworkError(f"Network error: {e}") from e
        return response.content
