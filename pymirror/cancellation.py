"""Cooperative cancellation shared between the CLI, sources and the engine."""

import threading
from typing import Optional

from .exceptions import MirrorCancelledError


class CancellationToken:
    """Thread-safe cancellation flag.

    The token is checked at well-defined points (between remote children
    during reconciliation, between retry attempts, between download chunks).
    It is safe to cancel from a signal handler or another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise MirrorCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise MirrorCancelledError("Operation cancelled")


def raise_if_cancelled(cancel_token: Optional[CancellationToken]) -> None:
    """Check an optional token; ``None`` is never cancelled."""
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
