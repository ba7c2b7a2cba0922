"""Bounded retry with a fixed delay for asynchronous operations."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .cancellation import CancellationToken, raise_if_cancelled
from .exceptions import MirrorCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_exception_async(
    action: Callable[[], Awaitable[T]],
    attempts: int,
    delay: float,
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """Run ``action`` until it succeeds or ``attempts`` invocations failed.

    Any exception other than cancellation triggers a retry after ``delay``
    seconds. After the last attempt the last exception is re-raised
    unchanged. Cancellation is checked before every attempt and after every
    delay and aborts the loop right away without consuming an attempt.

    Args:
        action: Zero-argument callable returning a fresh awaitable per call
        attempts: Maximum number of invocations (values below 1 mean 1)
        delay: Seconds to wait between attempts
        cancel_token: Optional cancellation token

    Returns:
        Whatever the successful invocation returned

    Examples:
        >>> async def connect():
        ...     return "ok"
        >>> asyncio.run(retry_on_exception_async(connect, 2, 0.0))
        'ok'
    """
    attempts = max(1, attempts)
    name = getattr(action, "__name__", repr(action))

    for attempt in range(1, attempts + 1):
        raise_if_cancelled(cancel_token)
        try:
            return await action()
        except MirrorCancelledError:
            raise
        except Exception as exc:
            if attempt == attempts:
                raise
            logger.warning(
                f"{name} failed (attempt {attempt}/{attempts}): {exc}; "
                f"retrying in {delay:.1f}s"
            )
        await asyncio.sleep(delay)

    # Unreachable: the loop either returns or raises
    raise AssertionError("retry loop exited without a result")
