"""Tests for the retry helper and source connect/list retries."""

import asyncio

import pytest
from conftest import FakeSource

from pymirror.cancellation import CancellationToken
from pymirror.exceptions import MirrorCancelledError, MirrorNetworkError
from pymirror.retry import retry_on_exception_async


class Flaky:
    """Callable failing a given number of times before succeeding."""

    def __init__(self, failures: int, exc: Exception = None):
        self.failures = failures
        self.exc = exc or MirrorNetworkError("boom")
        self.calls = 0
        self.__name__ = "flaky"

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


class TestRetryOnExceptionAsync:
    """Tests for retry_on_exception_async."""

    def test_success_first_time(self):
        action = Flaky(0)

        assert asyncio.run(retry_on_exception_async(action, 2, 0.0)) == "ok"
        assert action.calls == 1

    def test_fail_once_then_succeed(self):
        action = Flaky(1)

        assert asyncio.run(retry_on_exception_async(action, 2, 0.0)) == "ok"
        assert action.calls == 2

    def test_raises_after_last_attempt(self):
        """The failure only surfaces once every attempt was used."""
        action = Flaky(10)

        with pytest.raises(MirrorNetworkError, match="boom"):
            asyncio.run(retry_on_exception_async(action, 3, 0.0))
        assert action.calls == 3

    def test_last_exception_is_reraised_unchanged(self):
        error = ValueError("specific")
        action = Flaky(10, error)

        with pytest.raises(ValueError) as exc_info:
            asyncio.run(retry_on_exception_async(action, 2, 0.0))
        assert exc_info.value is error

    def test_zero_attempts_means_one(self):
        action = Flaky(10)

        with pytest.raises(MirrorNetworkError):
            asyncio.run(retry_on_exception_async(action, 0, 0.0))
        assert action.calls == 1

    def test_cancellation_error_is_not_retried(self):
        action = Flaky(10, MirrorCancelledError("stop"))

        with pytest.raises(MirrorCancelledError):
            asyncio.run(retry_on_exception_async(action, 5, 0.0))
        assert action.calls == 1

    def test_cancelled_token_prevents_first_attempt(self):
        action = Flaky(0)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(MirrorCancelledError):
            asyncio.run(retry_on_exception_async(action, 2, 0.0, token))
        assert action.calls == 0

    def test_cancel_during_failure_aborts_without_retry(self):
        token = CancellationToken()
        calls = []

        async def action():
            calls.append(1)
            token.cancel()
            raise MirrorNetworkError("boom")

        with pytest.raises(MirrorCancelledError):
            asyncio.run(retry_on_exception_async(action, 3, 0.0, token))
        assert len(calls) == 1


class FlakySource(FakeSource):
    """Fake source whose connect and list fail a number of times."""

    def __init__(self, builder, connect_failures=0, list_failures=0):
        super().__init__(builder)
        self.connect_failures = connect_failures
        self.list_failures = list_failures

    async def _connect_once(self):
        self.connect_calls += 1
        if self.connect_calls <= self.connect_failures:
            raise MirrorNetworkError("connection refused")
        self.connected = True

    async def _list_tree_once(self):
        self.list_calls += 1
        if self.list_calls <= self.list_failures:
            raise MirrorNetworkError("listing failed")
        return self.builder.build()


class TestSourceRetries:
    """Connect and list go through the retry helper."""

    def test_connect_fails_once_then_succeeds(self, builder):
        source = FlakySource(builder, connect_failures=1)

        asyncio.run(source.connect())

        assert source.is_connected
        assert source.connect_calls == 2

    def test_connect_fails_every_attempt(self, builder):
        source = FlakySource(builder, connect_failures=10)

        with pytest.raises(MirrorNetworkError, match="connection refused"):
            asyncio.run(source.connect())
        assert source.connect_calls == source.connect_attempts

    def test_connect_is_idempotent(self, builder):
        source = FlakySource(builder)

        async def run():
            await source.connect()
            await source.connect()

        asyncio.run(run())
        assert source.connect_calls == 1

    def test_list_retried(self, builder):
        source = FlakySource(builder, list_failures=1)

        tree = asyncio.run(source.list_tree())

        assert source.tree is tree
        assert source.list_calls == 2
