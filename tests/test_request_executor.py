from __future__ import annotations

from typing import Awaitable, Callable

import pytest

from box_sync.core.errors import (
    AuthenticationError,
    CredentialMissingError,
    NotFoundError,
    TransientNetworkError,
)
from box_sync.utils.http import RequestExecutor, RetryConfig


class StubTokenManager:
    def __init__(self) -> None:
        self.token = "token-1"
        self.recover_calls: list[str] = []
        self.recover_error: Exception | None = None
        self.on_recover: Callable[[], Awaitable[object]] | None = None

    async def ensure_valid(self) -> str:
        return self.token

    async def recover(self, stale_token: str) -> str:
        self.recover_calls.append(stale_token)
        if self.on_recover is not None:
            await self.on_recover()
        if self.recover_error is not None:
            raise self.recover_error
        self.token = "token-2"
        return self.token


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _executor(tokens: StubTokenManager, sleep: RecordingSleep, *, max_retries: int = 3) -> RequestExecutor:
    return RequestExecutor(
        tokens,
        RetryConfig(max_retries=max_retries, backoff_seconds=1.0),
        sleep=sleep,
    )


def test_backoff_schedule_doubles() -> None:
    config = RetryConfig(max_retries=3, backoff_seconds=1.0)
    assert [config.delay_for(attempt) for attempt in range(3)] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_transient_failures_retry_with_increasing_backoff() -> None:
    sleep = RecordingSleep()
    executor = _executor(StubTokenManager(), sleep)
    calls: list[str] = []

    async def flaky(token: str) -> str:
        calls.append(token)
        if len(calls) <= 3:
            raise TransientNetworkError("connection reset")
        return "done"

    assert await executor.execute(flaky) == "done"
    assert len(calls) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_transient_failures_give_up_after_max_retries() -> None:
    sleep = RecordingSleep()
    executor = _executor(StubTokenManager(), sleep)
    calls: list[str] = []

    async def down(token: str) -> str:
        calls.append(token)
        raise TransientNetworkError("timed out")

    with pytest.raises(TransientNetworkError):
        await executor.execute(down)

    assert len(calls) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_other_errors_are_not_retried() -> None:
    sleep = RecordingSleep()
    tokens = StubTokenManager()
    executor = _executor(tokens, sleep)
    calls: list[str] = []

    async def missing(token: str) -> str:
        calls.append(token)
        raise NotFoundError(404, "Not Found")

    with pytest.raises(NotFoundError) as excinfo:
        await executor.execute(missing)

    assert excinfo.value.status_code == 404
    assert len(calls) == 1
    assert sleep.delays == []
    assert tokens.recover_calls == []


@pytest.mark.asyncio
async def test_single_401_is_recovered_once() -> None:
    tokens = StubTokenManager()
    executor = _executor(tokens, RecordingSleep())
    seen: list[str] = []

    async def operation(token: str) -> str:
        seen.append(token)
        if token == "token-1":
            raise AuthenticationError(401, "Unauthorized")
        return "ok"

    assert await executor.execute(operation) == "ok"
    assert seen == ["token-1", "token-2"]
    assert tokens.recover_calls == ["token-1"]


@pytest.mark.asyncio
async def test_repeated_401_propagates_after_one_recovery() -> None:
    tokens = StubTokenManager()
    executor = _executor(tokens, RecordingSleep())
    seen: list[str] = []

    async def operation(token: str) -> str:
        seen.append(token)
        raise AuthenticationError(401, "Unauthorized")

    with pytest.raises(AuthenticationError) as excinfo:
        await executor.execute(operation)

    assert str(excinfo.value).startswith("Authentication failed")
    assert seen == ["token-1", "token-2"]
    assert tokens.recover_calls == ["token-1"]


@pytest.mark.asyncio
async def test_recovery_failure_propagates() -> None:
    tokens = StubTokenManager()
    tokens.recover_error = CredentialMissingError("no provider")
    executor = _executor(tokens, RecordingSleep())
    seen: list[str] = []

    async def operation(token: str) -> str:
        seen.append(token)
        raise AuthenticationError(401, "Unauthorized")

    with pytest.raises(CredentialMissingError):
        await executor.execute(operation)

    assert seen == ["token-1"]


@pytest.mark.asyncio
async def test_calls_made_during_recovery_do_not_recover_again() -> None:
    tokens = StubTokenManager()
    executor = _executor(tokens, RecordingSleep())

    async def unauthorized(token: str) -> str:
        raise AuthenticationError(401, "Unauthorized")

    tokens.on_recover = lambda: executor.execute(unauthorized)

    with pytest.raises(AuthenticationError):
        await executor.execute(unauthorized)

    assert tokens.recover_calls == ["token-1"]


@pytest.mark.asyncio
async def test_network_retry_applies_to_the_call_after_recovery() -> None:
    sleep = RecordingSleep()
    tokens = StubTokenManager()
    executor = _executor(tokens, sleep)
    seen: list[str] = []

    async def operation(token: str) -> str:
        seen.append(token)
        if token == "token-1":
            raise AuthenticationError(401, "Unauthorized")
        if len(seen) == 2:
            raise TransientNetworkError("reset")
        return "ok"

    assert await executor.execute(operation) == "ok"
    assert seen == ["token-1", "token-2", "token-2"]
    assert sleep.delays == [1.0]
