"""Tests for HTTP helpers and the retry executor."""

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

import httpx
import pytest

from src.helpers import http as http_module
from src.helpers.http import (
    create_http_client,
    execute_with_retry,
    fetch_json,
    retry_with_backoff,
)


if TYPE_CHECKING:
    from pytest_httpx import HTTPXMock


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestExecuteWithRetry:
    """Tests for execute_with_retry."""

    @pytest.mark.asyncio
    async def test_succeeds_on_first_try(self) -> None:
        """Test operation succeeds without retries or sleeps."""
        sleep = RecordingSleep()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        result = await execute_with_retry(operation, 3, 5.0, sleep_func=sleep)

        assert result == "ok"
        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_linear_backoff_between_attempts(self) -> None:
        """Test waits of base_delay * attempt after each failure."""
        sleep = RecordingSleep()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("down")
            return "ok"

        result = await execute_with_retry(operation, 3, 5.0, sleep_func=sleep)

        assert result == "ok"
        assert calls == 3
        assert sleep.delays == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error_unchanged(self) -> None:
        """Test the final exception is the operation's own, not a wrapper."""
        sleep = RecordingSleep()
        errors = [RuntimeError("first"), RuntimeError("second"), KeyError("last")]

        async def operation() -> None:
            raise errors.pop(0)

        with pytest.raises(KeyError, match="last") as exc_info:
            await execute_with_retry(operation, 3, 1.0, sleep_func=sleep)

        assert type(exc_info.value) is KeyError
        # No sleep after the final attempt
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_logs_each_failed_attempt(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test every failure is logged at WARNING with its attempt number."""

        async def operation() -> None:
            raise ValueError("boom")

        with caplog.at_level(logging.WARNING), pytest.raises(ValueError):
            await execute_with_retry(
                operation, 2, 0.0, name="fetch_page", sleep_func=RecordingSleep()
            )

        messages = [
            r.getMessage() for r in caplog.records if r.levelno == logging.WARNING
        ]
        assert "fetch_page failed (attempt 1/2): boom" in messages
        assert "fetch_page failed (attempt 2/2): boom" in messages

    @pytest.mark.asyncio
    async def test_single_attempt_does_not_sleep(self) -> None:
        """Test max_attempts=1 raises immediately."""
        sleep = RecordingSleep()

        async def operation() -> None:
            raise httpx.ReadTimeout("slow")

        with pytest.raises(httpx.ReadTimeout):
            await execute_with_retry(operation, 1, 5.0, sleep_func=sleep)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self) -> None:
        """Test max_attempts below 1 is a usage error."""

        async def operation() -> None:
            return None

        with pytest.raises(ValueError, match="max_attempts must be at least 1"):
            await execute_with_retry(operation, 0, 1.0)


class TestRetryWithBackoff:
    """Tests for retry_with_backoff decorator."""

    @pytest.mark.asyncio
    async def test_retries_with_module_sleep(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the decorator retries and sleeps linearly."""
        sleep = RecordingSleep()
        monkeypatch.setattr(http_module, "sleep", sleep)
        calls = 0

        @retry_with_backoff(max_retries=4, base_delay=2.0)
        async def flaky(value: int, *, suffix: str = "") -> str:
            nonlocal calls
            calls += 1
            if calls < 4:
                raise httpx.HTTPError("Network error")
            return f"{value}{suffix}"

        assert await flaky(42, suffix="!") == "42!"
        assert calls == 4
        assert sleep.delays == [2.0, 4.0, 6.0]

    @pytest.mark.asyncio
    async def test_preserves_function_signature(self) -> None:
        """Test decorator preserves function name and docstring."""

        @retry_with_backoff()
        async def documented_func() -> str:
            """This is a documented function."""
            return "result"

        assert documented_func.__name__ == "documented_func"
        assert documented_func.__doc__ == "This is a documented function."
        assert await documented_func() == "result"


class TestCreateHttpClient:
    """Tests for create_http_client."""

    @pytest.mark.asyncio
    async def test_applies_timeouts(self) -> None:
        """Test default and connect timeouts are set."""
        client = create_http_client(timeout=12.0)
        try:
            assert client.timeout.read == 12.0
            assert client.timeout.connect == 3.0
        finally:
            await client.aclose()


class TestFetchJson:
    """Tests for fetch_json."""

    @pytest.mark.asyncio
    async def test_returns_parsed_body(self, httpx_mock: HTTPXMock) -> None:
        """Test a successful response is parsed."""
        httpx_mock.add_response(url="https://api.test/data", json={"rewards": []})

        async with httpx.AsyncClient() as client:
            data = await fetch_json(
                client, "https://api.test/data", headers={"Authorization": "Bearer k"}
            )

        assert data == {"rewards": []}
        assert httpx_mock.get_request().headers["Authorization"] == "Bearer k"

    @pytest.mark.asyncio
    async def test_returns_none_on_404(self, httpx_mock: HTTPXMock) -> None:
        """Test a missing resource maps to None."""
        httpx_mock.add_response(url="https://api.test/missing", status_code=404)

        async with httpx.AsyncClient() as client:
            assert await fetch_json(client, "https://api.test/missing") is None

    @pytest.mark.asyncio
    async def test_returns_none_on_server_error(self, httpx_mock: HTTPXMock) -> None:
        """Test a 5xx response maps to None."""
        httpx_mock.add_response(url="https://api.test/data", status_code=503)

        async with httpx.AsyncClient() as client:
            assert await fetch_json(client, "https://api.test/data") is None

    @pytest.mark.asyncio
    async def test_returns_none_on_transport_error(
        self, httpx_mock: HTTPXMock
    ) -> None:
        """Test connection failures map to None."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))

        async with httpx.AsyncClient() as client:
            assert await fetch_json(client, "https://api.test/data") is None

    @pytest.mark.asyncio
    async def test_returns_none_on_invalid_json(self, httpx_mock: HTTPXMock) -> None:
        """Test a non-JSON body maps to None."""
        httpx_mock.add_response(url="https://api.test/data", text="<html>")

        async with httpx.AsyncClient() as client:
            assert await fetch_json(client, "https://api.test/data") is None
