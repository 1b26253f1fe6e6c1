"""HTTP client utilities and the retry executor."""

from __future__ import annotations

from asyncio import sleep
from functools import wraps

from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import httpx

from src.helpers.constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.helpers.http_models import JsonResponse


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    *,
    name: str | None = None,
    sleep_func: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Run an async operation with bounded retries and linear backoff.

    After failed attempt ``n`` the executor waits ``base_delay * n`` seconds
    before trying again. The last exception is re-raised unchanged once
    ``max_attempts`` is exhausted; callers decide whether that is fatal.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Backoff unit in seconds (default: 5.0)
        name: Label used in log messages (default: operation.__name__)
        sleep_func: Awaitable sleep, replaceable in tests

    Returns:
        The operation's result

    Raises:
        ValueError: If max_attempts is lower than 1

    Example:
        ```python
        from src.helpers.http import execute_with_retry

        data = await execute_with_retry(
            lambda: client.fetch_delegations(100, 0),
            max_attempts=3,
            base_delay=5.0,
        )
        # Waits 5s after the first failure and 10s after the second
        ```
    """
    if max_attempts < 1:
        msg = f"max_attempts must be at least 1, got {max_attempts}"
        raise ValueError(msg)

    label = name or getattr(operation, "__name__", "operation")

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                label,
                attempt,
                max_attempts,
                e,
            )
            if attempt == max_attempts:
                raise
            await (sleep_func or sleep)(base_delay * attempt)

    # Unreachable: the loop either returns or re-raises
    msg = f"{label} failed without exception"
    raise RuntimeError(msg)


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator form of execute_with_retry.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Backoff unit in seconds (default: 5.0)

    Returns:
        Decorated function that retries with linear backoff

    Example:
        ```python
        @retry_with_backoff(max_retries=3, base_delay=2.0)
        async def fetch_page(client: httpx.AsyncClient, url: str) -> dict:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

        # Will wait 2s, then 4s between the three attempts
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await execute_with_retry(
                lambda: func(*args, **kwargs),
                max_retries,
                base_delay,
                name=func.__name__,
            )

        return wrapper

    return decorator


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=CONNECTION_TIMEOUT), **kwargs
    )


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> JsonResponse:
    """Fetch JSON data from a URL.

    Errors are logged and mapped to None so callers can move on to a
    fallback source.

    Args:
        client: HTTP client instance
        url: URL to fetch
        headers: Optional request headers
        timeout: Optional timeout override

    Returns:
        Parsed JSON data or None on error
    """
    try:
        if timeout is None:
            response = await client.get(url, headers=headers)
        else:
            response = await client.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            logger.debug("URL not found: %s", url)
        else:
            logger.warning("HTTP error fetching %s: %s", url, e)
        return None
    except httpx.HTTPError as e:
        logger.warning("HTTP error fetching %s: %s", url, e)
        return None
    except ValueError as e:
        logger.warning("Invalid JSON from %s: %s", url, e)
        return None


__all__ = [
    "create_http_client",
    "execute_with_retry",
    "fetch_json",
    "retry_with_backoff",
]
