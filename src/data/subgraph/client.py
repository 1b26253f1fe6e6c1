"""GraphQL client for the EigenLayer restaking subgraph."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from src.data.subgraph.queries import (
    OPERATORS_QUERY,
    OPERATORS_RESULT_KEYS,
    RESTAKERS_QUERY,
    RESTAKERS_RESULT_KEYS,
)
from src.helpers.constants import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from src.helpers.errors import (
    ConfigurationMissing,
    PipelineError,
    TransientUpstreamError,
    UpstreamUnavailable,
)
from src.helpers.http import execute_with_retry
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from src.helpers.config import PipelineConfig
    from src.helpers.http_models import JsonObject


logger = get_logger(__name__)


class SubgraphClient:
    """Paged GraphQL queries against the restaking subgraph."""

    def __init__(
        self,
        subgraph_url: str,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        sleep_func: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize subgraph client.

        Args:
            subgraph_url: GraphQL endpoint URL
            max_retries: Attempts per query before giving up
            retry_delay: Linear backoff base in seconds
            timeout: Request timeout in seconds
            sleep_func: Awaitable sleep used between attempts, replaceable in tests

        Raises:
            ValueError: If subgraph_url is empty or None
        """
        if not subgraph_url:
            msg = "Subgraph URL cannot be empty"
            raise ValueError(msg)

        self.subgraph_url = subgraph_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep_func = sleep_func

    @classmethod
    def from_config(cls, config: PipelineConfig) -> SubgraphClient:
        """Build a client from the run configuration.

        Raises:
            ConfigurationMissing: If no subgraph URL is configured
        """
        if not config.subgraph_url:
            msg = "EIGENLAYER_SUBGRAPH_URL is not configured"
            raise ConfigurationMissing(msg)
        return cls(
            config.subgraph_url,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )

    async def query(
        self,
        client: httpx.AsyncClient,
        document: str,
        variables: dict[str, Any],
    ) -> JsonObject:
        """Post a single GraphQL query, without retries.

        Args:
            client: HTTP client instance
            document: GraphQL query document
            variables: Query variables

        Returns:
            The ``data`` object of the response

        Raises:
            httpx.HTTPError: If the HTTP request fails
            TransientUpstreamError: If the response carries GraphQL errors or no data
        """
        response = await client.post(
            self.subgraph_url,
            json={"query": document, "variables": variables},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()

        if not isinstance(body, dict):
            msg = f"Unexpected GraphQL response: {type(body).__name__}"
            raise TransientUpstreamError(msg)
        if body.get("errors"):
            msg = f"GraphQL error: {body['errors']}"
            raise TransientUpstreamError(msg)

        data = body.get("data")
        if not isinstance(data, dict):
            msg = "GraphQL response has no data"
            raise TransientUpstreamError(msg)
        return data

    async def _query_with_retry(
        self,
        client: httpx.AsyncClient,
        name: str,
        document: str,
        page_size: int,
        offset: int,
    ) -> JsonObject:
        variables = {"first": page_size, "skip": offset}
        try:
            return await execute_with_retry(
                lambda: self.query(client, document, variables),
                self.max_retries,
                self.retry_delay,
                name=name,
                sleep_func=self._sleep_func,
            )
        except (httpx.HTTPError, PipelineError, ValueError) as e:
            msg = f"{name} failed after {self.max_retries} attempts: {e}"
            raise UpstreamUnavailable(msg) from e

    async def fetch_delegations(
        self, client: httpx.AsyncClient, page_size: int, offset: int
    ) -> JsonObject:
        """Fetch one page of delegation events and staker deposits.

        Args:
            client: HTTP client instance
            page_size: Items per result set (``first``)
            offset: Items to skip (``skip``)

        Returns:
            Raw ``{"delegations": [...], "stakers": [...]}`` payload

        Raises:
            UpstreamUnavailable: If every attempt failed
        """
        return await self._query_with_retry(
            client, "fetch_delegations", RESTAKERS_QUERY, page_size, offset
        )

    async def fetch_operators(
        self, client: httpx.AsyncClient, page_size: int, offset: int
    ) -> JsonObject:
        """Fetch one page of operators and slashing events.

        Args:
            client: HTTP client instance
            page_size: Items per result set (``first``)
            offset: Items to skip (``skip``)

        Returns:
            Raw ``{"operators": [...], "slashings": [...]}`` payload

        Raises:
            UpstreamUnavailable: If every attempt failed
        """
        return await self._query_with_retry(
            client, "fetch_operators", OPERATORS_QUERY, page_size, offset
        )

    async def iter_delegation_pages(
        self,
        client: httpx.AsyncClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> AsyncIterator[JsonObject]:
        """Yield delegation pages until the subgraph runs dry."""
        async for page in self._iter_pages(
            self.fetch_delegations, RESTAKERS_RESULT_KEYS, client, page_size, max_pages
        ):
            yield page

    async def iter_operator_pages(
        self,
        client: httpx.AsyncClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> AsyncIterator[JsonObject]:
        """Yield operator pages until the subgraph runs dry."""
        async for page in self._iter_pages(
            self.fetch_operators, OPERATORS_RESULT_KEYS, client, page_size, max_pages
        ):
            yield page

    async def _iter_pages(
        self,
        fetch: Callable[[httpx.AsyncClient, int, int], Awaitable[JsonObject]],
        result_keys: tuple[str, ...],
        client: httpx.AsyncClient,
        page_size: int,
        max_pages: int,
    ) -> AsyncIterator[JsonObject]:
        # A page is the last one once every result set came back short
        for page_number in range(max_pages):
            page = await fetch(client, page_size, page_number * page_size)
            yield page

            sizes = [len(page.get(key) or []) for key in result_keys]
            logger.debug("Page %d result sizes: %s", page_number, sizes)
            if all(size < page_size for size in sizes):
                return

        logger.info("Stopped paging after %d pages", max_pages)


__all__ = ["SubgraphClient"]
