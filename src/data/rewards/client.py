"""Rated Network rewards API client."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from src.data.rewards.normalize import normalize_rewards
from src.helpers.constants import DEFAULT_RATED_API_URL, REWARDS_TIMEOUT
from src.helpers.errors import ConfigurationMissing, PipelineError
from src.helpers.http import fetch_json
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from datetime import datetime

    import httpx

    from src.data.rewards.models import RewardRecord
    from src.helpers.config import PipelineConfig


logger = get_logger(__name__)

REWARDS_ENDPOINTS = (
    "/v1/eigenlayer/rewards/delegator/{address}",
    "/v1/eigenlayer/rewards/rewards?delegator={address}",
)
"""Candidate routes for a delegator's rewards, tried in order"""


class RewardsClient:
    """Per-wallet rewards lookup with endpoint fallback."""

    def __init__(
        self,
        base_url: str = DEFAULT_RATED_API_URL,
        api_key: str | None = None,
        timeout: float = REWARDS_TIMEOUT,
    ) -> None:
        """Initialize rewards client.

        Args:
            base_url: Rated API base URL
            api_key: Bearer token; without one every lookup returns None
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._warned_missing_key = False

    @classmethod
    def from_config(cls, config: PipelineConfig) -> RewardsClient:
        """Build a client from the run configuration."""
        return cls(config.rated_api_url, config.rated_api_key)

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available."""
        return bool(self.api_key)

    def auth_headers(self) -> dict[str, str]:
        """Request headers carrying the bearer token.

        Raises:
            ConfigurationMissing: If no API key is configured
        """
        if not self.api_key:
            msg = "Rated API key is not configured"
            raise ConfigurationMissing(msg)
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def endpoint_urls(self, address: str) -> list[str]:
        """Candidate URLs for an address, in the order they are tried."""
        quoted = quote(address, safe="")
        return [
            self.base_url + endpoint.format(address=quoted)
            for endpoint in REWARDS_ENDPOINTS
        ]

    async def fetch_rewards(
        self,
        client: httpx.AsyncClient,
        address: str,
        now: datetime | None = None,
    ) -> RewardRecord | None:
        """Fetch and normalize the rewards of one wallet.

        Endpoints are tried in order; the first one returning a JSON body is
        normalized and returned. Failing endpoints are logged and skipped.

        Args:
            client: HTTP client instance
            address: Wallet address
            now: Time used for reward items without a timestamp

        Returns:
            Normalized RewardRecord, or None if no key is configured or every
            endpoint failed
        """
        try:
            headers = self.auth_headers()
        except ConfigurationMissing:
            if not self._warned_missing_key:
                logger.warning("Rated API key not provided, skipping Rated API calls")
                self._warned_missing_key = True
            return None

        for url in self.endpoint_urls(address):
            body = await fetch_json(client, url, headers=headers, timeout=self.timeout)
            if body is None:
                logger.debug("No rewards from %s", url)
                continue
            try:
                return normalize_rewards(body, address, now)
            except PipelineError as e:
                logger.warning("Unusable rewards body from %s: %s", url, e)

        return None


__all__ = ["REWARDS_ENDPOINTS", "RewardsClient"]
