"""Configuration management and environment variable utilities."""

import os

from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from dotenv import load_dotenv

from src.helpers.constants import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RATED_API_URL,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)


# Load environment variables from .env file
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from src.helpers.config import get_required_env

        api_key = get_required_env("RATED_API_KEY")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Empty strings are treated as unset.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    value = os.getenv(key)
    if not value:
        return default
    return value


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        Parsed integer

    Raises:
        ValueError: If the variable is set but not an integer
    """
    value = get_optional_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        msg = f"{key} must be an integer, got {value!r}"
        raise ValueError(msg) from None


def get_bool_env(key: str, *, default: bool = False) -> bool:
    """Get a boolean environment variable ("true", "1", "yes", "on")."""
    value = get_optional_env(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


class PipelineConfig(BaseModel):
    """Settings for one population run.

    Built once at process start and passed to every client, normalizer and
    the orchestrator. Nothing below the entry point reads the environment.
    """

    model_config = ConfigDict(frozen=True)

    subgraph_url: str | None = Field(
        default=None, description="EigenLayer subgraph endpoint"
    )
    rated_api_url: str = Field(
        default=DEFAULT_RATED_API_URL, description="Rated Network API base URL"
    )
    rated_api_key: str | None = Field(
        default=None, description="Bearer token for the Rated Network API"
    )
    max_retries: int = Field(default=MAX_RETRIES, ge=1)
    retry_delay: float = Field(
        default=RETRY_BASE_DELAY, ge=0, description="Linear backoff base in seconds"
    )
    steth_strategy_address: str | None = Field(
        default=None, description="Strategy contract counted as stETH"
    )
    mock_mode: bool = Field(default=False, description="Force placeholder data")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1)
    mock_seed: int | None = None
    log_level: str = "INFO"

    @property
    def use_mock_data(self) -> bool:
        """Whether placeholder data replaces every upstream source."""
        return self.mock_mode or not self.subgraph_url

    @classmethod
    def from_env(cls) -> Self:
        """Build the configuration from environment variables.

        Returns:
            PipelineConfig populated from the process environment

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        retry_delay_ms = get_int_env("RETRY_DELAY_MS", int(RETRY_BASE_DELAY * 1000))
        mock_seed = (
            get_int_env("MOCK_SEED", 0) if get_optional_env("MOCK_SEED") else None
        )
        return cls(
            subgraph_url=get_optional_env("EIGENLAYER_SUBGRAPH_URL"),
            rated_api_url=get_optional_env("RATED_API_URL") or DEFAULT_RATED_API_URL,
            rated_api_key=get_optional_env("RATED_API_KEY"),
            max_retries=get_int_env("MAX_RETRIES", MAX_RETRIES),
            retry_delay=retry_delay_ms / 1000,
            steth_strategy_address=get_optional_env("STETH_STRATEGY_ADDRESS"),
            mock_mode=get_bool_env("USE_MOCK_DATA"),
            page_size=get_int_env("PAGE_SIZE", DEFAULT_PAGE_SIZE),
            max_pages=get_int_env("MAX_PAGES", DEFAULT_MAX_PAGES),
            mock_seed=mock_seed,
            log_level=(get_optional_env("LOG_LEVEL") or "INFO").upper(),
        )


__all__ = [
    "PipelineConfig",
    "get_bool_env",
    "get_int_env",
    "get_optional_env",
    "get_required_env",
]
