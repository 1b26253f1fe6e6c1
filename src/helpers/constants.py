"""Common configuration constants used across the application."""

# Upstream Endpoints
DEFAULT_RATED_API_URL = "https://api.rated.network"
"""Default Rated Network API base URL"""

# Pagination
DEFAULT_PAGE_SIZE = 100
"""Default number of items requested per subgraph page"""

DEFAULT_MAX_PAGES = 10
"""Default maximum number of subgraph pages fetched per run"""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

REWARDS_TIMEOUT = 10.0
"""Timeout for rewards API requests in seconds"""

CONNECTION_TIMEOUT = 3.0
"""Timeout for establishing connections"""

# Retry Configuration
MAX_RETRIES = 3
"""Default maximum number of attempts for upstream calls"""

RETRY_BASE_DELAY = 5.0
"""Base delay for linear backoff in seconds"""

# Token Units
ETHER_DECIMALS = 18
"""Fixed-point decimals of ether-denominated amounts"""

UNIT_DECIMALS: dict[str, int] = {
    "wei": 0,
    "gwei": 9,
    "ether": ETHER_DECIMALS,
}
"""Supported unit names and their decimals"""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
"""Placeholder operator for deposits not yet delegated"""

STETH_STRATEGY_MARKER = "steth"
"""Substring identifying stETH strategies in subgraph ids"""

DEFAULT_SLASH_REASON = "Protocol violation"
"""Reason attached to slashings reported by the subgraph"""

# Placeholder Data
MOCK_DELEGATION_COUNT = 20
"""Number of placeholder delegations generated in mock mode"""

MOCK_OPERATOR_COUNT = 10
"""Number of placeholder operators generated in mock mode"""


__all__ = [
    "CONNECTION_TIMEOUT",
    "DEFAULT_MAX_PAGES",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_RATED_API_URL",
    "DEFAULT_SLASH_REASON",
    "DEFAULT_TIMEOUT",
    "ETHER_DECIMALS",
    "MAX_RETRIES",
    "MOCK_DELEGATION_COUNT",
    "MOCK_OPERATOR_COUNT",
    "RETRY_BASE_DELAY",
    "REWARDS_TIMEOUT",
    "STETH_STRATEGY_MARKER",
    "UNIT_DECIMALS",
    "ZERO_ADDRESS",
]
