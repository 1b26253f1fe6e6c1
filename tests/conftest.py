"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from src.data.store import RestakingStore
from src.helpers.config import PipelineConfig
from src.helpers.db import create_db_engine


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable


FIXED_NOW = datetime(2024, 6, 1, tzinfo=UTC)
"""Clock used by stores and normalizers under test"""

OPERATOR_A = "0x" + "0a" * 20
OPERATOR_B = "0x" + "0b" * 20
ONE_ETHER = "1000000000000000000"


def address(index: int) -> str:
    """Deterministic lowercase address for an index."""
    return f"0x{index:040x}"


def tx_hash(index: int) -> str:
    """Deterministic transaction hash for an index."""
    return f"0x{index:064x}"


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed reference time."""
    return FIXED_NOW


@pytest.fixture
def config() -> PipelineConfig:
    """Configuration pointing at a fake subgraph with fast retries."""
    return PipelineConfig(
        subgraph_url="https://subgraph.test/graphql",
        rated_api_url="https://rated.test",
        rated_api_key="test-key",
        max_retries=3,
        retry_delay=0.0,
        page_size=100,
        max_pages=3,
        mock_seed=42,
    )


@pytest.fixture
def delegation_event() -> Callable[..., dict[str, Any]]:
    """Factory for raw subgraph delegation events."""

    def build(
        index: int, shares: str | int = ONE_ETHER, **overrides: Any
    ) -> dict[str, Any]:
        event = {
            "id": f"delegation-{index}",
            "delegator": {"id": address(index)},
            "operator": {"id": OPERATOR_A, "metadataURI": "ipfs://operator-a"},
            "shares": shares,
            "createdAt": str(1_700_000_000 + index),
            "transactionHash": tx_hash(index),
            "blockNumber": str(18_000_000 + index),
        }
        event.update(overrides)
        return event

    return build


@pytest.fixture
def staker_deposit() -> Callable[..., dict[str, Any]]:
    """Factory for raw staker deposits."""

    def build(
        index: int, strategy_id: str = "0xstrategy-steth", shares: str = ONE_ETHER
    ) -> dict[str, Any]:
        return {
            "id": f"deposit-{index}",
            "shares": shares,
            "strategy": {"id": strategy_id},
            "transactionHash": tx_hash(1000 + index),
            "blockNumber": str(18_100_000 + index),
            "createdAt": str(1_700_100_000 + index),
        }

    return build


@pytest.fixture
def operator_item() -> Callable[..., dict[str, Any]]:
    """Factory for raw subgraph operators."""

    def build(operator_id: str, **overrides: Any) -> dict[str, Any]:
        item = {
            "id": operator_id,
            "metadataURI": f"https://meta.test/{operator_id}.json",
            "delegatedShares": "0",
            "operatorShares": "0",
            "totalShares": "32000000000000000000",
            "createdAt": "1690000000",
            "blockNumber": "17800000",
            "transactionHash": tx_hash(5000),
        }
        item.update(overrides)
        return item

    return build


@pytest.fixture
def slashing_item() -> Callable[..., dict[str, Any]]:
    """Factory for raw subgraph slashing events."""

    def build(index: int, operator_id: str, amount: str = ONE_ETHER) -> dict[str, Any]:
        return {
            "id": f"slashing-{index}",
            "operator": {"id": operator_id},
            "amount": amount,
            "createdAt": str(1_710_000_000 + index),
            "transactionHash": tx_hash(9000 + index),
            "blockNumber": str(19_000_000 + index),
        }

    return build


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[RestakingStore, None]:
    """Store on a fresh in-memory SQLite database with a fixed clock."""
    engine = create_db_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    restaking_store = RestakingStore(engine, clock=lambda: FIXED_NOW)
    await restaking_store.create_tables()

    yield restaking_store

    await engine.dispose()
