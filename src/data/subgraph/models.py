"""Pydantic models for raw subgraph entities.

Field names follow the subgraph's camelCase schema through aliases. Amounts
are integer base-unit strings and timestamps are Unix-second strings, exactly
as the indexer returns them; conversion happens in the normalizers.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SubgraphModel(BaseModel):
    """Base for subgraph entities."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class EntityRef(SubgraphModel):
    """Reference to another entity by id."""

    id: str
    metadata_uri: str | None = Field(default=None, alias="metadataURI")


class RawDelegation(SubgraphModel):
    """Delegation event from query A."""

    id: str
    delegator: EntityRef
    operator: EntityRef
    shares: str | int
    created_at: str | int = Field(..., alias="createdAt")
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    block_number: int | None = Field(default=None, alias="blockNumber")


class RawDeposit(SubgraphModel):
    """Deposit made by a staker into a strategy."""

    id: str
    shares: str | int
    strategy: EntityRef
    created_at: str | int = Field(..., alias="createdAt")
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    block_number: int | None = Field(default=None, alias="blockNumber")


class RawStaker(SubgraphModel):
    """Staker from query A.

    Deposits stay raw so each one can be validated on its own.
    """

    id: str
    shares: str | int | None = None
    strategies: list[dict[str, Any]] = Field(default_factory=list)
    deposits: list[dict[str, Any]] = Field(default_factory=list)


class RawOperator(SubgraphModel):
    """Operator from query B."""

    id: str
    metadata_uri: str | None = Field(default=None, alias="metadataURI")
    delegated_shares: str | int | None = Field(default=None, alias="delegatedShares")
    operator_shares: str | int | None = Field(default=None, alias="operatorShares")
    total_shares: str | int | None = Field(default=None, alias="totalShares")
    created_at: str | int = Field(..., alias="createdAt")
    block_number: int | None = Field(default=None, alias="blockNumber")
    transaction_hash: str | None = Field(default=None, alias="transactionHash")


class RawSlashing(SubgraphModel):
    """Slashing event from query B."""

    id: str
    operator: EntityRef
    amount: str | int
    created_at: str | int = Field(..., alias="createdAt")
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    block_number: int | None = Field(default=None, alias="blockNumber")


__all__ = [
    "EntityRef",
    "RawDelegation",
    "RawDeposit",
    "RawOperator",
    "RawSlashing",
    "RawStaker",
    "SubgraphModel",
]
