"""Pydantic models for delegation records."""

# Pydantic needs this at runtime to validate the datetime field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from src.data.common import validate_amount, validate_tx_hash
from src.helpers.parsers import (
    BaseUnitAmount,
    DecimalAmount,
    normalize_address,
    to_base_units,
)


class DelegationStatus(StrEnum):
    """Lifecycle of a delegation.

    The subgraph does not report exits, so normalizers only ever produce
    ACTIVE.
    """

    ACTIVE = "active"
    UNSTAKING = "unstaking"
    WITHDRAWN = "withdrawn"


class DelegationRecord(BaseModel):
    """Stake a user has restaked towards an operator, keyed by user address."""

    user_address: str
    amount_restaked: DecimalAmount = Field(..., description="Amount in ether")
    target_operator_address: str
    delegation_timestamp: datetime
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0)
    status: DelegationStatus = DelegationStatus.ACTIVE

    @field_validator("user_address", "target_operator_address", mode="before")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate and lowercase addresses."""
        return normalize_address(v)

    @field_validator("amount_restaked", mode="before")
    @classmethod
    def validate_amount_restaked(cls, v: str) -> str:
        """Amounts are non-negative decimal strings."""
        return validate_amount(v)

    @field_validator("transaction_hash", mode="before")
    @classmethod
    def validate_transaction_hash(cls, v: str | None) -> str | None:
        """Hashes are 0x followed by 64 hex digits when present."""
        return validate_tx_hash(v)

    def amount_in_wei(self) -> BaseUnitAmount:
        """Restaked amount as an integer wei string."""
        return to_base_units(self.amount_restaked)


__all__ = ["DelegationRecord", "DelegationStatus"]
