"""Pydantic models for operators and their slash history."""

# Pydantic needs this at runtime to validate the datetime fields
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from src.data.common import validate_amount, validate_tx_hash
from src.helpers.parsers import (
    BaseUnitAmount,
    DecimalAmount,
    add_amounts,
    normalize_address,
    to_base_units,
)


class OperatorStatus(StrEnum):
    """Operator standing in the restaking protocol."""

    ACTIVE = "active"
    JAILED = "jailed"
    SLASHED = "slashed"
    INACTIVE = "inactive"
    DEREGISTERED = "deregistered"


class SlashEvent(BaseModel):
    """A single slashing applied to an operator."""

    timestamp: int = Field(..., ge=0, description="Unix seconds")
    amount_slashed: DecimalAmount
    reason: str | None = Field(default=None, max_length=500)
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0)

    @field_validator("amount_slashed", mode="before")
    @classmethod
    def validate_amount_slashed(cls, v: str) -> str:
        """Amounts are non-negative decimal strings."""
        return validate_amount(v)

    @field_validator("transaction_hash", mode="before")
    @classmethod
    def validate_transaction_hash(cls, v: str | None) -> str | None:
        """Hashes are 0x followed by 64 hex digits when present."""
        return validate_tx_hash(v)


class OperatorMetadata(BaseModel):
    """Descriptive operator metadata."""

    website: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    logo: str | None = Field(default=None, max_length=500)
    metadata_uri: str | None = None


class OperatorRecord(BaseModel):
    """Restaking operator, keyed by operator address."""

    operator_address: str
    operator_name: str | None = Field(default=None, max_length=100)
    total_delegated_stake: DecimalAmount = DecimalAmount("0")
    slash_history: list[SlashEvent] = Field(default_factory=list)
    status: OperatorStatus = OperatorStatus.ACTIVE
    registration_timestamp: datetime
    last_activity_timestamp: datetime
    delegator_count: int = Field(default=0, ge=0)
    commission: Decimal = Field(default=Decimal(0), ge=0, le=100)
    avs_services: list[str] = Field(default_factory=list)
    metadata: OperatorMetadata = Field(default_factory=OperatorMetadata)

    @field_validator("operator_address", mode="before")
    @classmethod
    def validate_operator_address(cls, v: str) -> str:
        """Validate and lowercase the operator address."""
        return normalize_address(v)

    @field_validator("total_delegated_stake", mode="before")
    @classmethod
    def validate_total_delegated_stake(cls, v: str) -> str:
        """Amounts are non-negative decimal strings."""
        return validate_amount(v)

    @property
    def slash_count(self) -> int:
        """Number of recorded slash events."""
        return len(self.slash_history)

    def stake_in_wei(self) -> BaseUnitAmount:
        """Total delegated stake as an integer wei string."""
        return to_base_units(self.total_delegated_stake)

    def total_slashed_amount(self) -> DecimalAmount:
        """Exact sum of every slashed amount."""
        return add_amounts(*(event.amount_slashed for event in self.slash_history))

    def add_slash_event(self, event: SlashEvent) -> None:
        """Append a slash event; an active operator becomes slashed."""
        self.slash_history.append(event)
        if self.status == OperatorStatus.ACTIVE:
            self.status = OperatorStatus.SLASHED


__all__ = ["OperatorMetadata", "OperatorRecord", "OperatorStatus", "SlashEvent"]
