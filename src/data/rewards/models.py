"""Pydantic models for wallet rewards."""

# Pydantic needs this at runtime to validate the datetime fields
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from src.data.common import validate_amount, validate_tx_hash
from src.helpers.parsers import (
    BaseUnitAmount,
    DecimalAmount,
    add_amounts,
    normalize_address,
    parse_unix_timestamp,
    to_base_units,
)


class RewardType(StrEnum):
    """Source of a reward."""

    DELEGATION = "delegation"
    VALIDATION = "validation"
    SLASHING_PROTECTION = "slashing_protection"
    OTHER = "other"


class RewardBreakdown(BaseModel):
    """Rewards a wallet received from one operator."""

    operator_address: str
    amount_received: DecimalAmount = DecimalAmount("0")
    timestamps: list[int] = Field(default_factory=list, description="Unix seconds")
    transaction_hashes: list[str] = Field(default_factory=list)
    block_numbers: list[int] = Field(default_factory=list)
    reward_type: RewardType = RewardType.DELEGATION

    @field_validator("operator_address", mode="before")
    @classmethod
    def validate_operator_address(cls, v: str) -> str:
        """Validate and lowercase the operator address."""
        return normalize_address(v)

    @field_validator("amount_received", mode="before")
    @classmethod
    def validate_amount_received(cls, v: str) -> str:
        """Amounts are non-negative decimal strings."""
        return validate_amount(v)

    @field_validator("transaction_hashes", mode="before")
    @classmethod
    def validate_transaction_hashes(cls, v: list[str]) -> list[str]:
        """Every hash must be 0x followed by 64 hex digits."""
        return [h for h in (validate_tx_hash(item) for item in v) if h is not None]


class RewardFrequency(BaseModel):
    """Reward rate since the first reward, per day, week and 30-day month."""

    daily_average: DecimalAmount = DecimalAmount("0")
    weekly_average: DecimalAmount = DecimalAmount("0")
    monthly_average: DecimalAmount = DecimalAmount("0")


class RewardRecord(BaseModel):
    """Accumulated rewards of one wallet, keyed by wallet address.

    ``rewards_breakdown`` holds one entry per operator, keyed by the
    operator's address. The remaining derived fields are filled in by
    ``recompute_reward_stats`` before every write.
    """

    wallet_address: str
    total_rewards_received: DecimalAmount = DecimalAmount("0")
    rewards_breakdown: dict[str, RewardBreakdown] = Field(default_factory=dict)
    first_reward_timestamp: datetime | None = None
    last_reward_timestamp: datetime | None = None
    total_reward_events: int = Field(default=0, ge=0)
    average_reward_amount: DecimalAmount = DecimalAmount("0")
    reward_frequency: RewardFrequency = Field(default_factory=RewardFrequency)

    @field_validator("wallet_address", mode="before")
    @classmethod
    def validate_wallet_address(cls, v: str) -> str:
        """Validate and lowercase the wallet address."""
        return normalize_address(v)

    @field_validator("total_rewards_received", mode="before")
    @classmethod
    def validate_total_rewards_received(cls, v: str) -> str:
        """Amounts are non-negative decimal strings."""
        return validate_amount(v)

    @field_validator("rewards_breakdown")
    @classmethod
    def key_by_operator(
        cls, v: dict[str, RewardBreakdown]
    ) -> dict[str, RewardBreakdown]:
        """Re-key breakdowns by their normalized operator address."""
        return {breakdown.operator_address: breakdown for breakdown in v.values()}

    @property
    def active_operators_count(self) -> int:
        """Number of operators the wallet has received rewards from."""
        return len(self.rewards_breakdown)

    def rewards_from_operator(self, operator_address: str) -> RewardBreakdown | None:
        """Breakdown for one operator, or None if it never paid this wallet."""
        return self.rewards_breakdown.get(operator_address.lower())

    def total_rewards_in_wei(self) -> BaseUnitAmount:
        """Total rewards as an integer wei string."""
        return to_base_units(self.total_rewards_received)

    def add_reward(
        self,
        operator_address: str,
        amount: DecimalAmount | str,
        timestamp: int | str | datetime,
        transaction_hash: str | None = None,
        block_number: int | None = None,
        reward_type: RewardType = RewardType.DELEGATION,
    ) -> None:
        """Record one reward event.

        Adds to the operator's breakdown (creating it on first use) and to
        the wallet total. Derived statistics are not touched.

        Args:
            operator_address: Operator that paid the reward
            amount: Non-negative decimal amount in ether
            timestamp: Time of the reward in any form parse_unix_timestamp accepts
            transaction_hash: Optional hash of the paying transaction
            block_number: Optional block of the paying transaction

        Raises:
            ValueError: If the address, amount or hash is invalid
            MalformedRecord: If the timestamp cannot be parsed
        """
        operator = normalize_address(operator_address)
        amount = validate_amount(amount)
        seconds = parse_unix_timestamp(timestamp)
        tx_hash = validate_tx_hash(transaction_hash)

        breakdown = self.rewards_breakdown.get(operator)
        if breakdown is None:
            breakdown = RewardBreakdown(
                operator_address=operator, reward_type=reward_type
            )
            self.rewards_breakdown[operator] = breakdown

        breakdown.amount_received = add_amounts(breakdown.amount_received, amount)
        breakdown.timestamps.append(seconds)
        if tx_hash:
            breakdown.transaction_hashes.append(tx_hash)
        if block_number is not None:
            breakdown.block_numbers.append(block_number)

        self.total_rewards_received = add_amounts(self.total_rewards_received, amount)


__all__ = ["RewardBreakdown", "RewardFrequency", "RewardRecord", "RewardType"]
