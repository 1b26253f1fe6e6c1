"""Placeholder data used when no real upstream is configured.

Every value comes from the injected ``random.Random``, so a generator built
with a fixed seed and a fixed clock always produces the same records.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
import random

from typing import Self

from src.data.delegations.models import DelegationRecord, DelegationStatus
from src.data.operators.models import (
    OperatorMetadata,
    OperatorRecord,
    OperatorStatus,
    SlashEvent,
)
from src.data.rewards.models import RewardBreakdown, RewardRecord
from src.helpers.constants import MOCK_DELEGATION_COUNT, MOCK_OPERATOR_COUNT
from src.helpers.parsers import DecimalAmount, add_amounts, format_decimal

MOCK_OPERATOR_ADDRESSES = (
    "0x1234567890123456789012345678901234567890",
    "0x2345678901234567890123456789012345678901",
    "0x3456789012345678901234567890123456789012",
    "0x4567890123456789012345678901234567890123",
    "0x5678901234567890123456789012345678901234",
)
"""Operators placeholder delegations point at"""

MOCK_REWARD_OPERATORS = MOCK_OPERATOR_ADDRESSES[:3]
"""Operators paying placeholder rewards"""

MOCK_OPERATOR_STATUSES = (
    OperatorStatus.ACTIVE,
    OperatorStatus.ACTIVE,
    OperatorStatus.ACTIVE,
    OperatorStatus.JAILED,
    OperatorStatus.SLASHED,
)

MOCK_OPERATOR_NAMES = (
    "EigenOp1",
    "ValidatorPro",
    "StakeSecure",
    "EthGuard",
    "RestakeMax",
)

MOCK_BLOCK_START = 18_000_000
DAY = 86400


class PlaceholderGenerator:
    """Random but reproducible delegations, operators and rewards."""

    def __init__(
        self, rng: random.Random | None = None, now: datetime | None = None
    ) -> None:
        """Initialize the generator.

        Args:
            rng: Random source; pass ``random.Random(seed)`` for reproducible data
            now: Fixed reference time (default: the clock at each call)
        """
        self.rng = rng or random.Random()
        self._now = now

    @classmethod
    def from_seed(cls, seed: int | None, now: datetime | None = None) -> Self:
        """Build a generator from an optional seed."""
        return cls(random.Random(seed), now)

    def now(self) -> datetime:
        """Reference time for generated timestamps."""
        return self._now or datetime.now(UTC)

    def address(self) -> str:
        """Random 20-byte address."""
        return f"0x{self.rng.getrandbits(160):040x}"

    def tx_hash(self) -> str:
        """Random 32-byte transaction hash."""
        return f"0x{self.rng.getrandbits(256):064x}"

    def block_number(self) -> int:
        """Random block number above 18,000,000."""
        return MOCK_BLOCK_START + self.rng.randrange(1_000_000)

    def amount(self, low: int, high: int) -> DecimalAmount:
        """Random amount in [low, high) with two decimals."""
        cents = self.rng.randrange(low * 100, high * 100)
        return format_decimal(Decimal(cents).scaleb(-2))

    def delegations(
        self, count: int = MOCK_DELEGATION_COUNT
    ) -> list[DelegationRecord]:
        """Delegations of 10-1010 ether to the fixed operator set, within 90 days."""
        now = self.now()
        return [
            DelegationRecord(
                user_address=self.address(),
                amount_restaked=self.amount(10, 1010),
                target_operator_address=self.rng.choice(MOCK_OPERATOR_ADDRESSES),
                delegation_timestamp=now
                - timedelta(seconds=self.rng.randrange(90 * DAY)),
                transaction_hash=self.tx_hash(),
                block_number=self.block_number(),
                status=DelegationStatus.ACTIVE,
            )
            for _ in range(count)
        ]

    def operators(self, count: int = MOCK_OPERATOR_COUNT) -> list[OperatorRecord]:
        """Operators following the active, active, active, jailed, slashed pattern.

        The first operators reuse the addresses placeholder delegations point
        at, so delegator counts reconcile to non-zero values.
        """
        now = self.now()
        records: list[OperatorRecord] = []
        for i in range(count):
            name = (
                MOCK_OPERATOR_NAMES[i]
                if i < len(MOCK_OPERATOR_NAMES)
                else f"Operator{i}"
            )
            status = (
                MOCK_OPERATOR_STATUSES[i]
                if i < len(MOCK_OPERATOR_STATUSES)
                else OperatorStatus.ACTIVE
            )
            address = (
                MOCK_OPERATOR_ADDRESSES[i]
                if i < len(MOCK_OPERATOR_ADDRESSES)
                else self.address()
            )
            record = OperatorRecord(
                operator_address=address,
                operator_name=name,
                total_delegated_stake=self.amount(1000, 11000),
                # Slashed operators get there through add_slash_event below
                status=(
                    OperatorStatus.ACTIVE
                    if status == OperatorStatus.SLASHED
                    else status
                ),
                registration_timestamp=now
                - timedelta(seconds=self.rng.randrange(180 * DAY)),
                last_activity_timestamp=now
                - timedelta(seconds=self.rng.randrange(7 * DAY)),
                commission=self.rng.randrange(10),
                metadata=OperatorMetadata(
                    website=f"https://{name.lower()}.com",
                    description=(
                        "Professional EigenLayer operator providing secure "
                        "validation services"
                    ),
                    logo=f"https://example.com/logos/{name.lower()}.png",
                ),
            )
            if status == OperatorStatus.SLASHED:
                record.add_slash_event(
                    SlashEvent(
                        timestamp=int(now.timestamp()) - DAY,
                        amount_slashed=self.amount(10, 60),
                        reason="Protocol violation detected",
                        transaction_hash=self.tx_hash(),
                        block_number=self.block_number(),
                    )
                )
            records.append(record)
        return records

    def rewards(self, wallet_address: str) -> RewardRecord:
        """Rewards of 5-55 ether from each of three operators, over the last 3 days."""
        now_ts = int(self.now().timestamp())
        timestamps = [now_ts - DAY, now_ts - 2 * DAY, now_ts - 3 * DAY]
        breakdowns = [
            RewardBreakdown(
                operator_address=operator_address,
                amount_received=self.amount(5, 55),
                timestamps=timestamps,
                transaction_hashes=[self.tx_hash() for _ in timestamps],
                block_numbers=[self.block_number() for _ in timestamps],
            )
            for operator_address in MOCK_REWARD_OPERATORS
        ]
        return RewardRecord(
            wallet_address=wallet_address,
            total_rewards_received=add_amounts(
                *(breakdown.amount_received for breakdown in breakdowns)
            ),
            rewards_breakdown={b.operator_address: b for b in breakdowns},
        )


__all__ = [
    "MOCK_OPERATOR_ADDRESSES",
    "MOCK_REWARD_OPERATORS",
    "PlaceholderGenerator",
]
