"""Database models for rewards."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.data.rewards.models import RewardRecord
from src.helpers.db import Base, as_utc


class RewardDB(Base):
    """Wallet rewards database model.

    The per-operator breakdown is a JSON object keyed by operator address.
    """

    __tablename__ = "rewards"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    total_rewards_received: Mapped[str] = mapped_column(String(100))  # Decimal ether
    rewards_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON)
    first_reward_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_reward_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    total_reward_events: Mapped[int] = mapped_column(Integer, default=0)
    average_reward_amount: Mapped[str] = mapped_column(String(100))
    reward_frequency: Mapped[dict[str, Any]] = mapped_column(JSON)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def to_row(record: RewardRecord, last_updated: datetime) -> dict[str, Any]:
    """Flatten a RewardRecord into RewardDB column values."""
    data = record.model_dump(
        mode="json", include={"rewards_breakdown", "reward_frequency"}
    )
    return {
        "wallet_address": record.wallet_address,
        "total_rewards_received": record.total_rewards_received,
        "rewards_breakdown": data["rewards_breakdown"],
        "first_reward_timestamp": record.first_reward_timestamp,
        "last_reward_timestamp": record.last_reward_timestamp,
        "total_reward_events": record.total_reward_events,
        "average_reward_amount": record.average_reward_amount,
        "reward_frequency": data["reward_frequency"],
        "last_updated": last_updated,
    }


def to_record(row: RewardDB) -> RewardRecord:
    """Convert a stored row back into a RewardRecord."""
    return RewardRecord(
        wallet_address=row.wallet_address,
        total_rewards_received=row.total_rewards_received,
        rewards_breakdown=row.rewards_breakdown or {},
        first_reward_timestamp=(
            as_utc(row.first_reward_timestamp) if row.first_reward_timestamp else None
        ),
        last_reward_timestamp=(
            as_utc(row.last_reward_timestamp) if row.last_reward_timestamp else None
        ),
        total_reward_events=row.total_reward_events,
        average_reward_amount=row.average_reward_amount,
        reward_frequency=row.reward_frequency or {},
    )


__all__ = ["RewardDB", "to_record", "to_row"]
