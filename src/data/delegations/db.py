"""Database models for delegations."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.data.delegations.models import DelegationRecord
from src.helpers.db import Base, as_utc


class DelegationDB(Base):
    """Delegation (restaker) database model."""

    __tablename__ = "restakers"

    user_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    amount_restaked: Mapped[str] = mapped_column(String(100))  # Decimal ether
    target_operator_address: Mapped[str] = mapped_column(String(42), index=True)
    delegation_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True
    )
    transaction_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def to_record(row: DelegationDB) -> DelegationRecord:
    """Convert a stored row back into a DelegationRecord."""
    return DelegationRecord(
        user_address=row.user_address,
        amount_restaked=row.amount_restaked,
        target_operator_address=row.target_operator_address,
        delegation_timestamp=as_utc(row.delegation_timestamp),
        transaction_hash=row.transaction_hash,
        block_number=row.block_number,
        status=row.status,
    )


__all__ = ["DelegationDB", "to_record"]
