"""Database models for operators."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.data.operators.models import OperatorRecord
from src.helpers.db import Base, as_utc


class OperatorDB(Base):
    """Operator database model.

    Slash history, AVS services and metadata are stored as JSON documents.
    """

    __tablename__ = "operators"

    operator_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    operator_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_delegated_stake: Mapped[str] = mapped_column(String(100))  # Decimal ether
    slash_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(16), index=True)
    registration_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_activity_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True)
    )
    delegator_count: Mapped[int] = mapped_column(Integer, default=0)
    commission: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    avs_services: Mapped[list[str]] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    operator_metadata: Mapped[dict[str, Any]] = mapped_column(JSON)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def to_row(record: OperatorRecord, last_updated: datetime) -> dict[str, Any]:
    """Flatten an OperatorRecord into OperatorDB column values."""
    data = record.model_dump(mode="json", include={"slash_history", "metadata"})
    return {
        "operator_address": record.operator_address,
        "operator_name": record.operator_name,
        "total_delegated_stake": record.total_delegated_stake,
        "slash_history": data["slash_history"],
        "status": str(record.status),
        "registration_timestamp": record.registration_timestamp,
        "last_activity_timestamp": record.last_activity_timestamp,
        "delegator_count": record.delegator_count,
        "commission": record.commission,
        "avs_services": list(record.avs_services),
        "operator_metadata": data["metadata"],
        "last_updated": last_updated,
    }


def to_record(row: OperatorDB) -> OperatorRecord:
    """Convert a stored row back into an OperatorRecord."""
    return OperatorRecord(
        operator_address=row.operator_address,
        operator_name=row.operator_name,
        total_delegated_stake=row.total_delegated_stake,
        slash_history=row.slash_history or [],
        status=row.status,
        registration_timestamp=as_utc(row.registration_timestamp),
        last_activity_timestamp=as_utc(row.last_activity_timestamp),
        delegator_count=row.delegator_count,
        commission=row.commission,
        avs_services=row.avs_services or [],
        metadata=row.operator_metadata or {},
    )


__all__ = ["OperatorDB", "to_record", "to_row"]
