"""Reconciliation of normalized records into the SQL store.

Delegations and operators are replaced by key: every run re-derives their
full current state. Rewards are merged additively onto the stored record,
so re-ingesting the same rewards counts them again. Each write is its own
transaction.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel
from sqlalchemy import func, select

from src.data.delegations import db as delegations_db
from src.data.delegations.db import DelegationDB
from src.data.delegations.models import DelegationRecord
from src.data.operators import db as operators_db
from src.data.operators.db import OperatorDB
from src.data.operators.models import OperatorRecord, OperatorStatus
from src.data.rewards import db as rewards_db
from src.data.rewards.db import RewardDB
from src.data.rewards.merge import merge_rewards, recompute_reward_stats
from src.data.rewards.models import RewardRecord
from src.helpers.db import (
    create_session_factory,
    create_tables,
    upsert_models,
    upsert_rows,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import DecimalAmount, add_amounts


if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncEngine


logger = get_logger(__name__)


class EntityFamily(StrEnum):
    """Record families the store reconciles."""

    DELEGATIONS = "delegations"
    OPERATORS = "operators"
    REWARDS = "rewards"


class StoreStatistics(BaseModel):
    """Summary of the persisted state."""

    delegations: int = 0
    operators: int = 0
    rewards: int = 0
    active_operators: int = 0
    slashed_operators: int = 0
    total_value_locked: DecimalAmount = DecimalAmount("0")


Record = DelegationRecord | OperatorRecord | RewardRecord


class RestakingStore:
    """Upsert engine over the restakers, operators and rewards tables."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            engine: Async engine for PostgreSQL or SQLite
            clock: Source of ``last_updated`` and reward-frequency times
        """
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    async def create_tables(self) -> None:
        """Create the store's tables if they don't exist."""
        await create_tables(self.engine)

    async def upsert(self, family: EntityFamily, record: Record) -> Record:
        """Reconcile one record into the store.

        Args:
            family: Which table the record belongs to
            record: Normalized record of that family

        Returns:
            The record as persisted (merged, for rewards)

        Raises:
            TypeError: If the record does not belong to the family
        """
        if family == EntityFamily.DELEGATIONS and isinstance(record, DelegationRecord):
            return await self.upsert_delegation(record)
        if family == EntityFamily.OPERATORS and isinstance(record, OperatorRecord):
            return await self.upsert_operator(record)
        if family == EntityFamily.REWARDS and isinstance(record, RewardRecord):
            return await self.upsert_reward(record)
        msg = f"{type(record).__name__} is not a {family} record"
        raise TypeError(msg)

    async def upsert_delegation(self, record: DelegationRecord) -> DelegationRecord:
        """Replace the delegation stored for the record's user."""
        async with self.session_factory() as session:
            await upsert_models(
                session, DelegationDB, [record], {"last_updated": self.now()}
            )
        return record

    async def upsert_operator(self, record: OperatorRecord) -> OperatorRecord:
        """Replace the operator stored under the record's address."""
        async with self.session_factory() as session:
            await upsert_rows(
                session, OperatorDB, [operators_db.to_row(record, self.now())]
            )
        return record

    async def upsert_reward(self, record: RewardRecord) -> RewardRecord:
        """Merge rewards onto the stored record, or insert them.

        Derived statistics are recomputed before the write.

        Returns:
            The merged record as written
        """
        now = self.now()
        async with self.session_factory() as session:
            row = await session.get(RewardDB, record.wallet_address)
            if row is None:
                merged = record.model_copy(deep=True)
            else:
                merged = merge_rewards(rewards_db.to_record(row), record)
            self.recompute_reward_stats(merged, now)
            await upsert_rows(session, RewardDB, [rewards_db.to_row(merged, now)])
        return merged

    def recompute_reward_stats(
        self, record: RewardRecord, now: datetime | None = None
    ) -> RewardRecord:
        """Recompute a reward record's derived fields in place."""
        return recompute_reward_stats(record, now or self.now())

    async def count_delegators(self, operator_address: str) -> int:
        """Number of stored delegations targeting an operator."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(DelegationDB)
                .where(DelegationDB.target_operator_address == operator_address.lower())
            )
            return result.scalar_one()

    async def recompute_delegator_counts(self) -> int:
        """Reconcile every operator's delegator count with stored delegations.

        Only operators whose count changed are written.

        Returns:
            Number of operators updated
        """
        now = self.now()
        async with self.session_factory() as session:
            result = await session.execute(
                select(DelegationDB.target_operator_address, func.count()).group_by(
                    DelegationDB.target_operator_address
                )
            )
            counts = {address: count for address, count in result.all()}

            operators = (await session.execute(select(OperatorDB))).scalars().all()
            changed = 0
            for operator in operators:
                count = counts.get(operator.operator_address, 0)
                if operator.delegator_count != count:
                    operator.delegator_count = count
                    operator.last_updated = now
                    changed += 1

            if changed:
                await session.commit()

        logger.info("Updated delegator counts of %d operators", changed)
        return changed

    async def get_delegation(self, user_address: str) -> DelegationRecord | None:
        """Stored delegation of a user, if any."""
        async with self.session_factory() as session:
            row = await session.get(DelegationDB, user_address.lower())
            return delegations_db.to_record(row) if row else None

    async def get_operator(self, operator_address: str) -> OperatorRecord | None:
        """Stored operator, if any."""
        async with self.session_factory() as session:
            row = await session.get(OperatorDB, operator_address.lower())
            return operators_db.to_record(row) if row else None

    async def get_reward(self, wallet_address: str) -> RewardRecord | None:
        """Stored rewards of a wallet, if any."""
        async with self.session_factory() as session:
            row = await session.get(RewardDB, wallet_address.lower())
            return rewards_db.to_record(row) if row else None

    async def wallet_addresses(self) -> list[str]:
        """Distinct users with a stored delegation, sorted."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DelegationDB.user_address)
                .distinct()
                .order_by(DelegationDB.user_address)
            )
            return list(result.scalars().all())

    async def statistics(self) -> StoreStatistics:
        """Counts per table, operator standings and total value locked."""
        async with self.session_factory() as session:

            async def count(model: type, *criteria: object) -> int:
                stmt = select(func.count()).select_from(model)
                if criteria:
                    stmt = stmt.where(*criteria)
                return (await session.execute(stmt)).scalar_one()

            amounts = (
                (await session.execute(select(DelegationDB.amount_restaked)))
                .scalars()
                .all()
            )
            return StoreStatistics(
                delegations=await count(DelegationDB),
                operators=await count(OperatorDB),
                rewards=await count(RewardDB),
                active_operators=await count(
                    OperatorDB, OperatorDB.status == OperatorStatus.ACTIVE.value
                ),
                slashed_operators=await count(
                    OperatorDB, OperatorDB.status == OperatorStatus.SLASHED.value
                ),
                total_value_locked=add_amounts(*amounts),
            )


__all__ = ["EntityFamily", "RestakingStore", "StoreStatistics"]
