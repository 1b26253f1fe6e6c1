"""Additive merging of reward records and their derived statistics."""

from datetime import UTC, datetime
from decimal import Decimal

from src.data.rewards.models import RewardFrequency, RewardRecord
from src.helpers.parsers import DecimalAmount, add_amounts, divide_amount

SECONDS_PER_DAY = Decimal(86400)


def merge_rewards(existing: RewardRecord, incoming: RewardRecord) -> RewardRecord:
    """Add an incoming reward record onto an existing one.

    Breakdowns for the same operator are summed and their timestamp, hash
    and block sequences appended; new operators get a new breakdown. The
    wallet total grows by the incoming total. Neither input is modified.

    Merging is additive, so merging the same rewards twice counts them twice.

    Args:
        existing: Persisted record
        incoming: Freshly normalized record for the same wallet

    Returns:
        New merged record, derived statistics not yet recomputed

    Raises:
        ValueError: If the records belong to different wallets
    """
    if existing.wallet_address != incoming.wallet_address:
        msg = (
            f"Cannot merge rewards of {incoming.wallet_address} "
            f"into {existing.wallet_address}"
        )
        raise ValueError(msg)

    merged = existing.model_copy(deep=True)
    for operator_address, breakdown in incoming.rewards_breakdown.items():
        current = merged.rewards_breakdown.get(operator_address)
        if current is None:
            merged.rewards_breakdown[operator_address] = breakdown.model_copy(deep=True)
            continue
        current.amount_received = add_amounts(
            current.amount_received, breakdown.amount_received
        )
        current.timestamps.extend(breakdown.timestamps)
        current.transaction_hashes.extend(breakdown.transaction_hashes)
        current.block_numbers.extend(breakdown.block_numbers)

    merged.total_rewards_received = add_amounts(
        existing.total_rewards_received, incoming.total_rewards_received
    )
    return merged


def reward_frequency(
    total: DecimalAmount, first_reward: datetime, now: datetime
) -> RewardFrequency:
    """Average reward per day, week and 30-day month since the first reward.

    All averages are "0" when no time has elapsed.
    """
    elapsed_days = Decimal(str((now - first_reward).total_seconds())) / SECONDS_PER_DAY
    if elapsed_days <= 0:
        return RewardFrequency()
    return RewardFrequency(
        daily_average=divide_amount(total, elapsed_days),
        weekly_average=divide_amount(total, elapsed_days / 7),
        monthly_average=divide_amount(total, elapsed_days / 30),
    )


def recompute_reward_stats(
    record: RewardRecord, now: datetime | None = None
) -> RewardRecord:
    """Recompute the derived fields of a reward record in place.

    Args:
        record: Record to update
        now: Reference time for the frequency averages (default: now, UTC)

    Returns:
        The same record, for chaining
    """
    now = now or datetime.now(UTC)
    timestamps = [
        ts
        for breakdown in record.rewards_breakdown.values()
        for ts in breakdown.timestamps
    ]

    record.total_reward_events = len(timestamps)
    if not timestamps:
        record.average_reward_amount = DecimalAmount("0")
        record.first_reward_timestamp = None
        record.last_reward_timestamp = None
        record.reward_frequency = RewardFrequency()
        return record

    record.average_reward_amount = divide_amount(
        record.total_rewards_received, len(timestamps)
    )
    record.first_reward_timestamp = datetime.fromtimestamp(min(timestamps), tz=UTC)
    record.last_reward_timestamp = datetime.fromtimestamp(max(timestamps), tz=UTC)
    record.reward_frequency = reward_frequency(
        record.total_rewards_received, record.first_reward_timestamp, now
    )
    return record


__all__ = ["merge_rewards", "recompute_reward_stats", "reward_frequency"]
