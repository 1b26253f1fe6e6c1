"""Turn rewards API payloads into reward records.

The rewards API is not consistent about field names, so each target field is
read through an ordered list of source keys. The first key holding a value
wins; ``None`` and ``""`` count as absent. When every source is absent the
rule's default applies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, NamedTuple

from src.data.common import require_list, transform_each, validate_tx_hash
from src.data.rewards.models import RewardRecord
from src.helpers.constants import ZERO_ADDRESS
from src.helpers.errors import MalformedRecord
from src.helpers.parsers import (
    DecimalAmount,
    from_base_units,
    normalize_address,
    parse_unix_timestamp,
)


if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True)
class FieldRule:
    """Where to read one reward field from, in priority order."""

    target: str
    sources: tuple[str, ...]
    default: Callable[[datetime], Any] | None = None


REWARD_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("amount", ("amount", "value"), lambda now: "0"),
    FieldRule("operator", ("operator", "validator"), lambda now: ZERO_ADDRESS),
    FieldRule(
        "timestamp", ("timestamp", "block_time"), lambda now: int(now.timestamp())
    ),
    FieldRule("tx_hash", ("tx_hash",)),
    FieldRule("block_number", ("block_number",)),
)
"""Field extraction rules for one reward item"""


class RewardEntry(NamedTuple):
    """One validated reward event."""

    operator_address: str
    amount: DecimalAmount
    timestamp: int
    transaction_hash: str | None
    block_number: int | None


def extract_fields(
    item: dict[str, Any],
    rules: tuple[FieldRule, ...] = REWARD_FIELD_RULES,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Apply field rules to a raw item.

    Example:
        >>> extract_fields({"value": "5", "validator": "0xab"})["amount"]
        '5'
    """
    now = now or datetime.now(UTC)
    fields: dict[str, Any] = {}
    for rule in rules:
        value = next(
            (item[key] for key in rule.sources if item.get(key) not in (None, "")),
            None,
        )
        if value is None and rule.default is not None:
            value = rule.default(now)
        fields[rule.target] = value
    return fields


def reward_from_item(item: Any, now: datetime) -> RewardEntry:
    """Validate one reward item. Amounts arrive in wei.

    Raises:
        MalformedRecord: If the item is not an object or its timestamp is invalid
        ValueError: If the amount, address or hash is invalid
    """
    if not isinstance(item, dict):
        msg = f"Expected a reward object, got {type(item).__name__}"
        raise MalformedRecord(msg)

    fields = extract_fields(item, REWARD_FIELD_RULES, now)
    block_number = fields["block_number"]
    return RewardEntry(
        operator_address=normalize_address(fields["operator"]),
        amount=from_base_units(fields["amount"]),
        timestamp=parse_unix_timestamp(fields["timestamp"]),
        transaction_hash=validate_tx_hash(fields["tx_hash"]),
        block_number=int(block_number) if block_number is not None else None,
    )


def normalize_rewards(
    payload: Any, wallet_address: str, now: datetime | None = None
) -> RewardRecord:
    """Normalize a rewards API response for one wallet.

    Every valid item is added to the record, so the total is the exact sum
    of all converted amounts and each operator gets one breakdown. Malformed
    items are logged and skipped.

    Args:
        payload: ``{"rewards": [...]}`` body, or a bare list of reward items
        wallet_address: Wallet the rewards belong to
        now: Time used for items without a timestamp (default: now, UTC)

    Returns:
        RewardRecord with derived statistics not yet computed

    Raises:
        InvalidAddress: If wallet_address is not a valid address
        MalformedRecord: If the payload has no usable reward list
    """
    now = now or datetime.now(UTC)
    record = RewardRecord(wallet_address=wallet_address)

    items = payload if isinstance(payload, list) else require_list(payload, "rewards")
    entries = transform_each(items, lambda item: reward_from_item(item, now), "reward")
    for entry in entries:
        record.add_reward(
            entry.operator_address,
            entry.amount,
            entry.timestamp,
            entry.transaction_hash,
            entry.block_number,
        )
    return record


__all__ = [
    "REWARD_FIELD_RULES",
    "FieldRule",
    "RewardEntry",
    "extract_fields",
    "normalize_rewards",
    "reward_from_item",
]
