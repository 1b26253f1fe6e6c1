"""Turn raw subgraph restaker payloads into delegation records."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any

from src.data.common import require_list, transform_each
from src.data.delegations.models import DelegationRecord, DelegationStatus
from src.data.subgraph.models import RawDelegation, RawDeposit, RawStaker
from src.helpers.constants import STETH_STRATEGY_MARKER, ZERO_ADDRESS
from src.helpers.parsers import from_base_units, unix_to_datetime


if TYPE_CHECKING:
    from src.helpers.config import PipelineConfig


def is_steth_strategy(strategy_id: str, strategy_address: str | None = None) -> bool:
    """Whether a strategy counts as stETH.

    Matches ids containing "steth" or equal to the configured strategy
    address, both case-insensitive.

    Example:
        >>> is_steth_strategy("0xABC-stETH-strategy")
        True
        >>> is_steth_strategy("0xabc", strategy_address="0xABC")
        True
    """
    lowered = strategy_id.lower()
    if STETH_STRATEGY_MARKER in lowered:
        return True
    return strategy_address is not None and lowered == strategy_address.lower()


def delegation_from_event(item: dict[str, Any]) -> DelegationRecord:
    """Build a record from one subgraph delegation event."""
    raw = RawDelegation.model_validate(item)
    return DelegationRecord(
        user_address=raw.delegator.id,
        amount_restaked=from_base_units(raw.shares),
        target_operator_address=raw.operator.id,
        delegation_timestamp=unix_to_datetime(raw.created_at),
        transaction_hash=raw.transaction_hash,
        block_number=raw.block_number,
        status=DelegationStatus.ACTIVE,
    )


def delegation_from_deposit(
    staker_address: str,
    strategy_address: str | None,
    item: dict[str, Any],
) -> DelegationRecord | None:
    """Build a record from one staker deposit, or None for non-stETH strategies.

    Deposits are not attributed to an operator yet, so the target is the
    zero address.
    """
    raw = RawDeposit.model_validate(item)
    if not is_steth_strategy(raw.strategy.id, strategy_address):
        return None
    return DelegationRecord(
        user_address=staker_address,
        amount_restaked=from_base_units(raw.shares),
        target_operator_address=ZERO_ADDRESS,
        delegation_timestamp=unix_to_datetime(raw.created_at),
        transaction_hash=raw.transaction_hash,
        block_number=raw.block_number,
        status=DelegationStatus.ACTIVE,
    )


def normalize_delegations(
    payload: dict[str, Any], config: PipelineConfig | None = None
) -> list[DelegationRecord]:
    """Normalize one page of the restakers query.

    Every delegation event and every matching staker deposit is transformed
    on its own; a malformed item is logged and skipped.

    Args:
        payload: Raw ``{"delegations": [...], "stakers": [...]}`` page
        config: Run configuration (for the stETH strategy address)

    Returns:
        Delegation records, delegation events first, then deposits

    Raises:
        MalformedRecord: If a result set is present but not a list
    """
    strategy_address = config.steth_strategy_address if config else None

    records = transform_each(
        require_list(payload, "delegations"), delegation_from_event, "delegation"
    )

    stakers = transform_each(
        require_list(payload, "stakers"), RawStaker.model_validate, "staker"
    )
    for staker in stakers:
        records.extend(
            transform_each(
                staker.deposits,
                partial(delegation_from_deposit, staker.id, strategy_address),
                "deposit",
            )
        )

    return records


__all__ = [
    "delegation_from_deposit",
    "delegation_from_event",
    "is_steth_strategy",
    "normalize_delegations",
]
