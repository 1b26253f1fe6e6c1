"""Turn raw subgraph operator payloads into operator records."""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime
from typing import Any

from src.data.common import require_list, transform_each
from src.data.operators.models import (
    OperatorMetadata,
    OperatorRecord,
    OperatorStatus,
    SlashEvent,
)
from src.data.subgraph.models import RawOperator, RawSlashing
from src.helpers.constants import DEFAULT_SLASH_REASON
from src.helpers.parsers import (
    from_base_units,
    normalize_address,
    parse_unix_timestamp,
    unix_to_datetime,
)


def slash_from_event(item: dict[str, Any]) -> tuple[str, SlashEvent]:
    """Build a slash event and return it with its operator address."""
    raw = RawSlashing.model_validate(item)
    event = SlashEvent(
        timestamp=parse_unix_timestamp(raw.created_at),
        amount_slashed=from_base_units(raw.amount),
        reason=DEFAULT_SLASH_REASON,
        transaction_hash=raw.transaction_hash,
        block_number=raw.block_number,
    )
    return normalize_address(raw.operator.id), event


def group_slashings(items: list[Any]) -> dict[str, list[SlashEvent]]:
    """Group slashing events by operator address, keeping upstream order."""
    slashes: dict[str, list[SlashEvent]] = defaultdict(list)
    for operator_address, event in transform_each(items, slash_from_event, "slashing"):
        slashes[operator_address].append(event)
    return dict(slashes)


def operator_from_item(
    item: dict[str, Any],
    slashes: dict[str, list[SlashEvent]],
    now: datetime,
) -> OperatorRecord:
    """Build an operator record and attach its slash history.

    The delegator count starts at 0; the store reconciles it from persisted
    delegations.
    """
    raw = RawOperator.model_validate(item)
    operator_address = normalize_address(raw.id)
    slash_history = list(slashes.get(operator_address, []))
    total_shares = raw.total_shares if raw.total_shares is not None else "0"

    return OperatorRecord(
        operator_address=operator_address,
        total_delegated_stake=from_base_units(total_shares),
        slash_history=slash_history,
        status=OperatorStatus.SLASHED if slash_history else OperatorStatus.ACTIVE,
        registration_timestamp=unix_to_datetime(raw.created_at),
        last_activity_timestamp=now,
        delegator_count=0,
        commission=0,
        metadata=OperatorMetadata(metadata_uri=raw.metadata_uri),
    )


def normalize_operators(
    payload: dict[str, Any],
    now: datetime | None = None,
    slashes: dict[str, list[SlashEvent]] | None = None,
) -> list[OperatorRecord]:
    """Normalize one page of the operators query.

    Slashings are grouped by operator first so each operator can pick up its
    history by address. Malformed operators and slashings are logged and
    skipped.

    Args:
        payload: Raw ``{"operators": [...], "slashings": [...]}`` page
        now: Last-activity time stamped on every operator (default: now, UTC)
        slashes: Slash events already grouped across every page. When given,
            the page's own ``slashings`` are ignored.

    Returns:
        Operator records in upstream order

    Raises:
        MalformedRecord: If a result set is present but not a list
    """
    now = now or datetime.now(UTC)
    if slashes is None:
        slashes = group_slashings(require_list(payload, "slashings"))
    return transform_each(
        require_list(payload, "operators"),
        lambda item: operator_from_item(item, slashes, now),
        "operator",
    )


def group_page_slashings(pages: list[dict[str, Any]]) -> dict[str, list[SlashEvent]]:
    """Group the slashings of every operators page by operator address.

    Slashings are paged alongside operators, so an operator's slash events can
    arrive on a different page than the operator itself.

    Raises:
        MalformedRecord: If a page's slashings result set is not a list
    """
    return group_slashings(
        [item for page in pages for item in require_list(page, "slashings")]
    )


__all__ = [
    "group_page_slashings",
    "group_slashings",
    "normalize_operators",
    "operator_from_item",
    "slash_from_event",
]
