"""Shared validation and per-item isolation for record normalizers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from src.helpers.errors import MalformedRecord, PipelineError
from src.helpers.logging import get_logger
from src.helpers.parsers import (
    DecimalAmount,
    format_decimal,
    is_valid_tx_hash,
    parse_decimal,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


logger = get_logger(__name__)

T = TypeVar("T")

# Errors raised while turning one upstream item into a record. pydantic's
# ValidationError and the converter errors are ValueErrors.
ITEM_ERRORS = (PipelineError, ValueError, TypeError, KeyError, AttributeError)


def validate_amount(value: Any) -> DecimalAmount:
    """Validate a non-negative decimal amount and return its canonical form.

    Raises:
        ValueError: If the value is not a non-negative number
    """
    amount = parse_decimal(value)
    if amount < 0:
        msg = f"{value!r} is not a valid amount"
        raise ValueError(msg)
    return format_decimal(amount)


def validate_tx_hash(value: str | None) -> str | None:
    """Validate an optional 0x-prefixed 32-byte hash, lowercased."""
    if value is None or value == "":
        return None
    if not is_valid_tx_hash(value):
        msg = f"{value!r} is not a valid transaction hash"
        raise ValueError(msg)
    return value.lower()


def transform_each(
    items: Iterable[Any],
    transform: Callable[[Any], T | None],
    kind: str,
) -> list[T]:
    """Apply a transform to each upstream item, skipping the ones that fail.

    A transform may return None to drop an item on purpose (for example a
    deposit into a non-stETH strategy); that is not logged.

    Args:
        items: Raw upstream items
        transform: Item to record function
        kind: Item description used in log messages

    Returns:
        Records for every item that transformed cleanly
    """
    records: list[T] = []
    for item in items:
        try:
            record = transform(item)
        except ITEM_ERRORS as e:
            item_id = item.get("id") if isinstance(item, dict) else None
            logger.warning("Skipping malformed %s %s: %s", kind, item_id, e)
            continue
        if record is not None:
            records.append(record)
    return records


def require_list(payload: Any, key: str) -> list[Any]:
    """Return payload[key] as a list, treating a missing key as empty.

    Raises:
        MalformedRecord: If the value exists but is not a list
    """
    if not isinstance(payload, dict):
        msg = f"Expected an object payload, got {type(payload).__name__}"
        raise MalformedRecord(msg)
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"Expected a list for {key!r}, got {type(value).__name__}"
        raise MalformedRecord(msg)
    return value


__all__ = [
    "ITEM_ERRORS",
    "require_list",
    "transform_each",
    "validate_amount",
    "validate_tx_hash",
]
