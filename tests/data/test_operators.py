"""Tests for operator records and the operator normalizer."""

from __future__ import annotations

from datetime import UTC, datetime
import logging

from typing import TYPE_CHECKING, Any

import pytest
from pydantic import ValidationError

from src.data.operators.models import OperatorRecord, OperatorStatus, SlashEvent
from src.data.operators.normalize import (
    group_page_slashings,
    group_slashings,
    normalize_operators,
)
from src.helpers.constants import DEFAULT_SLASH_REASON


if TYPE_CHECKING:
    from collections.abc import Callable

OPERATOR_A = "0x" + "0a" * 20
OPERATOR_B = "0x" + "0b" * 20
NOW = datetime(2024, 6, 1, tzinfo=UTC)


def slash(amount: str, timestamp: int = 1_710_000_000) -> SlashEvent:
    """Slash event with the given amount."""
    return SlashEvent(timestamp=timestamp, amount_slashed=amount)


def operator(**overrides: Any) -> OperatorRecord:
    """Operator record with sensible defaults."""
    data: dict[str, Any] = {
        "operator_address": OPERATOR_A,
        "registration_timestamp": NOW,
        "last_activity_timestamp": NOW,
    }
    data.update(overrides)
    return OperatorRecord(**data)


class TestOperatorRecord:
    """Tests for OperatorRecord."""

    def test_defaults(self) -> None:
        """Test a bare operator starts active with nothing delegated."""
        record = operator(operator_address="0x" + "0A" * 20)

        assert record.operator_address == OPERATOR_A
        assert record.status == OperatorStatus.ACTIVE
        assert record.total_delegated_stake == "0"
        assert record.delegator_count == 0
        assert record.slash_count == 0
        assert record.total_slashed_amount() == "0"

    def test_add_slash_event_marks_active_operator_slashed(self) -> None:
        """Test slashing an active operator changes its status."""
        record = operator()

        record.add_slash_event(slash("1.5"))
        record.add_slash_event(slash("0.25"))

        assert record.status == OperatorStatus.SLASHED
        assert record.slash_count == 2
        assert record.total_slashed_amount() == "1.75"

    def test_add_slash_event_keeps_jailed_status(self) -> None:
        """Test only active operators move to slashed."""
        record = operator(status=OperatorStatus.JAILED)

        record.add_slash_event(slash("1"))

        assert record.status == OperatorStatus.JAILED

    def test_stake_in_wei(self) -> None:
        """Test the delegated stake converts exactly to wei."""
        record = operator(total_delegated_stake="32.5")
        assert record.stake_in_wei() == "32500000000000000000"

    def test_total_slashed_amount_is_exact(self) -> None:
        """Test slashed amounts are summed without float drift."""
        record = operator(
            slash_history=[slash("0.1"), slash("0.2"), slash("0.000000000000000001")]
        )
        assert record.total_slashed_amount() == "0.300000000000000001"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"commission": 101},
            {"commission": -1},
            {"delegator_count": -1},
            {"operator_name": "x" * 101},
            {"total_delegated_stake": "-3"},
            {"operator_address": "operator-a"},
        ],
    )
    def test_rejects_invalid_values(self, overrides: dict[str, Any]) -> None:
        """Test field constraints are enforced."""
        with pytest.raises(ValidationError):
            operator(**overrides)

    def test_slash_reason_length_is_bounded(self) -> None:
        """Test slash reasons longer than 500 characters are rejected."""
        with pytest.raises(ValidationError):
            SlashEvent(timestamp=0, amount_slashed="1", reason="x" * 501)


class TestGroupSlashings:
    """Tests for group_slashings."""

    def test_groups_by_lowercased_operator(
        self, slashing_item: Callable[..., dict[str, Any]]
    ) -> None:
        """Test events are grouped per operator in upstream order."""
        items = [
            slashing_item(1, OPERATOR_A),
            slashing_item(2, OPERATOR_B.upper().replace("0X", "0x")),
            slashing_item(3, OPERATOR_A, amount="500000000000000000"),
        ]

        grouped = group_slashings(items)

        assert set(grouped) == {OPERATOR_A, OPERATOR_B}
        assert [e.amount_slashed for e in grouped[OPERATOR_A]] == ["1", "0.5"]
        assert [e.timestamp for e in grouped[OPERATOR_A]] == [
            1_710_000_001,
            1_710_000_003,
        ]
        assert all(
            e.reason == DEFAULT_SLASH_REASON
            for events in grouped.values()
            for e in events
        )

    def test_skips_malformed_slashing(
        self,
        slashing_item: Callable[..., dict[str, Any]],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a bad slashing is logged and the rest are kept."""
        items = [slashing_item(1, OPERATOR_A), slashing_item(2, OPERATOR_A, "1.5")]

        with caplog.at_level(logging.WARNING):
            grouped = group_slashings(items)

        assert len(grouped[OPERATOR_A]) == 1
        assert "slashing-2" in caplog.text


class TestNormalizeOperators:
    """Tests for normalize_operators."""

    def test_maps_operator_fields(
        self, operator_item: Callable[..., dict[str, Any]]
    ) -> None:
        """Test field mapping of an unslashed operator."""
        [record] = normalize_operators({"operators": [operator_item(OPERATOR_A)]}, NOW)

        assert record.operator_address == OPERATOR_A
        assert record.total_delegated_stake == "32"
        assert record.status == OperatorStatus.ACTIVE
        assert record.slash_history == []
        assert record.registration_timestamp == datetime.fromtimestamp(
            1_690_000_000, tz=UTC
        )
        assert record.last_activity_timestamp == NOW
        assert record.delegator_count == 0
        assert record.commission == 0
        assert record.metadata.metadata_uri == f"https://meta.test/{OPERATOR_A}.json"

    def test_slashed_operator_carries_history(
        self,
        operator_item: Callable[..., dict[str, Any]],
        slashing_item: Callable[..., dict[str, Any]],
    ) -> None:
        """Test slashings attach to their operator and flip its status."""
        payload = {
            "operators": [operator_item(OPERATOR_A), operator_item(OPERATOR_B)],
            "slashings": [slashing_item(1, OPERATOR_B), slashing_item(2, OPERATOR_B)],
        }

        active, slashed = normalize_operators(payload, NOW)

        assert active.status == OperatorStatus.ACTIVE
        assert slashed.status == OperatorStatus.SLASHED
        assert slashed.slash_count == 2
        assert slashed.total_slashed_amount() == "2"
        assert slashed.slash_history[0].reason == "Protocol violation"

    def test_groups_across_pages(
        self,
        operator_item: Callable[..., dict[str, Any]],
        slashing_item: Callable[..., dict[str, Any]],
    ) -> None:
        """Test each operator finds slash events fetched on another page."""
        pages = [
            {
                "operators": [operator_item(OPERATOR_A)],
                "slashings": [slashing_item(1, OPERATOR_B)],
            },
            {
                "operators": [operator_item(OPERATOR_B)],
                "slashings": [slashing_item(2, OPERATOR_A)],
            },
            {"operators": [], "slashings": []},
        ]

        slashes = group_page_slashings(pages)
        records = [
            record
            for page in pages
            for record in normalize_operators(page, NOW, slashes=slashes)
        ]

        assert [r.operator_address for r in records] == [OPERATOR_A, OPERATOR_B]
        assert all(r.status == OperatorStatus.SLASHED for r in records)
        assert [r.slash_history[0].timestamp for r in records] == [
            1_710_000_002,
            1_710_000_001,
        ]

    def test_given_slashes_replace_page_slashings(
        self,
        operator_item: Callable[..., dict[str, Any]],
        slashing_item: Callable[..., dict[str, Any]],
    ) -> None:
        """Test grouped slashes take precedence over the page's own."""
        payload = {
            "operators": [operator_item(OPERATOR_A)],
            "slashings": [slashing_item(1, OPERATOR_A)],
        }

        [record] = normalize_operators(payload, NOW, slashes={})

        assert record.status == OperatorStatus.ACTIVE
        assert record.slash_history == []

    def test_missing_total_shares_defaults_to_zero(
        self, operator_item: Callable[..., dict[str, Any]]
    ) -> None:
        """Test an operator without totalShares has zero stake."""
        item = operator_item(OPERATOR_A)
        del item["totalShares"]

        [record] = normalize_operators({"operators": [item]}, NOW)

        assert record.total_delegated_stake == "0"

    def test_malformed_operator_is_isolated(
        self, operator_item: Callable[..., dict[str, Any]]
    ) -> None:
        """Test a bad operator does not affect the others."""
        payload = {
            "operators": [
                operator_item("not-an-address"),
                operator_item(OPERATOR_B, totalShares="many"),
                operator_item(OPERATOR_A),
            ]
        }

        records = normalize_operators(payload, NOW)

        assert [r.operator_address for r in records] == [OPERATOR_A]

    def test_default_clock_is_utc(
        self, operator_item: Callable[..., dict[str, Any]]
    ) -> None:
        """Test the last-activity time defaults to an aware timestamp."""
        [record] = normalize_operators({"operators": [operator_item(OPERATOR_A)]})
        assert record.last_activity_timestamp.tzinfo is not None
