"""Tests for reward records, normalization and merging."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging

import pytest
from pydantic import ValidationError

from src.data.rewards.merge import (
    merge_rewards,
    recompute_reward_stats,
    reward_frequency,
)
from src.data.rewards.models import RewardBreakdown, RewardRecord, RewardType
from src.data.rewards.normalize import extract_fields, normalize_rewards
from src.helpers.constants import ZERO_ADDRESS
from src.helpers.errors import InvalidAddress, MalformedRecord


WALLET = "0x" + "aa" * 20
OPERATOR_A = "0x" + "0a" * 20
OPERATOR_B = "0x" + "0b" * 20
NOW = datetime(2024, 6, 1, tzinfo=UTC)
NOW_TS = int(NOW.timestamp())
DAY = 86400
ONE_ETHER = "1000000000000000000"


def tx_hash(index: int) -> str:
    """Deterministic transaction hash for an index."""
    return f"0x{index:064x}"


class TestRewardRecord:
    """Tests for RewardRecord and RewardBreakdown."""

    def test_add_reward_creates_and_extends_breakdowns(self) -> None:
        """Test rewards accumulate per operator and in the wallet total."""
        record = RewardRecord(wallet_address=WALLET)

        record.add_reward(OPERATOR_A, "1.5", NOW_TS, tx_hash(1), 100)
        record.add_reward(OPERATOR_A.upper().replace("0X", "0x"), "0.5", NOW_TS + 1)
        record.add_reward(OPERATOR_B, "2", str(NOW_TS + 2))

        assert record.total_rewards_received == "4"
        assert record.active_operators_count == 2
        breakdown = record.rewards_from_operator(OPERATOR_A)
        assert breakdown is not None
        assert breakdown.amount_received == "2"
        assert breakdown.timestamps == [NOW_TS, NOW_TS + 1]
        assert breakdown.transaction_hashes == [tx_hash(1)]
        assert breakdown.block_numbers == [100]
        assert breakdown.reward_type == RewardType.DELEGATION

    @pytest.mark.parametrize(
        ("operator", "amount", "timestamp", "error"),
        [
            ("0x1234", "1", NOW_TS, InvalidAddress),
            (OPERATOR_A, "-1", NOW_TS, ValueError),
            (OPERATOR_A, "1", "soon", MalformedRecord),
        ],
    )
    def test_add_reward_validates(
        self,
        operator: str,
        amount: str,
        timestamp: int | str,
        error: type[Exception],
    ) -> None:
        """Test invalid rewards are rejected and leave the record unchanged."""
        record = RewardRecord(wallet_address=WALLET)

        with pytest.raises(error):
            record.add_reward(operator, amount, timestamp)

        assert record.total_rewards_received == "0"
        assert record.rewards_breakdown == {}

    def test_breakdowns_keyed_by_operator_address(self) -> None:
        """Test breakdown keys follow the normalized operator address."""
        record = RewardRecord(
            wallet_address=WALLET,
            rewards_breakdown={
                "whatever": RewardBreakdown(
                    operator_address=OPERATOR_A.upper().replace("0X", "0x")
                )
            },
        )
        assert list(record.rewards_breakdown) == [OPERATOR_A]
        assert record.rewards_from_operator(OPERATOR_B) is None

    def test_total_rewards_in_wei(self) -> None:
        """Test the wei view of the total is an exact integer string."""
        record = RewardRecord(wallet_address=WALLET, total_rewards_received="1.25")
        assert record.total_rewards_in_wei() == "1250000000000000000"

    def test_rejects_invalid_hashes(self) -> None:
        """Test breakdown hashes must be full transaction hashes."""
        with pytest.raises(ValidationError):
            RewardBreakdown(operator_address=OPERATOR_A, transaction_hashes=["0x12"])


class TestExtractFields:
    """Tests for extract_fields."""

    def test_primary_keys_win(self) -> None:
        """Test the first source key takes precedence over aliases."""
        fields = extract_fields(
            {"amount": "1", "value": "2", "operator": OPERATOR_A, "validator": "x"},
            now=NOW,
        )
        assert fields["amount"] == "1"
        assert fields["operator"] == OPERATOR_A

    def test_aliases_and_defaults(self) -> None:
        """Test aliases fill in and missing fields take their defaults."""
        fields = extract_fields({"value": "2", "block_time": "1700000000"}, now=NOW)

        assert fields["amount"] == "2"
        assert fields["operator"] == ZERO_ADDRESS
        assert fields["timestamp"] == "1700000000"
        assert fields["tx_hash"] is None
        assert fields["block_number"] is None

    def test_empty_values_are_absent(self) -> None:
        """Test None and empty strings fall through to the next source."""
        fields = extract_fields(
            {"amount": "", "value": None, "timestamp": None}, now=NOW
        )
        assert fields["amount"] == "0"
        assert fields["timestamp"] == NOW_TS


class TestNormalizeRewards:
    """Tests for normalize_rewards."""

    def test_converts_wei_and_groups_by_operator(self) -> None:
        """Test amounts are converted from wei and summed exactly."""
        payload = {
            "rewards": [
                {
                    "amount": ONE_ETHER,
                    "operator": OPERATOR_A,
                    "timestamp": NOW_TS - DAY,
                    "tx_hash": tx_hash(1),
                    "block_number": "19000000",
                },
                {"value": "500000000000000000", "validator": OPERATOR_A},
                {"amount": "1", "operator": OPERATOR_B, "timestamp": NOW_TS},
            ]
        }

        record = normalize_rewards(payload, WALLET.upper().replace("0X", "0x"), NOW)

        assert record.wallet_address == WALLET
        assert record.total_rewards_received == "1.500000000000000001"
        breakdown_a = record.rewards_from_operator(OPERATOR_A)
        assert breakdown_a is not None
        assert breakdown_a.amount_received == "1.5"
        assert breakdown_a.timestamps == [NOW_TS - DAY, NOW_TS]
        assert breakdown_a.transaction_hashes == [tx_hash(1)]
        assert breakdown_a.block_numbers == [19_000_000]

    def test_accepts_bare_list(self) -> None:
        """Test a list body is treated as the reward items."""
        record = normalize_rewards([{"amount": ONE_ETHER}], WALLET, NOW)

        assert record.total_rewards_received == "1"
        assert list(record.rewards_breakdown) == [ZERO_ADDRESS]

    def test_malformed_items_are_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test bad items are logged and valid ones kept."""
        payload = {
            "rewards": [
                "oops",
                {"id": "bad-amount", "amount": "1.5"},
                {"id": "bad-operator", "amount": "1", "operator": "nobody"},
                {"id": "good", "amount": ONE_ETHER, "operator": OPERATOR_A},
            ]
        }

        with caplog.at_level(logging.WARNING):
            record = normalize_rewards(payload, WALLET, NOW)

        assert record.total_rewards_received == "1"
        assert caplog.text.count("Skipping malformed reward") == 3

    def test_empty_payload(self) -> None:
        """Test a body without rewards yields an empty record."""
        record = normalize_rewards({}, WALLET, NOW)

        assert record.total_rewards_received == "0"
        assert record.rewards_breakdown == {}

    def test_rejects_unusable_payload(self) -> None:
        """Test a body that is neither a list nor an object raises."""
        with pytest.raises(MalformedRecord):
            normalize_rewards("not json", WALLET, NOW)

    def test_rejects_invalid_wallet(self) -> None:
        """Test the wallet address is validated."""
        with pytest.raises(ValidationError):
            normalize_rewards({"rewards": []}, "wallet", NOW)


def two_event_record() -> RewardRecord:
    """Wallet with 10 ether from operator A over two events."""
    record = RewardRecord(wallet_address=WALLET)
    record.add_reward(OPERATOR_A, "6", NOW_TS - 2 * DAY, tx_hash(1), 1)
    record.add_reward(OPERATOR_A, "4", NOW_TS - DAY, tx_hash(2), 2)
    return record


class TestMergeRewards:
    """Tests for merge_rewards."""

    def test_merges_same_operator(self) -> None:
        """Test 10 over two events plus 5 gives 15 over three events."""
        existing = two_event_record()
        incoming = RewardRecord(wallet_address=WALLET)
        incoming.add_reward(OPERATOR_A, "5", NOW_TS, tx_hash(3), 3)

        merged = merge_rewards(existing, incoming)

        breakdown = merged.rewards_from_operator(OPERATOR_A)
        assert breakdown is not None
        assert breakdown.amount_received == "15"
        assert breakdown.timestamps == [NOW_TS - 2 * DAY, NOW_TS - DAY, NOW_TS]
        assert breakdown.transaction_hashes == [tx_hash(1), tx_hash(2), tx_hash(3)]
        assert breakdown.block_numbers == [1, 2, 3]
        assert merged.total_rewards_received == "15"

    def test_adds_new_operator(self) -> None:
        """Test an operator unseen so far gets its own breakdown."""
        incoming = RewardRecord(wallet_address=WALLET)
        incoming.add_reward(OPERATOR_B, "0.1", NOW_TS)

        merged = merge_rewards(two_event_record(), incoming)

        assert merged.active_operators_count == 2
        assert merged.total_rewards_received == "10.1"

    def test_inputs_are_not_modified(self) -> None:
        """Test merging returns a new record."""
        existing = two_event_record()
        incoming = two_event_record()

        merge_rewards(existing, incoming)

        assert existing.total_rewards_received == "10"
        assert existing.rewards_breakdown[OPERATOR_A].timestamps == [
            NOW_TS - 2 * DAY,
            NOW_TS - DAY,
        ]

    def test_merge_is_additive(self) -> None:
        """Test merging the same rewards twice counts them twice."""
        record = two_event_record()

        merged = merge_rewards(record, record)

        assert merged.total_rewards_received == "20"
        assert len(merged.rewards_breakdown[OPERATOR_A].timestamps) == 4

    def test_rejects_other_wallet(self) -> None:
        """Test records of different wallets cannot be merged."""
        with pytest.raises(ValueError, match="Cannot merge"):
            merge_rewards(
                two_event_record(), RewardRecord(wallet_address="0x" + "bb" * 20)
            )


class TestRecomputeRewardStats:
    """Tests for the derived reward statistics."""

    def test_derived_fields(self) -> None:
        """Test event count, average, first and last reward times."""
        record = recompute_reward_stats(two_event_record(), NOW)

        assert record.total_reward_events == 2
        assert record.average_reward_amount == "5"
        assert record.first_reward_timestamp == NOW - timedelta(days=2)
        assert record.last_reward_timestamp == NOW - timedelta(days=1)
        assert record.reward_frequency.daily_average == "5"
        assert record.reward_frequency.weekly_average == "35"
        assert record.reward_frequency.monthly_average == "150"

    def test_average_is_rounded(self) -> None:
        """Test the average keeps 18 decimal places."""
        record = RewardRecord(wallet_address=WALLET)
        for i, amount in enumerate(["1", "0", "0"]):
            record.add_reward(OPERATOR_A, amount, NOW_TS - i)

        recompute_reward_stats(record, NOW)

        assert record.total_reward_events == 3
        assert record.average_reward_amount == "0.333333333333333333"

    def test_empty_record(self) -> None:
        """Test a record without events has zeroed statistics."""
        record = recompute_reward_stats(RewardRecord(wallet_address=WALLET), NOW)

        assert record.total_reward_events == 0
        assert record.average_reward_amount == "0"
        assert record.first_reward_timestamp is None
        assert record.reward_frequency.daily_average == "0"

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=1)])
    def test_frequency_without_elapsed_time(self, offset: timedelta) -> None:
        """Test averages are zero when the first reward is not in the past."""
        frequency = reward_frequency("10", NOW + offset, NOW)

        assert frequency.daily_average == "0"
        assert frequency.weekly_average == "0"
        assert frequency.monthly_average == "0"

    def test_frequency_over_ten_days(self) -> None:
        """Test per-day, per-week and per-month averages."""
        frequency = reward_frequency("30", NOW - timedelta(days=10), NOW)

        assert frequency.daily_average == "3"
        assert frequency.weekly_average == "21"
        assert frequency.monthly_average == "90"
