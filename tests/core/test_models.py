"""Tests for contest_fanout.core.models.

Covers:
- PartitionQuery validation, composite key and wire payload
- Batch payload shape
- ScanState transition graph
- DispatchOutcome / PartitionResult serialisation
"""

import pytest

from contest_fanout.core.errors import ValidationError
from contest_fanout.core.models import (
    SCAN_VALID_TRANSITIONS,
    Batch,
    DispatchOutcome,
    DispatchStatus,
    InvalidTransitionError,
    Page,
    PartitionQuery,
    PartitionResult,
    PartitionStatus,
    ScanState,
    validate_scan_transition,
)


class TestPartitionQuery:
    def test_fields(self, query):
        assert query.contest_id == "contest_123"
        assert query.selection_id == "selection_winner"
        assert query.partition_id == "2"

    def test_numeric_partition_id_coerced(self):
        q = PartitionQuery("contest_123", "selection_winner", 2)
        assert q.partition_id == "2"

    @pytest.mark.parametrize("field_name", ["contest_id", "selection_id", "partition_id"])
    def test_blank_field_rejected(self, field_name):
        values = {"contest_id": "c", "selection_id": "s", "partition_id": "1"}
        values[field_name] = "  "
        with pytest.raises(ValidationError) as exc_info:
            PartitionQuery(**values)
        assert exc_info.value.field == field_name

    def test_none_rejected(self):
        with pytest.raises(ValidationError):
            PartitionQuery("contest_123", None, "2")

    def test_frozen(self, query):
        with pytest.raises(AttributeError):
            query.partition_id = "3"

    def test_selection_partition_key(self, query):
        assert query.selection_partition_key() == "selection_winner#2"
        assert query.selection_partition_key("|") == "selection_winner|2"

    def test_to_payload(self, query):
        assert query.to_payload() == {
            "contestId": "contest_123",
            "winningSelectionId": "selection_winner",
            "partitionId": "2",
        }


class TestPage:
    def test_last_page(self):
        assert Page(records=({"a": 1},)).is_last is True

    def test_page_with_cursor(self):
        assert Page(records=(), cursor={"contestId": {"S": "c"}}).is_last is False


class TestBatch:
    def test_payload_contains_exactly_the_batch(self, query, records_factory):
        records = tuple(records_factory(3))
        batch = Batch(sequence_number=4, records=records)

        payload = batch.to_payload(query)

        assert payload == {
            "batch": list(records),
            "contestId": "contest_123",
            "winningSelectionId": "selection_winner",
            "partitionId": "2",
            "batchNumber": 4,
        }
        assert batch.size == 3


class TestScanStateTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (ScanState.SCANNING, ScanState.DISPATCHING),
            (ScanState.SCANNING, ScanState.AGGREGATING),
            (ScanState.SCANNING, ScanState.FAILED),
            (ScanState.DISPATCHING, ScanState.AGGREGATING),
            (ScanState.DISPATCHING, ScanState.FAILED),
            (ScanState.AGGREGATING, ScanState.DONE),
        ],
    )
    def test_valid(self, current, target):
        validate_scan_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (ScanState.AGGREGATING, ScanState.FAILED),
            (ScanState.DONE, ScanState.SCANNING),
            (ScanState.FAILED, ScanState.AGGREGATING),
            (ScanState.DISPATCHING, ScanState.SCANNING),
        ],
    )
    def test_invalid(self, current, target):
        with pytest.raises(InvalidTransitionError):
            validate_scan_transition(current, target)

    def test_terminal_states_have_no_exits(self):
        assert SCAN_VALID_TRANSITIONS[ScanState.DONE] == frozenset()
        assert SCAN_VALID_TRANSITIONS[ScanState.FAILED] == frozenset()


class TestOutcomesAndResult:
    def test_outcome_failed_flag(self):
        assert DispatchOutcome(0, DispatchStatus.SUCCEEDED).failed is False
        assert DispatchOutcome(0, DispatchStatus.FAILED, attempts=3, last_error="x").failed is True

    def test_outcome_to_dict(self):
        outcome = DispatchOutcome(1, DispatchStatus.FAILED, attempts=3, last_error="WorkerInvocationError: x")
        assert outcome.to_dict() == {"batchNumber": 1, "error": "WorkerInvocationError: x"}

    def test_complete_response(self):
        result = PartitionResult(batches_dispatched=3)
        assert result.to_response() == {
            "overallStatus": "Complete",
            "batchesDispatched": 3,
            "failedBatches": [],
        }
        assert result.batches_failed == 0

    def test_partial_response(self):
        failed = DispatchOutcome(1, DispatchStatus.FAILED, attempts=3, last_error="boom")
        result = PartitionResult(
            batches_dispatched=3,
            failed_batches=(failed,),
            overall_status=PartitionStatus.PARTIAL_COMPLETION,
        )
        response = result.to_response()
        assert response["overallStatus"] == "PartialCompletion"
        assert response["failedBatches"] == [{"batchNumber": 1, "error": "boom"}]
