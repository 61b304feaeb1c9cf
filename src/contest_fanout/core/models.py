"""Partition-processing domain models.

Defines the data that flows through one partition run:
- PartitionQuery: the immutable contest/selection/partition triple
- Page: one store page plus its continuation cursor
- Batch: a bounded, numbered group of records handed to the worker
- DispatchOutcome: the single result of dispatching one batch
- PartitionResult: the aggregate report returned to the caller

Records are opaque ``dict[str, Any]`` mappings; nothing here looks inside
them beyond counting and grouping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from contest_fanout.core.errors import ValidationError

Record = dict[str, Any]

DEFAULT_KEY_SEPARATOR = "#"


class InvalidTransitionError(ValueError):
    """Raised when the partition run attempts an illegal state transition."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid ScanState transition: {current} → {target}")


class ScanState(str, Enum):
    """Lifecycle of one partition run.

    Valid transition graph::

        SCANNING    → DISPATCHING | AGGREGATING | FAILED
        DISPATCHING → AGGREGATING | FAILED
        AGGREGATING → DONE
        DONE        → (terminal)
        FAILED      → (terminal)

    Only a store query error reaches FAILED. Dispatch failures are absorbed
    during AGGREGATING.
    """

    SCANNING = "scanning"
    DISPATCHING = "dispatching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


SCAN_VALID_TRANSITIONS: dict[ScanState, frozenset[ScanState]] = {
    ScanState.SCANNING: frozenset({
        ScanState.DISPATCHING,
        ScanState.AGGREGATING,  # empty partition
        ScanState.FAILED,
    }),
    ScanState.DISPATCHING: frozenset({
        ScanState.AGGREGATING,
        ScanState.FAILED,
    }),
    ScanState.AGGREGATING: frozenset({ScanState.DONE}),
    ScanState.DONE: frozenset(),
    ScanState.FAILED: frozenset(),
}


def validate_scan_transition(current: ScanState, target: ScanState) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal."""
    if target not in SCAN_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


class DispatchStatus(str, Enum):
    """Final status of one batch dispatch."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class PartitionStatus(str, Enum):
    """Overall status of a partition run that got past the scan."""

    COMPLETE = "Complete"
    PARTIAL_COMPLETION = "PartialCompletion"


@dataclass(frozen=True)
class PartitionQuery:
    """Identifying triple for one partition scan.

    Example:
        >>> q = PartitionQuery("contest_123", "selection_winner", "2")
        >>> q.selection_partition_key()
        'selection_winner#2'
    """

    contest_id: str
    selection_id: str
    partition_id: str

    def __post_init__(self) -> None:
        for name in ("contest_id", "selection_id", "partition_id"):
            value = getattr(self, name)
            # Seeded partitions use numeric ids
            if isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
                object.__setattr__(self, name, value)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(
                    f"{name} must be a non-empty string",
                    field=name,
                    value=value,
                )

    def selection_partition_key(self, separator: str = DEFAULT_KEY_SEPARATOR) -> str:
        """Composite range key the secondary index is queried with."""
        return f"{self.selection_id}{separator}{self.partition_id}"

    def to_payload(self) -> dict[str, str]:
        """Wire names used by the entry point and the worker payload."""
        return {
            "contestId": self.contest_id,
            "winningSelectionId": self.selection_id,
            "partitionId": self.partition_id,
        }

    def log_fields(self) -> dict[str, str]:
        return {
            "contest_id": self.contest_id,
            "selection_id": self.selection_id,
            "partition_id": self.partition_id,
        }


@dataclass(frozen=True)
class Page:
    """One page of matching records. ``cursor is None`` marks the last page."""

    records: tuple[Record, ...] = ()
    cursor: Any | None = None

    @property
    def is_last(self) -> bool:
        return self.cursor is None


@dataclass(frozen=True)
class Batch:
    """A numbered, immutable group of records dispatched together."""

    sequence_number: int
    records: tuple[Record, ...]

    @property
    def size(self) -> int:
        return len(self.records)

    def to_payload(self, query: PartitionQuery) -> dict[str, Any]:
        """Build the worker payload for this batch.

        Exactly the batch records, the query's identifying fields and the
        batch number; nothing else.
        """
        return {
            "batch": list(self.records),
            **query.to_payload(),
            "batchNumber": self.sequence_number,
        }


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of dispatching one batch, including all of its retries."""

    sequence_number: int
    status: DispatchStatus
    attempts: int = 1
    last_error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is DispatchStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {"batchNumber": self.sequence_number, "error": self.last_error}


@dataclass(frozen=True)
class PartitionResult:
    """Aggregate report for a partition run.

    Only ever built after every dispatch has resolved.
    """

    batches_dispatched: int
    failed_batches: tuple[DispatchOutcome, ...] = field(default_factory=tuple)
    overall_status: PartitionStatus = PartitionStatus.COMPLETE

    @property
    def batches_failed(self) -> int:
        return len(self.failed_batches)

    def to_response(self) -> dict[str, Any]:
        """Serialise to the entry-point response shape."""
        return {
            "overallStatus": self.overall_status.value,
            "batchesDispatched": self.batches_dispatched,
            "failedBatches": [outcome.to_dict() for outcome in self.failed_batches],
        }


__all__ = [
    "Record",
    "DEFAULT_KEY_SEPARATOR",
    "InvalidTransitionError",
    "ScanState",
    "SCAN_VALID_TRANSITIONS",
    "validate_scan_transition",
    "DispatchStatus",
    "PartitionStatus",
    "PartitionQuery",
    "Page",
    "Batch",
    "DispatchOutcome",
    "PartitionResult",
]
