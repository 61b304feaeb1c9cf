"""Reduce per-batch dispatch outcomes into the partition report."""

from __future__ import annotations

from collections.abc import Iterable

from contest_fanout.core.models import DispatchOutcome, PartitionResult, PartitionStatus


class ResultAggregator:
    """Pure reduction of DispatchOutcomes into a PartitionResult.

    Failed outcomes are ordered by batch number so the report is the same
    whatever order the dispatches finished in.
    """

    def aggregate(self, outcomes: Iterable[DispatchOutcome]) -> PartitionResult:
        outcomes = list(outcomes)
        seen: set[int] = set()
        for outcome in outcomes:
            if outcome.sequence_number in seen:
                raise ValueError(f"duplicate outcome for batch {outcome.sequence_number}")
            seen.add(outcome.sequence_number)

        failed = tuple(sorted(
            (o for o in outcomes if o.failed),
            key=lambda o: o.sequence_number,
        ))
        return PartitionResult(
            batches_dispatched=len(outcomes),
            failed_batches=failed,
            overall_status=PartitionStatus.PARTIAL_COMPLETION if failed else PartitionStatus.COMPLETE,
        )


__all__ = ["ResultAggregator"]
