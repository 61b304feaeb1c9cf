"""Partition processor: scan → batch → dispatch → aggregate.

WHY
───
Notifying the winners of a contest partition means reading every matching
record, grouping them into worker-sized batches and handing each batch to
the worker. Reads must stay sequential (cursor dependency) while dispatches
should overlap with the scan, and a failed dispatch must never sink the
whole partition.

ARCHITECTURE
────────────
::

    PartitionProcessor.process(query)
      │
      ├── PartitionScanner.scan(query)        sequential page fetches
      │       │ records
      │       ▼
      ├── Batcher.accept / flush              fixed-size batches
      │       │ completed batch
      │       ▼
      ├── asyncio.Task per batch              started immediately,
      │     └── Semaphore(max_concurrency)    at most N dispatching at once
      │           └── Dispatcher.dispatch     retry + backoff
      │
      ├── gather(all tasks)                   all-complete join
      └── ResultAggregator.aggregate          → PartitionResult

    PartitionRun.state
      SCANNING → DISPATCHING → AGGREGATING → DONE
          └──────────┴──▶ FAILED   (store query error only)

A store error aborts the run: dispatch tasks that have not finished are
cancelled and awaited, then the StoreQueryError is re-raised. No
PartitionResult is produced. Dispatch overlaps the scan, so a batch that
filled on an earlier page may already have been accepted by the worker;
that invocation is not recalled. With the default page size (20) below the
batch size (40), a failure on the second page always precedes the first
full batch and nothing is dispatched.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from contest_fanout.core.errors import StoreQueryError, describe_error
from contest_fanout.core.logging import LogContext, get_logger
from contest_fanout.core.models import (
    Batch,
    DispatchOutcome,
    DispatchStatus,
    PartitionQuery,
    PartitionResult,
    ScanState,
    validate_scan_transition,
)
from contest_fanout.execution.aggregator import ResultAggregator
from contest_fanout.execution.batcher import Batcher
from contest_fanout.execution.dispatcher import Dispatcher
from contest_fanout.execution.scanner import PageFetcher, PartitionScanner


@dataclass
class PartitionRun:
    """State of one partition-processing invocation."""

    query: PartitionQuery
    state: ScanState = ScanState.SCANNING
    batches_started: int = 0
    records_seen: int = 0
    history: list[ScanState] = field(default_factory=lambda: [ScanState.SCANNING])

    def transition_to(self, target: ScanState) -> None:
        validate_scan_transition(self.state, target)
        self.state = target
        self.history.append(target)


class PartitionProcessor:
    """Runs the whole pipeline for one partition per ``process()`` call.

    Holds no per-partition state between calls, so a single instance may
    process several partitions concurrently.

    Parameters
    ----------
    fetcher : PageFetcher
        Store page source.
    dispatcher : Dispatcher
        Batch dispatch with retry.
    max_batch_size : int
        Records per batch.
    max_concurrency : int
        Dispatches allowed in flight at once per partition.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        dispatcher: Dispatcher,
        *,
        max_batch_size: int = 40,
        max_concurrency: int = 10,
        aggregator: ResultAggregator | None = None,
        logger: Any | None = None,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._log = logger or get_logger(__name__)
        self._scanner = PartitionScanner(fetcher, logger=self._log)
        self._dispatcher = dispatcher
        self._aggregator = aggregator or ResultAggregator()
        self._max_batch_size = max_batch_size
        self._max_concurrency = max_concurrency

    async def process(self, query: PartitionQuery) -> PartitionResult:
        """Process every matching record of ``query``'s partition.

        Raises:
            StoreQueryError: a page query failed; nothing is reported.
        """
        return await self.execute(PartitionRun(query))

    async def execute(self, run: PartitionRun) -> PartitionResult:
        """Drive ``run`` to DONE (or FAILED), updating its state as it goes."""
        async with LogContext(**run.query.log_fields()):
            return await self._execute(run)

    async def _execute(self, run: PartitionRun) -> PartitionResult:
        query = run.query
        batcher = Batcher(self._max_batch_size)
        gate = asyncio.Semaphore(self._max_concurrency)
        tasks: list[tuple[Batch, asyncio.Task[DispatchOutcome]]] = []

        def start(batch: Batch) -> None:
            if run.state is ScanState.SCANNING:
                run.transition_to(ScanState.DISPATCHING)
            task = asyncio.create_task(
                self._gated_dispatch(gate, batch, query),
                name=f"dispatch-{query.partition_id}-{batch.sequence_number}",
            )
            tasks.append((batch, task))
            run.batches_started += 1
            self._log.info(
                "processor.batch_started",
                batch_number=batch.sequence_number,
                batch_size=batch.size,
            )

        self._log.info("processor.start", max_batch_size=self._max_batch_size)
        try:
            async for record in self._scanner.scan(query):
                run.records_seen += 1
                batch = batcher.accept(record)
                if batch is not None:
                    start(batch)
        except StoreQueryError as e:
            run.transition_to(ScanState.FAILED)
            abandoned = await self._abandon(tasks)
            self._log.error(
                "processor.scan_failed",
                records_seen=run.records_seen,
                batches_abandoned=abandoned,
                **e.to_dict(),
            )
            raise

        trailing = batcher.flush()
        if trailing is not None:
            start(trailing)

        run.transition_to(ScanState.AGGREGATING)
        outcomes = await self._join(tasks)
        result = self._aggregator.aggregate(outcomes)
        run.transition_to(ScanState.DONE)

        self._log.info(
            "processor.complete",
            records=run.records_seen,
            batches_dispatched=result.batches_dispatched,
            batches_failed=result.batches_failed,
            overall_status=result.overall_status.value,
        )
        return result

    async def _gated_dispatch(
        self,
        gate: asyncio.Semaphore,
        batch: Batch,
        query: PartitionQuery,
    ) -> DispatchOutcome:
        async with gate:
            return await self._dispatcher.dispatch(batch, query)

    async def _join(
        self,
        tasks: list[tuple[Batch, asyncio.Task[DispatchOutcome]]],
    ) -> list[DispatchOutcome]:
        """Wait for every dispatch; an unexpected crash counts as a failed batch."""
        results = await asyncio.gather(*(task for _, task in tasks), return_exceptions=True)
        outcomes: list[DispatchOutcome] = []
        for (batch, _), result in zip(tasks, results):
            if isinstance(result, BaseException):
                self._log.error(
                    "processor.dispatch_crashed",
                    batch_number=batch.sequence_number,
                    error=describe_error(result),
                )
                result = DispatchOutcome(
                    sequence_number=batch.sequence_number,
                    status=DispatchStatus.FAILED,
                    attempts=0,
                    last_error=describe_error(result),
                )
            outcomes.append(result)
        return outcomes

    async def _abandon(
        self,
        tasks: list[tuple[Batch, asyncio.Task[DispatchOutcome]]],
    ) -> int:
        """Cancel unfinished dispatches and wait for them to unwind."""
        pending = [task for _, task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)


__all__ = ["PartitionProcessor", "PartitionRun"]
