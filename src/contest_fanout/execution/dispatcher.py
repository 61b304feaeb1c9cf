"""Batch dispatch to the downstream worker with bounded retry.

WHY
───
The worker is invoked fire-and-forget: the only thing observed is whether
the invocation *request* was accepted. Those requests fail transiently
(throttling, networking), so each batch gets a few attempts with
exponential backoff. A batch that still fails is reported in its
DispatchOutcome and never raised, so one bad batch cannot stop its
siblings from completing.

ARCHITECTURE
────────────
::

    WorkerInvoker (Protocol)
      └── .invoke(function_name, payload)    one outbound request

    Dispatcher(worker, function_name=..., backoff=..., sleep=...)
      └── .dispatch(batch, query) -> DispatchOutcome
            RetryContext: ATTEMPTING(n) → SUCCEEDED | ATTEMPTING(n+1) | EXHAUSTED

Every attempt re-sends the full payload, so delivery is at-least-once and
the worker must tolerate duplicates.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from contest_fanout.core.errors import describe_error
from contest_fanout.core.logging import get_logger
from contest_fanout.core.models import Batch, DispatchOutcome, DispatchStatus, PartitionQuery
from contest_fanout.execution.retry import ExponentialBackoff, RetryContext, RetryState

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_WORKER_FUNCTION = "batchProcessorLambda"


@runtime_checkable
class WorkerInvoker(Protocol):
    """Sends one batch payload to the worker.

    Returns once the invocation request is accepted; raises if it is not.
    Nothing from inside the worker is observed.
    """

    async def invoke(self, function_name: str, payload: dict[str, Any]) -> None:
        ...


class Dispatcher:
    """Dispatches batches to a worker, retrying failed invocation requests.

    Parameters
    ----------
    worker : WorkerInvoker
        Transport used for each attempt.
    function_name : str
        Downstream target identifier, fixed at construction.
    backoff : ExponentialBackoff
        Attempt limit and delay schedule.
    sleep : async callable
        Waits between attempts (default ``asyncio.sleep``).
    """

    def __init__(
        self,
        worker: WorkerInvoker,
        *,
        function_name: str = DEFAULT_WORKER_FUNCTION,
        backoff: ExponentialBackoff | None = None,
        sleep: Sleep = asyncio.sleep,
        logger: Any | None = None,
    ) -> None:
        self._worker = worker
        self._function_name = function_name
        self._backoff = backoff or ExponentialBackoff()
        self._sleep = sleep
        self._log = logger or get_logger(__name__)

    @property
    def function_name(self) -> str:
        return self._function_name

    @property
    def backoff(self) -> ExponentialBackoff:
        return self._backoff

    async def dispatch(self, batch: Batch, query: PartitionQuery) -> DispatchOutcome:
        """Invoke the worker for ``batch`` until accepted or attempts run out."""
        payload = batch.to_payload(query)
        ctx = RetryContext(self._backoff)

        while ctx.state is RetryState.ATTEMPTING:
            attempt = ctx.begin_attempt()
            try:
                await self._worker.invoke(self._function_name, payload)
            except Exception as e:
                state = ctx.record_failure(e)
                if state is RetryState.EXHAUSTED:
                    break
                delay = ctx.next_delay()
                self._log.warning(
                    "dispatcher.retry_scheduled",
                    batch_number=batch.sequence_number,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=describe_error(e),
                )
                await self._sleep(delay)
            else:
                ctx.record_success()

        if ctx.state is RetryState.SUCCEEDED:
            self._log.debug(
                "dispatcher.invoked",
                batch_number=batch.sequence_number,
                batch_size=batch.size,
                attempts=ctx.attempts,
                elapsed_seconds=round(ctx.elapsed_seconds, 3),
                function_name=self._function_name,
            )
            return DispatchOutcome(
                sequence_number=batch.sequence_number,
                status=DispatchStatus.SUCCEEDED,
                attempts=ctx.attempts,
            )

        error = describe_error(ctx.last_error) if ctx.last_error is not None else None
        self._log.error(
            "dispatcher.exhausted",
            batch_number=batch.sequence_number,
            batch_size=batch.size,
            attempts=ctx.attempts,
            elapsed_seconds=round(ctx.elapsed_seconds, 3),
            function_name=self._function_name,
            error=error,
        )
        return DispatchOutcome(
            sequence_number=batch.sequence_number,
            status=DispatchStatus.FAILED,
            attempts=ctx.attempts,
            last_error=error,
        )


__all__ = ["Dispatcher", "WorkerInvoker", "DEFAULT_WORKER_FUNCTION"]
