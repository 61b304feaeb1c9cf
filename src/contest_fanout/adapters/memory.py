"""In-memory store and worker for tests, local runs and ``--dry-run``.

NOT for production: nothing is persisted and nothing leaves the process.

Example:
    >>> fetcher = InMemoryPageFetcher([{"userId": str(i)} for i in range(85)], page_size=20)
    >>> worker = RecordingWorker()
    >>> dispatcher = Dispatcher(worker)
    >>> result = await PartitionProcessor(fetcher, dispatcher).process(query)
    >>> [len(p["batch"]) for p in worker.payloads]
    [40, 40, 5]
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from contest_fanout.core.errors import StoreQueryError, WorkerInvocationError
from contest_fanout.core.models import Page, PartitionQuery, Record


class InMemoryPageFetcher:
    """Serves a fixed record list in pages.

    The cursor is the integer offset of the next page. ``fail_on_page``
    (0-based) makes that request raise StoreQueryError, for exercising the
    fatal-scan path. Every request yields to the event loop once, as a real
    store round-trip does, so dispatch tasks started by earlier pages get
    to run while the next page is awaited.
    """

    def __init__(
        self,
        records: Sequence[Record],
        *,
        page_size: int = 20,
        fail_on_page: int | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._records = list(records)
        self._page_size = page_size
        self._fail_on_page = fail_on_page
        self.requests: list[Any | None] = []

    @property
    def pages_fetched(self) -> int:
        return len(self.requests)

    async def fetch_page(self, query: PartitionQuery, cursor: Any | None = None) -> Page:
        page_number = len(self.requests)
        self.requests.append(cursor)
        await asyncio.sleep(0)
        if self._fail_on_page is not None and page_number == self._fail_on_page:
            raise StoreQueryError(f"simulated store failure on page {page_number}")

        start = 0 if cursor is None else int(cursor)
        end = start + self._page_size
        chunk = tuple(self._records[start:end])
        next_cursor = end if end < len(self._records) else None
        return Page(records=chunk, cursor=next_cursor)


class RecordingWorker:
    """Accepts every invocation and keeps the payloads.

    ``fail_times`` maps a batch number to how many of its attempts should
    fail before one succeeds; use a large number for a batch that never
    gets through.
    """

    def __init__(self, fail_times: dict[int, int] | None = None) -> None:
        self._fail_times = dict(fail_times or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.attempts: dict[int, int] = {}

    @property
    def payloads(self) -> list[dict[str, Any]]:
        """Payloads of accepted invocations, in acceptance order."""
        return [payload for _, payload in self.calls]

    async def invoke(self, function_name: str, payload: dict[str, Any]) -> None:
        batch_number = payload["batchNumber"]
        attempt = self.attempts.get(batch_number, 0) + 1
        self.attempts[batch_number] = attempt
        if attempt <= self._fail_times.get(batch_number, 0):
            raise WorkerInvocationError(
                f"simulated invocation failure (attempt {attempt})"
            ).with_context(batch_number=batch_number, attempt=attempt)
        self.calls.append((function_name, payload))


__all__ = ["InMemoryPageFetcher", "RecordingWorker"]
