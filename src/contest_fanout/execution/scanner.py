"""Partition scanning: page-by-page reads of one contest partition.

ARCHITECTURE
────────────
::

    PageFetcher (Protocol)
      └── .fetch_page(query, cursor) -> Page     one store round-trip

    PartitionScanner(fetcher)
      └── .scan(query) -> AsyncIterator[Record]  drives the cursor loop

Pages are requested strictly one after another: the cursor returned by
page *n* is the only input to request *n+1*. A store error on any page
propagates out of ``scan()`` immediately and no later page is requested.

Implementations:
    adapters.dynamodb.DynamoDBPageFetcher   (production)
    adapters.memory.InMemoryPageFetcher     (tests / dry runs)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from contest_fanout.core.errors import StoreQueryError
from contest_fanout.core.logging import get_logger
from contest_fanout.core.models import Page, PartitionQuery, Record


@runtime_checkable
class PageFetcher(Protocol):
    """Fetches one page of matching records from the partitioned store.

    Contract:
    - ``cursor`` is ``None`` for the first page, otherwise exactly the
      cursor returned by the previous call for the same query.
    - Returns a Page whose ``cursor`` is ``None`` once no more data exists.
    - Any store failure is raised as StoreQueryError and is not retried.
    """

    async def fetch_page(self, query: PartitionQuery, cursor: Any | None = None) -> Page:
        ...


class PartitionScanner:
    """Drives a PageFetcher until the partition is exhausted.

    Each ``scan()`` call owns its own cursor, so one scanner can serve many
    concurrent partition runs. A scan cannot be resumed; start a new one.
    """

    def __init__(self, fetcher: PageFetcher, *, logger: Any | None = None) -> None:
        self._fetcher = fetcher
        self._log = logger or get_logger(__name__)

    async def scan(self, query: PartitionQuery) -> AsyncIterator[Record]:
        """Yield every matching record of the partition, in store order."""
        cursor: Any | None = None
        page_number = 0
        total = 0

        while True:
            self._log.debug("scanner.fetch_page", page=page_number, **query.log_fields())
            try:
                page = await self._fetcher.fetch_page(query, cursor)
            except StoreQueryError as e:
                e.with_context(page=page_number, **query.log_fields())
                raise
            except Exception as e:
                raise StoreQueryError(
                    f"Store query failed on page {page_number}: {e}",
                    cause=e,
                ).with_context(page=page_number, **query.log_fields()) from e

            total += len(page.records)
            self._log.debug(
                "scanner.page_fetched",
                page=page_number,
                item_count=len(page.records),
                has_more_results=not page.is_last,
            )

            for record in page.records:
                yield record

            if page.is_last:
                break
            cursor = page.cursor
            page_number += 1

        self._log.info("scanner.complete", pages=page_number + 1, records=total, **query.log_fields())


__all__ = ["PageFetcher", "PartitionScanner"]
