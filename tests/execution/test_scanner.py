"""Tests for contest_fanout.execution.scanner."""

import pytest

from contest_fanout.adapters.memory import InMemoryPageFetcher
from contest_fanout.core.errors import StoreQueryError
from contest_fanout.core.models import Page
from contest_fanout.execution.scanner import PageFetcher, PartitionScanner


async def _collect(scanner, query):
    return [record async for record in scanner.scan(query)]


# ── Helpers ──────────────────────────────────────────────────────────────


class ScriptedFetcher:
    """Returns pre-built pages keyed by request number."""

    def __init__(self, pages):
        self._pages = list(pages)
        self.cursors = []

    async def fetch_page(self, query, cursor=None):
        self.cursors.append(cursor)
        result = self._pages[len(self.cursors) - 1]
        if isinstance(result, Exception):
            raise result
        return result


class TestPartitionScanner:
    def test_in_memory_fetcher_is_a_page_fetcher(self):
        assert isinstance(InMemoryPageFetcher([]), PageFetcher)

    @pytest.mark.asyncio
    async def test_yields_every_record_across_pages(self, query, records_factory, mock_logger):
        records = records_factory(85)
        fetcher = InMemoryPageFetcher(records, page_size=20)

        result = await _collect(PartitionScanner(fetcher, logger=mock_logger), query)

        assert result == records
        assert fetcher.pages_fetched == 5

    @pytest.mark.asyncio
    async def test_cursor_threaded_between_pages(self, query, mock_logger):
        fetcher = ScriptedFetcher([
            Page(records=({"n": 1},), cursor={"k": "a"}),
            Page(records=({"n": 2},), cursor={"k": "b"}),
            Page(records=({"n": 3},), cursor=None),
        ])

        result = await _collect(PartitionScanner(fetcher, logger=mock_logger), query)

        assert [r["n"] for r in result] == [1, 2, 3]
        assert fetcher.cursors == [None, {"k": "a"}, {"k": "b"}]

    @pytest.mark.asyncio
    async def test_empty_pages_with_cursor_continue(self, query, mock_logger):
        fetcher = ScriptedFetcher([
            Page(records=(), cursor="next"),
            Page(records=({"n": 1},), cursor=None),
        ])
        result = await _collect(PartitionScanner(fetcher, logger=mock_logger), query)
        assert result == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_empty_partition(self, query, mock_logger):
        fetcher = InMemoryPageFetcher([])
        assert await _collect(PartitionScanner(fetcher, logger=mock_logger), query) == []
        assert fetcher.pages_fetched == 1

    @pytest.mark.asyncio
    async def test_store_error_stops_scan(self, query, records_factory, mock_logger):
        fetcher = InMemoryPageFetcher(records_factory(85), page_size=20, fail_on_page=1)
        seen = []

        with pytest.raises(StoreQueryError) as exc_info:
            async for record in PartitionScanner(fetcher, logger=mock_logger).scan(query):
                seen.append(record)

        assert len(seen) == 20
        assert fetcher.pages_fetched == 2
        context = exc_info.value.context
        assert context.partition_id == "2"
        assert context.metadata["page"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, query, mock_logger):
        fetcher = ScriptedFetcher([ConnectionError("reset by peer")])

        with pytest.raises(StoreQueryError) as exc_info:
            await _collect(PartitionScanner(fetcher, logger=mock_logger), query)

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert "page 0" in exc_info.value.message
