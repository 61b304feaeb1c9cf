"""Tests for contest_fanout.execution.batcher."""

import pytest

from contest_fanout.execution.batcher import Batcher


def _drain(batcher, records):
    batches = []
    for record in records:
        batch = batcher.accept(record)
        if batch is not None:
            batches.append(batch)
    trailing = batcher.flush()
    if trailing is not None:
        batches.append(trailing)
    return batches


class TestBatcher:
    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            Batcher(0)

    def test_emits_when_full(self):
        batcher = Batcher(max_size=2)
        assert batcher.accept({"n": 0}) is None
        batch = batcher.accept({"n": 1})
        assert batch is not None
        assert batch.sequence_number == 0
        assert batch.records == ({"n": 0}, {"n": 1})
        assert batcher.pending_count == 0

    def test_85_records_by_40(self, records_factory):
        batches = _drain(Batcher(40), records_factory(85))
        assert [b.size for b in batches] == [40, 40, 5]
        assert [b.sequence_number for b in batches] == [0, 1, 2]

    def test_exact_multiple_has_no_empty_tail(self, records_factory):
        batcher = Batcher(40)
        batches = _drain(batcher, records_factory(80))
        assert [b.size for b in batches] == [40, 40]
        assert batcher.flush() is None

    def test_no_records_no_batches(self):
        batcher = Batcher(40)
        assert batcher.flush() is None
        assert batcher.batches_emitted == 0

    def test_records_preserved_in_order(self, records_factory):
        records = records_factory(7)
        batches = _drain(Batcher(3), records)
        flattened = [r for b in batches for r in b.records]
        assert flattened == records

    def test_batch_size_one(self, records_factory):
        batches = _drain(Batcher(1), records_factory(3))
        assert [b.size for b in batches] == [1, 1, 1]
