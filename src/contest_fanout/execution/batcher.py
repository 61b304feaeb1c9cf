"""Record batching into fixed-size groups emitted as soon as they fill.

Pure accumulation: no knowledge of scanning, dispatch or retry.

Invariants:
- every emitted batch except possibly the last has exactly ``max_size`` records
- the last batch has 1..max_size records; zero records produce zero batches
- sequence numbers start at 0 and increase by one per emitted batch

Example::

    batcher = Batcher(max_size=40)
    for record in records:
        if (batch := batcher.accept(record)) is not None:
            dispatch(batch)
    if (batch := batcher.flush()) is not None:
        dispatch(batch)
"""

from __future__ import annotations

from contest_fanout.core.models import Batch, Record


class Batcher:
    """Accumulates records into numbered batches of at most ``max_size``."""

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._pending: list[Record] = []
        self._next_sequence = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def pending_count(self) -> int:
        """Records held in the in-progress batch."""
        return len(self._pending)

    @property
    def batches_emitted(self) -> int:
        return self._next_sequence

    def accept(self, record: Record) -> Batch | None:
        """Add a record; return the batch it completed, if any."""
        self._pending.append(record)
        if len(self._pending) >= self._max_size:
            return self._emit()
        return None

    def flush(self) -> Batch | None:
        """Emit the trailing partial batch, or ``None`` if nothing is pending."""
        if not self._pending:
            return None
        return self._emit()

    def _emit(self) -> Batch:
        batch = Batch(sequence_number=self._next_sequence, records=tuple(self._pending))
        self._pending = []
        self._next_sequence += 1
        return batch


__all__ = ["Batcher"]
