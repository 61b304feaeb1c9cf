"""
contest-fanout - notify the winners of a contest partition in batches.

Scans one partition of the contest store, groups matching records into
bounded batches and dispatches each batch to a downstream worker with
retry, then reports per-batch outcomes.

Usage:
    from contest_fanout import PartitionQuery
    from contest_fanout.handlers import build_processor
    from contest_fanout.core.settings import get_settings

    processor = build_processor(get_settings())
    result = await processor.process(PartitionQuery("contest_123", "selection_winner", "2"))
"""

__version__ = "0.1.0"

from contest_fanout.core.errors import FanoutError, StoreQueryError, WorkerInvocationError
from contest_fanout.core.models import (
    Batch,
    DispatchOutcome,
    DispatchStatus,
    PartitionQuery,
    PartitionResult,
    PartitionStatus,
)
from contest_fanout.execution import (
    Batcher,
    Dispatcher,
    ExponentialBackoff,
    PartitionProcessor,
    PartitionScanner,
    ResultAggregator,
)

__all__ = [
    "__version__",
    "FanoutError",
    "StoreQueryError",
    "WorkerInvocationError",
    "PartitionQuery",
    "Batch",
    "DispatchOutcome",
    "DispatchStatus",
    "PartitionResult",
    "PartitionStatus",
    "Batcher",
    "Dispatcher",
    "ExponentialBackoff",
    "PartitionProcessor",
    "PartitionScanner",
    "ResultAggregator",
]
