"""Contest-fanout execution: the scan → batch → dispatch → retry engine.

ARCHITECTURE
────────────
::

    PartitionProcessor
      ├── PartitionScanner ─ drives a PageFetcher cursor loop
      ├── Batcher          ─ fixed-size batches, emitted as they fill
      ├── Dispatcher       ─ worker invocation with retry + backoff
      │     └── ExponentialBackoff / RetryContext
      └── ResultAggregator ─ outcomes → PartitionResult

MODULE MAP
──────────
  1. scanner.py     ─ PageFetcher protocol, PartitionScanner
  2. batcher.py     ─ Batcher
  3. retry.py       ─ ExponentialBackoff, RetryContext, RetryState
  4. dispatcher.py  ─ WorkerInvoker protocol, Dispatcher
  5. aggregator.py  ─ ResultAggregator
  6. processor.py   ─ PartitionProcessor, PartitionRun
"""

from contest_fanout.execution.aggregator import ResultAggregator
from contest_fanout.execution.batcher import Batcher
from contest_fanout.execution.dispatcher import DEFAULT_WORKER_FUNCTION, Dispatcher, WorkerInvoker
from contest_fanout.execution.processor import PartitionProcessor, PartitionRun
from contest_fanout.execution.retry import ExponentialBackoff, RetryContext, RetryState
from contest_fanout.execution.scanner import PageFetcher, PartitionScanner

__all__ = [
    "PageFetcher",
    "PartitionScanner",
    "Batcher",
    "ExponentialBackoff",
    "RetryContext",
    "RetryState",
    "WorkerInvoker",
    "Dispatcher",
    "DEFAULT_WORKER_FUNCTION",
    "ResultAggregator",
    "PartitionProcessor",
    "PartitionRun",
]
