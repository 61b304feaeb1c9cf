"""Store and worker adapters.

    DynamoDBPageFetcher   ─ PageFetcher over a DynamoDB secondary index
    LambdaWorkerInvoker   ─ WorkerInvoker using async Lambda invocations
    InMemoryPageFetcher   ─ PageFetcher over a list (tests, dry runs)
    RecordingWorker       ─ WorkerInvoker that records payloads
"""

from contest_fanout.adapters.dynamodb import DynamoDBPageFetcher, create_dynamodb_client
from contest_fanout.adapters.lambda_worker import LambdaWorkerInvoker, create_lambda_client
from contest_fanout.adapters.memory import InMemoryPageFetcher, RecordingWorker

__all__ = [
    "DynamoDBPageFetcher",
    "create_dynamodb_client",
    "LambdaWorkerInvoker",
    "create_lambda_client",
    "InMemoryPageFetcher",
    "RecordingWorker",
]
