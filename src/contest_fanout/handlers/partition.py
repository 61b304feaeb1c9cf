"""AWS Lambda entry point for partition processing.

Event::

    {"contestId": "contest_123", "winningSelectionId": "selection_winner", "partitionId": "2"}

Response::

    {"overallStatus": "Complete" | "PartialCompletion",
     "batchesDispatched": 3,
     "failedBatches": [{"batchNumber": 1, "error": "WorkerInvocationError: ..."}]}

The handler raises only when the event is invalid or a store query fails.
Worker invocation trouble is always reported in the response.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from contest_fanout.adapters.dynamodb import DynamoDBPageFetcher
from contest_fanout.adapters.lambda_worker import LambdaWorkerInvoker
from contest_fanout.core.errors import ValidationError
from contest_fanout.core.logging import configure_logging, get_logger
from contest_fanout.core.models import PartitionQuery
from contest_fanout.core.settings import FanoutSettings, get_settings
from contest_fanout.execution.dispatcher import Dispatcher, WorkerInvoker
from contest_fanout.execution.processor import PartitionProcessor
from contest_fanout.execution.retry import ExponentialBackoff
from contest_fanout.execution.scanner import PageFetcher

logger = get_logger(__name__)


class PartitionEvent(BaseModel):
    """Incoming partition-processing request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    contest_id: str = Field(alias="contestId", min_length=1)
    selection_id: str = Field(alias="winningSelectionId", min_length=1)
    partition_id: str = Field(alias="partitionId", min_length=1)

    @field_validator("contest_id", "selection_id", "partition_id", mode="before")
    @classmethod
    def _coerce_numeric_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("contest_id", "selection_id", "partition_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_query(self) -> PartitionQuery:
        return PartitionQuery(self.contest_id, self.selection_id, self.partition_id)


def parse_event(event: Any) -> PartitionQuery:
    """Validate a raw Lambda event into a PartitionQuery."""
    if not isinstance(event, dict):
        raise ValidationError("event must be a JSON object", value=event)
    try:
        return PartitionEvent.model_validate(event).to_query()
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"invalid partition event: {field_name}: {first.get('msg')}",
            field=field_name or None,
            cause=e,
        ) from e


def build_processor(
    settings: FanoutSettings,
    *,
    dynamodb_client: Any | None = None,
    lambda_client: Any | None = None,
    fetcher: PageFetcher | None = None,
    worker: WorkerInvoker | None = None,
    log: Any | None = None,
) -> PartitionProcessor:
    """Wire a PartitionProcessor from settings.

    Explicit ``fetcher``/``worker`` replace the AWS adapters; explicit
    clients are used instead of building new boto3 clients.
    """
    log = log or get_logger("contest_fanout")
    if fetcher is None:
        fetcher = DynamoDBPageFetcher.from_settings(settings, dynamodb_client, logger=log)
    if worker is None:
        worker = LambdaWorkerInvoker.from_settings(settings, lambda_client, logger=log)

    dispatcher = Dispatcher(
        worker,
        function_name=settings.worker_function_name,
        backoff=ExponentialBackoff(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
        ),
        logger=log,
    )
    return PartitionProcessor(
        fetcher,
        dispatcher,
        max_batch_size=settings.max_batch_size,
        max_concurrency=settings.max_concurrency,
        logger=log,
    )


@lru_cache(maxsize=1)
def _default_processor() -> PartitionProcessor:
    # Built once per container, reused across warm invocations
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        service=settings.service_name,
    )
    return build_processor(settings)


def handler(event: dict, context: Any) -> dict:
    """AWS Lambda handler."""
    processor = _default_processor()
    logger.info(
        "handler.received_event",
        event=event,
        request_id=getattr(context, "aws_request_id", None),
    )
    query = parse_event(event)
    result = asyncio.run(processor.process(query))
    return result.to_response()


__all__ = ["PartitionEvent", "parse_event", "build_processor", "handler"]
