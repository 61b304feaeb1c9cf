"""AWS Lambda worker invoker.

Each batch is sent as an asynchronous (``InvocationType="Event"``) Lambda
invocation. Lambda answers 202 once the event is queued; nothing the
worker does afterwards is visible here.

SDK-level retries are switched off on the client built by
``create_lambda_client`` so that every invocation request corresponds to
exactly one Dispatcher attempt.
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from contest_fanout.core.errors import WorkerInvocationError
from contest_fanout.core.logging import get_logger
from contest_fanout.core.settings import FanoutSettings

ACCEPTED_STATUS = 202

# Rejections that will fail the same way on every attempt
NON_RETRYABLE_CODES = frozenset({
    "ResourceNotFoundException",
    "AccessDeniedException",
    "AccessDeniedError",
    "InvalidParameterValueException",
    "RequestTooLargeException",
    "InvalidRequestContentException",
})


def create_lambda_client(settings: FanoutSettings) -> Any:
    """Build a Lambda client with SDK retries disabled."""
    client_kwargs: dict[str, Any] = {
        "service_name": "lambda",
        "region_name": settings.region_name,
        "config": Config(retries={"total_max_attempts": 1, "mode": "standard"}),
    }
    if settings.endpoint_url:
        client_kwargs["endpoint_url"] = settings.endpoint_url
    return boto3.client(**client_kwargs)


def _json_default(value: Any) -> Any:
    # DynamoDB numbers deserialise to Decimal, string/number sets to set
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_payload(payload: dict[str, Any]) -> str:
    """Serialise a worker payload to JSON."""
    return json.dumps(payload, default=_json_default)


class LambdaWorkerInvoker:
    """WorkerInvoker that fires an asynchronous Lambda invocation."""

    def __init__(self, client: Any, *, logger: Any | None = None) -> None:
        self._client = client
        self._log = logger or get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: FanoutSettings,
        client: Any | None = None,
        *,
        logger: Any | None = None,
    ) -> LambdaWorkerInvoker:
        return cls(client if client is not None else create_lambda_client(settings), logger=logger)

    async def invoke(self, function_name: str, payload: dict[str, Any]) -> None:
        body = encode_payload(payload)
        batch_number = payload.get("batchNumber")
        try:
            response = await asyncio.to_thread(
                self._client.invoke,
                FunctionName=function_name,
                InvocationType="Event",
                Payload=body,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise WorkerInvocationError(
                f"Lambda invoke failed ({code})",
                retryable=code not in NON_RETRYABLE_CODES,
                cause=e,
            ).with_context(
                operation="Invoke",
                batch_number=batch_number,
                function_name=function_name,
                error_code=code,
            ) from e
        except BotoCoreError as e:
            raise WorkerInvocationError(
                f"Lambda invoke failed: {e}", cause=e,
            ).with_context(
                operation="Invoke",
                batch_number=batch_number,
                function_name=function_name,
            ) from e

        status = response.get("StatusCode")
        if status != ACCEPTED_STATUS or response.get("FunctionError"):
            raise WorkerInvocationError(
                f"Lambda invoke not accepted (status={status}, "
                f"function_error={response.get('FunctionError')})",
            ).with_context(
                operation="Invoke",
                batch_number=batch_number,
                function_name=function_name,
            )

        self._log.debug(
            "lambda.invoked",
            function_name=function_name,
            batch_number=batch_number,
            status_code=status,
            payload_bytes=len(body),
        )


__all__ = ["LambdaWorkerInvoker", "create_lambda_client", "encode_payload", "NON_RETRYABLE_CODES"]
