"""DynamoDB page fetcher.

Queries the ``SelectionPartitionIndex`` secondary index, whose hash key is
the contest id and whose range key is the precomputed composite
``<selectionId>#<partitionId>``. One query returns one page; the
``LastEvaluatedKey`` is handed back untouched as the opaque cursor.

Example::

    client = create_dynamodb_client(settings)
    fetcher = DynamoDBPageFetcher(client, table_name="ContestParticipants")
    page = await fetcher.fetch_page(PartitionQuery("contest_123", "selection_winner", "2"))
"""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from contest_fanout.core.errors import StoreQueryError
from contest_fanout.core.logging import get_logger
from contest_fanout.core.models import DEFAULT_KEY_SEPARATOR, Page, PartitionQuery
from contest_fanout.core.settings import FanoutSettings

DEFAULT_PAGE_SIZE = 20


def create_dynamodb_client(settings: FanoutSettings) -> Any:
    """Build a low-level DynamoDB client from settings."""
    client_kwargs: dict[str, Any] = {
        "service_name": "dynamodb",
        "region_name": settings.region_name,
        "config": Config(retries={"mode": "standard"}),
    }
    if settings.endpoint_url:
        client_kwargs["endpoint_url"] = settings.endpoint_url
    return boto3.client(**client_kwargs)


class DynamoDBPageFetcher:
    """PageFetcher backed by a DynamoDB secondary-index query."""

    def __init__(
        self,
        client: Any,
        *,
        table_name: str = "ContestParticipants",
        index_name: str | None = "SelectionPartitionIndex",
        partition_key_attribute: str = "contestId",
        range_key_attribute: str = "selectionPartitionId",
        key_separator: str = DEFAULT_KEY_SEPARATOR,
        page_size: int = DEFAULT_PAGE_SIZE,
        logger: Any | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._client = client
        self._table_name = table_name
        self._index_name = index_name
        self._partition_key_attribute = partition_key_attribute
        self._range_key_attribute = range_key_attribute
        self._key_separator = key_separator
        self._page_size = page_size
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()
        self._log = logger or get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: FanoutSettings,
        client: Any | None = None,
        *,
        logger: Any | None = None,
    ) -> DynamoDBPageFetcher:
        return cls(
            client if client is not None else create_dynamodb_client(settings),
            table_name=settings.table_name,
            index_name=settings.index_name,
            partition_key_attribute=settings.partition_key_attribute,
            range_key_attribute=settings.range_key_attribute,
            key_separator=settings.key_separator,
            page_size=settings.page_size,
            logger=logger,
        )

    @property
    def page_size(self) -> int:
        return self._page_size

    def build_params(self, query: PartitionQuery, cursor: Any | None = None) -> dict[str, Any]:
        """Query request for one page of ``query``."""
        params: dict[str, Any] = {
            "TableName": self._table_name,
            "KeyConditionExpression": "#pk = :pk AND #rk = :rk",
            "ExpressionAttributeNames": {
                "#pk": self._partition_key_attribute,
                "#rk": self._range_key_attribute,
            },
            "ExpressionAttributeValues": {
                ":pk": self._serializer.serialize(query.contest_id),
                ":rk": self._serializer.serialize(
                    query.selection_partition_key(self._key_separator)
                ),
            },
            "Limit": self._page_size,
        }
        if self._index_name:
            params["IndexName"] = self._index_name
        if cursor is not None:
            params["ExclusiveStartKey"] = cursor
        return params

    async def fetch_page(self, query: PartitionQuery, cursor: Any | None = None) -> Page:
        params = self.build_params(query, cursor)
        self._log.debug(
            "dynamodb.query",
            table=self._table_name,
            index=self._index_name,
            limit=self._page_size,
            has_cursor=cursor is not None,
        )
        try:
            response = await asyncio.to_thread(self._client.query, **params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            self._log.error("dynamodb.query_failed", error_code=code, error=str(e))
            raise StoreQueryError(
                f"DynamoDB query failed ({code})", cause=e,
            ).with_context(operation="Query", table=self._table_name, error_code=code) from e
        except BotoCoreError as e:
            self._log.error("dynamodb.query_failed", error=str(e))
            raise StoreQueryError(
                f"DynamoDB query failed: {e}", cause=e,
            ).with_context(operation="Query", table=self._table_name) from e

        records = tuple(self._unmarshall(item) for item in response.get("Items", []))
        next_cursor = response.get("LastEvaluatedKey") or None
        self._log.debug(
            "dynamodb.query_result",
            item_count=len(records),
            has_more_results=next_cursor is not None,
        )
        return Page(records=records, cursor=next_cursor)

    def _unmarshall(self, item: dict[str, Any]) -> dict[str, Any]:
        return {key: self._deserializer.deserialize(value) for key, value in item.items()}


__all__ = ["DynamoDBPageFetcher", "create_dynamodb_client", "DEFAULT_PAGE_SIZE"]
