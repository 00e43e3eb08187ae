"""DynamoDB record store for episodes and views.

Wraps the synchronous boto3 table resource for use from the event loop.
Every call runs in a worker thread; the store itself holds no per-batch
state and is safe to share across concurrent branches.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import boto3
import structlog
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from ..framework.config import AWSConfig, TableSchema
from ..utils.errors import StoreError


logger = structlog.get_logger(__name__)


@dataclass
class QueryPage:
    """One page of a partition query."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    last_evaluated_key: Optional[Dict[str, Any]] = None


class RecordStore(Protocol):
    """Read interface of the key-value store."""

    async def query(
        self,
        table: TableSchema,
        partition_value: Any,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
    ) -> QueryPage:
        """Return one page of items in the partition, starting after the cursor."""

    async def get_item(self, table: TableSchema, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the item with the given key, or None when it does not exist."""


class DynamoRecordStore:
    """RecordStore backed by DynamoDB tables."""

    def __init__(
        self,
        config: Optional[AWSConfig] = None,
        page_size: Optional[int] = None,
        resource: Any = None,
    ):
        self.config = config or AWSConfig()
        self.page_size = page_size
        self._resource = resource
        self.logger = structlog.get_logger("dynamo-record-store")

    @property
    def resource(self) -> Any:
        if self._resource is None:
            self._resource = boto3.resource(
                "dynamodb",
                region_name=self.config.region,
                endpoint_url=self.config.endpoint_url,
            )
        return self._resource

    async def query(
        self,
        table: TableSchema,
        partition_value: Any,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
    ) -> QueryPage:
        params: Dict[str, Any] = {
            "KeyConditionExpression": Key(table.partition_key).eq(partition_value),
        }
        if exclusive_start_key:
            params["ExclusiveStartKey"] = exclusive_start_key
        if self.page_size:
            params["Limit"] = self.page_size

        try:
            response = await asyncio.to_thread(self.resource.Table(table.name).query, **params)
        except (BotoCoreError, ClientError) as e:
            self.logger.error("DynamoDB query error", error=str(e), table=table.name, partition=partition_value)
            raise StoreError(
                f"Query on {table.name} failed: {e}",
                operation="query",
                table=table.name,
                details={"partition": str(partition_value)},
            ) from e

        return QueryPage(
            items=response.get("Items", []),
            last_evaluated_key=response.get("LastEvaluatedKey"),
        )

    async def get_item(self, table: TableSchema, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = await asyncio.to_thread(self.resource.Table(table.name).get_item, Key=key)
        except (BotoCoreError, ClientError) as e:
            self.logger.error("DynamoDB get_item error", error=str(e), table=table.name, key=key)
            raise StoreError(
                f"Get on {table.name} failed: {e}",
                operation="get_item",
                table=table.name,
                details={"key": {name: str(value) for name, value in key.items()}},
            ) from e

        return response.get("Item")
