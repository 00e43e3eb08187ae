"""Paginated reads of every record in a partition."""

from __future__ import annotations

from typing import Any, AsyncIterator, Generic, List, Optional, Tuple, Type, TypeVar

import structlog

from ..framework.config import TableSchema
from ..schemas.records import Record, RecordKey
from ..utils.errors import ErrorContext, RecordNotFoundError, StoreError
from .dynamo import RecordStore


logger = structlog.get_logger(__name__)

R = TypeVar("R", bound=Record)


class PagedReader(Generic[R]):
    """
    Reads records of one table, following continuation cursors.

    Each call to ``iter_records`` or ``fetch_all`` starts a fresh scan of
    the partition; the reader keeps no state between calls.
    """

    def __init__(self, store: RecordStore, table: TableSchema, record_type: Type[R]):
        self.store = store
        self.table = table
        self.record_type = record_type

    async def iter_records(self, partition_value: Any) -> AsyncIterator[Tuple[R, bool]]:
        """
        Yield ``(record, last)`` for every record in the partition.

        ``last`` is True exactly once, on the final record of the whole scan.
        One record is held back until the next one (or the end of the scan)
        is known, so trailing empty pages do not hide the last record.

        Raises:
            StoreError: If any page read fails. Records already yielded stay
                delivered; the remaining pages are not read.
        """
        pending: Optional[R] = None
        cursor = None
        pages = 0

        while True:
            page = await self.store.query(self.table, partition_value, exclusive_start_key=cursor)
            pages += 1

            for item in page.items:
                record = self._parse(item)
                if pending is not None:
                    yield pending, False
                pending = record

            cursor = page.last_evaluated_key
            if not cursor:
                break

        logger.debug("Partition scan complete", table=self.table.name, partition=partition_value, pages=pages)
        if pending is not None:
            yield pending, True

    async def fetch_all(self, partition_value: Any) -> List[R]:
        """Read the whole partition into a list. Fails rather than returning a partial list."""
        records: List[R] = []
        async for record, _last in self.iter_records(partition_value):
            records.append(record)
        return records

    async def get(self, key: RecordKey) -> R:
        """
        Fetch one record by identity.

        Raises:
            RecordNotFoundError: If the store has no such item.
            StoreError: If the read fails.
        """
        item_key = key.to_item(self.table)
        item = await self.store.get_item(self.table, item_key)
        if item is None:
            raise RecordNotFoundError(
                f"No item in {self.table.name} for {key.partition}/{key.sort}",
                table=self.table.name,
                key=item_key,
            )
        return self._parse(item)

    def _parse(self, item: Any) -> R:
        try:
            return self.record_type.from_item(item)
        except ValueError as e:
            raise StoreError(
                f"Malformed item in {self.table.name}: {e}",
                operation="parse",
                table=self.table.name,
                context=ErrorContext(operation="parse", feed_id=item.get(self.table.partition_key)),
            ) from e
