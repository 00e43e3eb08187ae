"""
Change event definitions for table stream batches.

Parses the records of a DynamoDB stream batch into typed change events.
Attribute values arrive in the stream's typed wire format and are
deserialized with boto3's TypeDeserializer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from boto3.dynamodb.types import TypeDeserializer

from ..framework.config import TableSchema
from ..utils.errors import ConfigError
from .records import RecordKey

_deserializer = TypeDeserializer()


class ChangeKind(str, Enum):
    """Kinds of change a stream record may describe."""
    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


def deserialize_image(image: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a typed attribute map (``{"feedId": {"S": "a"}}``) to plain values."""
    if image is None:
        return None
    return {name: _deserializer.deserialize(value) for name, value in image.items()}


@dataclass(frozen=True)
class ChangeEvent:
    """A single insert, modify or remove notification for one table item."""
    kind: ChangeKind
    keys: Dict[str, Any]
    new_image: Optional[Dict[str, Any]] = None
    old_image: Optional[Dict[str, Any]] = None
    event_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ChangeEvent":
        """
        Build a change event from one stream record.

        Raises:
            ConfigError: If the event name is not a recognized change kind.
        """
        event_name = record.get("eventName")
        try:
            kind = ChangeKind(event_name)
        except ValueError as exc:
            raise ConfigError(
                f'Unrecognized eventName "{event_name}"',
                config_key="eventName",
                config_value=event_name,
            ) from exc

        stream = record.get("dynamodb") or {}
        return cls(
            kind=kind,
            keys=deserialize_image(stream.get("Keys")) or {},
            new_image=deserialize_image(stream.get("NewImage")),
            old_image=deserialize_image(stream.get("OldImage")),
            event_id=record.get("eventID"),
        )

    def key_for(self, schema: TableSchema) -> RecordKey:
        """Identity of the changed item."""
        return RecordKey.from_item(self.keys, schema)

    def affected_partitions(self, schema: TableSchema) -> List[Any]:
        """
        Partition values whose rendered output is stale after this change.

        A modify that moves the item to another partition affects both the
        source and the destination partition.
        """
        if self.kind is ChangeKind.INSERT:
            candidates = [self._partition_of(self.new_image, schema)]
        elif self.kind is ChangeKind.REMOVE:
            candidates = [self._partition_of(self.old_image, schema)]
        else:
            candidates = [
                self._partition_of(self.old_image, schema),
                self._partition_of(self.new_image, schema),
            ]

        partitions: List[Any] = []
        for partition in candidates:
            if partition not in partitions:
                partitions.append(partition)
        return partitions

    def _partition_of(self, image: Optional[Dict[str, Any]], schema: TableSchema) -> Any:
        for source in (image, self.keys):
            if source and source.get(schema.partition_key) is not None:
                return source[schema.partition_key]
        raise ConfigError(
            f"{self.kind.value} event carries no {schema.partition_key}",
            config_key=schema.partition_key,
            details={"table": schema.name, "event_id": self.event_id},
        )


def parse_batch(event: Mapping[str, Any]) -> List[ChangeEvent]:
    """
    Parse every record of a stream batch.

    Fails fast: the first unrecognized record aborts the whole batch.
    """
    return [ChangeEvent.from_record(record) for record in event.get("Records") or []]
