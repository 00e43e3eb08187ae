"""
Record models for the episodes and views tables.

Records are immutable once fetched. Named fields are parsed explicitly;
every other attribute of the stored item is kept in ``attributes`` and
exposed to templates through ``to_context``.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Dict, Mapping, NamedTuple, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..framework.config import TableSchema
from ..utils.errors import ConfigError


class RecordKey(NamedTuple):
    """Hashable identity of a record: partition value and sort value."""

    partition: Any
    sort: Any

    @classmethod
    def from_item(cls, item: Mapping[str, Any], schema: TableSchema) -> "RecordKey":
        """Extract the identity from a key map or a full item."""
        try:
            return cls(item[schema.partition_key], item[schema.sort_key])
        except KeyError as exc:
            raise ConfigError(
                f"Item is missing key attribute {exc.args[0]!r} for table {schema.name}",
                config_key=str(exc.args[0]),
                details={"table": schema.name},
            ) from exc

    def to_item(self, schema: TableSchema) -> Dict[str, Any]:
        """Build the key map expected by the store."""
        return {schema.partition_key: self.partition, schema.sort_key: self.sort}


class Record(BaseModel):
    """Base record partitioned by feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Key attributes may be strings, numbers or binary in the store.
    feed_id: Any = Field(alias="feedId")
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_attributes(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data

        known = cls._known_names()
        typed = {name: value for name, value in data.items() if name in known}
        extra = {
            name: value
            for name, value in data.items()
            if name not in known and name != "attributes"
        }
        attributes = dict(data.get("attributes") or {})
        attributes.update(extra)
        typed["attributes"] = attributes
        return typed

    @classmethod
    def _known_names(cls) -> Set[str]:
        names: Set[str] = set()
        for name, info in cls.model_fields.items():
            if name == "attributes":
                continue
            names.add(name)
            if info.alias:
                names.add(info.alias)
        return names

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "Record":
        return cls.model_validate(dict(item))

    @property
    @abstractmethod
    def record_id(self) -> Any:
        """Sort-key value identifying the record within its feed."""

    @property
    def identity(self) -> RecordKey:
        return RecordKey(self.feed_id, self.record_id)

    def to_context(self) -> Dict[str, Any]:
        """Flatten the record into the mapping templates see."""
        context = dict(self.attributes)
        context.update(self.model_dump(by_alias=True, exclude={"attributes"}))
        return context


class EpisodeRecord(Record):
    """A single podcast episode."""

    episode_id: Any = Field(alias="episodeId")

    @property
    def record_id(self) -> Any:
        return self.episode_id


class ViewRecord(Record):
    """A pre-rendered view definition and its storage location."""

    view_id: Any = Field(alias="viewId")
    template: str = ""
    filename_template: Optional[str] = Field(default=None, alias="filenameTemplate")
    render_each: bool = Field(default=False, alias="renderEach")
    bucket: Optional[str] = None
    object_key: Optional[str] = Field(default=None, alias="key")

    @property
    def record_id(self) -> Any:
        return self.view_id
