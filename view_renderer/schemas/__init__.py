"""
Data models for the rendering pipeline.

Defines the records read from the key-value store and the change
events delivered by its streams.
"""

from .records import Record, RecordKey, EpisodeRecord, ViewRecord
from .events import ChangeEvent, ChangeKind, deserialize_image, parse_batch

__all__ = [
    "Record",
    "RecordKey",
    "EpisodeRecord",
    "ViewRecord",
    "ChangeEvent",
    "ChangeKind",
    "deserialize_image",
    "parse_batch",
]
