"""Storage clients for the key-value store and blob store."""

from .dynamo import QueryPage, RecordStore, DynamoRecordStore
from .paging import PagedReader
from .blob import ArtifactStore, BlobBackend, RenderedArtifact, S3BlobBackend

__all__ = [
    "QueryPage",
    "RecordStore",
    "DynamoRecordStore",
    "PagedReader",
    "ArtifactStore",
    "BlobBackend",
    "RenderedArtifact",
    "S3BlobBackend",
]
