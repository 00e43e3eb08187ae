"""
Incremental view rendering for podcast feeds.

Reacts to change batches on the episodes and views tables, re-renders
the stale views and writes the artifacts to blob storage.
"""

from .pipeline import ChangeEventDispatcher, FanOutAggregator, BatchOutcome
from .rendering import TemplateRenderer
from .storage import ArtifactStore, PagedReader

__version__ = "1.0.0"

__all__ = [
    "ChangeEventDispatcher",
    "FanOutAggregator",
    "BatchOutcome",
    "TemplateRenderer",
    "ArtifactStore",
    "PagedReader",
]
