"""Change-to-rerender pipeline: deduplication, fan-out and dispatch."""

from .dedup import Action, DedupEntry, DedupSet
from .fanout import BatchContext, BatchOutcome, FanOutAggregator
from .dispatcher import ChangeEventDispatcher

__all__ = [
    "Action",
    "DedupEntry",
    "DedupSet",
    "BatchContext",
    "BatchOutcome",
    "FanOutAggregator",
    "ChangeEventDispatcher",
]
